"""
Module: pattern_data
Purpose: Regex sources and keyword tables for order email extraction.
Dependencies: None (pure data, no imports)

Separates extraction policy data from the matching algorithm. Edit this file
to add/remove recognizers without touching field_extractor.py or tracking.py.
Every regex here is compiled case-insensitive by patterns.py.

Rows are (name, regex, priority) or (name, regex, priority, carrier). Lower
priority number wins when several rules produce a valid candidate.
"""

# ---------------------------------------------------------------------------
# Order numbers
# ---------------------------------------------------------------------------

ORDER_NUMBER_PATTERNS: tuple[tuple[str, str, int], ...] = (
    # "75573966-75473725": buyer id, then seller-side purchase id (we want the 2nd)
    ("compound", r"\b\d{8}-(\d{8})\b", 1),
    # Xpress orders keep the full id: "01-95H9NC36ST"
    ("xpress", r"\b(\d{2}-[A-Z0-9]{6,14})\b", 2),
    # "Order number: X", "Order #: X", "Order ID X"
    ("labeled", r"order\s*(?:number|no\.?|id)\s*[:#]?\s*#?\s*([A-Z0-9][-A-Z0-9]{2,39})", 3),
    # "#X"
    ("hash", r"#\s?([A-Z0-9][-A-Z0-9]{3,39})\b", 4),
    # Last resort: any standalone 8-digit number
    ("standalone_8_digit", r"\b(\d{8})\b", 5),
)

# Both halves numeric: keep the second. Anything else (Xpress) stays whole
COMPOUND_ORDER_NUMBER = r"^\d+-(\d+)$"

# Words that follow "Order number" in prose but are not ids
GARBAGE_ORDER_WORDS: frozenset[str] = frozenset(
    {
        "confirmation",
        "tracking",
        "order",
        "number",
        "receipt",
        "invoice",
        "shipping",
        "delivery",
        "purchase",
        "unknown",
        "none",
        "n/a",
        "null",
    }
)

# CSS colors ("#FFF", "#1A2B3C") leak into "#X" matches from HTML-ish text
HEX_COLOR = r"^(?=.*[A-F])(?:[0-9A-F]{3}|[0-9A-F]{6})$"

# ---------------------------------------------------------------------------
# Tracking numbers (carrier enum name as 4th column)
# ---------------------------------------------------------------------------

UPS_TRACKING_FORMAT = r"^1Z[0-9A-Z]{16}$"

TRACKING_PATTERNS: tuple[tuple[str, str, int, str], ...] = (
    ("ups", r"(1Z[0-9A-Z]{16})", 1, "UPS"),
    ("fedex_ground", r"(?:tracking|number)\D{0,60}?\b(\d{12})\b", 2, "FEDEX"),
    ("fedex_express", r"(?:tracking|number)\D{0,60}?\b(\d{14})\b", 2, "FEDEX"),
    ("usps_priority", r"\b(9\d{21})\b", 3, "USPS"),
    ("usps_standard", r"\b(9\d{19})\b", 3, "USPS"),
    ("stockx_internal", r"\b([89]\d{11})\b", 4, "STOCKX_INTERNAL"),
    ("generic", r"(?:tracking|track)\D{0,40}?\b(\d{10,30})\b", 5, "UNKNOWN"),
)

# Full-string formats each carrier's candidate must satisfy
TRACKING_FORMATS: dict[str, str] = {
    "ups": UPS_TRACKING_FORMAT,
    "fedex_ground": r"^\d{12}$",
    "fedex_express": r"^\d{14}$",
    "usps_priority": r"^9\d{21}$",
    "usps_standard": r"^9\d{19}$",
    "stockx_internal": r"^[89]\d{11}$",
    "generic": r"^\d{10,30}$",
}

# ---------------------------------------------------------------------------
# Numeric exclusion filters (prices, years, dates, ZIPs, phones)
# ---------------------------------------------------------------------------

EXCLUDED_NUMBER_PATTERNS: tuple[str, ...] = (
    r"^(?:0{8,}|1{8,})$",  # All zeros or ones
    r"^(?:150|173|14|8|00)$",  # Price fragments seen in receipts
    r"^20\d{2}$",  # Years
    r"^\d{2}/\d{2}/\d{4}$",  # Dates
    r"^\d{5}$",  # ZIP codes
    r"^\d{10}$",  # Phone numbers
)

# 8-digit numbers that are really YYYYMMDD stamps
COMPACT_DATE = r"^(?:19|20)\d{2}(?:0[1-9]|1[0-2])(?:0[1-9]|[12]\d|3[01])$"

# ---------------------------------------------------------------------------
# Sizes
# ---------------------------------------------------------------------------

# Numeric (optionally width/letter-prefixed, half sizes only) or letter size
SIZE_VALUE = r"((?:[XSMLW]{1,3}\s?)?\d{1,2}(?:\.5)?(?!\.\d)\b|[XSMLW]{1,4}\b)"

SIZE_PATTERNS: tuple[tuple[str, str, int], ...] = (
    ("html_table_cell", r"<td[^>]*>\s*Size[^<]*</td>\s*<td[^>]*>\s*(?:US\s*)?" + SIZE_VALUE, 1),
    ("html_list_item", r"<li[^>]*>\s*Size:\s*(?:US\s*)?" + SIZE_VALUE + r"\s*</li>", 1),
    (
        "html_span_div",
        r"<(?:span|div)[^>]*>\s*Size:\s*(?:US\s*)?" + SIZE_VALUE + r"\s*</(?:span|div)>",
        1,
    ),
    ("labeled", r"Size:\s*(?:US\s*)?" + SIZE_VALUE, 2),
    ("parenthetical", r"\(Size\s*(?:US?\s*)?" + SIZE_VALUE + r"\s*\)", 3),
    ("loose", r"\bSize[:\s]+(?:US[:\s]+)?" + SIZE_VALUE, 4),
    ("us_prefixed", r"\bUS\s+(\d{1,2}(?:\.5)?)(?!\.\d)\b", 5),
)

SIZE_FORMAT = r"^(?:(?:[XSMLW]{1,3}\s?)?\d{1,2}(?:\.5)?|[XSMLW]{1,4})$"

# ---------------------------------------------------------------------------
# Verification failure reasons
# ---------------------------------------------------------------------------

# "...did not pass verification due to: <ul><li>Reason</li>"
FAILURE_REASON_LIST_ITEM = r"due to:.*?<li[^>]*>([^<]+)</li>"

# (regex, canonical reason); checked in order, first hit wins
FAILURE_REASON_KEYWORDS: tuple[tuple[str, str], ...] = (
    (r"Manufacturing Defects?", "Manufacturing Defect"),
    (r"Suspected Inauthentic", "Suspected Inauthentic"),
    (r"Used/Product Damage", "Used/Product Damage"),
    (r"Used or Product Damage", "Used/Product Damage"),
    (r"Incorrect sizing of the item", "Incorrect Sizing"),
    (r"Box Damage", "Box Damage"),
    (r"Damaged box", "Box Damage"),
    (
        r"manufacturer defects.*misplaced tags.*misplaced logos.*embroidery issues",
        "Manufacturing Defect",
    ),
    (r"signs of wear or prior use", "Used"),
    (r"incorrect materials.*tags.*substandard construction", "Suspected Inauthentic"),
    (r"incorrect model.*incorrect packaging.*incorrect product", "Incorrect Product"),
    (r"Product Damage", "Product Damage"),
    (r"Sizing Issue", "Incorrect Sizing"),
    (r"Wrong Size", "Incorrect Sizing"),
    (r"Fake/Replica", "Suspected Inauthentic"),
    (r"Counterfeit", "Suspected Inauthentic"),
    (r"Not Authentic", "Suspected Inauthentic"),
    (r"Failed Authentication", "Suspected Inauthentic"),
)

DEFAULT_FAILURE_REASON = "Did not pass verification"

VERIFICATION_FAILURE_MARKERS: tuple[str, ...] = (
    "did not pass verification",
    "failed verification",
)

# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------

# Marketplace subjects lead with status emoji ("🎉 Xpress Ship Order Delivered:")
SUBJECT_EMOJI_PREFIX = r"^[\U0001F389\U0001F69A\U0001F4E6\U0001F4B0❌]+\s*"
