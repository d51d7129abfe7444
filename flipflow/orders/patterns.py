"""
Pattern library: per-field ordered PatternRule lists.

Builds compiled, case-insensitive rules from the raw tables in pattern_data.py
and attaches each rule's validate/normalize callables. The library is injected
into the extractors rather than looked up globally, so tests and callers can
swap in their own rules (or poison values) without touching module state.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from flipflow.config import (
    PIPELINE_ORDER_NUM_MAX_LEN,
    PIPELINE_ORDER_NUM_MIN_LEN,
    SIZE_POISON_VALUES,
)
from flipflow.orders import pattern_data
from flipflow.orders.models import Carrier
from flipflow.orders.types import FieldName, PatternRule

PATTERN_LIBRARY_VERSION = "v1"

_FLAGS = re.IGNORECASE

_COMPOUND_ORDER_NUMBER = re.compile(pattern_data.COMPOUND_ORDER_NUMBER)
_HEX_COLOR = re.compile(pattern_data.HEX_COLOR, _FLAGS)
_COMPACT_DATE = re.compile(pattern_data.COMPACT_DATE)
_EXCLUDED_NUMBERS = tuple(re.compile(p) for p in pattern_data.EXCLUDED_NUMBER_PATTERNS)
_SIZE_FORMAT = re.compile(pattern_data.SIZE_FORMAT, _FLAGS)
_WHITESPACE = re.compile(r"\s+")


# ============================================================================
# Exclusion filters (shared by numeric-candidate rules)
# ============================================================================


def is_excluded_number(candidate: str) -> bool:
    """True if a numeric candidate is a year, ZIP, phone, price fragment or date.

    Hyphenated tokens are order-number shaped and never numeric ids.
    """
    if "-" in candidate:
        return True
    return any(pattern.match(candidate) for pattern in _EXCLUDED_NUMBERS)


def looks_like_compact_date(candidate: str) -> bool:
    """True for 8-digit YYYYMMDD stamps."""
    return bool(_COMPACT_DATE.match(candidate))


# ============================================================================
# Order number validation / normalization
# ============================================================================


def clean_order_number(order_num: str | None) -> str | None:
    """Validate and clean an extracted order number.

    Rejects:
    - None / empty
    - Common words (CONFIRMATION, TRACKING, etc.)
    - Strings with no digits
    - Too short or too long
    - Leading/trailing dashes
    """
    if not order_num:
        return None

    cleaned = order_num.strip().strip("-").strip()

    if (
        not cleaned
        or len(cleaned) < PIPELINE_ORDER_NUM_MIN_LEN
        or len(cleaned) > PIPELINE_ORDER_NUM_MAX_LEN
    ):
        return None

    if cleaned.lower() in pattern_data.GARBAGE_ORDER_WORDS:
        return None

    if not any(c.isdigit() for c in cleaned):
        return None

    return cleaned


def normalize_order_number(order_num: str) -> str:
    """Canonical form of an order number.

    "73258261-73158020" -> "73158020" (seller-side half, both halves numeric);
    Xpress ids such as "01-GNHWJCZS95" are kept whole. Always upper-case.
    """
    cleaned = (clean_order_number(order_num) or order_num.strip()).upper()
    compound = _COMPOUND_ORDER_NUMBER.match(cleaned)
    if compound:
        return compound.group(1)
    return cleaned


def _valid_order_number(candidate: str) -> bool:
    return clean_order_number(candidate) is not None


def _valid_xpress_order_number(candidate: str) -> bool:
    if not _valid_order_number(candidate):
        return False
    suffix = candidate.split("-", 1)[1]
    return any(c.isalpha() for c in suffix)


def _valid_hash_order_number(candidate: str) -> bool:
    return _valid_order_number(candidate) and not _HEX_COLOR.match(candidate)


def _valid_standalone_order_number(candidate: str) -> bool:
    return not is_excluded_number(candidate) and not looks_like_compact_date(candidate)


_ORDER_NUMBER_VALIDATORS = {
    "xpress": _valid_xpress_order_number,
    "hash": _valid_hash_order_number,
    "standalone_8_digit": _valid_standalone_order_number,
}


# ============================================================================
# Tracking validation
# ============================================================================


def _tracking_validator(rule_name: str, numeric: bool) -> Callable[[str], bool]:
    format_re = re.compile(pattern_data.TRACKING_FORMATS[rule_name], _FLAGS)

    def validate(candidate: str) -> bool:
        if not format_re.match(candidate):
            return False
        return not (numeric and is_excluded_number(candidate))

    return validate


# ============================================================================
# Size validation / normalization
# ============================================================================


def normalize_size(candidate: str) -> str:
    """'9.5' -> 'US 9.5', 'xl' -> 'US XL', 'w  8' -> 'US W 8'."""
    value = _WHITESPACE.sub(" ", candidate.strip()).upper()
    if value.startswith("US "):
        return value
    return f"US {value}"


def _valid_size(candidate: str) -> bool:
    return bool(_SIZE_FORMAT.match(candidate.strip()))


# ============================================================================
# Failure reasons
# ============================================================================


def normalize_failure_reason(candidate: str) -> str:
    return _WHITESPACE.sub(" ", candidate).strip()


def _constant(value: str) -> Callable[[str], str]:
    def normalize(_candidate: str) -> str:
        return value

    return normalize


# ============================================================================
# Library
# ============================================================================


def _upper(candidate: str) -> str:
    return candidate.upper()


def build_order_number_rules() -> tuple[PatternRule, ...]:
    return tuple(
        PatternRule(
            name=name,
            matcher=re.compile(regex, _FLAGS),
            priority=priority,
            validate=_ORDER_NUMBER_VALIDATORS.get(name, _valid_order_number),
            normalize=normalize_order_number,
        )
        for name, regex, priority in pattern_data.ORDER_NUMBER_PATTERNS
    )


def build_tracking_rules() -> tuple[PatternRule, ...]:
    return tuple(
        PatternRule(
            name=name,
            matcher=re.compile(regex, _FLAGS),
            priority=priority,
            validate=_tracking_validator(name, numeric=carrier != Carrier.UPS.value),
            normalize=_upper,
            carrier=Carrier(carrier),
        )
        for name, regex, priority, carrier in pattern_data.TRACKING_PATTERNS
    )


def build_size_rules() -> tuple[PatternRule, ...]:
    return tuple(
        PatternRule(
            name=name,
            matcher=re.compile(regex, _FLAGS),
            priority=priority,
            validate=_valid_size,
            normalize=normalize_size,
        )
        for name, regex, priority in pattern_data.SIZE_PATTERNS
    )


def build_failure_reason_rules() -> tuple[PatternRule, ...]:
    rules = [
        PatternRule(
            name="due_to_list_item",
            matcher=re.compile(pattern_data.FAILURE_REASON_LIST_ITEM, _FLAGS | re.DOTALL),
            priority=1,
            normalize=normalize_failure_reason,
        )
    ]
    for regex, reason in pattern_data.FAILURE_REASON_KEYWORDS:
        rules.append(
            PatternRule(
                name=f"keyword:{reason}",
                matcher=re.compile(regex, _FLAGS),
                priority=2,
                normalize=_constant(reason),
                group=0,
            )
        )
    return tuple(rules)


@dataclass(frozen=True)
class PatternLibrary:
    """Versioned collection of PatternRule lists, one per extracted field."""

    rules: dict[FieldName, tuple[PatternRule, ...]]
    poison_values: dict[FieldName, frozenset[str]] = field(default_factory=dict)
    version: str = PATTERN_LIBRARY_VERSION

    @classmethod
    def default(cls, size_poison_values: Iterable[str] | None = None) -> PatternLibrary:
        """Library built from pattern_data with configured poison values."""
        poison = SIZE_POISON_VALUES if size_poison_values is None else size_poison_values
        return cls(
            rules={
                FieldName.ORDER_NUMBER: build_order_number_rules(),
                FieldName.TRACKING_NUMBER: build_tracking_rules(),
                FieldName.SIZE: build_size_rules(),
                FieldName.FAILURE_REASON: build_failure_reason_rules(),
            },
            poison_values={FieldName.SIZE: frozenset(poison)},
        )

    def rules_for(self, field_name: FieldName) -> tuple[PatternRule, ...]:
        """Rules for a field in evaluation order (empty if none configured)."""
        return self.rules.get(field_name, ())

    def poison_values_for(self, field_name: FieldName) -> frozenset[str]:
        return self.poison_values.get(field_name, frozenset())
