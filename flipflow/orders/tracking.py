"""
Tracking classifier: tracking number + carrier from email content.

UPS numbers ("1Z" + 16 alphanumerics) have an unambiguous format, so a valid
UPS match wins outright and the numeric carrier rules are not consulted.
Numeric formats (FedEx, USPS, StockX internal, generic) collide with prices,
ZIPs and phone numbers; they go through the exclusion filters and the normal
priority selection of field_extractor.extract.
"""

from __future__ import annotations

import re

from flipflow.observability.logging import get_logger
from flipflow.orders.field_extractor import extract
from flipflow.orders.models import Carrier
from flipflow.orders.pattern_data import UPS_TRACKING_FORMAT
from flipflow.orders.patterns import PatternLibrary
from flipflow.orders.types import Candidate, ExtractionResult, FieldName, TrackingResult

logger = get_logger(__name__)

_UPS_FORMAT = re.compile(UPS_TRACKING_FORMAT, re.IGNORECASE)


class TrackingClassifier:
    """Runs the tracking rules of a PatternLibrary and assigns a carrier."""

    def __init__(self, library: PatternLibrary | None = None) -> None:
        self.library = library or PatternLibrary.default()
        rules = self.library.rules_for(FieldName.TRACKING_NUMBER)
        self._ups_rules = tuple(r for r in rules if r.carrier is Carrier.UPS)
        self._other_rules = tuple(r for r in rules if r.carrier is not Carrier.UPS)
        self._carrier_by_rule = {r.name: r.carrier or Carrier.UNKNOWN for r in rules}

    def classify(self, content: str | None) -> TrackingResult:
        """
        Find the most trustworthy tracking number in content.

        Returns:
            TrackingResult with value/carrier set, or value=None. The
            ``details["all_attempts"]`` trail lists every match examined.
        """
        ups = extract(content, self._ups_rules)
        if ups.value and _UPS_FORMAT.match(ups.value):
            logger.debug("UPS tracking match short-circuits numeric rules")
            return self._as_tracking(ups, ups.all_candidates)

        others = extract(content, self._other_rules)
        return self._as_tracking(others, ups.all_candidates + others.all_candidates)

    def _as_tracking(
        self, result: ExtractionResult, candidates: tuple[Candidate, ...]
    ) -> TrackingResult:
        carrier = None
        if result.matched_rule_name is not None:
            carrier = self._carrier_by_rule.get(result.matched_rule_name, Carrier.UNKNOWN)
        return TrackingResult(
            value=result.value,
            matched_rule_name=result.matched_rule_name,
            all_candidates=tuple(candidates),
            carrier=carrier,
        )
