"""
Module: types
Purpose: Shared value types for the order extraction pipeline.
Dependencies: flipflow.orders.models (enums only)

Leaf module so patterns, field_extractor, tracking, categorizer, merger and
extractor can all import these without circular imports.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from flipflow.orders.models import Carrier, OrderStatus


def _always_valid(candidate: str) -> bool:
    return bool(candidate)


def _identity(candidate: str) -> str:
    return candidate


class FieldName(str, Enum):
    """Fields the pattern library carries rules for."""

    ORDER_NUMBER = "order_number"
    TRACKING_NUMBER = "tracking_number"
    SIZE = "size"
    FAILURE_REASON = "failure_reason"


# ---------------------------------------------------------------------------
# Pattern library entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PatternRule:
    """One recognizer: a compiled regex plus the checks applied to its capture.

    Lower priority number = higher precedence. ``group`` selects the capture
    group holding the candidate (0 for the whole match).
    """

    name: str
    matcher: re.Pattern[str]
    priority: int
    validate: Callable[[str], bool] = _always_valid
    normalize: Callable[[str], str] = _identity
    group: int = 1
    carrier: Carrier | None = None


@dataclass(frozen=True)
class StatusCategory:
    """A status bucket and the subject substrings that select it."""

    status: OrderStatus
    priority: int
    subject_patterns: tuple[str, ...]


# ---------------------------------------------------------------------------
# Extraction results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Candidate:
    """A raw match seen while extracting a field (diagnostics only)."""

    rule_name: str
    raw_match: str
    valid: bool
    priority: int
    poisoned: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.rule_name,
            "match": self.raw_match,
            "priority": self.priority,
            "valid": self.valid,
            "poisoned": self.poisoned,
        }


@dataclass(frozen=True)
class ExtractionResult:
    """Best value for one field plus the full candidate trail."""

    value: str | None = None
    matched_rule_name: str | None = None
    all_candidates: tuple[Candidate, ...] = ()

    @property
    def found(self) -> bool:
        return self.value is not None

    @classmethod
    def not_found(cls, candidates: tuple[Candidate, ...] = ()) -> ExtractionResult:
        return cls(value=None, matched_rule_name=None, all_candidates=candidates)


@dataclass(frozen=True)
class TrackingResult(ExtractionResult):
    """Tracking extraction with the carrier of the winning rule."""

    carrier: Carrier | None = None

    @property
    def details(self) -> dict[str, Any]:
        return {"all_attempts": [c.to_dict() for c in self.all_candidates]}


@dataclass(frozen=True)
class CategoryMatch:
    """Result of subject categorization."""

    status: OrderStatus
    status_priority: int
    matched_pattern: str


# ---------------------------------------------------------------------------
# Per-email extraction (input to the merger)
# ---------------------------------------------------------------------------


@dataclass
class OrderExtraction:
    """Everything extracted from one email, ready to merge by order number."""

    source_email_id: str | None
    order_number: str | None = None
    tracking_number: str | None = None
    carrier: Carrier | None = None
    size: str | None = None
    status: OrderStatus | None = None
    status_priority: int = 0
    failure_reason: str | None = None
    email_date: datetime | None = None
    diagnostics: dict[FieldName, ExtractionResult] = field(default_factory=dict)
