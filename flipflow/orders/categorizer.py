"""
Email categorizer: subject line -> order status category.

Categories come from categories.yaml (or a caller-supplied path / list) and are
checked in declared order; the first category whose pattern is a substring of
the lower-cased subject wins. Subjects that match nothing are irrelevant to
status tracking and yield None.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from pathlib import Path

import yaml

from flipflow.observability.logging import get_logger
from flipflow.orders.models import OrderStatus
from flipflow.orders.pattern_data import SUBJECT_EMOJI_PREFIX
from flipflow.orders.types import CategoryMatch, StatusCategory

logger = get_logger(__name__)

DEFAULT_CATEGORIES_PATH = Path(__file__).parent / "categories.yaml"

_EMOJI_PREFIX = re.compile(SUBJECT_EMOJI_PREFIX)


def clean_subject(subject: str | None) -> str:
    """Drop leading status emoji and surrounding whitespace."""
    if not subject:
        return ""
    return _EMOJI_PREFIX.sub("", subject.strip()).strip()


def load_categories(path: Path) -> tuple[StatusCategory, ...]:
    """Load status categories from YAML config, preserving declared order."""
    if not path.exists():
        logger.warning("Status categories not found at %s, using empty categories", path)
        return ()

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    categories = []
    for entry in data.get("categories", []):
        status = OrderStatus(entry["status"])
        categories.append(
            StatusCategory(
                status=status,
                priority=int(entry.get("priority", status.priority)),
                subject_patterns=tuple(str(p) for p in entry.get("subject_patterns", [])),
            )
        )
    return tuple(categories)


def categorize(subject: str | None, categories: Sequence[StatusCategory]) -> CategoryMatch | None:
    """
    Map a subject to the first matching status category.

    Args:
        subject: Raw subject line (emoji prefix allowed)
        categories: Categories in evaluation order

    Returns:
        CategoryMatch, or None when no category pattern occurs in the subject
    """
    lowered = clean_subject(subject).lower()
    if not lowered:
        return None

    for category in categories:
        for pattern in category.subject_patterns:
            if pattern.lower() in lowered:
                return CategoryMatch(
                    status=category.status,
                    status_priority=category.priority,
                    matched_pattern=pattern,
                )
    return None


class EmailCategorizer:
    """Holds a configured category list and categorizes subjects against it."""

    def __init__(
        self,
        categories: Sequence[StatusCategory] | None = None,
        categories_path: Path | None = None,
    ) -> None:
        """
        Args:
            categories: Explicit categories (take precedence over the file)
            categories_path: Path to a categories YAML file.
                             If None, uses the packaged categories.yaml.
        """
        if categories is None:
            categories = load_categories(categories_path or DEFAULT_CATEGORIES_PATH)
        self.categories: tuple[StatusCategory, ...] = tuple(categories)

        logger.info("EmailCategorizer initialized: %d categories", len(self.categories))

    def categorize(self, subject: str | None) -> CategoryMatch | None:
        return categorize(subject, self.categories)
