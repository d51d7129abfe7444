"""
Order email pipeline - orchestrates extraction and merge for a batch of emails.

Coordinates:
1. EmailCategorizer - subject -> status category (uncategorized emails are skipped)
2. Field extractor - order number, size, failure reason
3. TrackingClassifier - tracking number + carrier
4. OrderRecordMerger - fold extractions into one record per order number

Entry point: OrderEmailPipeline.run()

Emails are processed in (internal_date, source_id) order, so the merged output
does not depend on the order the mail source returned them in. Nothing here
does I/O; fetching and persistence belong to the caller (see service.py).
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from flipflow.config import PIPELINE_BATCH_SIZE, PIPELINE_BODY_TRUNCATION
from flipflow.observability.logging import get_logger
from flipflow.observability.telemetry import counter, log_event, time_block
from flipflow.orders.categorizer import EmailCategorizer
from flipflow.orders.field_extractor import extract
from flipflow.orders.merger import OrderRecordMerger
from flipflow.orders.models import OrderRecord, OrderStatus, RawEmail, as_utc
from flipflow.orders.pattern_data import DEFAULT_FAILURE_REASON, VERIFICATION_FAILURE_MARKERS
from flipflow.orders.patterns import PatternLibrary
from flipflow.orders.tracking import TrackingClassifier
from flipflow.orders.types import ExtractionResult, FieldName, OrderExtraction
from flipflow.utils.html import html_to_text
from flipflow.utils.redaction import redact_subject

logger = get_logger(__name__)


def iter_batches(emails: Sequence[RawEmail], batch_size: int = PIPELINE_BATCH_SIZE) -> Iterator[list[RawEmail]]:
    """Split emails into batches of at most batch_size (callers rate-limit between them)."""
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    for start in range(0, len(emails), batch_size):
        yield list(emails[start : start + batch_size])


def _truncate(value: str | None) -> str:
    if not value:
        return ""
    return value[:PIPELINE_BODY_TRUNCATION]


def text_view(email: RawEmail) -> str:
    """Subject + plain body + flattened HTML body, for order/tracking matching."""
    parts = [email.subject, _truncate(email.body_plain_text), html_to_text(_truncate(email.body_html))]
    return "\n".join(part for part in parts if part)


def raw_view(email: RawEmail) -> str:
    """Subject + raw HTML + plain body, for rules keyed on HTML structure."""
    parts = [email.subject, _truncate(email.body_html), _truncate(email.body_plain_text)]
    return "\n".join(part for part in parts if part)


@dataclass
class PipelineRun:
    """Outcome of one orchestration run."""

    records: list[OrderRecord] = field(default_factory=list)
    extractions: list[OrderExtraction] = field(default_factory=list)
    total: int = 0
    skipped_uncategorized: int = 0
    skipped_no_order_number: int = 0
    errors: int = 0


class OrderEmailPipeline:
    """
    Main orchestrator: RawEmail batch -> merged OrderRecords.

    Stateless across runs; one instance can be reused for any number of batches.
    """

    def __init__(
        self,
        library: PatternLibrary | None = None,
        categorizer: EmailCategorizer | None = None,
    ) -> None:
        self.library = library or PatternLibrary.default()
        self.categorizer = categorizer or EmailCategorizer()
        self.tracking = TrackingClassifier(self.library)

    def extract_email(self, email: RawEmail) -> OrderExtraction | None:
        """
        Run categorization and all field extractors over one email.

        Returns:
            OrderExtraction (order_number may be None), or None if the subject
            matched no status category.
        """
        category = self.categorizer.categorize(email.subject)
        if category is None:
            logger.debug("Uncategorized email %s: %s", email.source_id, redact_subject(email.subject))
            counter("orders.extraction.uncategorized")
            return None

        text = text_view(email)
        raw = raw_view(email)

        order_number = extract(text, self.library.rules_for(FieldName.ORDER_NUMBER))
        tracking = self.tracking.classify(text)
        size = extract(
            raw,
            self.library.rules_for(FieldName.SIZE),
            poison_values=self.library.poison_values_for(FieldName.SIZE),
        )

        diagnostics: dict[FieldName, ExtractionResult] = {
            FieldName.ORDER_NUMBER: order_number,
            FieldName.TRACKING_NUMBER: tracking,
            FieldName.SIZE: size,
        }

        failure_reason = None
        if category.status is OrderStatus.CANCELED:
            failure = extract(raw, self.library.rules_for(FieldName.FAILURE_REASON))
            diagnostics[FieldName.FAILURE_REASON] = failure
            failure_reason = failure.value
            if failure_reason is None and _is_verification_failure(text):
                failure_reason = DEFAULT_FAILURE_REASON

        if order_number.value is None:
            logger.info(
                "No order number in %s email %s: %s",
                category.status.value,
                email.source_id,
                redact_subject(email.subject),
            )
            counter("orders.extraction.no_order_number")

        return OrderExtraction(
            source_email_id=email.source_id,
            order_number=order_number.value,
            tracking_number=tracking.value,
            carrier=tracking.carrier,
            size=size.value,
            status=category.status,
            status_priority=category.status_priority,
            failure_reason=failure_reason,
            email_date=email.internal_date,
            diagnostics=diagnostics,
        )

    def run(self, emails: Sequence[RawEmail]) -> list[OrderRecord]:
        """Extract and merge a batch; one record per distinct order number."""
        return self.run_detailed(emails).records

    def run_detailed(self, emails: Sequence[RawEmail]) -> PipelineRun:
        """
        Same as run(), also returning per-email extractions and skip counts.

        Side Effects:
            - Increments orders.extraction.* counters
            - Emits orders.pipeline.run_complete event
        """
        outcome = PipelineRun(total=len(emails))
        merger = OrderRecordMerger()

        ordered = sorted(emails, key=lambda e: (as_utc(e.internal_date), e.source_id))

        with time_block("orders.pipeline.run.latency"):
            for email in ordered:
                try:
                    extraction = self.extract_email(email)
                except Exception as e:
                    logger.error("Failed to process email %s: %s", email.source_id, e)
                    counter("orders.extraction.error")
                    outcome.errors += 1
                    continue

                if extraction is None:
                    outcome.skipped_uncategorized += 1
                    continue

                outcome.extractions.append(extraction)
                if merger.add(extraction) is None:
                    outcome.skipped_no_order_number += 1

        outcome.records = merger.records()

        log_event(
            "orders.pipeline.run_complete",
            total=outcome.total,
            records=len(outcome.records),
            uncategorized=outcome.skipped_uncategorized,
            no_order_number=outcome.skipped_no_order_number,
            errors=outcome.errors,
        )
        return outcome


def _is_verification_failure(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in VERIFICATION_FAILURE_MARKERS)
