"""
Flip Flow orders module - email-derived order extraction and reconciliation.
"""

from flipflow.orders.categorizer import EmailCategorizer, categorize
from flipflow.orders.extractor import OrderEmailPipeline, PipelineRun, iter_batches
from flipflow.orders.field_extractor import extract
from flipflow.orders.merger import (
    DuplicateGroup,
    OrderRecordMerger,
    merge,
    override_status,
    plan_duplicate_cleanup,
)
from flipflow.orders.models import Carrier, OrderRecord, OrderStatus, RawEmail
from flipflow.orders.patterns import PatternLibrary
from flipflow.orders.repository import OrderRecordRepository
from flipflow.orders.service import OrderSyncService, SyncResult
from flipflow.orders.tracking import TrackingClassifier
from flipflow.orders.types import (
    Candidate,
    CategoryMatch,
    ExtractionResult,
    FieldName,
    OrderExtraction,
    PatternRule,
    StatusCategory,
    TrackingResult,
)

__all__ = [
    # Models
    "Carrier",
    "OrderRecord",
    "OrderStatus",
    "RawEmail",
    # Types
    "Candidate",
    "CategoryMatch",
    "ExtractionResult",
    "FieldName",
    "OrderExtraction",
    "PatternRule",
    "StatusCategory",
    "TrackingResult",
    # Pattern library / extraction
    "PatternLibrary",
    "extract",
    "TrackingClassifier",
    "EmailCategorizer",
    "categorize",
    # Merge
    "DuplicateGroup",
    "OrderRecordMerger",
    "merge",
    "override_status",
    "plan_duplicate_cleanup",
    # Orchestrator
    "OrderEmailPipeline",
    "PipelineRun",
    "iter_batches",
    # Persistence
    "OrderRecordRepository",
    "OrderSyncService",
    "SyncResult",
]
