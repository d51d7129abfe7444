"""Flip Flow - order tracking from marketplace emails"""

from __future__ import annotations

__version__ = "1.0.0"


# Lazy imports for orders module
def __getattr__(name: str):
    """
    Lazy imports to avoid loading the pipeline when only importing lightweight modules.
    """
    if name in ("OrderRecord", "OrderStatus", "Carrier", "RawEmail"):
        from flipflow.orders import models

        return getattr(models, name)

    if name == "OrderEmailPipeline":
        from flipflow.orders.extractor import OrderEmailPipeline

        return OrderEmailPipeline

    if name == "OrderRecordRepository":
        from flipflow.orders.repository import OrderRecordRepository

        return OrderRecordRepository

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "Carrier",
    "OrderRecord",
    "OrderStatus",
    "RawEmail",
    "OrderEmailPipeline",
    "OrderRecordRepository",
]
