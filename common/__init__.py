"""
Shared common module for the load drivers and the stub target service.

Framework-agnostic; no FastAPI dependency. Uses Pydantic v2 for schemas.
"""

from common.ids import idempotency_key, new_order_id, new_run_id, now_iso
from common.logging import setup_logging
from common.models import (
    CheckTally,
    LatencySample,
    Order,
    OrderAccepted,
    OrderCreateRequest,
    RunReport,
)

__all__ = [
    "idempotency_key",
    "new_run_id",
    "new_order_id",
    "now_iso",
    "setup_logging",
    "Order",
    "OrderCreateRequest",
    "OrderAccepted",
    "LatencySample",
    "RunReport",
    "CheckTally",
]
