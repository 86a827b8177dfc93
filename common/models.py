"""
Pydantic v2 data models for synthetic orders, latency samples, and run reports.

Framework-agnostic; safe to use from FastAPI (request/response bodies) or
the load drivers. All models forbid extra fields.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Side = Literal["buy", "sell"]
OrderType = Literal["limit", "market"]


# -----------------------------------------------------------------------------
# Wire models (POST /orders body)
# -----------------------------------------------------------------------------


class OrderCreateRequest(BaseModel):
    """Order body accepted by the target: camelCase on the wire, positive price and quantity."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    client_id: str = Field(..., min_length=1)
    instrument: str = Field(..., min_length=1)
    side: Side
    type: OrderType
    price: float = Field(..., gt=0, description="Price must be positive")
    quantity: float = Field(..., gt=0, description="Quantity must be positive")


class Order(OrderCreateRequest):
    """Synthetic order produced by the generator. Immutable once built."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        """JSON-ready dict using the wire (camelCase) field names."""
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class OrderAccepted(BaseModel):
    """Response body returned by the stub target for an accepted order."""

    model_config = ConfigDict(extra="forbid")

    order_id: str
    idempotency_key: str | None = None
    status: Literal["open"] = "open"
    created_at: str


# -----------------------------------------------------------------------------
# Measurement models
# -----------------------------------------------------------------------------


class LatencySample(BaseModel):
    """One round-trip measurement, successful or not."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    latency_ms: float = Field(..., ge=0)
    ok: bool
    status_code: int | None = None
    error: str | None = None


class RunReport(BaseModel):
    """Summary of a finished run; percentiles are rank-based, in milliseconds."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    count: int = Field(..., gt=0)
    failures: int = Field(0, ge=0)
    p50: float
    p90: float
    p99: float
    min: float
    max: float
    mean: float

    @property
    def successes(self) -> int:
        return self.count - self.failures


class CheckTally(BaseModel):
    """Pass/fail counter for a named per-request assertion."""

    model_config = ConfigDict(extra="forbid")

    name: str
    passes: int = 0
    fails: int = 0

    def observe(self, passed: bool) -> None:
        if passed:
            self.passes += 1
        else:
            self.fails += 1

    def __str__(self) -> str:
        mark = "✓" if self.fails == 0 else "✗"
        return f"{mark} {self.name}: {self.passes} / {self.fails}"
