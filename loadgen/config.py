"""Load harness configuration: environment defaults and validated run parameters."""

from __future__ import annotations

import math
import os

from pydantic import BaseModel, ConfigDict, Field, model_validator

TARGET_HOST = os.getenv("TARGET_HOST", "localhost")
TARGET_PORT = int(os.getenv("TARGET_PORT", "8080"))
ORDERS_PATH = os.getenv("ORDERS_PATH", "/orders")
REQUEST_TIMEOUT_S = float(os.getenv("REQUEST_TIMEOUT_S", "10"))
TARGET_API_KEY = os.getenv("TARGET_API_KEY") or None
LOADGEN_SEED = int(os.environ["LOADGEN_SEED"]) if os.getenv("LOADGEN_SEED") else None
LOADGEN_INSTRUMENT = os.getenv("LOADGEN_INSTRUMENT", "BTC-USD")
LOADGEN_LOG_LEVEL = os.getenv("LOADGEN_LOG_LEVEL", "INFO")

EXPECTED_STATUS = 200


def base_url(host: str, port: int) -> str:
    """http://host:port for the target; host may already carry a scheme."""
    if host.startswith(("http://", "https://")):
        return f"{host.rstrip('/')}:{port}"
    return f"http://{host}:{port}"


class ClosedLoopConfig(BaseModel):
    """Batch replay: totalOrders requests, at most `concurrency` outstanding."""

    model_config = ConfigDict(extra="forbid")

    host: str = TARGET_HOST
    port: int = Field(TARGET_PORT, gt=0, lt=65536)
    total_orders: int = Field(1000, ge=0)
    concurrency: int = Field(20, ge=1)


class OpenLoopConfig(BaseModel):
    """
    Constant arrival rate for a fixed duration.

    Defaults mirror the reference scenario: 2000 orders/s for 30 s with 500
    pre-allocated callers and a ceiling of 2000. `graceful_stop` bounds how
    long in-flight requests may drain after the deadline before they are
    cancelled and counted as abandoned.
    """

    model_config = ConfigDict(extra="forbid")

    rate: float = Field(2000.0, gt=0, description="Arrivals per second")
    duration: float = Field(30.0, gt=0, description="Seconds of issuance")
    pre_allocated_callers: int = Field(500, ge=1)
    max_callers: int = Field(2000, ge=1)
    graceful_stop: float = Field(30.0, ge=0)

    @model_validator(mode="after")
    def _ceiling_covers_pool(self) -> "OpenLoopConfig":
        if self.max_callers < self.pre_allocated_callers:
            raise ValueError("max_callers must be >= pre_allocated_callers")
        return self

    @property
    def expected_arrivals(self) -> int:
        """Arrivals scheduled strictly before the deadline: k / rate < duration."""
        return math.ceil(self.rate * self.duration - 1e-9)
