"""
Request dispatcher: one order, one POST, one timed LatencySample.

Every failure path (transport error, timeout, unexpected status) resolves to
a sample with ok=False and the elapsed time still measured, so failed
attempts weigh on the tail percentiles instead of vanishing.
"""

from __future__ import annotations

import logging
import time
from typing import Protocol

import httpx

from common.models import LatencySample, Order
from loadgen.config import EXPECTED_STATUS, ORDERS_PATH, REQUEST_TIMEOUT_S

logger = logging.getLogger(__name__)


class Dispatcher(Protocol):
    """Anything that can submit one order and resolve it to a LatencySample."""

    async def submit(self, order: Order, idempotency_key: str) -> LatencySample: ...


class OrderDispatcher:
    """Submits orders to the target's order endpoint over a shared AsyncClient."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        path: str = ORDERS_PATH,
        timeout: float = REQUEST_TIMEOUT_S,
        expected_status: int | None = EXPECTED_STATUS,
        api_key: str | None = None,
    ) -> None:
        self._client = client
        self.url = f"{base_url.rstrip('/')}{path}"
        self.timeout = timeout
        self.expected_status = expected_status
        self.api_key = api_key

    def headers(self, idempotency_key: str) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Idempotency-Key": idempotency_key,
        }
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return headers

    def is_success(self, status_code: int) -> bool:
        if self.expected_status is None:
            return 200 <= status_code < 300
        return status_code == self.expected_status

    async def submit(self, order: Order, idempotency_key: str) -> LatencySample:
        body = order.to_json().encode()
        headers = self.headers(idempotency_key)
        start = time.perf_counter()
        try:
            resp = await self._client.post(
                self.url,
                content=body,
                headers=headers,
                timeout=self.timeout,
            )
            # Drain the body so the measurement covers the full response.
            await resp.aread()
        except httpx.TimeoutException as e:
            latency = (time.perf_counter() - start) * 1000
            logger.debug("Order %s timed out after %.2fms", idempotency_key, latency)
            return LatencySample(latency_ms=latency, ok=False, error=f"timeout:{type(e).__name__}")
        except Exception as e:
            latency = (time.perf_counter() - start) * 1000
            logger.debug("Order %s failed: %r", idempotency_key, e)
            return LatencySample(latency_ms=latency, ok=False, error=f"error:{type(e).__name__}:{e}")

        latency = (time.perf_counter() - start) * 1000
        ok = self.is_success(resp.status_code)
        if not ok:
            logger.debug("Order %s rejected with status %s", idempotency_key, resp.status_code)
        return LatencySample(latency_ms=latency, ok=ok, status_code=resp.status_code)
