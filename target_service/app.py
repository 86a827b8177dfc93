"""
OrderIntake stub: the target's HTTP contract without matching or persistence.

POST /orders accepts an order body, deduplicates by Idempotency-Key, optionally
enforces X-API-Key, and can simulate latency or failure so the load drivers
have something realistic to measure locally. Seen keys live in memory, capped
at TARGET_IDEMPOTENCY_KEYS with the oldest evicted first.
"""

import asyncio
import logging
import os
from collections import OrderedDict

from fastapi import FastAPI, Header, HTTPException

from common import new_order_id, now_iso, setup_logging
from common.models import OrderAccepted, OrderCreateRequest

# Logging via common (stderr, timestamps, service name)
setup_logging("order-intake-stub", os.getenv("LOADGEN_LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

DELAY_MS = int(os.getenv("TARGET_DELAY_MS", "0"))
FAIL = os.getenv("TARGET_FAIL", "false").lower() in ("1", "true", "yes")
API_KEY = os.getenv("TARGET_API_KEY") or None
MAX_KEYS = int(os.getenv("TARGET_IDEMPOTENCY_KEYS", "100000"))


def create_app(
    delay_ms: int = DELAY_MS,
    fail: bool = FAIL,
    api_key: str | None = API_KEY,
    max_keys: int = MAX_KEYS,
) -> FastAPI:
    app = FastAPI(title="order-intake-stub")
    accepted: OrderedDict[str, OrderAccepted] = OrderedDict()
    app.state.accepted = accepted

    @app.get("/health")
    def health():
        return {"status": "ok", "accepted": len(accepted)}

    @app.post("/orders")
    async def create_order(
        payload: OrderCreateRequest,
        idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
        x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    ):
        if api_key is not None and x_api_key != api_key:
            raise HTTPException(status_code=401, detail="Unauthorized")

        if delay_ms > 0:
            await asyncio.sleep(delay_ms / 1000.0)

        if fail:
            raise HTTPException(status_code=500, detail="Simulated order intake failure")

        # Replayed submission: return the first acceptance unchanged
        if idempotency_key is not None and idempotency_key in accepted:
            logger.debug("Duplicate Idempotency-Key %s", idempotency_key)
            return accepted[idempotency_key].model_dump()

        result = OrderAccepted(
            order_id=new_order_id(),
            idempotency_key=idempotency_key,
            created_at=now_iso(),
        )
        if idempotency_key is not None:
            accepted[idempotency_key] = result
            if len(accepted) > max_keys:
                accepted.popitem(last=False)
        logger.debug(
            "Accepted %s %s %s@%s for %s",
            payload.side,
            payload.type,
            payload.quantity,
            payload.price,
            payload.client_id,
        )
        return result.model_dump()

    return app


app = create_app()
