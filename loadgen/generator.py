"""
Synthetic order generator.

Orders are economically plausible BTC-USD style orders: random side, 80/20
limit/market mix, price in [30000, 70000] and quantity in [0.01, 2.01].
Client ids cycle through at most 100 values so client-side rate limits on
the target see a bounded set of callers regardless of run size.
"""

from __future__ import annotations

import random
from typing import IO, Iterator

from common.models import Order

CLIENT_BUCKETS = 100
LIMIT_PROBABILITY = 0.8
PRICE_MIN, PRICE_SPAN = 30000.0, 40000.0
QUANTITY_MIN, QUANTITY_SPAN = 0.01, 2.0


class OrderGenerator:
    """Builds orders from an injected random source; seed it for reproducible runs."""

    def __init__(
        self,
        rng: random.Random | None = None,
        instrument: str = "BTC-USD",
        client_prefix: str = "client-",
    ) -> None:
        self._rng = rng if rng is not None else random.Random()
        self.instrument = instrument
        self.client_prefix = client_prefix

    @classmethod
    def seeded(cls, seed: int | None, **kwargs) -> "OrderGenerator":
        return cls(random.Random(seed), **kwargs)

    def generate(self, index: int) -> Order:
        rng = self._rng
        side = "buy" if rng.random() < 0.5 else "sell"
        order_type = "limit" if rng.random() < LIMIT_PROBABILITY else "market"
        price = PRICE_MIN + rng.random() * PRICE_SPAN
        quantity = QUANTITY_MIN + rng.random() * QUANTITY_SPAN
        return Order(
            client_id=f"{self.client_prefix}{index % CLIENT_BUCKETS}",
            instrument=self.instrument,
            side=side,
            type=order_type,
            price=round(price, 2),
            quantity=round(quantity, 3),
        )

    def iter_orders(self, count: int) -> Iterator[Order]:
        for i in range(count):
            yield self.generate(i)

    def generate_batch(self, count: int) -> list[Order]:
        return list(self.iter_orders(count))

    def write_ndjson(self, count: int, stream: IO[str]) -> int:
        """Write `count` orders as newline-delimited JSON; returns lines written."""
        written = 0
        for order in self.iter_orders(count):
            stream.write(order.to_json())
            stream.write("\n")
            written += 1
        return written
