import io
import json
import random

from common.models import Order
from loadgen.generator import OrderGenerator


def test_orders_respect_field_invariants(generator):
    for order in generator.iter_orders(5000):
        assert order.price > 0
        assert order.quantity > 0
        assert 30000 <= order.price <= 70000
        assert 0.01 <= order.quantity <= 2.01
        assert order.side in ("buy", "sell")
        assert order.type in ("limit", "market")
        assert order.instrument == "BTC-USD"


def test_client_cardinality_is_bounded(generator):
    clients = {o.client_id for o in generator.iter_orders(1234)}
    assert len(clients) == 100
    assert generator.generate(250).client_id == "client-50"


def test_rounding_to_cents_and_thousandths(generator):
    for order in generator.iter_orders(200):
        assert round(order.price, 2) == order.price
        assert round(order.quantity, 3) == order.quantity


def test_same_seed_reproduces_orders():
    a = OrderGenerator(random.Random(123)).generate_batch(50)
    b = OrderGenerator(random.Random(123)).generate_batch(50)
    assert a == b


def test_type_mix_is_roughly_eighty_twenty():
    orders = OrderGenerator(random.Random(1)).generate_batch(10000)
    limit_share = sum(1 for o in orders if o.type == "limit") / len(orders)
    buy_share = sum(1 for o in orders if o.side == "buy") / len(orders)
    assert 0.77 < limit_share < 0.83
    assert 0.47 < buy_share < 0.53


def test_wire_format_uses_camel_case(generator):
    wire = generator.generate(3).to_wire()
    assert set(wire) == {"clientId", "instrument", "side", "type", "price", "quantity"}
    assert isinstance(wire["price"], float)


def test_write_ndjson_emits_one_order_per_line():
    out = io.StringIO()
    written = OrderGenerator(random.Random(9)).write_ndjson(25, out)
    lines = out.getvalue().splitlines()
    assert written == 25
    assert len(lines) == 25
    first = Order.model_validate(json.loads(lines[0]))
    assert first.client_id == "client-0"


def test_write_ndjson_zero_count_writes_nothing():
    out = io.StringIO()
    assert OrderGenerator().write_ndjson(0, out) == 0
    assert out.getvalue() == ""
