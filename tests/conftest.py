"""
Shared fixtures for the load harness tests.

FakeDispatcher (tests/fakes.py) stands in for the HTTP layer so
drive-strategy tests can observe concurrency directly; the HTTP-level tests
use httpx transports (MockTransport / ASGITransport) or respx instead of a
live target.
"""

from __future__ import annotations

import random

import pytest

from fakes import FakeDispatcher
from loadgen.generator import OrderGenerator


@pytest.fixture
def generator():
    return OrderGenerator(random.Random(42))


@pytest.fixture
def fake_dispatcher():
    return FakeDispatcher()
