import pytest
from pydantic import ValidationError

from fakes import FakeDispatcher
from loadgen.config import OpenLoopConfig
from loadgen.open_loop import STATUS_CHECK, run_open_loop


def _config(**overrides) -> OpenLoopConfig:
    params = dict(rate=200, duration=0.5, pre_allocated_callers=5, max_callers=200, graceful_stop=2)
    params.update(overrides)
    return OpenLoopConfig(**params)


@pytest.mark.asyncio
async def test_arrival_rate_is_sustained_with_enough_callers(generator):
    cfg = _config()
    result = await run_open_loop(FakeDispatcher(delay=0.005), generator, cfg)

    expected = cfg.expected_arrivals
    assert expected == 100
    assert result.scheduled == expected
    assert abs(result.issued - expected) <= 0.1 * expected
    assert result.dropped == 0
    assert result.abandoned == 0
    assert result.completed == result.issued
    assert result.elapsed_s >= cfg.duration
    assert result.report.count == result.completed


@pytest.mark.asyncio
async def test_arrivals_are_not_paced_by_completions(generator):
    # Each request takes five arrival intervals; issuance must not wait for them.
    cfg = _config(rate=100, duration=0.5, pre_allocated_callers=2, max_callers=100)
    dispatcher = FakeDispatcher(delay=0.05)
    result = await run_open_loop(dispatcher, generator, cfg)

    assert result.issued == 50
    assert result.dropped == 0
    assert result.max_in_flight > 1
    assert dispatcher.max_in_flight >= 3
    window = dispatcher.started_at[-1] - dispatcher.started_at[0]
    assert 0.9 * cfg.duration <= window <= 1.1 * cfg.duration
    assert result.callers_allocated > cfg.pre_allocated_callers


@pytest.mark.asyncio
async def test_run_lasts_the_full_duration_against_a_fast_target(generator):
    # Last arrival is due at 0.5s; the run must still span the whole second.
    cfg = _config(rate=2, duration=1.0, pre_allocated_callers=2, max_callers=2)
    result = await run_open_loop(FakeDispatcher(delay=0.001), generator, cfg)

    assert result.issued == 2
    assert result.elapsed_s >= cfg.duration
    assert result.achieved_rate <= cfg.rate


@pytest.mark.asyncio
async def test_arrivals_are_dropped_when_ceiling_is_reached(generator):
    cfg = _config(rate=100, duration=0.3, pre_allocated_callers=1, max_callers=2)
    result = await run_open_loop(FakeDispatcher(delay=0.5), generator, cfg)

    assert result.scheduled == 30
    assert result.callers_allocated == 2
    assert result.issued == 2
    assert result.dropped == 28
    assert result.scheduled == result.issued + result.dropped
    assert result.completed == 2
    assert result.max_in_flight <= cfg.max_callers


@pytest.mark.asyncio
async def test_pool_grows_on_demand_up_to_ceiling(generator):
    cfg = _config(rate=200, duration=0.2, pre_allocated_callers=1, max_callers=50)
    result = await run_open_loop(FakeDispatcher(delay=0.05), generator, cfg)

    assert result.callers_allocated > 1
    assert result.callers_allocated <= 50
    assert result.dropped == 0
    assert result.completed == result.issued


@pytest.mark.asyncio
async def test_in_flight_requests_past_graceful_stop_are_abandoned(generator):
    cfg = _config(rate=50, duration=0.1, pre_allocated_callers=2, max_callers=10, graceful_stop=0.05)
    result = await run_open_loop(FakeDispatcher(delay=5), generator, cfg)

    assert result.issued == 5
    assert result.abandoned == 5
    assert result.completed == 0
    assert result.report is None
    assert result.elapsed_s < 2


@pytest.mark.asyncio
async def test_keys_are_caller_and_iteration(generator):
    cfg = _config(rate=200, duration=0.2, pre_allocated_callers=2, max_callers=2)
    result = await run_open_loop(FakeDispatcher(delay=0.001), generator, cfg)

    assert result.keys[0] == "1-0"
    assert len(set(result.keys)) == len(result.keys)
    assert all(key.split("-")[0] in ("1", "2") for key in result.keys)


@pytest.mark.asyncio
async def test_status_check_tallies_pass_and_fail(generator):
    cfg = _config(rate=100, duration=0.2)
    result = await run_open_loop(FakeDispatcher(delay=0.001, fail_every=2), generator, cfg)

    (check,) = result.checks
    assert check.name == STATUS_CHECK
    assert check.passes + check.fails == result.completed
    assert check.fails == result.completed // 2
    assert str(check).startswith("✗ status is 200")


def test_config_rejects_ceiling_below_pool():
    with pytest.raises(ValidationError):
        OpenLoopConfig(rate=10, duration=1, pre_allocated_callers=10, max_callers=5)


def test_config_rejects_non_positive_rate_and_duration():
    with pytest.raises(ValidationError):
        OpenLoopConfig(rate=0, duration=1)
    with pytest.raises(ValidationError):
        OpenLoopConfig(rate=10, duration=0)


def test_config_defaults_match_reference_scenario():
    cfg = OpenLoopConfig()
    assert (cfg.rate, cfg.duration, cfg.pre_allocated_callers, cfg.max_callers) == (2000, 30, 500, 2000)
    assert cfg.expected_arrivals == 60000
