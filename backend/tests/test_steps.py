"""Durable step memoization and retry behaviour.

Run:  pytest backend/tests/test_steps.py -v
"""
import pytest

from code_agent.errors import StepError
from code_agent.run_store import RunStore
from code_agent.steps import StepRunner


@pytest.mark.asyncio
async def test_step_result_is_recorded_and_replayed(store: RunStore):
    calls = []

    async def create():
        calls.append(1)
        return "sbx_1"

    first = StepRunner("run_a", store, backoff_seconds=0)
    assert await first.run("get-sandbox-id", create) == "sbx_1"

    # A fresh runner for the same run id replays instead of re-executing
    replay = StepRunner("run_a", store, backoff_seconds=0)
    assert await replay.run("get-sandbox-id", create) == "sbx_1"
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_repeated_step_names_get_their_own_slots(store: RunStore):
    outputs = iter(["one", "two", "three"])

    async def terminal():
        return next(outputs)

    step = StepRunner("run_b", store, backoff_seconds=0)
    results = [await step.run("terminal", terminal) for _ in range(3)]
    assert results == ["one", "two", "three"]

    async def should_not_run():
        raise AssertionError("memoized step executed again")

    replay = StepRunner("run_b", store, backoff_seconds=0)
    assert [await replay.run("terminal", should_not_run) for _ in range(3)] == results


@pytest.mark.asyncio
async def test_runs_do_not_share_memo(store: RunStore):
    async def value_a():
        return "a"

    async def value_b():
        return "b"

    assert await StepRunner("run_1", store).run("save-result", value_a) == "a"
    assert await StepRunner("run_2", store).run("save-result", value_b) == "b"


@pytest.mark.asyncio
async def test_step_retries_transient_failures(step: StepRunner):
    attempts = []

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("sandbox api unavailable")
        return {"ok": True}

    assert await step.run("save-result", flaky) == {"ok": True}
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_step_raises_after_retry_budget(store: RunStore):
    step = StepRunner("run_c", store, max_attempts=2, backoff_seconds=0)

    async def broken():
        raise RuntimeError("quota exceeded")

    with pytest.raises(StepError) as exc_info:
        await step.run("get-sandbox-id", broken)
    assert exc_info.value.attempts == 2
    assert isinstance(exc_info.value.cause, RuntimeError)

    # Failed steps are not memoized
    async def works():
        return "sbx_9"

    assert await StepRunner("run_c", store).run("get-sandbox-id", works) == "sbx_9"


@pytest.mark.asyncio
async def test_none_results_are_memoized(store: RunStore):
    calls = []

    async def nothing():
        calls.append(1)
        return None

    await StepRunner("run_d", store).run("noop", nothing)
    await StepRunner("run_d", store).run("noop", nothing)
    assert len(calls) == 1
