"""Tests for the parallel fan-out workflow."""

import asyncio
import time

import pytest
from conftest import stage_index

from agent_workflows.errors import InvocationFailure
from agent_workflows.models import ErrorCategory, FailurePolicy, PromptRequest
from agent_workflows.workflows import ParallelWorkflow


def _echo(request: PromptRequest) -> str:
    return f"done:{request.prompt}"


@pytest.mark.asyncio
async def test_results_follow_input_order(make_invoker) -> None:
    inputs = [f"item{i}" for i in range(6)]
    # Later items finish first.
    invoker = make_invoker(handler=_echo, delay=lambda r: (6 - stage_index(r)) * 0.01)
    workflow = ParallelWorkflow(invoker, max_concurrency=6)

    result = await workflow.run("{input}", inputs)

    assert result.ok
    assert result.responses == [f"done:{item}" for item in inputs]
    assert len(invoker.calls) == len(inputs)


@pytest.mark.asyncio
async def test_concurrency_is_capped(make_invoker) -> None:
    invoker = make_invoker(handler=_echo, delay=lambda r: 0.02)
    workflow = ParallelWorkflow(invoker, max_concurrency=2)

    result = await workflow.run("Analyse {input}", [str(i) for i in range(7)])

    assert len(result.responses) == 7
    assert invoker.max_active == 2


@pytest.mark.asyncio
async def test_prompt_without_placeholder_appends_input(make_invoker) -> None:
    invoker = make_invoker(handler=_echo)
    workflow = ParallelWorkflow(invoker)

    result = await workflow.run("Analyse impact.", ["Customers"])

    assert result.responses == ["done:Analyse impact.\nCustomers"]


@pytest.mark.asyncio
async def test_empty_inputs_make_no_calls(make_invoker) -> None:
    invoker = make_invoker()
    result = await ParallelWorkflow(invoker).run("{input}", [])
    assert result.responses == []
    assert invoker.calls == []


@pytest.mark.asyncio
async def test_fail_fast_cancels_siblings(make_invoker) -> None:
    def handler(request: PromptRequest) -> str:
        if stage_index(request) == 1:
            raise RuntimeError("quota exceeded")
        return "ok"

    invoker = make_invoker(handler=handler, delay=lambda r: 0.0 if stage_index(r) == 1 else 5.0)
    workflow = ParallelWorkflow(invoker, max_concurrency=3, failure_policy=FailurePolicy.FAIL_FAST)

    t0 = time.perf_counter()
    with pytest.raises(InvocationFailure) as info:
        await workflow.run("{input}", ["a", "b", "c", "d", "e"])

    assert time.perf_counter() - t0 < 2.0
    assert info.value.stage == "parallel[1]"
    # Every started sibling was cancelled; at most one queued item got the freed slot.
    assert invoker.cancelled == len(invoker.calls) - 1
    assert invoker.cancelled >= 2
    assert len(invoker.calls) <= 4
    assert invoker.active == 0


@pytest.mark.asyncio
async def test_collect_records_every_failure(make_invoker) -> None:
    def handler(request: PromptRequest) -> str:
        idx = stage_index(request)
        if idx % 2:
            raise RuntimeError(f"failed {idx}")
        return f"ok{idx}"

    invoker = make_invoker(handler=handler)
    workflow = ParallelWorkflow(invoker, failure_policy="collect")

    result = await workflow.run("{input}", ["a", "b", "c", "d"])

    assert not result.ok
    assert result.responses == ["ok0", None, "ok2", None]
    assert [e.index for e in result.errors] == [1, 3]
    assert "failed 3" in result.errors[1].error
    assert len(invoker.calls) == 4


@pytest.mark.asyncio
async def test_call_timeout_becomes_invocation_failure(make_invoker) -> None:
    invoker = make_invoker(handler=_echo, delay=lambda r: 1.0)
    workflow = ParallelWorkflow(
        invoker,
        failure_policy=FailurePolicy.COLLECT,
        call_timeout_secs=0.05,
    )

    result = await workflow.run("{input}", ["slow"])

    assert result.responses == [None]
    assert result.errors[0].category is ErrorCategory.TIMEOUT


@pytest.mark.asyncio
async def test_cancelling_caller_cancels_in_flight_calls(make_invoker) -> None:
    invoker = make_invoker(handler=_echo, delay=lambda r: 5.0)
    workflow = ParallelWorkflow(invoker, max_concurrency=2)

    task = asyncio.ensure_future(workflow.run("{input}", ["a", "b", "c"]))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert invoker.cancelled == 2
    assert invoker.active == 0


@pytest.mark.asyncio
async def test_map_keeps_caller_stages(make_invoker) -> None:
    invoker = make_invoker(handler=_echo)
    workflow = ParallelWorkflow(invoker)
    requests = [PromptRequest(prompt="p0", stage="custom[0]"), PromptRequest(prompt="p1")]

    result = await workflow.map(requests)

    assert result.responses == ["done:p0", "done:p1"]
    assert sorted(invoker.stages) == ["custom[0]", "parallel[1]"]


def test_invalid_concurrency_rejected(make_invoker) -> None:
    with pytest.raises(ValueError):
        ParallelWorkflow(make_invoker(), max_concurrency=0)
