"""Tests for the orchestrator-workers workflow."""

import pytest
from conftest import as_json

from agent_workflows.errors import DecodeFailure, InvocationFailure
from agent_workflows.models import FailurePolicy, PromptRequest, TaskDecomposition
from agent_workflows.output import response_schema
from agent_workflows.workflows import OrchestratorWorkersWorkflow, ParallelWorkflow

DECOMPOSITION = as_json(
    analysis="Three audiences need different tones.",
    tasks=[
        {"type": "formal", "description": "Precise and technical"},
        {"type": "conversational", "description": "Friendly and engaging"},
        {"type": "hybrid", "description": "Balanced"},
    ],
)


def _handler(decomposition: str):
    def handler(request: PromptRequest) -> str:
        if request.stage == "orchestrator.decompose":
            return decomposition
        style = request.prompt.split("Style: ")[1].splitlines()[0]
        return f"{style} copy"

    return handler


@pytest.mark.asyncio
async def test_one_worker_call_per_subtask(make_invoker) -> None:
    invoker = make_invoker(handler=_handler(DECOMPOSITION))
    workflow = OrchestratorWorkersWorkflow(invoker)

    result = await workflow.run("Write a product description for an eco water bottle")

    assert result.analysis == "Three audiences need different tones."
    assert result.worker_responses == ["formal copy", "conversational copy", "hybrid copy"]
    assert len(invoker.calls) == 4
    assert invoker.calls[0].response_schema == response_schema(TaskDecomposition)
    worker_stages = sorted(invoker.stages[1:])
    assert worker_stages == [
        "orchestrator.worker[0]",
        "orchestrator.worker[1]",
        "orchestrator.worker[2]",
    ]


@pytest.mark.asyncio
async def test_worker_prompt_is_rendered_per_subtask(make_invoker) -> None:
    invoker = make_invoker(handler=_handler(DECOMPOSITION))
    workflow = OrchestratorWorkersWorkflow(
        invoker,
        orchestrator_prompt="Split: {task}",
        worker_prompt="Task={original_task}\nStyle: {task_type}\nHow={task_description}",
    )

    await workflow.run("bottle")

    assert invoker.calls[0].prompt == "Split: bottle"
    worker_prompts = sorted(invoker.prompts[1:])
    assert "Task=bottle\nStyle: formal\nHow=Precise and technical" in worker_prompts


@pytest.mark.asyncio
async def test_subtask_count_is_dynamic(make_invoker) -> None:
    single = as_json(analysis="one is enough", tasks=[{"type": "short", "description": "d"}])
    invoker = make_invoker(handler=_handler(single))

    result = await OrchestratorWorkersWorkflow(invoker).run("tagline")

    assert result.worker_responses == ["short copy"]
    assert len(invoker.calls) == 2


@pytest.mark.asyncio
async def test_empty_decomposition_makes_no_worker_calls(make_invoker) -> None:
    invoker = make_invoker([as_json(analysis="nothing to do", tasks=[])])

    result = await OrchestratorWorkersWorkflow(invoker).run("noop")

    assert result.worker_responses == []
    assert len(invoker.calls) == 1


@pytest.mark.asyncio
async def test_bad_decomposition_stops_before_workers(make_invoker) -> None:
    invoker = make_invoker(["not json"])

    with pytest.raises(DecodeFailure) as info:
        await OrchestratorWorkersWorkflow(invoker).run("x")

    assert info.value.stage == "orchestrator.decompose"
    assert len(invoker.calls) == 1


@pytest.mark.asyncio
async def test_worker_failure_is_tagged(make_invoker) -> None:
    def handler(request: PromptRequest) -> str:
        if request.stage == "orchestrator.decompose":
            return DECOMPOSITION
        if request.stage == "orchestrator.worker[2]":
            raise ConnectionError("reset by peer")
        return "fine"

    invoker = make_invoker(handler=handler)

    with pytest.raises(InvocationFailure) as info:
        await OrchestratorWorkersWorkflow(invoker).run("x")

    assert info.value.stage == "orchestrator.worker[2]"


@pytest.mark.asyncio
async def test_collect_mode_parallel_leaves_gaps_empty(make_invoker) -> None:
    def handler(request: PromptRequest) -> str:
        if request.stage == "orchestrator.decompose":
            return DECOMPOSITION
        if request.stage == "orchestrator.worker[1]":
            raise RuntimeError("boom")
        return "fine"

    invoker = make_invoker(handler=handler)
    parallel = ParallelWorkflow(invoker, failure_policy=FailurePolicy.COLLECT)

    result = await OrchestratorWorkersWorkflow(invoker, parallel=parallel).run("x")

    assert result.worker_responses == ["fine", "", "fine"]
