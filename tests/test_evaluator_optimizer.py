"""Tests for the evaluator-optimizer loop."""

import pytest
from conftest import as_json

from agent_workflows.errors import DecodeFailure, IterationExhausted
from agent_workflows.models import Evaluation, Generation, LoopState
from agent_workflows.workflows import EvaluatorOptimizerWorkflow
from agent_workflows.workflows.evaluator_optimizer import build_feedback_context


def gen(n: int) -> str:
    return as_json(thoughts=f"attempt {n}", response=f"v{n}")


def verdict(evaluation: str, feedback: str = "") -> str:
    return as_json(evaluation=evaluation, feedback=feedback)


@pytest.mark.asyncio
async def test_accepts_after_two_rejections(make_invoker) -> None:
    invoker = make_invoker([
        gen(1), verdict("NEEDS_IMPROVEMENT", "add docs"),
        gen(2), verdict("FAIL", "off by one"),
        gen(3), verdict("PASS"),
    ])
    workflow = EvaluatorOptimizerWorkflow(invoker, max_iterations=5)

    result = await workflow.run("Implement a stack")

    assert result.state is LoopState.ACCEPTED
    assert result.solution == "v3"
    assert [g.response for g in result.chain_of_thought] == ["v1", "v2", "v3"]
    assert [a.iteration for a in result.attempts] == [1, 2, 3]
    assert result.attempts[-1].verdict.evaluation is Evaluation.PASS
    assert len(invoker.calls) == 6
    assert invoker.stages == [
        "evaluator.generate[1]", "evaluator.evaluate[1]",
        "evaluator.generate[2]", "evaluator.evaluate[2]",
        "evaluator.generate[3]", "evaluator.evaluate[3]",
    ]


@pytest.mark.asyncio
async def test_feedback_is_carried_forward(make_invoker) -> None:
    invoker = make_invoker([
        gen(1), verdict("NEEDS_IMPROVEMENT", "add docs"),
        gen(2), verdict("NEEDS_IMPROVEMENT", "handle empty pop"),
        gen(3), verdict("PASS"),
    ])
    workflow = EvaluatorOptimizerWorkflow(
        invoker,
        generator_prompt="{context}|{task}",
        evaluator_prompt="judge {content} for {task}",
        max_iterations=3,
    )

    await workflow.run("stack")

    generate_prompts = invoker.prompts[0::2]
    assert generate_prompts[0] == "|stack"
    assert generate_prompts[1] == "Previous attempts:\n- v1\nFeedback: add docs|stack"
    assert generate_prompts[2] == "Previous attempts:\n- v1\n- v2\nFeedback: handle empty pop|stack"
    assert invoker.prompts[1] == "judge v1 for stack"


@pytest.mark.asyncio
async def test_always_rejecting_exhausts_after_bound(make_invoker) -> None:
    n = 4
    script = []
    for i in range(1, n + 1):
        script += [gen(i), verdict("NEEDS_IMPROVEMENT", f"try again {i}")]
    invoker = make_invoker(script)

    result = await EvaluatorOptimizerWorkflow(invoker, max_iterations=n).run("task")

    assert result.state is LoopState.EXHAUSTED
    assert not result.accepted
    assert result.solution == f"v{n}"
    assert len(result.attempts) == n
    assert len(invoker.calls) == 2 * n


@pytest.mark.asyncio
async def test_exhaustion_can_raise(make_invoker) -> None:
    invoker = make_invoker([gen(1), verdict("FAIL", "no")])
    workflow = EvaluatorOptimizerWorkflow(invoker, max_iterations=1, raise_on_exhaustion=True)

    with pytest.raises(IterationExhausted) as info:
        await workflow.run("task")

    assert info.value.max_iterations == 1
    assert info.value.result.solution == "v1"
    assert info.value.result.state is LoopState.EXHAUSTED


@pytest.mark.asyncio
async def test_first_pass_acceptance(make_invoker) -> None:
    invoker = make_invoker([gen(1), verdict("pass")])

    result = await EvaluatorOptimizerWorkflow(invoker, max_iterations=3).run("task")

    assert result.accepted
    assert len(result.attempts) == 1


@pytest.mark.asyncio
async def test_bad_evaluation_reports_iteration(make_invoker) -> None:
    invoker = make_invoker([gen(1), verdict("NEEDS_IMPROVEMENT", "x"), gen(2), "looks fine to me"])

    with pytest.raises(DecodeFailure) as info:
        await EvaluatorOptimizerWorkflow(invoker, max_iterations=3).run("task")

    assert info.value.stage == "evaluator.evaluate[2]"


@pytest.mark.asyncio
async def test_rerun_is_idempotent(make_invoker) -> None:
    script = [gen(1), verdict("NEEDS_IMPROVEMENT", "more"), gen(2), verdict("PASS")]
    invoker = make_invoker(script)
    workflow = EvaluatorOptimizerWorkflow(invoker, max_iterations=3)

    first = await workflow.run("task")
    invoker.load(script)
    second = await workflow.run("task")

    assert first == second


def test_feedback_context_format() -> None:
    context = build_feedback_context([Generation(response="a"), Generation(response="b")], "fix b")
    assert context == "Previous attempts:\n- a\n- b\nFeedback: fix b"


def test_iteration_bound_must_be_positive(make_invoker) -> None:
    with pytest.raises(ValueError):
        EvaluatorOptimizerWorkflow(make_invoker(), max_iterations=0)
