"""FastAPI application – the HTTP gateway to the workflows."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from agent_workflows import __version__
from agent_workflows.config import settings
from agent_workflows.errors import DecodeFailure, InvalidRoute, InvocationFailure, WorkflowError
from agent_workflows.llm import ChatClient, ModelInvoker
from agent_workflows.models import (
    FailurePolicy,
    OrchestratorResult,
    ParallelResult,
    RefinedResponse,
    RoutedResponse,
    check_template,
)
from agent_workflows.utils import prompts
from agent_workflows.utils.logging import get_logger, setup_logging
from agent_workflows.workflows import (
    ChainWorkflow,
    EvaluatorOptimizerWorkflow,
    OrchestratorWorkersWorkflow,
    ParallelWorkflow,
    RouteTable,
    RoutingWorkflow,
    registry,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
    setup_logging()
    app.state.invoker = ChatClient.from_settings()
    logger.info("server.startup", port=settings.api_port, model=settings.llm_model)
    yield
    await app.state.invoker.close()
    logger.info("server.shutdown")


app = FastAPI(
    title="Agent Workflows",
    description="Chain, parallel, routing, orchestrator-workers and evaluator-optimizer LLM workflows.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_invoker(request: Request) -> ModelInvoker:
    """The shared model invoker; overridden in tests."""
    return request.app.state.invoker


_STATUS_BY_ERROR: list[tuple[type[WorkflowError], int]] = [
    (InvalidRoute, 422),
    (DecodeFailure, 502),
    (InvocationFailure, 502),
]


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    logger.error(
        "api.workflow_error",
        path=request.url.path,
        error=type(exc).__name__,
        stage=exc.stage,
        detail=exc.message,
    )
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": exc.message, "stage": exc.stage},
    )


# ── Request bodies ───────────────────────────────────────────────────


# Placeholders each caller-supplied template may use.
INPUT_FIELDS = ("input",)
ORCHESTRATOR_FIELDS = ("task",)
WORKER_FIELDS = ("original_task", "task_type", "task_description")
GENERATOR_FIELDS = ("task", "context")
EVALUATOR_FIELDS = ("task", "content")


class ChainRequest(BaseModel):
    input: str = Field(..., min_length=1, description="Initial input threaded through the chain.")
    steps: list[str] | None = Field(default=None, min_length=1, description="Prompt templates, in order.")
    system: str | None = None

    @field_validator("steps")
    @classmethod
    def _check_steps(cls, v: list[str] | None) -> list[str] | None:
        if v is not None:
            for step in v:
                check_template(step, INPUT_FIELDS)
        return v


class ChainResponse(BaseModel):
    output: str


class ParallelRequest(BaseModel):
    prompt: str = Field(default=prompts.PARALLEL_IMPACT, min_length=1)
    inputs: list[str] = Field(..., description="Independent inputs, one call each.")
    max_concurrency: int | None = Field(default=None, ge=1, le=64)
    failure_policy: FailurePolicy | None = None

    @field_validator("prompt")
    @classmethod
    def _check_prompt(cls, v: str) -> str:
        return check_template(v, INPUT_FIELDS)


class RouteRequest(BaseModel):
    input: str = Field(..., min_length=1)
    routes: dict[str, str] | None = Field(default=None, description="Category key → handler prompt.")

    @field_validator("routes")
    @classmethod
    def _check_routes(cls, v: dict[str, str] | None) -> dict[str, str] | None:
        if v is not None:
            RouteTable(v)
        return v


class OrchestrateRequest(BaseModel):
    task: str = Field(..., min_length=1)
    orchestrator_prompt: str | None = None
    worker_prompt: str | None = None

    @field_validator("orchestrator_prompt")
    @classmethod
    def _check_orchestrator_prompt(cls, v: str | None) -> str | None:
        return v if v is None else check_template(v, ORCHESTRATOR_FIELDS)

    @field_validator("worker_prompt")
    @classmethod
    def _check_worker_prompt(cls, v: str | None) -> str | None:
        return v if v is None else check_template(v, WORKER_FIELDS)


class EvaluateOptimizeRequest(BaseModel):
    task: str = Field(..., min_length=1)
    max_iterations: int | None = Field(default=None, ge=1, le=50)
    generator_prompt: str | None = None
    evaluator_prompt: str | None = None

    @field_validator("generator_prompt")
    @classmethod
    def _check_generator_prompt(cls, v: str | None) -> str | None:
        return v if v is None else check_template(v, GENERATOR_FIELDS)

    @field_validator("evaluator_prompt")
    @classmethod
    def _check_evaluator_prompt(cls, v: str | None) -> str | None:
        return v if v is None else check_template(v, EVALUATOR_FIELDS)


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = __version__
    timestamp: str = ""


# ── Routes ───────────────────────────────────────────────────────────


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(timestamp=datetime.now(timezone.utc).isoformat())


@app.get("/workflows")
async def list_workflows() -> dict[str, Any]:
    """Registered workflows plus the defaults they run with."""
    return {
        "workflows": registry.describe(),
        "model": settings.llm_model,
        "max_concurrency": settings.max_concurrency,
        "failure_policy": settings.failure_policy.value,
        "max_iterations": settings.max_iterations,
    }


@app.post("/workflows/chain", response_model=ChainResponse)
async def run_chain(req: ChainRequest, invoker: ModelInvoker = Depends(get_invoker)) -> ChainResponse:
    workflow = ChainWorkflow(invoker, req.steps or prompts.CHAIN_DATA_STEPS, system=req.system)
    return ChainResponse(output=await workflow.run(req.input))


@app.post("/workflows/parallel", response_model=ParallelResult)
async def run_parallel(req: ParallelRequest, invoker: ModelInvoker = Depends(get_invoker)) -> ParallelResult:
    workflow = ParallelWorkflow(
        invoker,
        max_concurrency=req.max_concurrency,
        failure_policy=req.failure_policy,
    )
    return await workflow.run(req.prompt, req.inputs)


@app.post("/workflows/route", response_model=RoutedResponse)
async def run_route(req: RouteRequest, invoker: ModelInvoker = Depends(get_invoker)) -> RoutedResponse:
    workflow = RoutingWorkflow(invoker, req.routes or prompts.SUPPORT_ROUTES)
    return await workflow.run(req.input)


@app.post("/workflows/orchestrate", response_model=OrchestratorResult)
async def run_orchestrate(
    req: OrchestrateRequest, invoker: ModelInvoker = Depends(get_invoker)
) -> OrchestratorResult:
    workflow = OrchestratorWorkersWorkflow(
        invoker,
        orchestrator_prompt=req.orchestrator_prompt or prompts.ORCHESTRATOR_DECOMPOSE,
        worker_prompt=req.worker_prompt or prompts.WORKER_TASK,
    )
    return await workflow.run(req.task)


@app.post("/workflows/evaluate-optimize", response_model=RefinedResponse)
async def run_evaluate_optimize(
    req: EvaluateOptimizeRequest, invoker: ModelInvoker = Depends(get_invoker)
) -> RefinedResponse:
    workflow = EvaluatorOptimizerWorkflow(
        invoker,
        generator_prompt=req.generator_prompt or prompts.GENERATOR_TASK,
        evaluator_prompt=req.evaluator_prompt or prompts.EVALUATOR_TASK,
        max_iterations=req.max_iterations,
    )
    return await workflow.run(req.task)
