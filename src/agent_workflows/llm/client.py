"""OpenAI-compatible chat client – the default model invoker.

Talks to any ``/chat/completions`` endpoint (OpenAI, OpenRouter, vLLM,
Ollama's compat layer).  The client handles HTTP transport, retries, timeout
and error categorisation so that workflows only deal with prompts and text.
"""

from __future__ import annotations

import time
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from agent_workflows.config import settings
from agent_workflows.errors import InvocationFailure
from agent_workflows.models import ErrorCategory, PromptRequest
from agent_workflows.output import format_instructions
from agent_workflows.utils.logging import get_logger, truncate_for_log

logger = get_logger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, (httpx.ConnectError, httpx.ReadTimeout))


def _categorize(exc: BaseException) -> ErrorCategory:
    if isinstance(exc, httpx.TimeoutException):
        return ErrorCategory.TIMEOUT
    if isinstance(exc, httpx.HTTPStatusError):
        if exc.response.status_code == 429:
            return ErrorCategory.RATE_LIMITED
        return ErrorCategory.API_ERROR
    if isinstance(exc, httpx.TransportError):
        return ErrorCategory.CONNECTION
    return ErrorCategory.UNKNOWN


class ChatClient:
    """Thin async wrapper around an OpenAI-compatible chat endpoint."""

    def __init__(
        self,
        endpoint: str,
        model: str,
        api_key: str = "",
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool | None = None,
        max_retries: int | None = None,
        retry_backoff_secs: float | None = None,
        timeout_secs: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.temperature = settings.llm_temperature if temperature is None else temperature
        self.max_tokens = settings.llm_max_tokens if max_tokens is None else max_tokens
        self.json_mode = settings.json_mode if json_mode is None else json_mode
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.retry_backoff_secs = (
            settings.retry_backoff_secs if retry_backoff_secs is None else retry_backoff_secs
        )

        headers: dict[str, str] = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        if "openrouter.ai" in self.endpoint:
            headers["HTTP-Referer"] = "https://github.com/agent-workflows"
            headers["X-Title"] = "Agent Workflows"

        timeout = settings.request_timeout_secs if timeout_secs is None else timeout_secs
        self._client = httpx.AsyncClient(
            base_url=self.endpoint,
            timeout=httpx.Timeout(timeout, connect=10.0),
            headers=headers or None,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, **overrides: Any) -> "ChatClient":
        """Build a client from the global settings."""
        return cls(
            endpoint=overrides.pop("endpoint", settings.llm_endpoint),
            model=overrides.pop("model", settings.llm_model),
            api_key=overrides.pop("api_key", settings.llm_api_key),
            **overrides,
        )

    # ── public API ───────────────────────────────────────────────────

    async def invoke(self, request: PromptRequest) -> str:
        """Send *request* and return the reply text."""
        t0 = time.perf_counter()
        messages = self.build_messages(request)

        if settings.log_agent_io:
            logger.info(
                "llm.prompt",
                model=self.model,
                stage=request.stage,
                prompt=truncate_for_log(messages[-1]["content"]),
            )

        try:
            text, usage = await self._complete_with_retry(
                messages, structured=request.response_schema is not None
            )
        except httpx.HTTPError as exc:
            category = _categorize(exc)
            status = exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
            logger.error(
                "llm.failed",
                model=self.model,
                stage=request.stage,
                category=category.value,
                status=status,
                error=str(exc),
            )
            raise InvocationFailure(
                f"{type(exc).__name__}: {exc}",
                stage=request.stage or None,
                category=category,
                status_code=status,
            ) from exc
        except InvocationFailure as exc:
            if request.stage:
                exc.with_stage(request.stage)
            logger.error("llm.malformed", model=self.model, stage=request.stage, error=exc.message)
            raise

        if not text or not text.strip():
            raise InvocationFailure(
                "Model returned an empty response",
                stage=request.stage or None,
                category=ErrorCategory.EMPTY_RESPONSE,
            )

        elapsed = time.perf_counter() - t0
        if settings.log_agent_io:
            logger.info("llm.output", stage=request.stage, output=truncate_for_log(text))
        logger.debug(
            "llm.completed",
            model=self.model,
            stage=request.stage,
            secs=round(elapsed, 2),
            tokens=usage,
        )
        return text

    def build_messages(self, request: PromptRequest) -> list[dict[str, str]]:
        """Turn a request into chat messages, appending format instructions when needed."""
        messages: list[dict[str, str]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})

        content = request.prompt
        if request.response_schema is not None:
            content = f"{content}\n\n{format_instructions(request.response_schema)}"
        messages.append({"role": "user", "content": content})
        return messages

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ── internal transport ───────────────────────────────────────────

    async def _complete_with_retry(
        self, messages: list[dict[str, str]], structured: bool
    ) -> tuple[str, dict[str, Any]]:
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_backoff_secs, max=15),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "llm.retry",
                        model=self.model,
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await self._complete(messages, structured)
        raise AssertionError("unreachable")

    async def _complete(
        self, messages: list[dict[str, str]], structured: bool
    ) -> tuple[str, dict[str, Any]]:
        """Send one chat-completion request and return (text, usage)."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if structured and self.json_mode:
            payload["response_format"] = {"type": "json_object"}

        resp = await self._client.post("/chat/completions", json=payload)
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise httpx.HTTPStatusError(
                f"{exc}. body={resp.text[:1000]}",
                request=exc.request,
                response=exc.response,
            ) from exc
        try:
            body = resp.json()
            text: str = body["choices"][0]["message"].get("content") or ""
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise InvocationFailure(
                f"Malformed chat completion payload: {resp.text[:300]}",
                category=ErrorCategory.API_ERROR,
                status_code=resp.status_code,
            ) from exc
        usage: dict[str, Any] = body.get("usage", {})
        return text, usage
