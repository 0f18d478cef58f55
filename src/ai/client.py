# src/ai/client.py
# Language model client shared by every pipeline stage
# ====================================================

"""
One ``ModelClient`` is built at process start and handed to every stage.

``complete_structured`` is the contract the stages rely on: it asks the model
for JSON matching a pydantic model, validates the reply and raises
``ModelResponseError`` when the reply cannot be trusted. Transport problems
surface as ``ModelUnavailableError``. Neither is retried here; the OpenAI SDK
performs its own connection-level retries (``sdk_max_retries``).
"""

from __future__ import annotations

import asyncio
import json
import os
import time
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type, TypeVar

import httpx
import openai
from openai import AsyncOpenAI
from pydantic import BaseModel

from config.settings import MODEL_CONFIG
from src.utils.logger import create_module_logger
from src.utils.metrics import MetricsReporter, get_metrics_reporter

from .results import SchemaError, parse_structured

M = TypeVar("M", bound=BaseModel)
ChatMessage = Dict[str, str]

_STRUCTURED_INSTRUCTION = (
    "Respond only with a single JSON object, without markdown fences or commentary. "
    "The object must validate against this JSON schema:\n{schema}"
)


class ModelClientError(Exception):
    """Base class for failures talking to the language model."""


class ModelResponseError(ModelClientError):
    """The model answered, but not with output matching the requested schema."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class ModelUnavailableError(ModelClientError):
    """The request never produced an answer (network, auth, quota, timeout)."""


@dataclass(frozen=True)
class CompletionOptions:
    """Per-call overrides; ``None`` fields take the client defaults."""

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    system_prompt: Optional[str] = None


class ModelClient:
    """Async chat-completion client with structured-output validation."""

    def __init__(
        self,
        config: Optional[Mapping[str, Any]] = None,
        *,
        sdk: Any = None,
        metrics: Optional[MetricsReporter] = None,
    ) -> None:
        self.config = dict(config or MODEL_CONFIG)
        self._sdk = sdk
        self.metrics = metrics or get_metrics_reporter()
        self.module_logger = create_module_logger("ai.client")
        self._usage: Dict[str, int] = {
            "requests": 0,
            "failures": 0,
            "prompt_tokens": 0,
            "completion_tokens": 0,
            "total_tokens": 0,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def complete(
        self,
        messages: Sequence[ChatMessage],
        options: Optional[CompletionOptions] = None,
    ) -> str:
        resolved = self._resolve(options)
        return await self._request(self._with_system(messages, resolved.system_prompt), resolved)

    async def complete_structured(
        self,
        messages: Sequence[ChatMessage],
        response_model: Type[M],
        options: Optional[CompletionOptions] = None,
    ) -> M:
        """Request JSON for ``response_model`` and return the validated instance."""

        resolved = self._resolve(options)
        schema = json.dumps(response_model.model_json_schema(), ensure_ascii=False)
        instruction = _STRUCTURED_INSTRUCTION.format(schema=schema)
        system_prompt = (
            f"{resolved.system_prompt}\n\n{instruction}" if resolved.system_prompt else instruction
        )
        text = await self._request(
            self._with_system(messages, system_prompt), resolved, json_mode=True
        )

        result = parse_structured(text, response_model)
        if isinstance(result, SchemaError):
            self._emit_log(
                "warning",
                "model.response.invalid",
                details={
                    "schema": response_model.__name__,
                    "error": result.message,
                    "raw": result.raw,
                },
            )
            raise ModelResponseError(result.message, raw=result.raw)
        return result.value

    def usage_stats(self) -> Dict[str, int]:
        return dict(self._usage)

    async def health_check(self) -> bool:
        """Send a tiny prompt; healthy when the reply contains ``ok``."""

        try:
            reply = await self.complete(
                [{"role": "user", "content": "Reply with the single word: ok"}],
                CompletionOptions(temperature=0.0, max_tokens=5),
            )
        except ModelClientError as exc:
            self._emit_log("warning", "model.health.failed", details={"error": str(exc)})
            return False
        return "ok" in reply.lower()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @property
    def sdk(self) -> Any:
        if self._sdk is None:
            timeout = httpx.Timeout(
                float(self.config.get("timeout_seconds", 30.0)),
                connect=float(self.config.get("connect_timeout_seconds", 10.0)),
            )
            try:
                self._sdk = AsyncOpenAI(
                    api_key=self.config.get("api_key") or os.getenv("OPENAI_API_KEY"),
                    base_url=self.config.get("base_url") or None,
                    timeout=timeout,
                    max_retries=int(self.config.get("sdk_max_retries", 2)),
                )
            except openai.OpenAIError as exc:
                raise ModelUnavailableError(f"cannot build OpenAI client: {exc}") from exc
        return self._sdk

    def _resolve(self, options: Optional[CompletionOptions]) -> CompletionOptions:
        options = options or CompletionOptions()
        return replace(
            options,
            model=options.model or self.config.get("default_model", "gpt-4o-mini"),
            temperature=(
                options.temperature
                if options.temperature is not None
                else float(self.config.get("default_temperature", 0.7))
            ),
            max_tokens=options.max_tokens or int(self.config.get("default_max_tokens", 2_000)),
        )

    @staticmethod
    def _with_system(
        messages: Sequence[ChatMessage], system_prompt: Optional[str]
    ) -> List[ChatMessage]:
        prepared = [dict(message) for message in messages]
        if system_prompt:
            prepared.insert(0, {"role": "system", "content": system_prompt})
        return prepared

    async def _request(
        self,
        messages: List[ChatMessage],
        options: CompletionOptions,
        *,
        json_mode: bool = False,
    ) -> str:
        extra: Dict[str, Any] = {"response_format": {"type": "json_object"}} if json_mode else {}
        started = time.perf_counter()
        self._usage["requests"] += 1
        try:
            response = await self.sdk.chat.completions.create(
                model=options.model,
                messages=messages,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                **extra,
            )
        except (openai.OpenAIError, httpx.HTTPError, asyncio.TimeoutError) as exc:
            latency = time.perf_counter() - started
            self._usage["failures"] += 1
            self.metrics.record_model_call(model=str(options.model), latency=latency, success=False)
            self._emit_log(
                "warning",
                "model.request.failed",
                latency=latency,
                details={"model": options.model, "error": f"{type(exc).__name__}: {exc}"},
            )
            raise ModelUnavailableError(f"{type(exc).__name__}: {exc}") from exc

        latency = time.perf_counter() - started
        usage = getattr(response, "usage", None)
        prompt_tokens = int(getattr(usage, "prompt_tokens", 0) or 0)
        completion_tokens = int(getattr(usage, "completion_tokens", 0) or 0)
        self._usage["prompt_tokens"] += prompt_tokens
        self._usage["completion_tokens"] += completion_tokens
        self._usage["total_tokens"] += int(
            getattr(usage, "total_tokens", 0) or prompt_tokens + completion_tokens
        )
        self.metrics.record_model_call(
            model=str(options.model),
            latency=latency,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )
        self._emit_log(
            "debug",
            "model.request.completed",
            latency=latency,
            details={
                "model": options.model,
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
            },
        )

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            raise ModelResponseError("model returned an empty completion")
        return content

    def _emit_log(
        self,
        level: str,
        event: str,
        *,
        latency: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload: Dict[str, Any] = {"event": event, "latency": latency, "details": details}
        getattr(self.module_logger, level)(
            {key: value for key, value in payload.items() if value is not None}
        )


__all__ = [
    "ChatMessage",
    "CompletionOptions",
    "ModelClient",
    "ModelClientError",
    "ModelResponseError",
    "ModelUnavailableError",
]
