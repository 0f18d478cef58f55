"""Common plumbing for model-backed pipeline stages."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel

from src.utils.logger import create_module_logger
from src.utils.metrics import MetricsReporter, get_metrics_reporter
from src.utils.ttl_cache import TTLCache, hours

from .client import CompletionOptions, ModelClient, ModelClientError
from .prompts import PromptManager
from .results import StageOutcome

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


def source_weight(table: Optional[Mapping[str, Any]], source_type: Optional[str]) -> float:
    """Look up a per-source-type number, falling back to the table's ``default``."""
    table = table or {}
    key = (source_type or "").strip().lower()
    value = table.get(key) if key and key != "default" else None
    if value is None:
        value = table.get("default", 0.0)
    return float(value)


class PipelineStage:
    """
    Base for every stage that asks the model first and falls back to a heuristic.

    Subclasses set ``stage_name`` and pass their configuration section. The
    model call goes through ``_with_fallback`` so each public operation has an
    explicit primary and fallback branch.
    """

    stage_name = "stage"

    def __init__(
        self,
        client: ModelClient,
        config: Mapping[str, Any],
        *,
        prompts: Optional[PromptManager] = None,
        metrics: Optional[MetricsReporter] = None,
    ) -> None:
        self.client = client
        self.config: Dict[str, Any] = dict(config)
        self.prompts = prompts or PromptManager()
        self.metrics = metrics or get_metrics_reporter()
        self.module_logger = create_module_logger(f"stages.{self.stage_name}")

    def _build_cache(self) -> TTLCache:
        return TTLCache(hours(self.config.get("cache_ttl_hours", 1.0)))

    def _completion_options(self, **overrides: Any) -> CompletionOptions:
        values = {
            "model": self.config.get("model"),
            "temperature": self.config.get("temperature"),
            "max_tokens": self.config.get("max_tokens"),
        }
        values.update(overrides)
        return CompletionOptions(**values)

    async def _ask(
        self,
        template_id: str,
        variables: Mapping[str, Any],
        response_model: Type[M],
        **overrides: Any,
    ) -> M:
        prompt = self.prompts.render(template_id, variables)
        return await self.client.complete_structured(
            [{"role": "user", "content": prompt}],
            response_model,
            self._completion_options(**overrides),
        )

    async def _with_fallback(
        self,
        operation: str,
        primary: Callable[[], Awaitable[T]],
        fallback: Callable[[str], T],
    ) -> StageOutcome[T]:
        """Run ``primary``; on a model failure return ``fallback(error)`` instead."""

        try:
            value = await primary()
        except ModelClientError as exc:
            error = f"{type(exc).__name__}: {exc}"
            self.metrics.record_stage_fallback(
                stage=self.stage_name, operation=operation, error=type(exc).__name__
            )
            self._emit_log(
                "warning",
                f"{self.stage_name}.{operation}.fallback",
                details={"error": error},
            )
            return StageOutcome.fallback(fallback(error), error)
        return StageOutcome.primary(value)

    def _emit_log(
        self,
        level: str,
        event: str,
        *,
        latency: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload: Dict[str, Any] = {
            "event": event,
            "stage": self.stage_name,
            "latency": latency,
            "details": details,
        }
        getattr(self.module_logger, level)(
            {key: value for key, value in payload.items() if value is not None}
        )


__all__ = ["PipelineStage", "source_weight"]
