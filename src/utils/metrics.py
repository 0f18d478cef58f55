"""In-process metrics reporting for model calls and pipeline runs.

Events are kept in memory so tests can assert on the telemetry a stage emits
without a StatsD or OpenTelemetry backend. The API mirrors a small subset of
common metrics clients.
"""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class MetricEvent:
    """Represents a single metric emission."""

    name: str
    value: float
    attributes: Dict[str, Any]


class MetricsReporter:
    """Simple in-process metrics reporter used during development and tests."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._events: List[MetricEvent] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def record_model_call(
        self,
        *,
        model: str,
        latency: float,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        success: bool = True,
    ) -> None:
        """Emit latency and token counters for one completion request."""

        attributes = {"model": model, "success": success}
        self._emit("model.call.latency", latency, attributes)
        self._emit("model.call.tokens.prompt", prompt_tokens, attributes)
        self._emit("model.call.tokens.completion", completion_tokens, attributes)

    def record_stage_fallback(self, *, stage: str, operation: str, error: str) -> None:
        """Emit a counter when a stage substitutes its deterministic fallback."""

        self._emit(
            "stage.fallback.count",
            1,
            {"stage": stage, "operation": operation, "error": error},
        )

    def record_pipeline_run(
        self,
        *,
        user_id: str,
        success: bool,
        execution_time_ms: float,
        sources_used: int,
    ) -> None:
        attributes = {"user_id": user_id, "success": success}
        self._emit("pipeline.run.latency", execution_time_ms, attributes)
        self._emit("pipeline.run.sources_used", sources_used, attributes)

    def snapshot(self) -> List[MetricEvent]:
        """Return a copy of the emitted events for inspection."""

        with self._lock:
            return list(self._events)

    def reset(self) -> None:
        with self._lock:
            self._events.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _emit(self, name: str, value: float, attributes: Optional[Dict[str, Any]] = None) -> None:
        event = MetricEvent(name=name, value=value, attributes=attributes or {})
        with self._lock:
            self._events.append(event)


_metrics_reporter: Optional[MetricsReporter] = None


def get_metrics_reporter() -> MetricsReporter:
    """Return a process-wide singleton metrics reporter."""

    global _metrics_reporter
    if _metrics_reporter is None:
        _metrics_reporter = MetricsReporter()
    return _metrics_reporter


__all__ = ["MetricEvent", "MetricsReporter", "get_metrics_reporter"]
