# src/collectors/base_collector.py
# Base class for content collectors
# =================================

"""
Common behaviour for anything that turns a search query into raw content.

Concrete collectors only implement ``fetch``. The base class owns the
request budget, URL deduplication, statistics and the rule that a failing
upstream yields an empty result instead of an exception, so the pipeline can
treat every collector the same way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from config.settings import COLLECTOR_CONFIG
from src.contracts.content import RawContentItem
from src.utils.dedupe import unique_by
from src.utils.logger import create_module_logger

from .rate_limit_utils import RateLimiter


class BaseCollector(ABC):
    """
    Abstract collector satisfying the ``Collector`` protocol.

    ``collect`` is a template method: it checks the budget, tracks the call,
    delegates to ``fetch`` and cleans the result.
    """

    source_type = "web"

    def __init__(
        self,
        name: Optional[str] = None,
        *,
        config: Optional[Mapping[str, Any]] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self.name = name or self.__class__.__name__.lower()
        self.config: Dict[str, Any] = dict(config or COLLECTOR_CONFIG)
        self.rate_limiter = rate_limiter or RateLimiter(
            max_requests=int(self.config.get("max_requests", 10)),
            window_seconds=float(self.config.get("window_seconds", 60.0)),
        )
        self.module_logger = create_module_logger(f"collectors.{self.name}")
        self.stats = {
            "total_queries": 0,
            "total_items_found": 0,
            "total_errors": 0,
            "rate_limited": 0,
        }

    @property
    def rate_limit_key(self) -> str:
        return f"collector:{self.name}"

    @abstractmethod
    async def fetch(self, query: str, limit: int) -> List[RawContentItem]:
        """Query the upstream; may raise on transport or parsing errors."""

    async def collect(self, query: str, limit: Optional[int] = None) -> List[RawContentItem]:
        """Fetch up to ``limit`` unique items for ``query``; never raises on upstream errors."""

        size = limit or int(self.config.get("default_limit", 20))
        if self.is_rate_limited():
            self.stats["rate_limited"] += 1
            self._emit_log(
                "warning",
                "collector.query.rate_limited",
                details={"query": query, "next_available": self.get_next_available_time()},
            )
            return []

        self.rate_limiter.track(self.rate_limit_key)
        self.stats["total_queries"] += 1
        try:
            items = await self.fetch(query, size)
        except Exception as exc:
            return self.handle_error(exc, f"collect({query!r})")

        unique = self.remove_duplicates(items)[:size]
        self.stats["total_items_found"] += len(unique)
        self._emit_log(
            "info",
            "collector.query.completed",
            details={"query": query, "found": len(items), "returned": len(unique)},
        )
        return unique

    def is_rate_limited(self) -> bool:
        return self.rate_limiter.is_limited(self.rate_limit_key)

    def get_next_available_time(self) -> Optional[datetime]:
        return self.rate_limiter.next_available_time(self.rate_limit_key)

    def handle_error(self, error: BaseException, context: str) -> List[RawContentItem]:
        self.stats["total_errors"] += 1
        self._emit_log(
            "error",
            "collector.query.failed",
            details={"context": context, "error": f"{type(error).__name__}: {error}"},
        )
        return []

    @staticmethod
    def remove_duplicates(items: List[RawContentItem]) -> List[RawContentItem]:
        return unique_by(items, key=lambda item: item.url)

    def get_stats(self) -> Dict[str, Any]:
        return self.stats.copy()

    def is_healthy(self) -> bool:
        """Healthy while fewer than 30% of queries failed."""
        if self.stats["total_queries"] == 0:
            return True
        return self.stats["total_errors"] / self.stats["total_queries"] < 0.3

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
            "collector": self.name,
            "latency": latency,
            "details": details,
        }
        getattr(self.module_logger, level)(
            {key: value for key, value in payload.items() if value is not None}
        )


__all__ = ["BaseCollector"]
