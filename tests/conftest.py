from __future__ import annotations

import asyncio
import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Dict, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.ai.client import ModelResponseError, ModelUnavailableError  # noqa: E402
from src.ai.results import SchemaError, parse_structured  # noqa: E402
from src.contracts.content import RawContentItem, UserProfile  # noqa: E402
from src.utils.metrics import MetricsReporter  # noqa: E402

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeModelClient:
    """
    Stands in for ``ModelClient`` at the ``complete_structured`` seam.

    ``replies`` maps a response model class name to a payload dict, a callable
    receiving the rendered prompt, or an exception to raise. Payloads are
    validated like real replies, so a schema mismatch raises
    ``ModelResponseError``. Unknown models raise ``ModelUnavailableError``
    like an unreachable provider would.
    """

    def __init__(self, replies: Dict[str, Any] | None = None) -> None:
        self.replies: Dict[str, Any] = dict(replies or {})
        self.calls: List[SimpleNamespace] = []

    async def complete_structured(self, messages, response_model, options=None):
        prompt = messages[-1]["content"]
        self.calls.append(
            SimpleNamespace(model=response_model.__name__, prompt=prompt, options=options)
        )
        reply = self.replies.get(response_model.__name__)
        if reply is None:
            raise ModelUnavailableError("connection refused")
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(prompt)
            if isinstance(reply, BaseException):
                raise reply
        result = parse_structured(json.dumps(reply), response_model)
        if isinstance(result, SchemaError):
            raise ModelResponseError(result.message, raw=result.raw)
        return result.value

    def calls_for(self, model_name: str) -> List[SimpleNamespace]:
        return [call for call in self.calls if call.model == model_name]

    def usage_stats(self) -> Dict[str, int]:
        return {"requests": len(self.calls)}


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def metrics() -> MetricsReporter:
    return MetricsReporter()


@pytest.fixture
def fake_client() -> Callable[..., FakeModelClient]:
    return FakeModelClient


@pytest.fixture
def make_item() -> Callable[..., RawContentItem]:
    def factory(
        title: str = "Understanding Python async IO",
        url: str = "https://example.com/post",
        *,
        summary: str = "A walk through asyncio internals.",
        source_type: str = "rss",
        age_hours: float = 2.0,
        source_name: str = "Example Blog",
    ) -> RawContentItem:
        return RawContentItem(
            title=title,
            url=url,
            summary=summary,
            source_type=source_type,
            source_name=source_name,
            published_at=datetime.now(timezone.utc) - timedelta(hours=age_hours),
        )

    return factory


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile(
        id="reader-1",
        tech_level="intermediate",
        interests={"keywords": ["python", "asyncio"], "categories": ["Backend Development"]},
        content_types=["tutorial"],
    )


@pytest.fixture
def no_pause(monkeypatch) -> List[float]:
    """Record batch pauses instead of sleeping through them."""

    pauses: List[float] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(seconds, *args, **kwargs):
        pauses.append(seconds)
        await real_sleep(0)

    monkeypatch.setattr("src.utils.batching.asyncio.sleep", fake_sleep)
    return pauses
