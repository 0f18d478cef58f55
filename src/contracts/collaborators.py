"""Interfaces of the collaborators that feed and persist pipeline output."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from .articles import GeneratedArticle
from .content import RawContentItem, UserProfile


@runtime_checkable
class Collector(Protocol):
    """Anything that turns a search query into raw content items."""

    async def collect(self, query: str, limit: int = 20) -> List[RawContentItem]:
        ...

    def is_rate_limited(self) -> bool:
        ...

    def get_next_available_time(self) -> Optional[datetime]:
        ...


@runtime_checkable
class ArticleRepository(Protocol):
    async def save_article(
        self, article: GeneratedArticle, category: str, tags: Sequence[str]
    ) -> str:
        """Persist ``article`` and return the stored record identifier."""
        ...


@runtime_checkable
class UserProfileProvider(Protocol):
    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        ...


__all__ = ["ArticleRepository", "Collector", "UserProfileProvider"]
