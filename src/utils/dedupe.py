"""Cache-key hashing and URL-identity deduplication helpers."""

from __future__ import annotations

import hashlib
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def cache_key(*parts: object) -> str:
    """Stable digest of ``parts`` joined with ``|``."""
    return sha256_hex("|".join("" if part is None else str(part) for part in parts))


def unique_by(items: Iterable[T], key: Callable[[T], object]) -> List[T]:
    """Keep the first occurrence of each key, preserving input order."""
    seen: set = set()
    result: List[T] = []
    for item in items:
        marker = key(item)
        if marker in seen:
            continue
        seen.add(marker)
        result.append(item)
    return result


__all__ = ["cache_key", "sha256_hex", "unique_by"]
