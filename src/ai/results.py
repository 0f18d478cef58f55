"""Tagged results for model output validation and stage execution."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Generic, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

Branch = Literal["primary", "fallback"]


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Model output that parsed and validated against its schema."""

    value: T


@dataclass(frozen=True)
class SchemaError:
    """Model output that could not be trusted."""

    message: str
    raw: str = ""


StructuredResult = Union[Ok[M], SchemaError]


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


def parse_structured(text: str, response_model: Type[M]) -> "Ok[M] | SchemaError":
    """Decode ``text`` as JSON and validate it as ``response_model``."""

    raw = text or ""
    try:
        payload = json.loads(_strip_code_fence(raw))
    except json.JSONDecodeError as exc:
        return SchemaError(f"invalid JSON: {exc.msg} at position {exc.pos}", raw[:200])
    if not isinstance(payload, dict):
        return SchemaError(
            f"expected a JSON object, got {type(payload).__name__}", raw[:200]
        )
    try:
        return Ok(response_model.model_validate(payload))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in exc.errors()
        )
        return SchemaError(f"schema mismatch: {problems}", raw[:200])


@dataclass(frozen=True)
class StageOutcome(Generic[T]):
    """Result of a stage call: the model answer or the deterministic fallback."""

    value: T
    branch: Branch = "primary"
    error: Optional[str] = None

    @property
    def used_fallback(self) -> bool:
        return self.branch == "fallback"

    @classmethod
    def primary(cls, value: T) -> "StageOutcome[T]":
        return cls(value=value, branch="primary")

    @classmethod
    def fallback(cls, value: T, error: str) -> "StageOutcome[T]":
        return cls(value=value, branch="fallback", error=error)


__all__ = [
    "Branch",
    "Ok",
    "SchemaError",
    "StageOutcome",
    "StructuredResult",
    "parse_structured",
]
