"""Language model access: client, prompts, response schemas and stage plumbing."""

from .client import (
    CompletionOptions,
    ModelClient,
    ModelClientError,
    ModelResponseError,
    ModelUnavailableError,
)
from .prompts import PromptManager, PromptTemplate, PromptTemplateError
from .results import Ok, SchemaError, StageOutcome, parse_structured
from .stage import PipelineStage

__all__ = [
    "CompletionOptions",
    "ModelClient",
    "ModelClientError",
    "ModelResponseError",
    "ModelUnavailableError",
    "Ok",
    "PipelineStage",
    "PromptManager",
    "PromptTemplate",
    "PromptTemplateError",
    "SchemaError",
    "StageOutcome",
    "parse_structured",
]
