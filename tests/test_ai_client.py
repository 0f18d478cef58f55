from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest

from src.ai.client import (
    CompletionOptions,
    ModelClient,
    ModelResponseError,
    ModelUnavailableError,
)
from src.ai.prompts import PromptManager, PromptTemplate, PromptTemplateError
from src.ai.results import Ok, SchemaError, StageOutcome, parse_structured
from src.ai.schemas import CategoryResponse, QualityEvaluationResponse, TagResponse

CLIENT_CONFIG = {
    "default_model": "test-model",
    "default_temperature": 0.5,
    "default_max_tokens": 256,
}


class FakeCompletions:
    def __init__(self, content=None, error: BaseException | None = None) -> None:
        self.content = content
        self.error = error
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
            usage=SimpleNamespace(prompt_tokens=12, completion_tokens=8, total_tokens=20),
        )


def build_client(completions: FakeCompletions, metrics) -> ModelClient:
    sdk = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return ModelClient(CLIENT_CONFIG, sdk=sdk, metrics=metrics)


def test_parse_structured_accepts_fenced_json() -> None:
    text = '```json\n{"quality_score": 7.5, "reasoning": "solid"}\n```'
    result = parse_structured(text, QualityEvaluationResponse)
    assert isinstance(result, Ok)
    assert result.value.quality_score == 7.5


def test_parse_structured_reports_invalid_json() -> None:
    result = parse_structured("Sure! Here is the score: 7", QualityEvaluationResponse)
    assert isinstance(result, SchemaError)
    assert result.message.startswith("invalid JSON")
    assert result.raw.startswith("Sure!")


def test_parse_structured_rejects_non_objects_and_schema_mismatches() -> None:
    assert isinstance(parse_structured("[1, 2]", TagResponse), SchemaError)
    mismatch = parse_structured('{"confidence": 0.4}', CategoryResponse)
    assert isinstance(mismatch, SchemaError)
    assert "category" in mismatch.message


def test_tag_entry_type_is_normalized() -> None:
    result = parse_structured(
        '{"tags": [{"name": "react", "type": "Content_Type"}, {"name": "x", "type": "brand"}]}',
        TagResponse,
    )
    assert isinstance(result, Ok)
    assert [tag.type for tag in result.value.tags] == ["content-type", "topic"]


def test_stage_outcome_constructors() -> None:
    primary = StageOutcome.primary(3)
    fallback = StageOutcome.fallback(1, "ModelUnavailableError: down")
    assert not primary.used_fallback and primary.error is None
    assert fallback.used_fallback and fallback.error.startswith("ModelUnavailableError")


@pytest.mark.anyio
async def test_complete_structured_validates_and_tracks_usage(metrics) -> None:
    completions = FakeCompletions(json.dumps({"quality_score": 8, "flags": ["potential_bias"]}))
    client = build_client(completions, metrics)

    response = await client.complete_structured(
        [{"role": "user", "content": "Score this"}], QualityEvaluationResponse
    )

    assert response.quality_score == 8
    assert response.flags == ["potential_bias"]
    request = completions.requests[0]
    assert request["model"] == "test-model"
    assert request["temperature"] == 0.5
    assert request["max_tokens"] == 256
    assert request["response_format"] == {"type": "json_object"}
    assert request["messages"][0]["role"] == "system"
    assert "JSON schema" in request["messages"][0]["content"]
    assert client.usage_stats()["total_tokens"] == 20
    assert any(event.name == "model.call.latency" for event in metrics.snapshot())


@pytest.mark.anyio
async def test_complete_structured_raises_on_schema_mismatch(metrics) -> None:
    client = build_client(FakeCompletions('{"unexpected": true}'), metrics)

    with pytest.raises(ModelResponseError) as excinfo:
        await client.complete_structured(
            [{"role": "user", "content": "Classify"}], CategoryResponse
        )
    assert excinfo.value.raw == '{"unexpected": true}'


@pytest.mark.anyio
async def test_empty_completion_is_a_response_error(metrics) -> None:
    client = build_client(FakeCompletions(""), metrics)

    with pytest.raises(ModelResponseError):
        await client.complete([{"role": "user", "content": "hi"}])


@pytest.mark.anyio
async def test_transport_errors_become_unavailable(metrics) -> None:
    completions = FakeCompletions(error=httpx.ConnectError("connection refused"))
    client = build_client(completions, metrics)

    with pytest.raises(ModelUnavailableError):
        await client.complete([{"role": "user", "content": "hi"}])
    assert client.usage_stats()["failures"] == 1


@pytest.mark.anyio
async def test_options_override_defaults_and_system_prompt(metrics) -> None:
    completions = FakeCompletions("plain text")
    client = build_client(completions, metrics)

    reply = await client.complete(
        [{"role": "user", "content": "hi"}],
        CompletionOptions(model="other", temperature=0.0, max_tokens=10, system_prompt="Be brief"),
    )

    assert reply == "plain text"
    request = completions.requests[0]
    assert (request["model"], request["temperature"], request["max_tokens"]) == ("other", 0.0, 10)
    assert request["messages"][0] == {"role": "system", "content": "Be brief"}
    assert "response_format" not in request


@pytest.mark.anyio
async def test_health_check(metrics) -> None:
    assert await build_client(FakeCompletions("OK"), metrics).health_check() is True
    failing = build_client(FakeCompletions(error=httpx.ReadTimeout("slow")), metrics)
    assert await failing.health_check() is False


def test_prompt_manager_renders_declared_variables() -> None:
    manager = PromptManager()
    rendered = manager.render(
        "tag-generation",
        {"title": "Rust 2024", "summary": "Edition notes", "content": "(none)", "max_tags": 5},
    )
    assert "Rust 2024" in rendered
    assert "At most 5 tags" in rendered
    assert "{{" not in rendered


def test_prompt_manager_reports_missing_variables() -> None:
    manager = PromptManager()
    with pytest.raises(PromptTemplateError) as excinfo:
        manager.render("tag-generation", {"title": "Rust", "summary": "", "content": None})
    message = str(excinfo.value)
    assert "content" in message and "max_tags" in message
    assert "summary" not in message

    with pytest.raises(PromptTemplateError):
        manager.render("does-not-exist", {})


def test_prompt_manager_flags_undeclared_placeholders() -> None:
    manager = PromptManager(
        [
            PromptTemplate(
                id="broken",
                name="Broken",
                template="Hello {{name}} from {{place}}",
                variables=["name"],
                category="generation",
            )
        ]
    )
    with pytest.raises(PromptTemplateError) as excinfo:
        manager.render("broken", {"name": "Ada"})
    assert "place" in str(excinfo.value)


def test_prompt_manager_update_keeps_identity() -> None:
    manager = PromptManager()
    original = manager.get("article-generation")
    updated = manager.update("article-generation", id="renamed", version="1.1.0")

    assert updated.id == "article-generation"
    assert updated.version == "1.1.0"
    assert updated.created_at == original.created_at
    assert len(manager.by_category("search")) == 3
    with pytest.raises(PromptTemplateError):
        manager.update("missing", version="2")
