from __future__ import annotations

from pathlib import Path

import pytest

from techcurator.config_manager import Config, ConfigError, load_config, main, save_config
from techcurator.config_schema import DEFAULT_CONFIG, iter_field_docs


def test_precedence_env_overrides(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[pipeline]\nquality_threshold = 6.5\n", encoding="utf-8")
    env_file = tmp_path / ".env"
    env_file.write_text("TECHCURATOR__PIPELINE__QUALITY_THRESHOLD=7\n", encoding="utf-8")
    environ = {"TECHCURATOR__PIPELINE__QUALITY_THRESHOLD": "7.5"}

    config = load_config(config_file, environ=environ)

    assert config.pipeline.quality_threshold == 7.5
    provenance = config._metadata.provenance["pipeline.quality_threshold"]
    assert provenance.layer == "env"
    assert provenance.env_var == "TECHCURATOR__PIPELINE__QUALITY_THRESHOLD"


def test_env_file_overrides_config_file(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[generation]\nmax_tags = 6\n", encoding="utf-8")
    (tmp_path / ".env").write_text("TECHCURATOR__GENERATION__MAX_TAGS=4\n", encoding="utf-8")

    config = load_config(config_file, environ={})

    assert config.generation.max_tags == 4
    assert config._metadata.provenance["generation.max_tags"].layer == "env-file"


def test_file_layer_wins_over_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[evaluation]\nfallback_score = 4.0\n", encoding="utf-8")

    config = load_config(config_file, environ={})

    assert config.evaluation.fallback_score == 4.0
    assert config.interest.fallback_base_score == DEFAULT_CONFIG.interest.fallback_base_score
    assert config._metadata.provenance["evaluation.fallback_score"].layer == "file"


def test_validation_errors_report_source(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[pipeline]\nquality_threshold = 'high'\n", encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(config_file, environ={})

    message = str(excinfo.value)
    assert "pipeline.quality_threshold" in message
    assert str(config_file) in message


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[pipeline]\nturbo = true\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(config_file, environ={})


def test_other_category_is_always_in_taxonomy(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        "[classification]\n"
        'categories = ["Frontend Development", "Backend Development", "Mobile Development", '
        '"Data Science & AI", "DevOps & Infrastructure"]\n',
        encoding="utf-8",
    )

    config = load_config(config_file, environ={})

    assert config.classification.categories[-1] == "Other"
    assert len(config.classification.categories) == 6


def test_fallback_keywords_must_reference_known_categories(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        "[classification]\n"
        '[classification.fallback_keywords]\n'
        'Gardening = ["soil"]\n',
        encoding="utf-8",
    )

    with pytest.raises(ConfigError) as excinfo:
        load_config(config_file, environ={})
    assert "Gardening" in str(excinfo.value)


def test_save_config_creates_backups(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[pipeline]\nmax_sources_per_article = 4\n", encoding="utf-8")
    config = load_config(config_file, environ={})
    data = config.model_dump(mode="python")

    data["pipeline"]["max_sources_per_article"] = 3
    updated = Config.model_validate(data)
    updated._metadata = config._metadata
    save_config(updated)

    backups = list((tmp_path / "backups").glob("config.toml.*.bak"))
    assert backups
    assert load_config(config_file, environ={}).pipeline.max_sources_per_article == 3


def test_save_config_drops_optional_none(tmp_path: Path) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text('[model]\nbase_url = "http://localhost:11434/v1"\n', encoding="utf-8")
    config = load_config(config_file, environ={})
    data = config.model_dump(mode="python")
    data["model"]["base_url"] = None
    updated = Config.model_validate(data)
    updated._metadata = config._metadata

    save_config(updated)

    assert "base_url" not in config_file.read_text(encoding="utf-8")


def test_field_docs_cover_every_section() -> None:
    names = {entry["name"] for entry in iter_field_docs(DEFAULT_CONFIG)}
    for section in (
        "model",
        "evaluation",
        "interest",
        "queries",
        "classification",
        "tagging",
        "generation",
        "pipeline",
        "collectors",
        "logging",
    ):
        assert section in names
    assert "pipeline.quality_threshold" in names
    assert "generation.source_multipliers.github" in names


def test_cli_explain_masks_api_key(tmp_path: Path, capsys: pytest.CaptureFixture[str], monkeypatch) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text('[model]\napi_key = "sk-test-123"\n', encoding="utf-8")
    monkeypatch.delenv("TECHCURATOR__MODEL__API_KEY", raising=False)

    exit_code = main(["--config", str(config_file), "--explain", "model.api_key"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "sk-test-123" not in output
    assert "***masked***" in output


def test_cli_set_persists_validated_update(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("[pipeline]\ninterest_threshold = 5.0\n", encoding="utf-8")

    exit_code = main(["--config", str(config_file), "--set", "pipeline.interest_threshold=6.5"])

    assert exit_code == 0
    assert "pipeline.interest_threshold: 5.0 -> 6.5" in capsys.readouterr().out
    assert load_config(config_file, environ={}).pipeline.interest_threshold == 6.5


def test_cli_set_rejects_unknown_key(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config_file = tmp_path / "config.toml"
    config_file.write_text("", encoding="utf-8")

    exit_code = main(["--config", str(config_file), "--set", "pipeline.turbo=1"])

    assert exit_code == 1
    assert "Unknown configuration key" in capsys.readouterr().err
