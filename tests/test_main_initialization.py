"""Tests for TechCuratorSystem initialization and the command line entry point."""

import json
import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import main  # noqa: E402
from main import TechCuratorSystem  # noqa: E402
from techcurator.config_manager import ConfigError  # noqa: E402


class MockModuleLogger:
    """Simple logger stub that records messages for assertions."""

    def __init__(self):
        self.infos = []
        self.warnings = []
        self.errors = []

    def info(self, message):
        self.infos.append(message)

    def warning(self, message):
        self.warnings.append(message)

    def error(self, message):
        self.errors.append(message)


class MockLogger:
    """Logger factory stub used to capture module logs."""

    def __init__(self):
        self.modules = {}
        self.startup_logged = False
        self.performance = []

    def create_module_logger(self, module_name: str):
        if module_name not in self.modules:
            self.modules[module_name] = MockModuleLogger()
        return self.modules[module_name]

    def log_system_startup(self, **_kwargs):
        self.startup_logged = True

    def log_performance_metrics(self, metrics, context=""):
        self.performance.append((context, metrics))


def events(messages):
    return [message.get("event") for message in messages if isinstance(message, dict)]


def test_initialize_builds_pipeline(monkeypatch, fake_client):
    test_logger = MockLogger()
    monkeypatch.setattr(main, "setup_logging", lambda: test_logger)

    system = TechCuratorSystem(client=fake_client())
    assert system.initialize() is True

    assert system.pipeline is not None
    assert test_logger.startup_logged
    system_logger = test_logger.modules["system"]
    assert events(system_logger.infos) == ["system.initialize.start", "system.initialize.completed"]


def test_initialize_reports_invalid_configuration(monkeypatch, fake_client):
    test_logger = MockLogger()
    monkeypatch.setattr(main, "setup_logging", lambda: test_logger)

    def broken_config():
        raise ConfigError("pipeline.max_sources_per_article cannot exceed generation.max_sources")

    monkeypatch.setattr(main, "validate_config", broken_config)

    system = TechCuratorSystem(client=fake_client())
    assert system.initialize() is False
    assert system.pipeline is None
    errors = test_logger.modules["system"].errors
    assert events(errors) == ["system.initialize.failed"]
    assert "max_sources_per_article" in errors[0]["details"]["error"]


@pytest.mark.anyio
async def test_run_requires_initialization(fake_client, profile):
    system = TechCuratorSystem(client=fake_client())
    with pytest.raises(RuntimeError):
        await system.run([], profile)


@pytest.mark.anyio
async def test_run_returns_json_ready_result(monkeypatch, fake_client, make_item, profile, no_pause):
    test_logger = MockLogger()
    monkeypatch.setattr(main, "setup_logging", lambda: test_logger)
    client = fake_client({"QualityEvaluationResponse": {"quality_score": 2.0}})

    system = TechCuratorSystem(client=client)
    assert system.initialize()
    output = await system.run([make_item()], profile)

    assert output["success"] is False
    assert output["error"] == "No sources passed quality threshold"
    json.dumps(output)
    context, metrics = test_logger.performance[0]
    assert context == "PIPELINE RUN"
    assert metrics["sources_processed"] == 1
    assert metrics["requests"] == 1


def test_load_sources_accepts_wrapped_payload(tmp_path):
    path = tmp_path / "sources.json"
    path.write_text(
        json.dumps(
            {
                "sources": [
                    {
                        "title": "Rust 2024 edition",
                        "url": "https://blog.rust-lang.org/2025/02/20/Rust-1.85.0.html",
                        "publishedAt": "2025-02-20T00:00:00Z",
                        "sourceType": "RSS",
                    }
                ]
            }
        ),
        encoding="utf-8",
    )

    items = main.load_sources(path)

    assert len(items) == 1
    assert items[0].source_type == "rss"
    assert items[0].published_at.year == 2025


def test_main_requires_inputs_without_diagnose():
    with pytest.raises(SystemExit) as excinfo:
        main.main([])
    assert excinfo.value.code == 2


def test_main_diagnose_exit_code(monkeypatch, capsys, fake_client):
    monkeypatch.setattr(main, "setup_logging", MockLogger)
    monkeypatch.setattr(main, "TechCuratorSystem", lambda: TechCuratorSystem(client=fake_client()))

    assert main.main(["--diagnose"]) == 2

    report = json.loads(capsys.readouterr().out)
    assert report["status"] == "unhealthy"
    assert set(report["stages"]) == {"evaluator", "scorer", "classifier", "tagger", "query_generator"}


def test_main_reports_unreadable_input(monkeypatch, capsys, fake_client, tmp_path):
    monkeypatch.setattr(main, "setup_logging", MockLogger)
    monkeypatch.setattr(main, "TechCuratorSystem", lambda: TechCuratorSystem(client=fake_client()))
    profile_path = tmp_path / "profile.json"
    profile_path.write_text(json.dumps({"id": "reader"}), encoding="utf-8")

    code = main.main(["--sources", str(tmp_path / "missing.json"), "--profile", str(profile_path)])

    assert code == 1
    assert "Could not read input" in capsys.readouterr().err
