"""
Layered configuration for techcurator.

Four layers are stacked, later ones winning key by key:

1. defaults declared in ``techcurator.config_schema``
2. ``config.toml`` next to the project (or the path given)
3. ``TECHCURATOR__SECTION__KEY`` entries of a ``.env`` file
4. ``TECHCURATOR__SECTION__KEY`` variables of the process environment

Every leaf remembers which layer set it so validation errors and the
``--explain`` command can point at the file or variable responsible.
"""
from __future__ import annotations

import argparse
import json
import os
import shutil
import sys
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, MutableMapping, Optional, Sequence, Tuple

import tomli_w
from dotenv import dotenv_values
from pydantic import ValidationError

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Python 3.10
    import tomli as tomllib  # type: ignore[no-redef]

from techcurator.config_schema import DEFAULT_CONFIG, Config, iter_field_docs

ENV_PREFIX = "TECHCURATOR"
CONFIG_FILENAME = "config.toml"
ENV_FILENAME = ".env"
BACKUP_DIRNAME = "backups"
MASK = "***masked***"
SECRET_MARKERS = ("api_key", "token", "secret", "password")
LAYER_ORDER = ("defaults", "file", "env-file", "env")


class ConfigError(RuntimeError):
    """Configuration could not be loaded, validated or saved."""


@dataclass(frozen=True)
class ValueOrigin:
    """Which layer set a configuration leaf."""

    layer: str
    source: str
    env_var: Optional[str] = None

    def render(self) -> str:
        where = ", ".join(part for part in (self.env_var, self.source) if part)
        return f"{self.layer} ({where})" if where else self.layer


@dataclass
class ConfigMetadata:
    config_path: Path
    env_path: Optional[Path]
    env_prefix: str
    provenance: Dict[str, ValueOrigin] = field(default_factory=dict)

    def describe_sources(self) -> List[str]:
        return [
            "defaults: techcurator.config_schema",
            f"config file: {self.config_path}",
            f".env file: {self.env_path or 'not found'}",
            f"environment: {self.env_prefix}__SECTION__KEY",
        ]


@dataclass
class Layer:
    """One source of overrides: nested values plus the origin of each leaf."""

    values: Dict[str, Any] = field(default_factory=dict)
    origins: Dict[str, ValueOrigin] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------
def is_secret(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SECRET_MARKERS)


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def iter_leaves(mapping: Mapping[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    """Yield ``(dotted.key, value)`` for every non-mapping value."""
    for key, value in mapping.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            yield from iter_leaves(value, dotted)
        else:
            yield dotted, value


def set_dotted(target: MutableMapping[str, Any], dotted: str, value: Any) -> None:
    *parents, leaf = dotted.split(".")
    node = target
    for part in parents:
        child = node.get(part)
        if not isinstance(child, MutableMapping):
            child = node[part] = {}
        node = child
    node[leaf] = value


def get_dotted(mapping: Mapping[str, Any], dotted: str) -> Any:
    node: Any = mapping
    for part in dotted.split("."):
        if not isinstance(node, Mapping) or part not in node:
            raise ConfigError(f"Unknown configuration key: {dotted}")
        node = node[part]
    return node


def parse_scalar(raw: str) -> Any:
    """Interpret an environment or ``--set`` string as TOML would read it."""

    text = raw.strip()
    lowered = text.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("none", "null"):
        return None
    for cast in (int, float):
        try:
            return cast(text)
        except ValueError:
            continue
    if text[:1] in ("[", "{"):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass
    return text


def _display(value: Any) -> str:
    if isinstance(value, Path):
        return str(value)
    try:
        return json.dumps(value, ensure_ascii=False)
    except TypeError:
        return repr(value)


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------
def _mapping_layer(values: Mapping[str, Any], origin: ValueOrigin) -> Layer:
    layer = Layer()
    for dotted, value in iter_leaves(values):
        set_dotted(layer.values, dotted, value)
        layer.origins[dotted] = origin
    return layer


def _read_toml(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _env_layer(
    variables: Mapping[str, Optional[str]], prefix: str, layer_name: str, source: str
) -> Layer:
    layer = Layer()
    marker = f"{prefix}__"
    for name, raw in variables.items():
        if raw is None or not name.startswith(marker):
            continue
        parts = [part.lower() for part in name[len(marker) :].split("__") if part]
        if not parts:
            raise ConfigError(f"Environment override '{name}' names no configuration key")
        dotted = ".".join(parts)
        set_dotted(layer.values, dotted, parse_scalar(raw))
        layer.origins[dotted] = ValueOrigin(layer=layer_name, source=source, env_var=name)
    return layer


def _find_env_file(config_path: Path) -> Optional[Path]:
    for candidate in (config_path.parent / ENV_FILENAME, _project_root() / ENV_FILENAME):
        if candidate.is_file():
            return candidate
    return None


def _stack(layers: Sequence[Layer]) -> Tuple[Dict[str, Any], Dict[str, ValueOrigin]]:
    merged: Dict[str, Any] = {}
    provenance: Dict[str, ValueOrigin] = {}
    for layer in layers:
        for dotted, value in iter_leaves(layer.values):
            set_dotted(merged, dotted, value)
        provenance.update(layer.origins)
    return merged, provenance


def _validation_error(exc: ValidationError, provenance: Mapping[str, ValueOrigin]) -> ConfigError:
    lines = []
    for issue in exc.errors():
        key = ".".join(str(part) for part in issue.get("loc", ())) or "<root>"
        line = f"{key}: {issue.get('msg', 'invalid value')}"
        received = issue.get("input")
        if received is not None and not is_secret(key):
            line += f" (received={received!r})"
        origin = provenance.get(key)
        if origin is not None:
            line += f" [{origin.render()}]"
        lines.append(line)
    return ConfigError("Configuration validation failed:\n - " + "\n - ".join(lines))


def _validate(data: Mapping[str, Any], provenance: Mapping[str, ValueOrigin]) -> Config:
    try:
        return Config.model_validate(data)
    except ValidationError as exc:
        raise _validation_error(exc, provenance) from exc


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(
    path: Optional[Path] = None,
    *,
    env_prefix: str = ENV_PREFIX,
    environ: Optional[Mapping[str, str]] = None,
) -> Config:
    """Build the active ``Config`` from every layer, highest precedence last."""

    config_path = path or _project_root() / CONFIG_FILENAME
    env_path = _find_env_file(config_path)

    layers = [
        _mapping_layer(
            DEFAULT_CONFIG.model_dump(mode="python"),
            ValueOrigin(layer="defaults", source="techcurator.config_schema"),
        ),
        _mapping_layer(_read_toml(config_path), ValueOrigin(layer="file", source=str(config_path))),
    ]
    if env_path is not None:
        layers.append(_env_layer(dotenv_values(env_path), env_prefix, "env-file", str(env_path)))
    layers.append(
        _env_layer(os.environ if environ is None else environ, env_prefix, "env", "process")
    )

    merged, provenance = _stack(layers)
    config = _validate(merged, provenance)
    config._metadata = ConfigMetadata(
        config_path=config_path,
        env_path=env_path,
        env_prefix=env_prefix,
        provenance=provenance,
    )
    return config


def to_toml_data(value: Any) -> Any:
    """Plain TOML-serializable data; ``None`` values are left out."""

    if isinstance(value, Config):
        value = value.model_dump(mode="python")
    if isinstance(value, Mapping):
        return {key: to_toml_data(item) for key, item in value.items() if item is not None}
    if isinstance(value, (list, tuple)):
        return [to_toml_data(item) for item in value]
    if isinstance(value, Path):
        return str(value)
    return value


def save_config(config: Config, path: Optional[Path] = None) -> Path:
    """
    Write ``config`` as TOML, replacing the target atomically.

    An existing file is first copied to ``backups/<name>.<timestamp>.bak``
    beside it.
    """
    metadata: Optional[ConfigMetadata] = getattr(config, "_metadata", None)
    target = path or (metadata.config_path if metadata else _project_root() / CONFIG_FILENAME)
    target.parent.mkdir(parents=True, exist_ok=True)

    handle = tempfile.NamedTemporaryFile(
        mode="wb", dir=target.parent, prefix=f".{target.name}.", delete=False
    )
    staged = Path(handle.name)
    try:
        with handle:
            tomli_w.dump(to_toml_data(config), handle)
        if target.exists():
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
            backups = target.parent / BACKUP_DIRNAME
            backups.mkdir(exist_ok=True)
            shutil.copy2(target, backups / f"{target.name}.{stamp}.bak")
        os.replace(staged, target)
    except OSError as exc:
        staged.unlink(missing_ok=True)
        raise ConfigError(f"Failed to save configuration to {target}: {exc}") from exc
    return target


def apply_updates(config: Config, updates: Mapping[str, str]) -> Config:
    """Return a validated copy of ``config`` with ``dotted.key -> raw value`` applied."""

    data = json.loads(json.dumps(config.model_dump(mode="python"), default=str))
    known = {dotted for dotted, _ in iter_leaves(data)}
    metadata: Optional[ConfigMetadata] = getattr(config, "_metadata", None)
    provenance = dict(metadata.provenance) if metadata else {}
    for dotted, raw in updates.items():
        if dotted not in known:
            raise ConfigError(f"Unknown configuration key: {dotted}")
        set_dotted(data, dotted, parse_scalar(raw))
        provenance[dotted] = ValueOrigin(layer="cli", source="--set")
    updated = _validate(data, provenance)
    if metadata is not None:
        metadata.provenance = provenance
    updated._metadata = metadata
    return updated


def explain(config: Config, key: str) -> str:
    metadata: Optional[ConfigMetadata] = getattr(config, "_metadata", None)
    value = get_dotted(config.model_dump(mode="python"), key)
    origin = metadata.provenance.get(key) if metadata else None
    shown = MASK if is_secret(key) else _display(value)
    return f"{key} = {shown}\nsource: {origin.render() if origin else 'unknown'}"


def schema_table() -> str:
    rows = ["| Field | Type | Default | Description |", "| --- | --- | --- | --- |"]
    for entry in iter_field_docs(DEFAULT_CONFIG):
        name = str(entry["name"])
        default = entry.get("default")
        shown = "" if default is None else (MASK if is_secret(name) else _display(default))
        rows.append(f"| {name} | {entry['type']} | {shown} | {entry.get('description', '')} |")
    return "\n".join(rows)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def _parse_assignments(items: Sequence[str]) -> Dict[str, str]:
    updates: Dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigError(f"Expected KEY=VALUE, got '{item}'")
        updates[key.strip()] = value
    return updates


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect and edit techcurator configuration")
    parser.add_argument("--config", type=Path, help="TOML file to read (and write with --set)")
    parser.add_argument("--env-prefix", default=ENV_PREFIX, help="Prefix of environment overrides")
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--validate", action="store_true", help="Load every layer and validate")
    action.add_argument("--dump-defaults", action="store_true", help="Print the defaults as TOML")
    action.add_argument("--print-schema", action="store_true", help="Print every field as Markdown")
    action.add_argument("--show-sources", action="store_true", help="List the layers in order")
    action.add_argument("--explain", metavar="KEY", help="Show a value and the layer that set it")
    action.add_argument("--set", nargs="+", metavar="KEY=VALUE", help="Validate and save updates")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    out = sys.stdout
    try:
        if args.dump_defaults:
            out.write(tomli_w.dumps(to_toml_data(DEFAULT_CONFIG)))
            return 0
        if args.print_schema:
            out.write(schema_table() + "\n")
            return 0

        config = load_config(args.config, env_prefix=args.env_prefix)
        if args.validate:
            print("Configuration OK")
        elif args.show_sources:
            print("Configuration layers (lowest precedence first):")
            for line in config._metadata.describe_sources():
                print(f"- {line}")
        elif args.explain:
            print(explain(config, args.explain))
        else:
            updated = apply_updates(config, _parse_assignments(args.set))
            before = dict(iter_leaves(config.model_dump(mode="python")))
            saved_to = save_config(updated, args.config)
            for key, new in sorted(iter_leaves(updated.model_dump(mode="python"))):
                old = before.get(key)
                if old != new:
                    shown = (MASK, MASK) if is_secret(key) else (_display(old), _display(new))
                    print(f"{key}: {shown[0]} -> {shown[1]}")
            print(f"Saved configuration to {saved_to}")
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


__all__ = [
    "BACKUP_DIRNAME",
    "Config",
    "ConfigError",
    "ConfigMetadata",
    "ENV_PREFIX",
    "LAYER_ORDER",
    "ValueOrigin",
    "apply_updates",
    "explain",
    "load_config",
    "main",
    "parse_scalar",
    "save_config",
]


if __name__ == "__main__":  # pragma: no cover - module CLI entry point
    raise SystemExit(main())
