from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from bdd_kernel.config.models import RunConfig
from bdd_kernel.errors import ConfigError


def load_yaml_config(path: Path) -> dict[str, object]:
    # Raw mapping from a YAML file; structure is validated by the models.
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def parse_run_config(raw: dict[str, object], *, base_dir: Path | None = None) -> RunConfig:
    try:
        config = RunConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid run config: {exc}") from exc
    if base_dir is None:
        return config
    return resolve_paths(config, base_dir)


def load_run_config(path: Path | str) -> RunConfig:
    path = Path(path)
    return parse_run_config(load_yaml_config(path), base_dir=path.parent)


def resolve_paths(config: RunConfig, base_dir: Path) -> RunConfig:
    # Relative feature/sink/log paths are relative to the config file, not the cwd.
    # A path-only source keeps the path as written for its uri.
    sources = [
        source.model_copy(update={"path": str(_resolve(source.path, base_dir)), "uri": source.uri or source.path})
        if source.path
        else source
        for source in config.sources
    ]
    sinks = [
        sink
        if sink.destination in {"stdout", "stderr"}
        else sink.model_copy(update={"destination": str(_resolve(sink.destination, base_dir))})
        for sink in config.sinks
    ]
    log = config.log
    if log is not None and log.path:
        log = log.model_copy(update={"path": str(_resolve(log.path, base_dir))})
    return config.model_copy(update={"sources": sources, "sinks": sinks, "log": log})


def _resolve(value: str, base_dir: Path) -> Path:
    candidate = Path(value)
    return candidate if candidate.is_absolute() else base_dir / candidate
