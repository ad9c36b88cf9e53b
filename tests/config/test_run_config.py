from __future__ import annotations

from pathlib import Path

import pytest

# Run config loading: YAML -> pydantic models, paths relative to the config file, fail fast on errors.
from bdd_kernel.config.loader import load_run_config, parse_run_config
from bdd_kernel.config.models import FeatureSourceConfig, LogConfig, RunConfig
from bdd_kernel.errors import ConfigError


def _write(tmp_path: Path, *lines: str) -> Path:
    path = tmp_path / "run.yml"
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


def test_load_run_config_resolves_relative_paths(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        "sources:",
        "  - path: features/login.feature",
        "  - uri: inline.feature",
        "    text: |",
        "      Feature: Inline",
        "tags: '@smoke and not @slow'",
        "parallel: true",
        "max_concurrency: 4",
        "retries: 2",
        "sinks:",
        "  - kind: ordered_ndjson",
        "    destination: out/messages.ndjson",
        "  - kind: ndjson",
        "log:",
        "  kind: jsonl",
        "  path: logs/run.jsonl",
        "  level: debug",
    )
    config = load_run_config(path)

    file_source, inline_source = config.sources
    assert file_source.path == str(tmp_path / "features/login.feature")
    assert file_source.uri == "features/login.feature"
    assert inline_source.uri == "inline.feature"
    assert inline_source.text is not None and inline_source.text.startswith("Feature: Inline")
    assert config.sinks[0].destination == str(tmp_path / "out/messages.ndjson")
    assert config.sinks[1].destination == "stdout"
    assert config.log is not None and config.log.path == str(tmp_path / "logs/run.jsonl")
    assert config.effective_concurrency == 4
    assert config.retries == 2


def test_defaults_are_sequential_with_default_skip_tags() -> None:
    config = RunConfig()
    assert config.effective_concurrency == 1
    assert config.skip_tags == ["@skip", "@ignore"]
    assert not config.dry_run


def test_max_concurrency_ignored_without_parallel() -> None:
    assert RunConfig(max_concurrency=8).effective_concurrency == 1


def test_skip_tags_are_normalized() -> None:
    config = parse_run_config({"skip_tags": ["wip", "@manual"]})
    assert config.skip_tags == ["@wip", "@manual"]


def test_source_needs_exactly_one_payload() -> None:
    with pytest.raises(ValueError):
        FeatureSourceConfig(uri="a.feature")
    with pytest.raises(ValueError):
        FeatureSourceConfig(uri="a.feature", text="Feature: A", path="a.feature")
    with pytest.raises(ValueError):
        FeatureSourceConfig(text="Feature: A")
    assert FeatureSourceConfig(path="a.feature").uri is None


def test_jsonl_log_requires_path() -> None:
    with pytest.raises(ValueError):
        LogConfig(kind="jsonl")


@pytest.mark.parametrize(
    "raw",
    [
        {"unknown": 1},
        {"max_concurrency": 0},
        {"retries": -1},
        {"sinks": [{"kind": "html"}]},
        {"location": {"uri": "a.feature", "line": 0}},
    ],
)
def test_invalid_config_raises_config_error(raw: dict[str, object]) -> None:
    with pytest.raises(ConfigError):
        parse_run_config(raw)


def test_non_mapping_root_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, "- just", "- a list")
    with pytest.raises(ConfigError):
        load_run_config(path)


def test_invalid_yaml_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, "sources: [unclosed")
    with pytest.raises(ConfigError):
        load_run_config(path)


def test_missing_file_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_run_config(tmp_path / "absent.yml")
