from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from bdd_kernel.filtering.skip_tags import DEFAULT_SKIP_TAGS, normalize_tag

# Run configuration models; YAML files and programmatic callers share them.


class FeatureSourceConfig(BaseModel):
    # One feature source: inline text, a file/directory path, or a pre-parsed document.
    model_config = ConfigDict(extra="forbid")
    uri: str | None = None
    text: str | None = None
    path: str | None = None
    document: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _exactly_one_source(self) -> FeatureSourceConfig:
        provided = [name for name in ("text", "path", "document") if getattr(self, name) is not None]
        if len(provided) != 1:
            raise ValueError("feature source needs exactly one of text, path, document")
        # A path doubles as its own uri; inline content needs an explicit one.
        if self.uri is None and self.path is None:
            raise ValueError("feature source uri is required for inline text/document")
        return self


class LocationConfig(BaseModel):
    # (uri, line) selection; line matches any AST node the pickle derives from.
    model_config = ConfigDict(extra="forbid")
    uri: str
    line: int | None = Field(default=None, ge=1)


class SinkConfig(BaseModel):
    # Envelope sink kind and where its output goes.
    model_config = ConfigDict(extra="forbid")
    kind: Literal["ndjson", "ordered_ndjson", "collect"] = "ndjson"
    destination: str = "stdout"


class LogConfig(BaseModel):
    # Structured run log; jsonl needs a file path.
    model_config = ConfigDict(extra="forbid")
    kind: Literal["stdout", "jsonl"] = "stdout"
    path: str | None = None
    level: Literal["debug", "info", "warning", "error"] = "info"

    @model_validator(mode="after")
    def _require_path(self) -> LogConfig:
        if self.kind == "jsonl" and not self.path:
            raise ValueError("log.path is required when kind is 'jsonl'")
        return self


class RunConfig(BaseModel):
    # Everything the runtime needs besides the world factory and configure callback.
    model_config = ConfigDict(extra="forbid")
    sources: list[FeatureSourceConfig] = Field(default_factory=list)
    tags: str | None = None
    name: str | None = None
    location: LocationConfig | None = None
    parallel: bool = False
    max_concurrency: int = Field(default=1, ge=1)
    retries: int = Field(default=0, ge=0)
    dry_run: bool = False
    skip_tags: list[str] = Field(default_factory=lambda: list(DEFAULT_SKIP_TAGS))
    sinks: list[SinkConfig] = Field(default_factory=list)
    log: LogConfig | None = None

    @field_validator("skip_tags")
    @classmethod
    def _normalize_skip_tags(cls, value: list[str]) -> list[str]:
        return [normalize_tag(tag) for tag in value]

    @property
    def effective_concurrency(self) -> int:
        # Sequential unless parallel mode is on.
        return self.max_concurrency if self.parallel else 1
