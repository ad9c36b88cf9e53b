from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

LEVELS: dict[str, int] = {"debug": 10, "info": 20, "warning": 30, "error": 40}


@dataclass(frozen=True, slots=True)
class LogMessage:
    # Structured log record for run diagnostics.
    level: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    fields: dict[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.level or not self.message:
            raise ValueError("LogMessage requires non-empty level/message")
        if self.level not in LEVELS:
            raise ValueError(f"Unknown log level: {self.level}")

    def to_dict(self) -> dict[str, object]:
        return {
            "level": self.level,
            "message": self.message,
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
            "fields": self.fields,
        }


class LogSink(Protocol):
    # Port for structured log output.
    def emit(self, message: LogMessage) -> None:
        raise NotImplementedError("LogSink.emit must be implemented")


class RunLogger:
    # Level-filtered front for an optional log sink; without a sink every call is a no-op.
    def __init__(self, sink: LogSink | None = None, *, level: str = "info") -> None:
        if level not in LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        self._sink = sink
        self._threshold = LEVELS[level]

    @property
    def enabled(self) -> bool:
        return self._sink is not None

    def log(self, level: str, message: str, /, **fields: object) -> None:
        if self._sink is None or LEVELS[level] < self._threshold:
            return
        self._sink.emit(LogMessage(level=level, message=message, fields=dict(fields)))

    def debug(self, message: str, /, **fields: object) -> None:
        self.log("debug", message, **fields)

    def info(self, message: str, /, **fields: object) -> None:
        self.log("info", message, **fields)

    def warning(self, message: str, /, **fields: object) -> None:
        self.log("warning", message, **fields)

    def error(self, message: str, /, **fields: object) -> None:
        self.log("error", message, **fields)

    def close(self) -> None:
        close = getattr(self._sink, "close", None)
        if callable(close):
            close()
