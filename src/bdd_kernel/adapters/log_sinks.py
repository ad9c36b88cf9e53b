from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import TextIO

from bdd_kernel.adapters.contracts import sink_factory
from bdd_kernel.config.models import LogConfig
from bdd_kernel.observability.logging import LogMessage


class StdoutLogSink:
    # One JSON log record per line on a text stream (stdout unless given).
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def emit(self, message: LogMessage) -> None:
        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(_encode(message) + "\n")


class JsonlLogSink:
    # Append-mode file log for run diagnostics.
    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open("a", encoding="utf-8")

    def emit(self, message: LogMessage) -> None:
        self._file.write(_encode(message) + "\n")
        self._file.flush()

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()


@sink_factory(role="log", kind="stdout")
def log_stdout(config: LogConfig) -> StdoutLogSink:
    _ = config
    return StdoutLogSink()


@sink_factory(role="log", kind="jsonl")
def log_jsonl(config: LogConfig) -> JsonlLogSink:
    if not config.path:
        raise ValueError("log.path must be a non-empty string for jsonl logs")
    return JsonlLogSink(Path(config.path))


def _encode(message: LogMessage) -> str:
    return json.dumps(message.to_dict(), separators=(",", ":"), ensure_ascii=False, default=str)
