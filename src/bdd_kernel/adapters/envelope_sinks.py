from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, TextIO, TypeVar

from bdd_kernel.adapters.contracts import sink_factory
from bdd_kernel.config.models import SinkConfig
from bdd_kernel.messages.envelopes import (
    Envelope,
    TestRunFinishedMessage,
    TestRunStartedMessage,
    execution_block_of,
)

M = TypeVar("M")


def encode_envelope(envelope: Envelope) -> str:
    # One envelope -> one compact JSON line (without the newline).
    return json.dumps(envelope.to_dict(), separators=(",", ":"), ensure_ascii=False, default=_json_default)


def open_destination(destination: str) -> tuple[TextIO, bool]:
    # Returns the stream and whether the sink owns (and must close) it.
    if destination == "stdout":
        return sys.stdout, False
    if destination == "stderr":
        return sys.stderr, False
    path = Path(destination)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path.open("w", encoding="utf-8"), True


class NdjsonSink:
    # Canonical wire format: each envelope is written as soon as it is produced.
    def __init__(self, stream: TextIO, *, owns_stream: bool = False) -> None:
        self._stream = stream
        self._owns_stream = owns_stream
        self._closed = False

    def receive(self, envelope: Envelope) -> None:
        self._stream.write(encode_envelope(envelope) + "\n")
        self._stream.flush()

    def rendered_output(self) -> str | None:
        return None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_stream:
            self._stream.close()
        else:
            self._stream.flush()


class OrderedNdjsonSink:
    # Strict total order under concurrency: execution blocks are buffered per testCaseStartedId
    # and written contiguously, in TestCaseStarted order, when TestRunFinished arrives.
    def __init__(self, stream: TextIO, *, owns_stream: bool = False) -> None:
        self._stream = stream
        self._owns_stream = owns_stream
        self._run_started = False
        self._segments: list[list[str]] = []
        self._blocks: dict[str, list[str]] = {}
        self._closed = False

    def receive(self, envelope: Envelope) -> None:
        line = encode_envelope(envelope)
        if isinstance(envelope, TestRunFinishedMessage):
            for segment in self._segments:
                self._write(segment)
            self._segments.clear()
            self._blocks.clear()
            self._write([line])
            self._stream.flush()
            return
        if not self._run_started:
            # Everything up to and including TestRunStarted is already totally ordered.
            self._write([line])
            self._run_started = isinstance(envelope, TestRunStartedMessage)
            return
        block_id = execution_block_of(envelope)
        if block_id is None:
            # Run hook envelopes keep their position relative to the blocks.
            self._segments.append([line])
            return
        block = self._blocks.get(block_id)
        if block is None:
            block = []
            self._blocks[block_id] = block
            self._segments.append(block)
        block.append(line)

    def rendered_output(self) -> str | None:
        return None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # A run that never finished still gets what it buffered.
        for segment in self._segments:
            self._write(segment)
        self._segments.clear()
        if self._owns_stream:
            self._stream.close()
        else:
            self._stream.flush()

    def _write(self, lines: list[str]) -> None:
        for line in lines:
            self._stream.write(line + "\n")


class CollectingSink:
    # In-memory sink for embedding and tests.
    def __init__(self) -> None:
        self.envelopes: list[Envelope] = []

    def receive(self, envelope: Envelope) -> None:
        self.envelopes.append(envelope)

    def rendered_output(self) -> str | None:
        return "".join(encode_envelope(envelope) + "\n" for envelope in self.envelopes)

    def kinds(self) -> list[str]:
        return [envelope.KIND for envelope in self.envelopes]

    def of_type(self, message_type: type[M]) -> list[M]:
        return [envelope for envelope in self.envelopes if isinstance(envelope, message_type)]

    def __iter__(self) -> Iterator[Envelope]:
        return iter(self.envelopes)

    def __len__(self) -> int:
        return len(self.envelopes)


@sink_factory(role="envelope", kind="ndjson")
def ndjson_sink(config: SinkConfig) -> NdjsonSink:
    stream, owned = open_destination(config.destination)
    return NdjsonSink(stream, owns_stream=owned)


@sink_factory(role="envelope", kind="ordered_ndjson", buffered=True)
def ordered_ndjson_sink(config: SinkConfig) -> OrderedNdjsonSink:
    stream, owned = open_destination(config.destination)
    return OrderedNdjsonSink(stream, owns_stream=owned)


@sink_factory(role="envelope", kind="collect", buffered=True)
def collecting_sink(config: SinkConfig) -> CollectingSink:
    # Destination is irrelevant: output stays in memory.
    _ = config
    return CollectingSink()


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)
