from .contracts import SinkMeta, get_sink_meta, sink_factory
from .envelope_sinks import (
    CollectingSink,
    NdjsonSink,
    OrderedNdjsonSink,
    collecting_sink,
    encode_envelope,
    ndjson_sink,
    open_destination,
    ordered_ndjson_sink,
)
from .log_sinks import JsonlLogSink, StdoutLogSink, log_jsonl, log_stdout
from .registry import SinkRegistry, SinkRegistryError
from .wiring import build_logger, build_sinks, default_sink_registry

__all__ = [
    "CollectingSink",
    "JsonlLogSink",
    "NdjsonSink",
    "OrderedNdjsonSink",
    "SinkMeta",
    "SinkRegistry",
    "SinkRegistryError",
    "StdoutLogSink",
    "build_logger",
    "build_sinks",
    "collecting_sink",
    "default_sink_registry",
    "encode_envelope",
    "get_sink_meta",
    "log_jsonl",
    "log_stdout",
    "ndjson_sink",
    "open_destination",
    "ordered_ndjson_sink",
    "sink_factory",
]
