from __future__ import annotations

from bdd_kernel.adapters.envelope_sinks import collecting_sink, ndjson_sink, ordered_ndjson_sink
from bdd_kernel.adapters.log_sinks import log_jsonl, log_stdout
from bdd_kernel.adapters.registry import SinkRegistry
from bdd_kernel.config.models import LogConfig, SinkConfig
from bdd_kernel.messages.emitter import EnvelopeSink
from bdd_kernel.observability.logging import LogSink, RunLogger

ENVELOPE_ROLE = "envelope"
LOG_ROLE = "log"


def default_sink_registry() -> SinkRegistry:
    # Built-in envelope and log sinks.
    return SinkRegistry().register_all(
        [ndjson_sink, ordered_ndjson_sink, collecting_sink, log_stdout, log_jsonl]
    )


def build_sinks(configs: list[SinkConfig], registry: SinkRegistry | None = None) -> list[EnvelopeSink]:
    registry = registry or default_sink_registry()
    sinks: list[EnvelopeSink] = []
    for config in configs:
        sink = registry.build(ENVELOPE_ROLE, config)
        assert isinstance(sink, EnvelopeSink)
        sinks.append(sink)
    return sinks


def build_logger(config: LogConfig | None, registry: SinkRegistry | None = None) -> RunLogger:
    if config is None:
        return RunLogger()
    registry = registry or default_sink_registry()
    sink = registry.build(LOG_ROLE, config)
    assert hasattr(sink, "emit")
    log_sink: LogSink = sink  # type: ignore[assignment]
    return RunLogger(log_sink, level=config.level)
