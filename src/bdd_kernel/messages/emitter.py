from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from bdd_kernel.messages.envelopes import PHASES, Envelope


class EmissionOrderError(RuntimeError):
    # Raised when an envelope would be emitted after a later pipeline phase has begun.
    pass


@runtime_checkable
class EnvelopeSink(Protocol):
    # Narrow consumer port: one envelope at a time, optional rendered text at the end.
    def receive(self, envelope: Envelope) -> None:
        raise NotImplementedError("EnvelopeSink.receive must be implemented")

    def rendered_output(self) -> str | None:
        raise NotImplementedError("EnvelopeSink.rendered_output must be implemented")


class Emitter:
    # Synchronous broadcast to every registered sink, in registration order.
    def __init__(self, sinks: Iterable[EnvelopeSink] = (), *, check_order: bool = True) -> None:
        self._sinks: list[EnvelopeSink] = list(sinks)
        self._check_order = check_order
        self._phase = -1
        self._count = 0

    def register(self, sink: EnvelopeSink) -> None:
        self._sinks.append(sink)

    @property
    def sinks(self) -> tuple[EnvelopeSink, ...]:
        return tuple(self._sinks)

    @property
    def emitted(self) -> int:
        return self._count

    def emit(self, envelope: Envelope) -> None:
        if self._check_order:
            phase = PHASES[envelope.KIND]
            if phase < self._phase:
                raise EmissionOrderError(f"'{envelope.KIND}' emitted after a later phase already started")
            self._phase = phase
        self._count += 1
        for sink in self._sinks:
            sink.receive(envelope)

    def close(self) -> None:
        # Sinks without close() hold no resources.
        for sink in self._sinks:
            close = getattr(sink, "close", None)
            if callable(close):
                close()
