from __future__ import annotations

import pytest

# Emitter broadcasts in registration order and refuses to go back to an earlier phase.
from bdd_kernel.adapters.envelope_sinks import CollectingSink
from bdd_kernel.kernel.clock import Duration, Timestamp
from bdd_kernel.messages.emitter import EmissionOrderError, Emitter, EnvelopeSink
from bdd_kernel.messages.envelopes import (
    MetaMessage,
    ParseErrorMessage,
    SourceMessage,
    StepOutcome,
    TestRunFinishedMessage,
    TestRunStartedMessage,
    TestStepFinishedMessage,
)


class _Recorder:
    def __init__(self, name: str, log: list[str]) -> None:
        self._name = name
        self._log = log
        self.closed = False

    def receive(self, envelope) -> None:
        self._log.append(f"{self._name}:{envelope.KIND}")

    def rendered_output(self) -> str | None:
        return None

    def close(self) -> None:
        self.closed = True


def test_broadcast_follows_registration_order() -> None:
    log: list[str] = []
    first, second = _Recorder("a", log), _Recorder("b", log)
    emitter = Emitter([first])
    emitter.register(second)
    emitter.emit(MetaMessage())
    emitter.emit(SourceMessage(uri="x.feature", data="Feature: X\n"))
    emitter.close()

    assert log == ["a:meta", "b:meta", "a:source", "b:source"]
    assert first.closed and second.closed
    assert emitter.emitted == 2
    assert isinstance(first, EnvelopeSink)


def test_going_back_to_an_earlier_phase_is_rejected() -> None:
    emitter = Emitter([CollectingSink()])
    emitter.emit(MetaMessage())
    emitter.emit(TestRunStartedMessage(id="tr-1"))
    with pytest.raises(EmissionOrderError):
        emitter.emit(SourceMessage(uri="late.feature", data=""))


def test_order_check_can_be_disabled() -> None:
    sink = CollectingSink()
    emitter = Emitter([sink], check_order=False)
    emitter.emit(TestRunFinishedMessage(success=True))
    emitter.emit(MetaMessage())
    assert sink.kinds() == ["testRunFinished", "meta"]


def test_envelopes_serialise_to_single_key_camel_case_objects() -> None:
    stamp = Timestamp(seconds=10, nanos=5)
    finished = TestStepFinishedMessage(
        test_case_started_id="tcs-1",
        test_step_id="ts-2",
        result=StepOutcome(status="FAILED", duration=Duration.from_nanos(1_500_000_000), message="boom"),
        timestamp=stamp,
    )
    assert finished.to_dict() == {
        "testStepFinished": {
            "testCaseStartedId": "tcs-1",
            "testStepId": "ts-2",
            "testStepResult": {"status": "FAILED", "duration": {"seconds": 1, "nanos": 500_000_000}, "message": "boom"},
            "timestamp": {"seconds": 10, "nanos": 5},
        }
    }

    error = ParseErrorMessage(uri="bad.feature", message="unexpected", line=3, column=1)
    assert error.to_dict() == {
        "parseError": {"source": {"uri": "bad.feature", "location": {"line": 3, "column": 1}}, "message": "unexpected"}
    }


def test_meta_and_source_defaults() -> None:
    meta = MetaMessage().to_dict()["meta"]
    assert meta["implementation"]["name"] == "bdd-kernel"
    assert set(meta) == {"protocolVersion", "implementation", "runtime", "os", "cpu"}
    source = SourceMessage(uri="a.feature", data="Feature: A\n").to_dict()["source"]
    assert source["mediaType"] == "text/x.cucumber.gherkin+plain"
