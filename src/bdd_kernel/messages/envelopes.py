from __future__ import annotations

import platform
import sys
from dataclasses import dataclass, field
from typing import Any, ClassVar

from bdd_kernel.compiler.model import Pickle
from bdd_kernel.features.parser import FeatureDocument
from bdd_kernel.kernel.clock import Duration, Timestamp, now
from bdd_kernel.planning.planner import TestCase
from bdd_kernel.steps.registry import ParamTypeDef, StepDef
from bdd_kernel.steps.setup import HookDef

PROTOCOL_VERSION = "27.0.0"
IMPLEMENTATION_NAME = "bdd-kernel"
IMPLEMENTATION_VERSION = "0.1.0"
GHERKIN_MEDIA_TYPE = "text/x.cucumber.gherkin+plain"

# Phase index of each envelope kind; emission must never go back to an earlier phase.
PHASES: dict[str, int] = {
    "meta": 0,
    "source": 1,
    "gherkinDocument": 1,
    "parseError": 1,
    "pickle": 2,
    "stepDefinition": 3,
    "parameterType": 4,
    "hook": 5,
    "testCase": 6,
    "testRunStarted": 7,
    "testRunHookStarted": 8,
    "testRunHookFinished": 8,
    "testCaseStarted": 8,
    "testStepStarted": 8,
    "testStepFinished": 8,
    "testCaseFinished": 8,
    "testRunFinished": 9,
}


class _Message:
    # Shared serialization: {"<kind>": {camelCase payload}}, one JSON object per envelope.
    __slots__ = ()
    KIND: ClassVar[str]

    def payload(self) -> dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        return {self.KIND: self.payload()}


@dataclass(frozen=True, slots=True)
class StepOutcome:
    # Protocol-level result of one test step or run hook.
    status: str
    duration: Duration
    message: str | None = None
    exception_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": self.status, "duration": self.duration.to_dict()}
        if self.message is not None:
            payload["message"] = self.message
        if self.exception_type is not None:
            payload["exception"] = {"type": self.exception_type, "message": self.message or ""}
        return payload


@dataclass(frozen=True, slots=True)
class MetaMessage(_Message):
    KIND: ClassVar[str] = "meta"
    protocol_version: str = PROTOCOL_VERSION
    implementation: str = IMPLEMENTATION_NAME
    implementation_version: str = IMPLEMENTATION_VERSION
    runtime: str = field(default_factory=platform.python_implementation)
    runtime_version: str = field(default_factory=lambda: sys.version.split()[0])
    os: str = field(default_factory=platform.system)
    cpu: str = field(default_factory=platform.machine)

    def payload(self) -> dict[str, Any]:
        return {
            "protocolVersion": self.protocol_version,
            "implementation": {"name": self.implementation, "version": self.implementation_version},
            "runtime": {"name": self.runtime, "version": self.runtime_version},
            "os": {"name": self.os},
            "cpu": {"name": self.cpu},
        }


@dataclass(frozen=True, slots=True)
class SourceMessage(_Message):
    KIND: ClassVar[str] = "source"
    uri: str
    data: str
    media_type: str = GHERKIN_MEDIA_TYPE

    def payload(self) -> dict[str, Any]:
        return {"uri": self.uri, "data": self.data, "mediaType": self.media_type}


@dataclass(frozen=True, slots=True)
class GherkinDocumentMessage(_Message):
    KIND: ClassVar[str] = "gherkinDocument"
    document: FeatureDocument

    def payload(self) -> dict[str, Any]:
        return dict(self.document.ast)


@dataclass(frozen=True, slots=True)
class ParseErrorMessage(_Message):
    KIND: ClassVar[str] = "parseError"
    uri: str
    message: str
    line: int | None = None
    column: int | None = None

    def payload(self) -> dict[str, Any]:
        source: dict[str, Any] = {"uri": self.uri}
        if self.line is not None:
            location: dict[str, int] = {"line": self.line}
            if self.column is not None:
                location["column"] = self.column
            source["location"] = location
        return {"source": source, "message": self.message}


@dataclass(frozen=True, slots=True)
class PickleMessage(_Message):
    KIND: ClassVar[str] = "pickle"
    pickle: Pickle

    def payload(self) -> dict[str, Any]:
        return self.pickle.to_dict()


@dataclass(frozen=True, slots=True)
class StepDefinitionMessage(_Message):
    KIND: ClassVar[str] = "stepDefinition"
    step_def: StepDef

    def payload(self) -> dict[str, Any]:
        source = self.step_def.source.to_dict() if self.step_def.source is not None else {}
        return {
            "id": self.step_def.id,
            "pattern": {"source": self.step_def.pattern_text, "type": self.step_def.pattern_kind.value},
            "sourceReference": source,
        }


@dataclass(frozen=True, slots=True)
class ParameterTypeMessage(_Message):
    KIND: ClassVar[str] = "parameterType"
    param_type: ParamTypeDef

    def payload(self) -> dict[str, Any]:
        return {
            "id": self.param_type.id,
            "name": self.param_type.name,
            "regularExpressions": list(self.param_type.patterns),
            "preferForRegularExpressionMatch": self.param_type.prefer_for_regexp_match,
            "useForSnippets": self.param_type.use_for_snippets,
        }


@dataclass(frozen=True, slots=True)
class HookMessage(_Message):
    KIND: ClassVar[str] = "hook"
    hook: HookDef

    def payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.hook.id,
            "type": self.hook.kind.value,
            "sourceReference": self.hook.source.to_dict() if self.hook.source is not None else {},
        }
        if self.hook.name:
            payload["name"] = self.hook.name
        if self.hook.tag_expression:
            payload["tagExpression"] = self.hook.tag_expression
        return payload


@dataclass(frozen=True, slots=True)
class TestCaseMessage(_Message):
    __test__ = False
    KIND: ClassVar[str] = "testCase"
    test_case: TestCase
    test_run_started_id: str | None = None

    def payload(self) -> dict[str, Any]:
        payload = self.test_case.to_dict()
        if self.test_run_started_id is not None:
            payload["testRunStartedId"] = self.test_run_started_id
        return payload


@dataclass(frozen=True, slots=True)
class TestRunStartedMessage(_Message):
    __test__ = False
    KIND: ClassVar[str] = "testRunStarted"
    id: str
    timestamp: Timestamp = field(default_factory=now)

    def payload(self) -> dict[str, Any]:
        return {"id": self.id, "timestamp": self.timestamp.to_dict()}


@dataclass(frozen=True, slots=True)
class TestRunHookStartedMessage(_Message):
    __test__ = False
    KIND: ClassVar[str] = "testRunHookStarted"
    id: str
    test_run_started_id: str
    hook_id: str
    timestamp: Timestamp = field(default_factory=now)

    def payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "testRunStartedId": self.test_run_started_id,
            "hookId": self.hook_id,
            "timestamp": self.timestamp.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class TestRunHookFinishedMessage(_Message):
    __test__ = False
    KIND: ClassVar[str] = "testRunHookFinished"
    test_run_hook_started_id: str
    result: StepOutcome
    timestamp: Timestamp = field(default_factory=now)

    def payload(self) -> dict[str, Any]:
        return {
            "testRunHookStartedId": self.test_run_hook_started_id,
            "result": self.result.to_dict(),
            "timestamp": self.timestamp.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class TestCaseStartedMessage(_Message):
    __test__ = False
    KIND: ClassVar[str] = "testCaseStarted"
    id: str
    test_case_id: str
    attempt: int = 0
    test_run_started_id: str | None = None
    timestamp: Timestamp = field(default_factory=now)

    def payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "testCaseId": self.test_case_id,
            "attempt": self.attempt,
            "timestamp": self.timestamp.to_dict(),
        }
        if self.test_run_started_id is not None:
            payload["testRunStartedId"] = self.test_run_started_id
        return payload


@dataclass(frozen=True, slots=True)
class TestStepStartedMessage(_Message):
    __test__ = False
    KIND: ClassVar[str] = "testStepStarted"
    test_case_started_id: str
    test_step_id: str
    timestamp: Timestamp = field(default_factory=now)

    def payload(self) -> dict[str, Any]:
        return {
            "testCaseStartedId": self.test_case_started_id,
            "testStepId": self.test_step_id,
            "timestamp": self.timestamp.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class TestStepFinishedMessage(_Message):
    __test__ = False
    KIND: ClassVar[str] = "testStepFinished"
    test_case_started_id: str
    test_step_id: str
    result: StepOutcome
    timestamp: Timestamp = field(default_factory=now)

    def payload(self) -> dict[str, Any]:
        return {
            "testCaseStartedId": self.test_case_started_id,
            "testStepId": self.test_step_id,
            "testStepResult": self.result.to_dict(),
            "timestamp": self.timestamp.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class TestCaseFinishedMessage(_Message):
    __test__ = False
    KIND: ClassVar[str] = "testCaseFinished"
    test_case_started_id: str
    will_be_retried: bool = False
    timestamp: Timestamp = field(default_factory=now)

    def payload(self) -> dict[str, Any]:
        return {
            "testCaseStartedId": self.test_case_started_id,
            "willBeRetried": self.will_be_retried,
            "timestamp": self.timestamp.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class TestRunFinishedMessage(_Message):
    __test__ = False
    KIND: ClassVar[str] = "testRunFinished"
    success: bool
    test_run_started_id: str | None = None
    message: str | None = None
    timestamp: Timestamp = field(default_factory=now)

    def payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "timestamp": self.timestamp.to_dict()}
        if self.test_run_started_id is not None:
            payload["testRunStartedId"] = self.test_run_started_id
        if self.message is not None:
            payload["message"] = self.message
        return payload


Envelope = (
    MetaMessage
    | SourceMessage
    | GherkinDocumentMessage
    | ParseErrorMessage
    | PickleMessage
    | StepDefinitionMessage
    | ParameterTypeMessage
    | HookMessage
    | TestCaseMessage
    | TestRunStartedMessage
    | TestRunHookStartedMessage
    | TestRunHookFinishedMessage
    | TestCaseStartedMessage
    | TestStepStartedMessage
    | TestStepFinishedMessage
    | TestCaseFinishedMessage
    | TestRunFinishedMessage
)


def execution_block_of(envelope: Envelope) -> str | None:
    # Execution-block key used by sinks that re-group concurrent scenarios.
    if isinstance(envelope, TestCaseStartedMessage):
        return envelope.id
    if isinstance(envelope, (TestStepStartedMessage, TestStepFinishedMessage, TestCaseFinishedMessage)):
        return envelope.test_case_started_id
    return None


