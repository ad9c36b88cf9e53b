from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from bdd_kernel.compiler.model import Pickle
from bdd_kernel.errors import (
    BddKernelError,
    FeatureParseError,
    RunFailedError,
    ScenarioFailedError,
    StepFailedError,
)
from bdd_kernel.kernel.clock import Duration
from bdd_kernel.planning.planner import TestCase
from bdd_kernel.steps.registry import Undefined


class StepStatus(str, Enum):
    PASSED = "PASSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    UNDEFINED = "UNDEFINED"
    PENDING = "PENDING"


@dataclass(frozen=True, slots=True)
class StepResult:
    # Outcome of one test step (pickle step or hook step).
    test_step_id: str
    status: StepStatus
    text: str = ""
    is_hook: bool = False
    message: str | None = None
    reason: str | None = None
    duration: Duration = field(default_factory=lambda: Duration(0, 0))
    error: StepFailedError | None = None
    undefined: Undefined | None = None

    def diagnostic(self) -> BddKernelError | None:
        if self.error is not None:
            return self.error
        if self.undefined is not None:
            return self.undefined.to_error()
        return None


def scenario_status(steps: Sequence[StepResult]) -> StepStatus:
    # Any Undefined wins; otherwise the first Failed/Pending; all Skipped is Skipped; else Passed.
    if any(step.status is StepStatus.UNDEFINED for step in steps):
        return StepStatus.UNDEFINED
    for step in steps:
        if step.status in (StepStatus.FAILED, StepStatus.PENDING):
            return step.status
    if steps and all(step.status is StepStatus.SKIPPED for step in steps):
        return StepStatus.SKIPPED
    return StepStatus.PASSED


@dataclass(frozen=True, slots=True)
class ScenarioResult:
    # Reported (final) attempt of one pickle.
    pickle: Pickle
    test_case: TestCase
    steps: tuple[StepResult, ...]
    attempts: int = 1

    @property
    def status(self) -> StepStatus:
        return scenario_status(self.steps)

    @property
    def passed(self) -> bool:
        return self.status in (StepStatus.PASSED, StepStatus.SKIPPED)

    def to_error(self) -> ScenarioFailedError:
        diagnostics = [item for item in (step.diagnostic() for step in self.steps) if item is not None]
        return ScenarioFailedError(
            pickle_id=self.pickle.id,
            name=self.pickle.name,
            uri=self.pickle.uri,
            status=self.status.value,
            diagnostics=diagnostics,
        )


@dataclass(frozen=True, slots=True)
class RunSummary:
    # Counts by final scenario status.
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    undefined: int = 0
    pending: int = 0

    @classmethod
    def of(cls, scenarios: Sequence[ScenarioResult]) -> RunSummary:
        counts = {status: 0 for status in StepStatus}
        for scenario in scenarios:
            counts[scenario.status] += 1
        return cls(
            total=len(scenarios),
            passed=counts[StepStatus.PASSED],
            failed=counts[StepStatus.FAILED],
            skipped=counts[StepStatus.SKIPPED],
            undefined=counts[StepStatus.UNDEFINED],
            pending=counts[StepStatus.PENDING],
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "undefined": self.undefined,
            "pending": self.pending,
        }


@dataclass(frozen=True, slots=True)
class RunResult:
    summary: RunSummary
    scenarios: tuple[ScenarioResult, ...] = ()
    parse_errors: tuple[FeatureParseError, ...] = ()
    run_hook_errors: tuple[StepFailedError, ...] = ()

    @property
    def success(self) -> bool:
        return (
            self.summary.failed == 0
            and self.summary.undefined == 0
            and self.summary.pending == 0
            and not self.parse_errors
            and not self.run_hook_errors
        )

    def failures(self) -> list[ScenarioResult]:
        return [scenario for scenario in self.scenarios if not scenario.passed]

    def raise_for_failures(self) -> None:
        # Opt-in strict surface; never called by the pipeline itself.
        if self.success:
            return
        errors: list[Exception] = [scenario.to_error() for scenario in self.failures()]
        errors.extend(self.parse_errors)
        errors.extend(self.run_hook_errors)
        raise RunFailedError(f"Run failed: {self.summary.to_dict()}", errors)
