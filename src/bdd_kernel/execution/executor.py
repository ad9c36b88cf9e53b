from __future__ import annotations

import traceback
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from bdd_kernel.compiler.model import Pickle, PickleStep
from bdd_kernel.errors import PendingStep, StepFailedError
from bdd_kernel.execution.results import ScenarioResult, StepResult, StepStatus, scenario_status
from bdd_kernel.filtering.skip_tags import SkipTags
from bdd_kernel.kernel.calls import invoke, maybe_await
from bdd_kernel.kernel.clock import Duration, monotonic_ns
from bdd_kernel.kernel.ids import IdGenerator
from bdd_kernel.messages.emitter import Emitter
from bdd_kernel.messages.envelopes import (
    StepOutcome,
    TestCaseFinishedMessage,
    TestCaseStartedMessage,
    TestStepFinishedMessage,
    TestStepStartedMessage,
)
from bdd_kernel.observability.logging import RunLogger
from bdd_kernel.planning.planner import TestCase, TestStep
from bdd_kernel.steps.registry import Undefined
from bdd_kernel.steps.setup import HookDef, HookKind, Setup

WorldFactory = Callable[[], Any]
Configure = Callable[[Any, Setup[Any]], Any]

DRY_RUN_REASON = "dry run"


@dataclass(frozen=True, slots=True)
class ExecutionOptions:
    # Policies in priority order: skip tags, then dry run, then retries.
    dry_run: bool = False
    retries: int = 0
    skip_tags: SkipTags = field(default_factory=SkipTags)

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be >= 0")


def build_setup_factory(world_factory: WorldFactory, configure: Configure) -> Callable[[], Any]:
    # Fresh World + fresh Setup, populated by the user's configure callback.
    async def _build() -> Setup[Any]:
        world = await maybe_await(world_factory())
        setup: Setup[Any] = Setup(world)
        await maybe_await(configure(world, setup))
        return setup

    return _build


class ScenarioExecutor:
    # Per-pickle state machine; every attempt owns its World and registry.
    def __init__(
        self,
        world_factory: WorldFactory,
        configure: Configure,
        *,
        emitter: Emitter,
        ids: IdGenerator,
        options: ExecutionOptions | None = None,
        logger: RunLogger | None = None,
        test_run_started_id: str | None = None,
    ) -> None:
        self._build_setup = build_setup_factory(world_factory, configure)
        self._emitter = emitter
        self._ids = ids
        self._options = options or ExecutionOptions()
        self._log = logger or RunLogger()
        self._test_run_started_id = test_run_started_id

    async def execute(self, pickle: Pickle, test_case: TestCase) -> ScenarioResult:
        reason = self._options.skip_tags.reason_for(pickle)
        if reason is not None:
            # No World, no registry, no hooks.
            steps = self._skip_all(pickle, test_case, reason)
            return self._finish(pickle, test_case, steps, attempts=1)

        max_attempts = 1 if self._options.dry_run else self._options.retries + 1
        attempt = 0
        while True:
            can_retry = attempt + 1 < max_attempts
            steps = await self._attempt(pickle, test_case, attempt, can_retry=can_retry)
            if not can_retry or scenario_status(steps) is not StepStatus.FAILED:
                return self._finish(pickle, test_case, steps, attempts=attempt + 1)
            attempt += 1
            self._log.info("retrying scenario", pickle_id=pickle.id, name=pickle.name, attempt=attempt)

    async def _attempt(
        self, pickle: Pickle, test_case: TestCase, attempt: int, *, can_retry: bool
    ) -> tuple[StepResult, ...]:
        setup: Setup[Any] | None = None
        setup_error: StepFailedError | None = None
        try:
            setup = await self._build_setup()
        except Exception as exc:  # noqa: BLE001 - reported as a Failed scenario
            setup_error = failure("world setup", exc)
            self._log.error("scenario setup failed", pickle_id=pickle.id, name=pickle.name, error=setup_error.message)

        started_id = self._ids.next("tcs")
        self._emitter.emit(
            TestCaseStartedMessage(
                id=started_id,
                test_case_id=test_case.id,
                attempt=attempt,
                test_run_started_id=self._test_run_started_id,
            )
        )
        results: list[StepResult] = []
        # Set once a step is Failed/Undefined or a before-case hook failed.
        halted = False
        for test_step in test_case.test_steps:
            self._emitter.emit(TestStepStartedMessage(test_case_started_id=started_id, test_step_id=test_step.id))
            if setup is None:
                # The first step carries the construction failure; nothing else runs.
                result = _not_run(test_step, pickle, None if results else setup_error)
            elif test_step.is_hook:
                hook = setup.hook(test_step.hook_id or "")
                result = await self._run_case_hook(test_step, hook, pickle, halted=halted)
                if hook.kind is HookKind.BEFORE_TEST_CASE and result.status is StepStatus.FAILED:
                    halted = True
            else:
                pickle_step = pickle.step(test_step.pickle_step_id or "")
                result = await self._run_step(test_step, pickle_step, setup, pickle, halted=halted)
                if result.status in (StepStatus.FAILED, StepStatus.UNDEFINED):
                    halted = True
            self._emitter.emit(
                TestStepFinishedMessage(
                    test_case_started_id=started_id,
                    test_step_id=test_step.id,
                    result=outcome_of(result),
                )
            )
            results.append(result)

        will_be_retried = can_retry and scenario_status(results) is StepStatus.FAILED
        self._emitter.emit(TestCaseFinishedMessage(test_case_started_id=started_id, will_be_retried=will_be_retried))
        return tuple(results)

    def _skip_all(self, pickle: Pickle, test_case: TestCase, reason: str) -> tuple[StepResult, ...]:
        started_id = self._ids.next("tcs")
        self._emitter.emit(
            TestCaseStartedMessage(
                id=started_id,
                test_case_id=test_case.id,
                attempt=0,
                test_run_started_id=self._test_run_started_id,
            )
        )
        results: list[StepResult] = []
        for test_step in test_case.test_steps:
            self._emitter.emit(TestStepStartedMessage(test_case_started_id=started_id, test_step_id=test_step.id))
            text = pickle.step(test_step.pickle_step_id).text if test_step.pickle_step_id else ""
            result = StepResult(
                test_step_id=test_step.id,
                status=StepStatus.SKIPPED,
                text=text,
                is_hook=test_step.is_hook,
                reason=reason,
            )
            self._emitter.emit(
                TestStepFinishedMessage(
                    test_case_started_id=started_id,
                    test_step_id=test_step.id,
                    result=outcome_of(result),
                )
            )
            results.append(result)
        self._emitter.emit(TestCaseFinishedMessage(test_case_started_id=started_id, will_be_retried=False))
        return tuple(results)

    async def _run_case_hook(
        self, test_step: TestStep, hook: HookDef, pickle: Pickle, *, halted: bool
    ) -> StepResult:
        text = hook.name or hook.kind.value
        if halted and hook.kind is HookKind.BEFORE_TEST_CASE:
            # After a before-case hook fails, the remaining before-case hooks do not run.
            return StepResult(test_step_id=test_step.id, status=StepStatus.SKIPPED, text=text, is_hook=True)
        start = monotonic_ns()
        try:
            await invoke(hook.handler, pickle)
        except PendingStep as exc:
            return StepResult(
                test_step_id=test_step.id,
                status=StepStatus.PENDING,
                text=text,
                is_hook=True,
                message=exc.message,
                duration=_elapsed(start),
            )
        except Exception as exc:  # noqa: BLE001 - converted to a Failed hook step
            error = failure(text, exc)
            self._log.warning("hook failed", pickle_id=pickle.id, hook_id=hook.id, message=error.message)
            return StepResult(
                test_step_id=test_step.id,
                status=StepStatus.FAILED,
                text=text,
                is_hook=True,
                message=error.message,
                duration=_elapsed(start),
                error=error,
            )
        return StepResult(
            test_step_id=test_step.id,
            status=StepStatus.PASSED,
            text=text,
            is_hook=True,
            duration=_elapsed(start),
        )

    async def _run_step(
        self,
        test_step: TestStep,
        pickle_step: PickleStep,
        setup: Setup[Any],
        pickle: Pickle,
        *,
        halted: bool,
    ) -> StepResult:
        start = monotonic_ns()
        hooks_enabled = not self._options.dry_run
        before_error: StepFailedError | None = None
        if hooks_enabled:
            before_error = await self._run_step_hooks(HookKind.BEFORE_TEST_STEP, setup, pickle, pickle_step)

        if halted:
            # Remaining steps are skipped without matching; their step hooks still ran.
            result = StepResult(test_step_id=test_step.id, status=StepStatus.SKIPPED, text=pickle_step.text)
            if before_error is not None:
                self._log.warning("step hook failed on skipped step", pickle_id=pickle.id, text=pickle_step.text)
        elif before_error is not None:
            result = _failed(test_step, pickle_step, before_error, start)
        else:
            result = await self._match_and_invoke(test_step, pickle_step, setup, pickle, start)

        if hooks_enabled:
            after_error = await self._run_step_hooks(HookKind.AFTER_TEST_STEP, setup, pickle, pickle_step)
            if after_error is not None and result.status is StepStatus.PASSED:
                result = _failed(test_step, pickle_step, after_error, start)
        return result

    async def _match_and_invoke(
        self,
        test_step: TestStep,
        pickle_step: PickleStep,
        setup: Setup[Any],
        pickle: Pickle,
        start: int,
    ) -> StepResult:
        match = setup.registry.find_match(pickle_step.text, pickle_step.type, pickle_step.argument)
        if isinstance(match, Undefined):
            self._log.warning(
                "undefined step",
                pickle_id=pickle.id,
                uri=pickle.uri,
                text=pickle_step.text,
                snippet=match.snippet,
                suggestions=list(match.suggestions),
            )
            return StepResult(
                test_step_id=test_step.id,
                status=StepStatus.UNDEFINED,
                text=pickle_step.text,
                undefined=match,
                duration=_elapsed(start),
            )
        if self._options.dry_run:
            return StepResult(
                test_step_id=test_step.id,
                status=StepStatus.SKIPPED,
                text=pickle_step.text,
                reason=DRY_RUN_REASON,
            )

        args = match.values()
        if pickle_step.argument is not None:
            args.append(pickle_step.argument)
        try:
            await invoke(match.step_def.handler, *args)
        except PendingStep as exc:
            return StepResult(
                test_step_id=test_step.id,
                status=StepStatus.PENDING,
                text=pickle_step.text,
                message=exc.message,
                duration=_elapsed(start),
            )
        except Exception as exc:  # noqa: BLE001 - converted to a Failed step result
            return _failed(test_step, pickle_step, failure(pickle_step.text, exc), start)
        return StepResult(
            test_step_id=test_step.id,
            status=StepStatus.PASSED,
            text=pickle_step.text,
            duration=_elapsed(start),
        )

    async def _run_step_hooks(
        self, kind: HookKind, setup: Setup[Any], pickle: Pickle, pickle_step: PickleStep
    ) -> StepFailedError | None:
        # Every hook of the kind runs; the first failure is reported.
        first: StepFailedError | None = None
        for hook in setup.hooks(kind, pickle):
            error = await _call_hook(hook, pickle_step)
            if error is not None and first is None:
                first = error
        return first

    def _finish(
        self, pickle: Pickle, test_case: TestCase, steps: tuple[StepResult, ...], *, attempts: int
    ) -> ScenarioResult:
        result = ScenarioResult(pickle=pickle, test_case=test_case, steps=steps, attempts=attempts)
        self._log.debug(
            "scenario finished",
            pickle_id=pickle.id,
            name=pickle.name,
            status=result.status.value,
            attempts=attempts,
        )
        return result


async def _call_hook(hook: HookDef, pickle_step: PickleStep) -> StepFailedError | None:
    try:
        await invoke(hook.handler, pickle_step)
    except Exception as exc:  # noqa: BLE001 - hook failure fails the surrounding step
        return failure(hook.name or hook.kind.value, exc)
    return None


def failure(text: str, exc: BaseException) -> StepFailedError:
    # Wrap any handler error; the original stays reachable as __cause__.
    error = StepFailedError(
        text,
        f"{type(exc).__name__}: {exc}",
        stack="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    )
    error.__cause__ = exc
    return error


def outcome_of(result: StepResult) -> StepOutcome:
    # StepResult -> protocol testStepResult.
    message = result.message
    exception_type = None
    if result.status is StepStatus.SKIPPED:
        message = result.reason
    elif result.error is not None:
        message = result.error.stack or result.error.message
        cause = result.error.__cause__
        exception_type = type(cause).__name__ if cause is not None else type(result.error).__name__
    return StepOutcome(
        status=result.status.value,
        duration=result.duration,
        message=message,
        exception_type=exception_type,
    )


def _not_run(test_step: TestStep, pickle: Pickle, error: StepFailedError | None) -> StepResult:
    text = pickle.step(test_step.pickle_step_id).text if test_step.pickle_step_id else ""
    if error is None:
        return StepResult(test_step_id=test_step.id, status=StepStatus.SKIPPED, text=text, is_hook=test_step.is_hook)
    return StepResult(
        test_step_id=test_step.id,
        status=StepStatus.FAILED,
        text=text,
        is_hook=test_step.is_hook,
        message=error.message,
        error=error,
    )


def _failed(test_step: TestStep, pickle_step: PickleStep, error: StepFailedError, start: int) -> StepResult:
    return StepResult(
        test_step_id=test_step.id,
        status=StepStatus.FAILED,
        text=pickle_step.text,
        message=error.message,
        duration=_elapsed(start),
        error=error,
    )


def _elapsed(start: int) -> Duration:
    return Duration.from_nanos(monotonic_ns() - start)
