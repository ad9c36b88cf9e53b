from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

# Executor state machine: step statuses, hooks, skip tags, dry run and retries.
from bdd_kernel.adapters.envelope_sinks import CollectingSink
from bdd_kernel.compiler.model import DocString, Pickle, PickleStep, PickleTag, StepType
from bdd_kernel.errors import PendingStep
from bdd_kernel.execution.executor import DRY_RUN_REASON, ExecutionOptions, ScenarioExecutor
from bdd_kernel.execution.results import ScenarioResult, StepStatus
from bdd_kernel.filtering.skip_tags import SkipTags
from bdd_kernel.kernel.ids import IdGenerator
from bdd_kernel.messages.emitter import Emitter
from bdd_kernel.messages.envelopes import (
    TestCaseFinishedMessage,
    TestCaseStartedMessage,
    TestStepFinishedMessage,
    TestStepStartedMessage,
)
from bdd_kernel.planning.planner import TestPlanner
from bdd_kernel.steps.setup import Setup

Configure = Callable[[dict[str, Any], Setup[dict[str, Any]]], None]


def _pickle(*steps: tuple[StepType, str], tags: tuple[str, ...] = (), argument: DocString | None = None) -> Pickle:
    return Pickle(
        id="pickle-1",
        uri="exec.feature",
        name="executed",
        language="en",
        steps=tuple(
            PickleStep(
                id=f"step-{index}",
                text=text,
                type=step_type,
                ast_node_ids=(f"node-{index}",),
                argument=argument if index == len(steps) - 1 else None,
            )
            for index, (step_type, text) in enumerate(steps)
        ),
        tags=tuple(PickleTag(name=tag, ast_node_id="tag") for tag in tags),
    )


def _execute(
    pickle: Pickle,
    configure: Configure,
    *,
    options: ExecutionOptions | None = None,
    world_factory: Callable[[], dict[str, Any]] = dict,
) -> tuple[ScenarioResult, CollectingSink]:
    options = options or ExecutionOptions()
    ids = IdGenerator()
    sink = CollectingSink()
    catalog: Setup[dict[str, Any]] = Setup({})
    configure(catalog.world, catalog)
    case = TestPlanner(ids, skip_tags=options.skip_tags, dry_run=options.dry_run).plan_pickle(pickle, catalog)
    executor = ScenarioExecutor(world_factory, configure, emitter=Emitter([sink]), ids=ids, options=options)
    return asyncio.run(executor.execute(pickle, case)), sink


GIVEN = StepType.CONTEXT
WHEN = StepType.ACTION
THEN = StepType.OUTCOME


def test_passing_scenario_passes_typed_args_and_doc_string() -> None:
    seen: list[object] = []

    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        @setup.given("a balance of {int}")
        def _balance(amount: int) -> None:
            world["balance"] = amount

        @setup.then("the statement reads")
        def _statement(doc: DocString) -> None:
            seen.append((world["balance"], doc.content))

    pickle = _pickle((GIVEN, "a balance of 40"), (THEN, "the statement reads"), argument=DocString("ok"))
    result, _ = _execute(pickle, configure)

    assert result.status is StepStatus.PASSED
    assert [step.status for step in result.steps] == [StepStatus.PASSED, StepStatus.PASSED]
    assert seen == [(40, "ok")]


def test_async_handlers_are_awaited() -> None:
    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        @setup.when("I wait")
        async def _wait() -> None:
            await asyncio.sleep(0)
            world["waited"] = True

        @setup.then("I waited")
        def _check() -> None:
            assert world["waited"] is True

    result, _ = _execute(_pickle((WHEN, "I wait"), (THEN, "I waited")), configure)
    assert result.status is StepStatus.PASSED


def test_failed_step_skips_remaining_steps_but_after_hooks_run() -> None:
    calls: list[str] = []

    def breaks() -> None:
        raise AssertionError("boom")

    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        setup.given("it breaks", breaks)
        setup.then("never reached", lambda: calls.append("reached"))
        setup.after_test_case(lambda pickle: calls.append("after case"))
        setup.after_test_step(lambda step: calls.append(f"after {step.text}"))

    result, _ = _execute(_pickle((GIVEN, "it breaks"), (THEN, "never reached")), configure)

    statuses = [step.status for step in result.steps]
    assert statuses == [StepStatus.FAILED, StepStatus.SKIPPED, StepStatus.PASSED]
    assert result.status is StepStatus.FAILED
    failed = result.steps[0]
    assert failed.error is not None
    assert "AssertionError: boom" in failed.error.message
    assert isinstance(failed.error.__cause__, AssertionError)
    assert result.steps[1].reason is None
    assert calls == ["after it breaks", "after never reached", "after case"]


def test_pending_step_does_not_skip_later_steps() -> None:
    calls: list[str] = []

    def pending() -> None:
        raise PendingStep("later")

    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        setup.given("not written yet", pending)
        setup.then("still runs", lambda: calls.append("ran"))

    result, _ = _execute(_pickle((GIVEN, "not written yet"), (THEN, "still runs")), configure)
    assert [step.status for step in result.steps] == [StepStatus.PENDING, StepStatus.PASSED]
    assert result.steps[0].message == "later"
    assert result.status is StepStatus.PENDING
    assert calls == ["ran"]


def test_undefined_step_skips_the_rest_and_dominates_status() -> None:
    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        setup.then("defined", lambda: None)

    result, _ = _execute(_pickle((GIVEN, "I have 3 apples"), (THEN, "defined")), configure)
    assert [step.status for step in result.steps] == [StepStatus.UNDEFINED, StepStatus.SKIPPED]
    assert result.status is StepStatus.UNDEFINED
    undefined = result.steps[0].undefined
    assert undefined is not None
    assert "@setup.given(\"I have {int} apples\")" in undefined.snippet


def test_skip_tag_wins_over_dry_run_and_builds_no_world() -> None:
    worlds: list[dict[str, Any]] = []

    def factory() -> dict[str, Any]:
        world: dict[str, Any] = {}
        worlds.append(world)
        return world

    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        setup.given("anything", lambda: None)
        setup.before_test_case(lambda pickle: world.setdefault("hooked", True))

    pickle = _pickle((GIVEN, "anything"), (GIVEN, "unknown step"), tags=('@skip("not ready")',))
    options = ExecutionOptions(dry_run=True, retries=2, skip_tags=SkipTags())
    result, sink = _execute(pickle, configure, options=options, world_factory=factory)

    assert [(step.status, step.reason) for step in result.steps] == [
        (StepStatus.SKIPPED, "not ready"),
        (StepStatus.SKIPPED, "not ready"),
    ]
    assert all(step.reason != DRY_RUN_REASON for step in result.steps)
    assert result.status is StepStatus.SKIPPED
    assert result.attempts == 1
    assert worlds == []
    assert len(sink.of_type(TestCaseStartedMessage)) == 1


def test_dry_run_matches_without_invoking_handlers_or_hooks() -> None:
    calls: list[str] = []

    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        setup.given("a thing", lambda: calls.append("handler"))
        setup.before_test_case(lambda pickle: calls.append("hook"))
        setup.before_test_step(lambda step: calls.append("step hook"))

    options = ExecutionOptions(dry_run=True, retries=3)
    pickle = _pickle((GIVEN, "a thing"), (GIVEN, "missing"), (GIVEN, "a thing"))
    result, _ = _execute(pickle, configure, options=options)

    assert [(step.status, step.reason) for step in result.steps] == [
        (StepStatus.SKIPPED, DRY_RUN_REASON),
        (StepStatus.UNDEFINED, None),
        (StepStatus.SKIPPED, None),
    ]
    assert calls == []
    assert result.attempts == 1


def test_retry_until_pass_reports_final_attempt_once() -> None:
    attempts: list[int] = []

    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        @setup.when("flaky work")
        def _flaky() -> None:
            # Each attempt gets a fresh world.
            assert "touched" not in world
            world["touched"] = True
            attempts.append(len(attempts) + 1)
            if len(attempts) < 3:
                raise RuntimeError(f"attempt {len(attempts)} failed")

    result, sink = _execute(_pickle((WHEN, "flaky work")), configure, options=ExecutionOptions(retries=3))

    assert result.status is StepStatus.PASSED
    assert result.attempts == 3
    assert attempts == [1, 2, 3]
    assert [item.attempt for item in sink.of_type(TestCaseStartedMessage)] == [0, 1, 2]
    assert [item.will_be_retried for item in sink.of_type(TestCaseFinishedMessage)] == [True, True, False]


def test_retries_exhausted_reports_failure() -> None:
    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        setup.when("always fails", lambda: 1 / 0)

    result, sink = _execute(_pickle((WHEN, "always fails")), configure, options=ExecutionOptions(retries=2))
    assert result.status is StepStatus.FAILED
    assert result.attempts == 3
    assert [item.will_be_retried for item in sink.of_type(TestCaseFinishedMessage)] == [True, True, False]


def test_undefined_scenarios_are_never_retried() -> None:
    options = ExecutionOptions(retries=2)
    result, sink = _execute(_pickle((WHEN, "nothing defined")), lambda world, setup: None, options=options)
    assert result.status is StepStatus.UNDEFINED
    assert result.attempts == 1
    assert len(sink.of_type(TestCaseStartedMessage)) == 1


def test_failing_before_case_hook_skips_steps_and_later_before_hooks() -> None:
    calls: list[str] = []

    def broken_hook(pickle: Pickle) -> None:
        raise RuntimeError("db down")

    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        setup.given("a step", lambda: calls.append("step"))
        setup.before_test_case(broken_hook)
        setup.before_test_case(lambda pickle: calls.append("second before"))
        setup.after_test_case(lambda pickle: calls.append("after"))

    result, _ = _execute(_pickle((GIVEN, "a step")), configure)
    assert [(step.is_hook, step.status) for step in result.steps] == [
        (True, StepStatus.FAILED),
        (True, StepStatus.SKIPPED),
        (False, StepStatus.SKIPPED),
        (True, StepStatus.PASSED),
    ]
    assert result.status is StepStatus.FAILED
    assert calls == ["after"]


def test_failing_after_step_hook_fails_a_passed_step() -> None:
    def cleanup(step: PickleStep) -> None:
        raise ValueError("cleanup")

    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        setup.given("a step", lambda: None)
        setup.after_test_step(cleanup)

    result, _ = _execute(_pickle((GIVEN, "a step"), (GIVEN, "a step")), configure)
    assert [step.status for step in result.steps] == [StepStatus.FAILED, StepStatus.SKIPPED]
    assert result.steps[0].error is not None
    assert "ValueError: cleanup" in result.steps[0].error.message


def test_execution_block_is_strictly_ordered() -> None:
    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        setup.given("one", lambda: None)
        setup.then("two", lambda: None)
        setup.before_test_case(lambda pickle: None)

    _, sink = _execute(_pickle((GIVEN, "one"), (THEN, "two")), configure)
    kinds = [type(item) for item in sink.envelopes]
    assert kinds == [
        TestCaseStartedMessage,
        TestStepStartedMessage,
        TestStepFinishedMessage,
        TestStepStartedMessage,
        TestStepFinishedMessage,
        TestStepStartedMessage,
        TestStepFinishedMessage,
        TestCaseFinishedMessage,
    ]
    finished = sink.of_type(TestStepFinishedMessage)
    assert [item.result.status for item in finished] == ["PASSED", "PASSED", "PASSED"]


def test_world_construction_failure_fails_the_scenario_inside_a_closed_block() -> None:
    calls: list[int] = []

    def world_factory() -> dict[str, Any]:
        calls.append(1)
        raise RuntimeError("database unavailable")

    def configure(world: dict[str, Any], setup: Setup[dict[str, Any]]) -> None:
        setup.given("a user", lambda: None)
        setup.then("the user is active", lambda: None)

    result, sink = _execute(
        _pickle((GIVEN, "a user"), (THEN, "the user is active")),
        configure,
        options=ExecutionOptions(retries=1),
        world_factory=world_factory,
    )

    assert result.status is StepStatus.FAILED
    assert result.attempts == 2
    assert len(calls) == 2
    first, second = result.steps
    assert first.status is StepStatus.FAILED
    assert first.message is not None and "database unavailable" in first.message
    assert second.status is StepStatus.SKIPPED
    assert sink.kinds() == (
        ["testCaseStarted"] + ["testStepStarted", "testStepFinished"] * 2 + ["testCaseFinished"]
    ) * 2
    assert [item.will_be_retried for item in sink.of_type(TestCaseFinishedMessage)] == [True, False]
