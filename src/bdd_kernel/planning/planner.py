from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from bdd_kernel.compiler.model import Pickle
from bdd_kernel.filtering.skip_tags import SkipTags
from bdd_kernel.kernel.ids import IdGenerator
from bdd_kernel.steps.expressions import StepArg
from bdd_kernel.steps.registry import Matched
from bdd_kernel.steps.setup import HookKind, Setup


@dataclass(frozen=True, slots=True)
class TestStep:
    # Either a pickle step (with zero or more matching definitions) or a test-case hook.
    __test__ = False

    id: str
    pickle_step_id: str | None = None
    step_definition_ids: tuple[str, ...] = ()
    hook_id: str | None = None
    arguments: tuple[StepArg, ...] = ()

    @property
    def is_hook(self) -> bool:
        return self.hook_id is not None

    @property
    def is_undefined(self) -> bool:
        return self.hook_id is None and not self.step_definition_ids

    def to_dict(self) -> dict[str, object]:
        if self.hook_id is not None:
            return {"id": self.id, "hookId": self.hook_id}
        return {
            "id": self.id,
            "pickleStepId": self.pickle_step_id,
            "stepDefinitionIds": list(self.step_definition_ids),
            "stepMatchArgumentsLists": (
                [{"stepMatchArguments": [_argument_dict(arg) for arg in self.arguments]}]
                if self.step_definition_ids
                else []
            ),
        }


@dataclass(frozen=True, slots=True)
class TestCase:
    # Planned execution of one pickle; read-only once built.
    __test__ = False

    id: str
    pickle_id: str
    test_steps: tuple[TestStep, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "pickleId": self.pickle_id,
            "testSteps": [step.to_dict() for step in self.test_steps],
        }


class TestPlanner:
    # Resolves every pickle step against a throwaway registry before anything runs; handlers are never invoked.
    __test__ = False

    def __init__(self, ids: IdGenerator, *, skip_tags: SkipTags | None = None, dry_run: bool = False) -> None:
        self._ids = ids
        self._skip_tags = skip_tags if skip_tags is not None else SkipTags()
        self._dry_run = dry_run

    def plan(self, pickles: Iterable[Pickle], setup: Setup[object]) -> list[TestCase]:
        return [self.plan_pickle(pickle, setup) for pickle in pickles]

    def plan_pickle(self, pickle: Pickle, setup: Setup[object]) -> TestCase:
        case_id = self._ids.next("tc")
        # Hooks never run for dry runs or skip-tagged pickles, so they are not planned either.
        hooks_enabled = not self._dry_run and self._skip_tags.reason_for(pickle) is None
        steps: list[TestStep] = []
        if hooks_enabled:
            steps.extend(self._hook_steps(setup, HookKind.BEFORE_TEST_CASE, pickle))
        for pickle_step in pickle.steps:
            match = setup.registry.find_match(pickle_step.text, pickle_step.type, pickle_step.argument)
            if isinstance(match, Matched):
                steps.append(
                    TestStep(
                        id=self._ids.next("ts"),
                        pickle_step_id=pickle_step.id,
                        step_definition_ids=(match.step_def.id,),
                        arguments=match.args,
                    )
                )
            else:
                # Undefined is a planning outcome, not an error.
                steps.append(TestStep(id=self._ids.next("ts"), pickle_step_id=pickle_step.id))
        if hooks_enabled:
            steps.extend(self._hook_steps(setup, HookKind.AFTER_TEST_CASE, pickle))
        return TestCase(id=case_id, pickle_id=pickle.id, test_steps=tuple(steps))

    def _hook_steps(self, setup: Setup[object], kind: HookKind, pickle: Pickle) -> list[TestStep]:
        return [TestStep(id=self._ids.next("ts"), hook_id=hook.id) for hook in setup.hooks(kind, pickle)]


def _argument_dict(arg: StepArg) -> dict[str, object]:
    return {
        "group": {"value": arg.text()},
        "parameterTypeName": arg.type_name,
    }
