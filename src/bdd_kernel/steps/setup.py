from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from bdd_kernel.compiler.model import Pickle
from bdd_kernel.filtering.filters import TagFilter
from bdd_kernel.kernel.calls import source_of
from bdd_kernel.steps.expressions import PatternSource, pattern_text
from bdd_kernel.steps.registry import ParamTypeDef, SourceReference, StepDef, StepKeyword, StepRegistry

W = TypeVar("W")
Handler = Callable[..., Any]


class HookKind(str, Enum):
    BEFORE_TEST_RUN = "BEFORE_TEST_RUN"
    AFTER_TEST_RUN = "AFTER_TEST_RUN"
    BEFORE_TEST_CASE = "BEFORE_TEST_CASE"
    AFTER_TEST_CASE = "AFTER_TEST_CASE"
    BEFORE_TEST_STEP = "BEFORE_TEST_STEP"
    AFTER_TEST_STEP = "AFTER_TEST_STEP"


@dataclass(frozen=True, slots=True)
class HookDef:
    id: str
    kind: HookKind
    handler: Handler
    name: str | None = None
    tag_expression: str | None = None
    source: SourceReference | None = None
    _tag_filter: TagFilter | None = field(default=None, compare=False, repr=False)

    def applies_to(self, pickle: Pickle | None) -> bool:
        if self._tag_filter is None or pickle is None:
            return True
        return self._tag_filter(pickle)


@runtime_checkable
class StepLibrary(Protocol):
    # Reusable group of steps/hooks/parameter types; registers itself on a Setup.
    def register(self, setup: Setup[Any]) -> None:
        raise NotImplementedError("StepLibrary.register must be implemented")


class Setup(Generic[W]):
    # Per-scenario registration surface handed to configure(world, setup).
    # Ids are positional within one Setup, so every Setup built by the same configure lines up.
    def __init__(self, world: W) -> None:
        self.world = world
        self.registry = StepRegistry()
        self._hooks: list[HookDef] = []
        self._counters: dict[str, int] = {}

    def given(self, pattern: PatternSource, handler: Handler | None = None) -> Any:
        return self._step(StepKeyword.GIVEN, pattern, handler)

    def when(self, pattern: PatternSource, handler: Handler | None = None) -> Any:
        return self._step(StepKeyword.WHEN, pattern, handler)

    def then(self, pattern: PatternSource, handler: Handler | None = None) -> Any:
        return self._step(StepKeyword.THEN, pattern, handler)

    def step(self, pattern: PatternSource, handler: Handler | None = None) -> Any:
        return self._step(StepKeyword.STEP, pattern, handler)

    def add_param_type(
        self,
        name: str,
        patterns: PatternSource | Sequence[PatternSource],
        transformer: Handler | None = None,
        *,
        use_for_snippets: bool = True,
        prefer_for_regexp_match: bool = False,
    ) -> ParamTypeDef:
        items = [patterns] if isinstance(patterns, str) or not isinstance(patterns, Sequence) else list(patterns)
        param_type = ParamTypeDef(
            id=self._next_id("pt"),
            name=name,
            patterns=tuple(pattern_text(item) for item in items),
            transformer=transformer,
            use_for_snippets=use_for_snippets,
            prefer_for_regexp_match=prefer_for_regexp_match,
        )
        self.registry.define_parameter_type(param_type)
        return param_type

    def before_test_run(self, handler: Handler | None = None, *, name: str | None = None) -> Any:
        return self._hook(HookKind.BEFORE_TEST_RUN, handler, name=name, tags=None)

    def after_test_run(self, handler: Handler | None = None, *, name: str | None = None) -> Any:
        return self._hook(HookKind.AFTER_TEST_RUN, handler, name=name, tags=None)

    def before_test_case(
        self, handler: Handler | None = None, *, name: str | None = None, tags: str | None = None
    ) -> Any:
        return self._hook(HookKind.BEFORE_TEST_CASE, handler, name=name, tags=tags)

    def after_test_case(
        self, handler: Handler | None = None, *, name: str | None = None, tags: str | None = None
    ) -> Any:
        return self._hook(HookKind.AFTER_TEST_CASE, handler, name=name, tags=tags)

    def before_test_step(
        self, handler: Handler | None = None, *, name: str | None = None, tags: str | None = None
    ) -> Any:
        return self._hook(HookKind.BEFORE_TEST_STEP, handler, name=name, tags=tags)

    def after_test_step(
        self, handler: Handler | None = None, *, name: str | None = None, tags: str | None = None
    ) -> Any:
        return self._hook(HookKind.AFTER_TEST_STEP, handler, name=name, tags=tags)

    def use_library(self, library: StepLibrary | Callable[[Setup[W]], None]) -> Setup[W]:
        if isinstance(library, StepLibrary):
            library.register(self)
        else:
            library(self)
        return self

    @property
    def step_defs(self) -> Sequence[StepDef]:
        return self.registry.step_defs

    @property
    def parameter_types(self) -> Sequence[ParamTypeDef]:
        return self.registry.parameter_types

    @property
    def all_hooks(self) -> Sequence[HookDef]:
        return tuple(self._hooks)

    def hooks(self, kind: HookKind, pickle: Pickle | None = None) -> list[HookDef]:
        # Registration order; tag-scoped hooks only apply to matching pickles.
        return [hook for hook in self._hooks if hook.kind is kind and hook.applies_to(pickle)]

    def hook(self, hook_id: str) -> HookDef:
        for item in self._hooks:
            if item.id == hook_id:
                return item
        raise KeyError(f"Unknown hook id: {hook_id}")

    def _step(self, keyword: StepKeyword, pattern: PatternSource, handler: Handler | None) -> Any:
        def _register(fn: Handler) -> Handler:
            self.registry.register(
                StepDef(
                    id=self._next_id("sd"),
                    keyword=keyword,
                    pattern=pattern,
                    handler=fn,
                    source=_reference(fn),
                )
            )
            return fn

        # Without a handler this is used as a decorator.
        if handler is None:
            return _register
        return _register(handler)

    def _hook(self, kind: HookKind, handler: Handler | None, *, name: str | None, tags: str | None) -> Any:
        tag_filter = TagFilter(tags) if tags else None

        def _register(fn: Handler) -> Handler:
            self._hooks.append(
                HookDef(
                    id=self._next_id("hook"),
                    kind=kind,
                    handler=fn,
                    name=name,
                    tag_expression=tags,
                    source=_reference(fn),
                    _tag_filter=tag_filter,
                )
            )
            return fn

        if handler is None:
            return _register
        return _register(handler)

    def _next_id(self, prefix: str) -> str:
        value = self._counters.get(prefix, 0) + 1
        self._counters[prefix] = value
        return f"{prefix}-{value}"


def _reference(fn: Handler) -> SourceReference:
    uri, line = source_of(fn)
    return SourceReference(uri=uri, line=line)
