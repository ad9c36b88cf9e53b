from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cucumber_expressions.parameter_type_registry import ParameterTypeRegistry

from bdd_kernel.compiler.model import StepArgument, StepType
from bdd_kernel.errors import StepDefinitionError, UndefinedStepError
from bdd_kernel.steps.expressions import (
    Matcher,
    PatternKind,
    PatternSource,
    StepArg,
    build_parameter_type,
    pattern_kind,
    pattern_text,
)
from bdd_kernel.steps.snippets import generate_snippet, suggest_patterns


class StepKeyword(str, Enum):
    GIVEN = "Given"
    WHEN = "When"
    THEN = "Then"
    STEP = "Step"


_KEYWORD_FOR_TYPE = {
    StepType.CONTEXT: StepKeyword.GIVEN,
    StepType.ACTION: StepKeyword.WHEN,
    StepType.OUTCOME: StepKeyword.THEN,
}


def keyword_for(step_type: StepType | None) -> StepKeyword:
    if step_type is None:
        return StepKeyword.STEP
    return _KEYWORD_FOR_TYPE[step_type]


@dataclass(frozen=True, slots=True)
class SourceReference:
    uri: str | None = None
    line: int | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {}
        if self.uri is not None:
            payload["uri"] = self.uri
        if self.line is not None:
            payload["location"] = {"line": self.line}
        return payload


@dataclass(frozen=True, slots=True)
class StepDef:
    # Pattern + handler pair; the handler closes over the scenario's single World.
    id: str
    keyword: StepKeyword
    pattern: PatternSource
    handler: Callable[..., Any]
    source: SourceReference | None = None

    @property
    def pattern_text(self) -> str:
        return pattern_text(self.pattern)

    @property
    def pattern_kind(self) -> PatternKind:
        return pattern_kind(self.pattern)

    def accepts(self, step_type: StepType | None) -> bool:
        # Given/When/Then definitions only see steps of their own type; Step sees all.
        if self.keyword is StepKeyword.STEP or step_type is None:
            return True
        return _KEYWORD_FOR_TYPE[step_type] is self.keyword


@dataclass(frozen=True, slots=True)
class ParamTypeDef:
    # Custom parameter type; built-ins live in the expression library and are never listed here.
    id: str
    name: str
    patterns: tuple[str, ...]
    transformer: Callable[..., Any] | None = None
    use_for_snippets: bool = True
    prefer_for_regexp_match: bool = False


@dataclass(frozen=True, slots=True)
class Matched:
    step_def: StepDef
    args: tuple[StepArg, ...]

    def values(self) -> list[object]:
        return [arg.value for arg in self.args]


@dataclass(frozen=True, slots=True)
class Undefined:
    text: str
    keyword: StepKeyword
    snippet: str
    suggestions: tuple[str, ...] = ()

    def to_error(self) -> UndefinedStepError:
        return UndefinedStepError(self.text, f"{self.keyword.value} ", self.snippet, self.suggestions)


StepMatch = Matched | Undefined


@dataclass
class StepRegistry:
    # First-match-wins registry over step definitions, in registration order (no ambiguity detection).
    _defs: list[StepDef] = field(default_factory=list)
    _param_types: list[ParamTypeDef] = field(default_factory=list)
    _parameter_registry: ParameterTypeRegistry = field(default_factory=ParameterTypeRegistry)
    _matchers: dict[str, Matcher] = field(default_factory=dict)

    def register(self, step_def: StepDef) -> None:
        self._defs.append(step_def)

    def define_parameter_type(self, param_type: ParamTypeDef) -> None:
        try:
            self._parameter_registry.define_parameter_type(
                build_parameter_type(
                    param_type.name,
                    param_type.patterns,
                    param_type.transformer,
                    use_for_snippets=param_type.use_for_snippets,
                    prefer_for_regexp_match=param_type.prefer_for_regexp_match,
                )
            )
        except Exception as exc:  # noqa: BLE001 - wrap with explicit error
            raise StepDefinitionError(f"{{{param_type.name}}}", exc) from exc
        self._param_types.append(param_type)
        # Expressions compiled before this type existed must see it on the next match.
        self._matchers.clear()

    @property
    def step_defs(self) -> Sequence[StepDef]:
        return tuple(self._defs)

    @property
    def parameter_types(self) -> Sequence[ParamTypeDef]:
        return tuple(self._param_types)

    def find_match(
        self,
        text: str,
        step_type: StepType | None,
        argument: StepArgument | None = None,
    ) -> StepMatch:
        for step_def in self._defs:
            if not step_def.accepts(step_type):
                continue
            args = self._matcher(step_def).match(text)
            if args is not None:
                return Matched(step_def=step_def, args=tuple(args))
        keyword = keyword_for(step_type)
        patterns = [item.pattern_text for item in self._defs]
        return Undefined(
            text=text,
            keyword=keyword,
            snippet=generate_snippet(text, keyword.value, argument, self._parameter_registry),
            suggestions=tuple(suggest_patterns(text, patterns, registry=self._parameter_registry)),
        )

    def _matcher(self, step_def: StepDef) -> Matcher:
        # Compilation is lazy so parameter types may be registered after the steps using them.
        matcher = self._matchers.get(step_def.id)
        if matcher is None:
            matcher = Matcher(step_def.pattern, self._parameter_registry)
            self._matchers[step_def.id] = matcher
        return matcher
