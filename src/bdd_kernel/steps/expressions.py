from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cucumber_expressions.expression import CucumberExpression
from cucumber_expressions.parameter_type import ParameterType
from cucumber_expressions.parameter_type_registry import ParameterTypeRegistry
from cucumber_expressions.regular_expression import RegularExpression

from bdd_kernel.errors import StepDefinitionError

PatternSource = str | re.Pattern[str]


class PatternKind(str, Enum):
    CUCUMBER_EXPRESSION = "CUCUMBER_EXPRESSION"
    REGULAR_EXPRESSION = "REGULAR_EXPRESSION"


@dataclass(frozen=True, slots=True)
class StepArg:
    # One matched parameter: type tag, raw matched substring and the transformed value.
    type_name: str
    raw: str | None
    value: object

    def text(self) -> str:
        # Back to the literal form the step text carried.
        if self.raw is not None:
            return self.raw
        return "" if self.value is None else str(self.value)


def pattern_kind(pattern: PatternSource) -> PatternKind:
    # Strings are cucumber expressions unless anchored like a regex; compiled patterns are regexes.
    if isinstance(pattern, re.Pattern):
        return PatternKind.REGULAR_EXPRESSION
    if pattern.startswith("^") or pattern.endswith("$"):
        return PatternKind.REGULAR_EXPRESSION
    return PatternKind.CUCUMBER_EXPRESSION


def pattern_text(pattern: PatternSource) -> str:
    return pattern.pattern if isinstance(pattern, re.Pattern) else pattern


class Matcher:
    # Compiled form of one step pattern against one parameter type registry.
    def __init__(self, pattern: PatternSource, parameter_types: ParameterTypeRegistry) -> None:
        self.source = pattern_text(pattern)
        self.kind = pattern_kind(pattern)
        try:
            if self.kind is PatternKind.REGULAR_EXPRESSION:
                self._expression: Any = RegularExpression(self.source, parameter_types)
            else:
                self._expression = CucumberExpression(self.source, parameter_types)
        except Exception as exc:  # noqa: BLE001 - wrap with explicit error
            raise StepDefinitionError(self.source, exc) from exc

    def match(self, text: str) -> list[StepArg] | None:
        arguments = self._expression.match(text)
        if arguments is None:
            return None
        return [
            StepArg(
                type_name=argument.parameter_type.name or "anonymous",
                raw=argument.group.value if argument.group is not None else None,
                value=argument.value,
            )
            for argument in arguments
        ]


def build_parameter_type(
    name: str,
    patterns: Sequence[PatternSource],
    transformer: Callable[..., Any] | None = None,
    *,
    use_for_snippets: bool = True,
    prefer_for_regexp_match: bool = False,
) -> ParameterType:
    regexps = [pattern_text(item) for item in patterns]
    return ParameterType(
        name,
        regexps,
        object,
        _transformer(transformer),
        use_for_snippets,
        prefer_for_regexp_match,
    )


def _transformer(fn: Callable[..., Any] | None) -> Callable[..., Any]:
    # Capture groups arrive as positional strings; without a transformer a single group passes through.
    def _transform(*values: str | None) -> Any:
        if fn is not None:
            return fn(*values)
        if len(values) == 1:
            return values[0]
        return list(values)

    return _transform
