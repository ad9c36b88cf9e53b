from __future__ import annotations

import json
import math
import re
from collections.abc import Iterable

from cucumber_expressions.expression_generator import CucumberExpressionGenerator
from cucumber_expressions.parameter_type_registry import ParameterTypeRegistry

from bdd_kernel.compiler.model import DataTable, DocString, StepArgument

_CUCUMBER_PARAMETER = re.compile(r"(?<!\\)\{[^{}]*\}")
_REGEX_GROUP = re.compile(r"(?<!\\)\((?:[^()\\]|\\.)*\)")
_WILDCARD = "{}"
_SUGGESTION_LIMIT = 3


def infer_expression(text: str, registry: ParameterTypeRegistry | None = None) -> tuple[str, list[str]]:
    # Step text -> cucumber expression plus handler parameter names.
    # Every snippet-enabled type of the registry is a candidate, custom ones included.
    generated = CucumberExpressionGenerator(registry or ParameterTypeRegistry()).generate_expressions(text)
    best = generated[0]
    return best.source, list(best.parameter_names)


def generate_snippet(
    text: str,
    keyword: str,
    argument: StepArgument | None = None,
    registry: ParameterTypeRegistry | None = None,
) -> str:
    # Ready-to-paste registration for an undefined step, using the Setup decorator form.
    expression, params = infer_expression(text, registry)
    if isinstance(argument, DocString):
        params.append("doc_string")
    elif isinstance(argument, DataTable):
        params.append("data_table")
    method = keyword.lower() if keyword.lower() in {"given", "when", "then"} else "step"
    return "\n".join(
        [
            f"@setup.{method}({json.dumps(expression, ensure_ascii=False)})",
            f"def {_function_name(expression)}({', '.join(params)}):",
            "    raise PendingStep()",
        ]
    )


def normalize_placeholders(pattern: str) -> str:
    # Collapse every parameter placeholder ({int}, {color}, regex groups) into one wildcard token.
    if pattern.startswith("^") or pattern.endswith("$"):
        return _REGEX_GROUP.sub(_WILDCARD, pattern.removeprefix("^").removesuffix("$"))
    return _CUCUMBER_PARAMETER.sub(_WILDCARD, pattern)


def edit_distance(left: str, right: str) -> int:
    # Classic Levenshtein distance with a rolling row.
    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)
    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, start=1):
        current = [i]
        for j, right_char in enumerate(right, start=1):
            cost = 0 if left_char == right_char else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def suggest_patterns(
    text: str,
    patterns: Iterable[str],
    *,
    registry: ParameterTypeRegistry | None = None,
    limit: int = _SUGGESTION_LIMIT,
) -> list[str]:
    # Nearest registered patterns: identical (distance 0) and distant candidates are excluded.
    expression, _ = infer_expression(text, registry)
    target = normalize_placeholders(expression)
    ranked: list[tuple[int, int, str]] = []
    seen: set[str] = set()
    for order, pattern in enumerate(patterns):
        if pattern in seen:
            continue
        seen.add(pattern)
        candidate = normalize_placeholders(pattern)
        distance = edit_distance(target, candidate)
        threshold = math.ceil(max(len(target), len(candidate)) / 2)
        if 0 < distance <= threshold:
            ranked.append((distance, order, pattern))
    ranked.sort()
    return [pattern for _, _, pattern in ranked[:limit]]


def _function_name(expression: str) -> str:
    words = re.findall(r"[a-z0-9]+", _CUCUMBER_PARAMETER.sub(" ", expression).lower())
    name = "_".join(words)[:60].strip("_") or "step"
    if name[0].isdigit():
        name = f"step_{name}"
    return name
