from .expressions import Matcher, PatternKind, StepArg, pattern_kind, pattern_text
from .registry import (
    Matched,
    ParamTypeDef,
    SourceReference,
    StepDef,
    StepKeyword,
    StepMatch,
    StepRegistry,
    Undefined,
    keyword_for,
)
from .setup import HookDef, HookKind, Setup, StepLibrary
from .snippets import edit_distance, generate_snippet, infer_expression, normalize_placeholders, suggest_patterns

__all__ = [
    "HookDef",
    "HookKind",
    "Matched",
    "Matcher",
    "ParamTypeDef",
    "PatternKind",
    "Setup",
    "SourceReference",
    "StepArg",
    "StepDef",
    "StepKeyword",
    "StepLibrary",
    "StepMatch",
    "StepRegistry",
    "Undefined",
    "edit_distance",
    "generate_snippet",
    "infer_expression",
    "keyword_for",
    "normalize_placeholders",
    "pattern_kind",
    "pattern_text",
    "suggest_patterns",
]
