from __future__ import annotations

from collections.abc import Sequence


class BddKernelError(Exception):
    # Root of every error the kernel raises or attaches to results.
    pass


class ConfigError(ValueError):
    # Raised for invalid run configuration (fail fast).
    pass


class StepDefinitionError(ValueError):
    # Raised when a registered pattern cannot be compiled (unknown parameter type, bad regex).
    def __init__(self, pattern: str, cause: Exception) -> None:
        super().__init__(f"Invalid step pattern {pattern!r}: {cause}")
        self.pattern = pattern
        self.cause = cause


class PendingStep(BddKernelError):
    # Raised by a step handler to mark the step as not implemented yet.
    def __init__(self, message: str = "TODO: implement me") -> None:
        super().__init__(message)
        self.message = message


class UndefinedStepError(BddKernelError):
    # No registered pattern matched the step text.
    def __init__(self, text: str, keyword: str, snippet: str, suggestions: Sequence[str] = ()) -> None:
        super().__init__(f"Undefined step: {keyword}{text}")
        self.text = text
        self.keyword = keyword
        self.snippet = snippet
        self.suggestions = tuple(suggestions)


class StepFailedError(BddKernelError):
    # A handler (or a hook around it) raised something other than PendingStep.
    def __init__(self, step_text: str, message: str, stack: str | None = None) -> None:
        super().__init__(f"Step failed: {step_text}: {message}")
        self.step_text = step_text
        self.message = message
        self.stack = stack


class ScenarioFailedError(BddKernelError):
    # Scenario identity plus the diagnostics of the steps that made it not pass.
    def __init__(
        self,
        *,
        pickle_id: str,
        name: str,
        uri: str,
        status: str,
        diagnostics: Sequence[BddKernelError] = (),
    ) -> None:
        detail = "; ".join(str(item) for item in diagnostics) or status
        super().__init__(f"Scenario '{name}' ({uri}) {status}: {detail}")
        self.pickle_id = pickle_id
        self.name = name
        self.uri = uri
        self.status = status
        self.diagnostics = tuple(diagnostics)


class FeatureParseError(BddKernelError):
    # A feature source failed to parse; collected per source, never aborts the run.
    def __init__(self, uri: str, message: str, *, line: int | None = None, column: int | None = None) -> None:
        super().__init__(f"{uri}: {message}")
        self.uri = uri
        self.message = message
        self.line = line
        self.column = column


class RunFailedError(ExceptionGroup):
    # Aggregate of every non-passing scenario and parse error of a run (opt-in strict API).
    pass
