from .emitter import EmissionOrderError, Emitter, EnvelopeSink
from .envelopes import (
    GHERKIN_MEDIA_TYPE,
    PHASES,
    Envelope,
    GherkinDocumentMessage,
    HookMessage,
    MetaMessage,
    ParameterTypeMessage,
    ParseErrorMessage,
    PickleMessage,
    SourceMessage,
    StepDefinitionMessage,
    StepOutcome,
    TestCaseFinishedMessage,
    TestCaseMessage,
    TestCaseStartedMessage,
    TestRunFinishedMessage,
    TestRunHookFinishedMessage,
    TestRunHookStartedMessage,
    TestRunStartedMessage,
    TestStepFinishedMessage,
    TestStepStartedMessage,
    execution_block_of,
)

__all__ = [
    "EmissionOrderError",
    "Emitter",
    "Envelope",
    "EnvelopeSink",
    "GHERKIN_MEDIA_TYPE",
    "GherkinDocumentMessage",
    "HookMessage",
    "MetaMessage",
    "PHASES",
    "ParameterTypeMessage",
    "ParseErrorMessage",
    "PickleMessage",
    "SourceMessage",
    "StepDefinitionMessage",
    "StepOutcome",
    "TestCaseFinishedMessage",
    "TestCaseMessage",
    "TestCaseStartedMessage",
    "TestRunFinishedMessage",
    "TestRunHookFinishedMessage",
    "TestRunHookStartedMessage",
    "TestRunStartedMessage",
    "TestStepFinishedMessage",
    "TestStepStartedMessage",
    "execution_block_of",
]
