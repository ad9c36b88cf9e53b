from .adapters import CollectingSink, NdjsonSink, OrderedNdjsonSink
from .app import BddRuntime, run_features
from .compiler import DataTable, DocString, Pickle, PickleStep, StepType
from .config import FeatureSourceConfig, LocationConfig, LogConfig, RunConfig, SinkConfig, load_run_config
from .errors import (
    BddKernelError,
    ConfigError,
    FeatureParseError,
    PendingStep,
    RunFailedError,
    ScenarioFailedError,
    StepDefinitionError,
    StepFailedError,
    UndefinedStepError,
)
from .execution import RunResult, RunSummary, ScenarioResult, StepResult, StepStatus
from .steps import HookKind, Setup, StepLibrary

__all__ = [
    "BddKernelError",
    "BddRuntime",
    "CollectingSink",
    "ConfigError",
    "DataTable",
    "DocString",
    "FeatureParseError",
    "FeatureSourceConfig",
    "HookKind",
    "LocationConfig",
    "LogConfig",
    "NdjsonSink",
    "OrderedNdjsonSink",
    "PendingStep",
    "Pickle",
    "PickleStep",
    "RunConfig",
    "RunFailedError",
    "RunResult",
    "RunSummary",
    "ScenarioFailedError",
    "ScenarioResult",
    "Setup",
    "SinkConfig",
    "StepDefinitionError",
    "StepFailedError",
    "StepLibrary",
    "StepResult",
    "StepStatus",
    "StepType",
    "UndefinedStepError",
    "load_run_config",
    "run_features",
]
