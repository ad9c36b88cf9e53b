from .executor import DRY_RUN_REASON, ExecutionOptions, ScenarioExecutor, build_setup_factory, failure, outcome_of
from .results import RunResult, RunSummary, ScenarioResult, StepResult, StepStatus, scenario_status
from .scheduler import Scheduler

__all__ = [
    "DRY_RUN_REASON",
    "ExecutionOptions",
    "RunResult",
    "RunSummary",
    "ScenarioExecutor",
    "ScenarioResult",
    "Scheduler",
    "StepResult",
    "StepStatus",
    "build_setup_factory",
    "failure",
    "outcome_of",
    "scenario_status",
]
