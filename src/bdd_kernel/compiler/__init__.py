from .model import DataTable, DocString, Pickle, PickleStep, PickleTag, StepArgument, StepType
from .pickles import PickleCompiler

__all__ = [
    "DataTable",
    "DocString",
    "Pickle",
    "PickleCompiler",
    "PickleStep",
    "PickleTag",
    "StepArgument",
    "StepType",
]
