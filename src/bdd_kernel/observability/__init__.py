from .logging import LEVELS, LogMessage, LogSink, RunLogger

__all__ = ["LEVELS", "LogMessage", "LogSink", "RunLogger"]
