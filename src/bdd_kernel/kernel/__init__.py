from .calls import invoke, maybe_await, source_of
from .clock import Duration, Timestamp, monotonic_ns, now
from .ids import IdGenerator

# Kernel exports are minimal and runtime-focused.
__all__ = [
    "Duration",
    "IdGenerator",
    "Timestamp",
    "invoke",
    "maybe_await",
    "monotonic_ns",
    "now",
    "source_of",
]
