from __future__ import annotations

import time
from dataclasses import dataclass

_NANOS_PER_SECOND = 1_000_000_000


@dataclass(frozen=True, slots=True)
class Timestamp:
    # Wall-clock instant in protocol form (seconds + nanos since epoch).
    seconds: int
    nanos: int

    def to_dict(self) -> dict[str, int]:
        return {"seconds": self.seconds, "nanos": self.nanos}


@dataclass(frozen=True, slots=True)
class Duration:
    # Elapsed time in protocol form.
    seconds: int
    nanos: int

    @classmethod
    def from_nanos(cls, value: int) -> Duration:
        value = max(0, value)
        return cls(seconds=value // _NANOS_PER_SECOND, nanos=value % _NANOS_PER_SECOND)

    def to_dict(self) -> dict[str, int]:
        return {"seconds": self.seconds, "nanos": self.nanos}


def now() -> Timestamp:
    value = time.time_ns()
    return Timestamp(seconds=value // _NANOS_PER_SECOND, nanos=value % _NANOS_PER_SECOND)


def monotonic_ns() -> int:
    # Durations are measured on the monotonic clock, never on wall time.
    return time.perf_counter_ns()
