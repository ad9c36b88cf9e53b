from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock


@dataclass(slots=True)
class IdGenerator:
    # Run-scoped monotonic ids, one counter per prefix ("tc-1", "ts-1", "pickle-3", ...).
    # Ids are never reused within a run; the lock keeps counters monotonic under worker threads.
    _counters: dict[str, int] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock)

    def next(self, prefix: str) -> str:
        with self._lock:
            value = self._counters.get(prefix, 0) + 1
            self._counters[prefix] = value
        return f"{prefix}-{value}"

    def get_next_id(self) -> str:
        # Id-generator contract expected by gherkin's AstBuilder.
        return self.next("ast")
