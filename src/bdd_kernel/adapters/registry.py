from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from bdd_kernel.adapters.contracts import SinkMeta, get_sink_meta
from bdd_kernel.errors import ConfigError


class SinkRegistryError(ConfigError):
    # Raised when sink lookup/build fails.
    pass


class SinkRegistry:
    # Factories keyed by role ("envelope" or "log") + config kind.
    def __init__(self) -> None:
        self._factories: dict[tuple[str, str], Callable[[Any], object]] = {}
        self._meta: dict[tuple[str, str], SinkMeta] = {}

    def register(self, factory: Callable[[Any], object], *, role: str | None = None, kind: str | None = None) -> None:
        meta = get_sink_meta(factory)
        role = role or (meta.role if meta else None)
        kind = kind or (meta.kind if meta else None)
        if not role or not kind:
            raise SinkRegistryError("Sink factory needs a role and kind (use @sink_factory)")
        key = (role, kind)
        if key in self._factories:
            raise SinkRegistryError(f"Duplicate sink registration: {role}/{kind}")
        self._factories[key] = factory
        self._meta[key] = meta if meta is not None else SinkMeta(role=role, kind=kind)

    def register_all(self, factories: Iterable[Callable[[Any], object]]) -> SinkRegistry:
        for factory in factories:
            self.register(factory)
        return self

    def build(self, role: str, config: Any) -> object:
        kind = getattr(config, "kind", None)
        if not isinstance(kind, str):
            raise SinkRegistryError("Sink config kind must be a string")
        key = (role, kind)
        if key not in self._factories:
            raise SinkRegistryError(f"Unknown sink kind for role {role}: {kind}")
        return self._factories[key](config)

    def kinds(self, role: str) -> list[str]:
        return sorted(kind for item_role, kind in self._factories if item_role == role)

    def get_meta(self, role: str, kind: str) -> SinkMeta | None:
        return self._meta.get((role, kind))
