from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class SinkMeta:
    # Declared contract of a sink factory: the role it serves and the config kind it builds.
    role: str
    kind: str
    buffered: bool = False


def sink_factory(*, role: str, kind: str, buffered: bool = False) -> Callable[[T], T]:
    # Decorator attaches SinkMeta so registries can be populated from the factories alone.

    def _decorate(target: T) -> T:
        setattr(target, "__sink_meta__", SinkMeta(role=role, kind=kind, buffered=buffered))
        return target

    return _decorate


def get_sink_meta(target: object) -> SinkMeta | None:
    meta = getattr(target, "__sink_meta__", None)
    if isinstance(meta, SinkMeta):
        return meta
    return None
