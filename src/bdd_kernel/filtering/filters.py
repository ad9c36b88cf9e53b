from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from cucumber_tag_expressions.parser import TagExpressionError, TagExpressionParser

from bdd_kernel.compiler.model import Pickle
from bdd_kernel.errors import ConfigError


class PicklePredicate(Protocol):
    def __call__(self, pickle: Pickle) -> bool:
        raise NotImplementedError("PicklePredicate is a callable contract")


class TagFilter:
    # Boolean tag expression ("@smoke and not @wip") evaluated over the pickle's inherited tags.
    def __init__(self, expression: str) -> None:
        try:
            self._expression = TagExpressionParser.parse(expression)
        except TagExpressionError as exc:
            raise ConfigError(f"Invalid tag expression {expression!r}: {exc}") from exc
        self.source = expression

    def __call__(self, pickle: Pickle) -> bool:
        return bool(self._expression.evaluate(pickle.tag_names))


@dataclass(frozen=True, slots=True)
class NameFilter:
    # Plain substring match on the (substituted) pickle name.
    needle: str

    def __call__(self, pickle: Pickle) -> bool:
        return self.needle in pickle.name


@dataclass(frozen=True, slots=True)
class LocationFilter:
    # Matches the uri and any line implied by the pickle's ast node ids (scenario line or examples row line).
    uri: str
    lines: Collection[int]
    node_lines: Mapping[tuple[str, str], int] = field(default_factory=dict)

    def __call__(self, pickle: Pickle) -> bool:
        if pickle.uri != self.uri:
            return False
        return any(self.node_lines.get((pickle.uri, node_id)) in self.lines for node_id in pickle.ast_node_ids)


class PickleFilter:
    # Up to three optional predicates, ANDed; an empty filter selects everything.
    def __init__(
        self,
        *,
        tags: TagFilter | None = None,
        name: NameFilter | None = None,
        location: LocationFilter | None = None,
    ) -> None:
        self._predicates: list[PicklePredicate] = [item for item in (tags, name, location) if item is not None]

    def matches(self, pickle: Pickle) -> bool:
        return all(predicate(pickle) for predicate in self._predicates)

    def apply(self, pickles: Iterable[Pickle]) -> list[Pickle]:
        # Input order is preserved.
        return [pickle for pickle in pickles if self.matches(pickle)]


def build_filter(
    *,
    tags: str | None = None,
    name: str | None = None,
    location: tuple[str, int] | None = None,
    node_lines: Mapping[tuple[str, str], int] | None = None,
) -> PickleFilter:
    return PickleFilter(
        tags=TagFilter(tags) if tags else None,
        name=NameFilter(name) if name else None,
        location=(
            LocationFilter(uri=location[0], lines={location[1]}, node_lines=dict(node_lines or {}))
            if location is not None
            else None
        ),
    )
