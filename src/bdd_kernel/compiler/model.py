from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class StepType(str, Enum):
    # Step classification derived from the most recent Given/When/Then keyword.
    CONTEXT = "Context"
    ACTION = "Action"
    OUTCOME = "Outcome"


@dataclass(frozen=True, slots=True)
class DocString:
    content: str
    media_type: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"content": self.content}
        if self.media_type:
            payload["mediaType"] = self.media_type
        return payload


@dataclass(frozen=True, slots=True)
class DataTable:
    rows: tuple[tuple[str, ...], ...]

    def raw(self) -> list[list[str]]:
        return [list(row) for row in self.rows]

    def hashes(self) -> list[dict[str, str]]:
        # First row is the header; every following row becomes a header -> cell mapping.
        if not self.rows:
            return []
        header = self.rows[0]
        return [dict(zip(header, row)) for row in self.rows[1:]]

    def to_dict(self) -> dict[str, object]:
        return {"rows": [{"cells": [{"value": value} for value in row]} for row in self.rows]}


StepArgument = DocString | DataTable


@dataclass(frozen=True, slots=True)
class PickleTag:
    name: str
    ast_node_id: str

    def to_dict(self) -> dict[str, object]:
        return {"name": self.name, "astNodeId": self.ast_node_id}


@dataclass(frozen=True, slots=True)
class PickleStep:
    # Fully substituted executable step; keyword is kept only for reporting and snippets.
    id: str
    text: str
    type: StepType
    ast_node_ids: tuple[str, ...]
    argument: StepArgument | None = None
    keyword: str = ""

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": self.id,
            "text": self.text,
            "type": self.type.value,
            "astNodeIds": list(self.ast_node_ids),
        }
        if isinstance(self.argument, DocString):
            payload["argument"] = {"docString": self.argument.to_dict()}
        elif isinstance(self.argument, DataTable):
            payload["argument"] = {"dataTable": self.argument.to_dict()}
        return payload


@dataclass(frozen=True, slots=True)
class Pickle:
    # Flat, self-contained scenario unit; immutable after compilation.
    id: str
    uri: str
    name: str
    language: str
    steps: tuple[PickleStep, ...]
    tags: tuple[PickleTag, ...] = ()
    ast_node_ids: tuple[str, ...] = field(default=())

    @property
    def tag_names(self) -> list[str]:
        return [tag.name for tag in self.tags]

    def step(self, step_id: str) -> PickleStep:
        for item in self.steps:
            if item.id == step_id:
                return item
        raise KeyError(step_id)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "uri": self.uri,
            "name": self.name,
            "language": self.language,
            "steps": [step.to_dict() for step in self.steps],
            "tags": [tag.to_dict() for tag in self.tags],
            "astNodeIds": list(self.ast_node_ids),
        }
