from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from gherkin.ast_builder import AstBuilder
from gherkin.errors import CompositeParserException, ParserError
from gherkin.parser import Parser

from bdd_kernel.errors import FeatureParseError
from bdd_kernel.kernel.ids import IdGenerator


@dataclass(frozen=True, slots=True)
class FeatureDocument:
    # Parsed gherkin document for one source; treated as immutable once cached.
    uri: str
    ast: Mapping[str, Any]
    source: str | None = None

    @property
    def feature(self) -> Mapping[str, Any] | None:
        return self.ast.get("feature")

    @property
    def language(self) -> str:
        feature = self.feature
        if feature is None:
            return "en"
        return str(feature.get("language", "en"))

    def node_lines(self) -> dict[str, int]:
        # Map every AST node id to the line it was declared on.
        return {node_id: line for node_id, line in _walk_node_lines(self.ast)}


class GherkinParser:
    # Adapter over gherkin-official; node ids come from the run-scoped generator so they never collide.
    def __init__(self, ids: IdGenerator) -> None:
        self._parser = Parser(AstBuilder(ids))

    def parse(self, text: str, uri: str) -> FeatureDocument:
        try:
            ast = self._parser.parse(text)
        except ParserError as exc:
            raise _to_parse_error(uri, exc) from exc
        document = dict(ast)
        document["uri"] = uri
        return FeatureDocument(uri=uri, ast=document, source=text)


def document_from_ast(uri: str, ast: Mapping[str, Any]) -> FeatureDocument:
    # Pre-parsed documents skip the parser; uri is stamped the same way.
    document = dict(ast)
    document["uri"] = uri
    return FeatureDocument(uri=uri, ast=document, source=None)


def _to_parse_error(uri: str, exc: ParserError) -> FeatureParseError:
    first: Exception = exc
    if isinstance(exc, CompositeParserException) and exc.errors:
        first = exc.errors[0]
    location = getattr(first, "location", None) or {}
    return FeatureParseError(
        uri,
        str(exc),
        line=location.get("line"),
        column=location.get("column"),
    )


def _walk_node_lines(node: object) -> Iterator[tuple[str, int]]:
    if isinstance(node, Mapping):
        node_id = node.get("id")
        location = node.get("location")
        if isinstance(node_id, str) and isinstance(location, Mapping) and isinstance(location.get("line"), int):
            yield node_id, location["line"]
        for value in node.values():
            yield from _walk_node_lines(value)
    elif isinstance(node, list):
        for item in node:
            yield from _walk_node_lines(item)
