from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from bdd_kernel.features.parser import FeatureDocument, GherkinParser, document_from_ast


class FeatureCache:
    # Uri -> parsed document store; each file-backed uri is parsed at most once per run.
    def __init__(self, parser: GherkinParser) -> None:
        self._parser = parser
        self._documents: dict[str, FeatureDocument] = {}
        self._file_backed: set[str] = set()

    def load(
        self,
        uri: str,
        *,
        text: str | None = None,
        path: str | Path | None = None,
        document: Mapping[str, Any] | None = None,
        contents: str | None = None,
    ) -> FeatureDocument:
        provided = [item for item in (text, path, document) if item is not None]
        if len(provided) != 1:
            raise ValueError("FeatureCache.load requires exactly one of text, path or document")
        if contents is not None and path is None:
            raise ValueError("contents is only accepted together with path")

        if path is not None:
            # File content is stable for the run: a second load of the same uri is a no-op.
            cached = self._documents.get(uri)
            if cached is not None and uri in self._file_backed:
                return cached
            # Callers that already read the file pass its contents so both views agree.
            source = contents if contents is not None else Path(path).read_text(encoding="utf-8")
            parsed = self._parser.parse(source, uri)
            self._file_backed.add(uri)
        elif text is not None:
            # Inline content may differ call to call, so it always overwrites.
            parsed = self._parser.parse(text, uri)
            self._file_backed.discard(uri)
        else:
            assert document is not None
            parsed = document_from_ast(uri, document)
            self._file_backed.discard(uri)

        self._documents[uri] = parsed
        return parsed

    def get(self, uri: str) -> FeatureDocument | None:
        return self._documents.get(uri)

    def all(self) -> tuple[FeatureDocument, ...]:
        # Insertion order is discovery order.
        return tuple(self._documents.values())

    def node_lines(self) -> dict[tuple[str, str], int]:
        # (uri, ast node id) -> declared line, across every cached document.
        lines: dict[tuple[str, str], int] = {}
        for doc in self._documents.values():
            for node_id, line in doc.node_lines().items():
                lines[(doc.uri, node_id)] = line
        return lines

    def __contains__(self, uri: object) -> bool:
        return uri in self._documents

    def __len__(self) -> int:
        return len(self._documents)
