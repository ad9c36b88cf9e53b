from __future__ import annotations

from pathlib import Path

import pytest

# FeatureCache contract: file-backed loads are idempotent, inline loads overwrite, parse errors propagate.
from bdd_kernel.errors import FeatureParseError
from bdd_kernel.features.cache import FeatureCache
from bdd_kernel.features.parser import GherkinParser
from bdd_kernel.kernel.ids import IdGenerator

SIMPLE = "Feature: Simple\n  Scenario: one\n    Given a step\n"


class _CountingParser(GherkinParser):
    def __init__(self) -> None:
        super().__init__(IdGenerator())
        self.calls = 0

    def parse(self, text: str, uri: str):
        self.calls += 1
        return super().parse(text, uri)


def test_file_backed_load_parses_once(tmp_path: Path) -> None:
    # Second load of the same file-backed uri is a no-op, even if the file changed.
    path = tmp_path / "simple.feature"
    path.write_text(SIMPLE, encoding="utf-8")
    parser = _CountingParser()
    cache = FeatureCache(parser)

    first = cache.load("simple.feature", path=path)
    path.write_text("Feature: Changed\n", encoding="utf-8")
    second = cache.load("simple.feature", path=path)

    assert first is second
    assert parser.calls == 1
    assert first.feature is not None
    assert first.feature["name"] == "Simple"


def test_inline_load_always_overwrites() -> None:
    parser = _CountingParser()
    cache = FeatureCache(parser)
    cache.load("inline", text=SIMPLE)
    cache.load("inline", text="Feature: Replaced\n  Scenario: two\n    Given other\n")

    assert parser.calls == 2
    document = cache.get("inline")
    assert document is not None
    assert document.feature is not None
    assert document.feature["name"] == "Replaced"
    assert len(cache) == 1


def test_pre_parsed_document_is_stored_with_uri() -> None:
    cache = FeatureCache(GherkinParser(IdGenerator()))
    document = cache.load("pre.feature", document={"feature": {"name": "Pre", "children": []}, "comments": []})
    assert document.ast["uri"] == "pre.feature"
    assert "pre.feature" in cache


def test_load_requires_exactly_one_source() -> None:
    cache = FeatureCache(GherkinParser(IdGenerator()))
    with pytest.raises(ValueError):
        cache.load("x")
    with pytest.raises(ValueError):
        cache.load("x", text=SIMPLE, document={})


def test_parse_failure_raises_with_location() -> None:
    # Parse errors are not swallowed by the cache.
    cache = FeatureCache(GherkinParser(IdGenerator()))
    with pytest.raises(FeatureParseError) as excinfo:
        cache.load(
            "broken.feature",
            text="Feature: Broken\n  Scenario: s\n    Given a step\n    stray text after a step\n",
        )
    assert excinfo.value.uri == "broken.feature"
    assert excinfo.value.line == 4
    assert "broken.feature" not in cache


def test_all_keeps_insertion_order_and_node_lines_cover_scenarios() -> None:
    cache = FeatureCache(GherkinParser(IdGenerator()))
    cache.load("b", text=SIMPLE)
    cache.load("a", text=SIMPLE)
    assert [document.uri for document in cache.all()] == ["b", "a"]

    document = cache.get("a")
    assert document is not None
    scenario = document.feature["children"][0]["scenario"]
    assert cache.node_lines()[("a", scenario["id"])] == 2


def test_file_backed_load_parses_contents_already_read(tmp_path: Path) -> None:
    # The caller's copy of the file is what gets parsed, so announced and parsed text agree.
    path = tmp_path / "simple.feature"
    path.write_text("Feature: On disk\n", encoding="utf-8")
    cache = FeatureCache(GherkinParser(IdGenerator()))

    document = cache.load("simple.feature", path=path, contents=SIMPLE)

    assert document.feature is not None
    assert document.feature["name"] == "Simple"
    with pytest.raises(ValueError):
        cache.load("inline", text=SIMPLE, contents=SIMPLE)
