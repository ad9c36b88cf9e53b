from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from gherkin.dialect import Dialect

from bdd_kernel.compiler.model import DataTable, DocString, Pickle, PickleStep, PickleTag, StepArgument, StepType
from bdd_kernel.features.cache import FeatureCache
from bdd_kernel.features.parser import FeatureDocument
from bdd_kernel.kernel.ids import IdGenerator

AstNode = Mapping[str, Any]
RowValues = Sequence[tuple[str, str]]

_EXPLICIT_TYPES = {
    "Context": StepType.CONTEXT,
    "Action": StepType.ACTION,
    "Outcome": StepType.OUTCOME,
}


class PickleCompiler:
    # Turns cached feature documents into flat pickles; the only state is the run-scoped id generator.
    def __init__(self, ids: IdGenerator) -> None:
        self._ids = ids

    def compile(self, source: FeatureCache | Iterable[FeatureDocument]) -> list[Pickle]:
        documents = source.all() if isinstance(source, FeatureCache) else source
        pickles: list[Pickle] = []
        for document in documents:
            pickles.extend(self.compile_document(document))
        return pickles

    def compile_document(self, document: FeatureDocument) -> list[Pickle]:
        feature = document.feature
        if not feature:
            return []
        language = str(feature.get("language", "en"))
        classifier = _KeywordClassifier(language)
        feature_tags = list(feature.get("tags", []))
        feature_background: list[AstNode] = []
        pickles: list[Pickle] = []

        for child in feature.get("children", []):
            if "background" in child:
                feature_background.extend(child["background"].get("steps", []))
            elif "rule" in child:
                pickles.extend(
                    self._compile_rule(
                        document.uri,
                        language,
                        child["rule"],
                        feature_tags,
                        feature_background,
                        classifier,
                    )
                )
            elif "scenario" in child:
                pickles.extend(
                    self._compile_scenario(
                        document.uri,
                        language,
                        child["scenario"],
                        feature_tags,
                        feature_background,
                        classifier,
                    )
                )
        return pickles

    def _compile_rule(
        self,
        uri: str,
        language: str,
        rule: AstNode,
        feature_tags: list[AstNode],
        feature_background: list[AstNode],
        classifier: _KeywordClassifier,
    ) -> list[Pickle]:
        # Rule background runs after the feature background, for every scenario in the rule.
        tags = feature_tags + list(rule.get("tags", []))
        background = list(feature_background)
        pickles: list[Pickle] = []
        for child in rule.get("children", []):
            if "background" in child:
                background.extend(child["background"].get("steps", []))
            elif "scenario" in child:
                pickles.extend(self._compile_scenario(uri, language, child["scenario"], tags, background, classifier))
        return pickles

    def _compile_scenario(
        self,
        uri: str,
        language: str,
        scenario: AstNode,
        inherited_tags: list[AstNode],
        background: list[AstNode],
        classifier: _KeywordClassifier,
    ) -> list[Pickle]:
        own_steps = list(scenario.get("steps", []))
        # A scenario without steps of its own produces nothing, even with a background.
        if not own_steps:
            return []
        tags = inherited_tags + list(scenario.get("tags", []))
        examples = scenario.get("examples") or []
        if not examples:
            return [
                Pickle(
                    id=self._ids.next("pickle"),
                    uri=uri,
                    name=str(scenario.get("name", "")),
                    language=language,
                    steps=self._build_steps(background, own_steps, classifier),
                    tags=_pickle_tags(tags),
                    ast_node_ids=(scenario["id"],),
                )
            ]
        return self._compile_outline(uri, language, scenario, tags, background, own_steps, classifier)

    def _compile_outline(
        self,
        uri: str,
        language: str,
        scenario: AstNode,
        tags: list[AstNode],
        background: list[AstNode],
        own_steps: list[AstNode],
        classifier: _KeywordClassifier,
    ) -> list[Pickle]:
        pickles: list[Pickle] = []
        for examples in scenario.get("examples", []):
            header = examples.get("tableHeader")
            # Examples without a table contribute no pickles.
            if not header:
                continue
            names = [str(cell.get("value", "")) for cell in header.get("cells", [])]
            example_tags = tags + list(examples.get("tags", []))
            for row in examples.get("tableBody", []):
                values = list(zip(names, (str(cell.get("value", "")) for cell in row.get("cells", []))))
                pickles.append(
                    Pickle(
                        id=self._ids.next("pickle"),
                        uri=uri,
                        name=_interpolate(str(scenario.get("name", "")), values),
                        language=language,
                        steps=self._build_steps(background, own_steps, classifier, values=values, row_id=row["id"]),
                        tags=_pickle_tags(example_tags),
                        ast_node_ids=(scenario["id"], row["id"]),
                    )
                )
        return pickles

    def _build_steps(
        self,
        background: list[AstNode],
        own_steps: list[AstNode],
        classifier: _KeywordClassifier,
        *,
        values: RowValues | None = None,
        row_id: str | None = None,
    ) -> tuple[PickleStep, ...]:
        # Type tracking runs over the concatenated sequence; background steps are never substituted.
        last_type = StepType.CONTEXT
        steps: list[PickleStep] = []
        for index, step in enumerate([*background, *own_steps]):
            step_type = classifier.explicit_type(step) or last_type
            last_type = step_type
            is_own = index >= len(background)
            steps.append(
                self._pickle_step(
                    step,
                    step_type,
                    values=values if is_own else None,
                    row_id=row_id if is_own else None,
                )
            )
        return tuple(steps)

    def _pickle_step(
        self,
        step: AstNode,
        step_type: StepType,
        *,
        values: RowValues | None,
        row_id: str | None,
    ) -> PickleStep:
        ast_node_ids = (step["id"],) if row_id is None else (step["id"], row_id)
        return PickleStep(
            id=self._ids.next("pickle-step"),
            text=_interpolate(str(step.get("text", "")), values),
            type=step_type,
            ast_node_ids=ast_node_ids,
            argument=_step_argument(step, values),
            keyword=str(step.get("keyword", "")),
        )


class _KeywordClassifier:
    # Resolves Given/When/Then keywords of a dialect; conjunctions and ambiguous keywords return None.
    def __init__(self, language: str) -> None:
        dialect = Dialect.for_name(language) or Dialect.for_name("en")
        self._by_type: dict[StepType | None, set[str]] = {
            StepType.CONTEXT: _keywords(dialect.given_keywords),
            StepType.ACTION: _keywords(dialect.when_keywords),
            StepType.OUTCOME: _keywords(dialect.then_keywords),
            None: _keywords(dialect.and_keywords) | _keywords(dialect.but_keywords),
        }

    def explicit_type(self, step: AstNode) -> StepType | None:
        keyword_type = step.get("keywordType")
        if keyword_type in _EXPLICIT_TYPES:
            return _EXPLICIT_TYPES[keyword_type]
        if keyword_type is not None:
            return None
        keyword = str(step.get("keyword", "")).strip()
        matches = [step_type for step_type, words in self._by_type.items() if keyword in words]
        if len(matches) == 1:
            return matches[0]
        return None


def _keywords(words: Iterable[str]) -> set[str]:
    return {word.strip() for word in words}


def _interpolate(text: str, values: RowValues | None) -> str:
    if not values:
        return text
    for name, value in values:
        text = text.replace(f"<{name}>", value)
    return text


def _step_argument(step: AstNode, values: RowValues | None) -> StepArgument | None:
    doc_string = step.get("docString")
    if doc_string is not None:
        media_type = doc_string.get("mediaType") or doc_string.get("contentType")
        return DocString(
            content=_interpolate(str(doc_string.get("content", "")), values),
            media_type=_interpolate(media_type, values) if media_type else None,
        )
    data_table = step.get("dataTable")
    if data_table is not None:
        return DataTable(
            rows=tuple(
                tuple(_interpolate(str(cell.get("value", "")), values) for cell in row.get("cells", []))
                for row in data_table.get("rows", [])
            )
        )
    return None


def _pickle_tags(tags: Iterable[AstNode]) -> tuple[PickleTag, ...]:
    return tuple(PickleTag(name=str(tag["name"]), ast_node_id=str(tag.get("id", ""))) for tag in tags)
