from __future__ import annotations

import pytest

# PickleFilter ANDs tag, name and location predicates and keeps input order.
from bdd_kernel.compiler.pickles import PickleCompiler
from bdd_kernel.errors import ConfigError
from bdd_kernel.features.cache import FeatureCache
from bdd_kernel.features.parser import GherkinParser
from bdd_kernel.filtering.filters import PickleFilter, TagFilter, build_filter
from bdd_kernel.kernel.ids import IdGenerator

FEATURE = """\
@api
Feature: Accounts

  @smoke
  Scenario: open account
    Given a customer

  @wip
  Scenario: close account
    Given an account

  Scenario Outline: deposit <amount>
    When I deposit <amount>

    Examples:
      | amount |
      | 10     |
      | 20     |
"""


def _compiled():
    ids = IdGenerator()
    cache = FeatureCache(GherkinParser(ids))
    cache.load("features/accounts.feature", text=FEATURE)
    return cache, PickleCompiler(ids).compile(cache)


def test_tag_expression_selects_by_inherited_tags() -> None:
    _, pickles = _compiled()
    selected = build_filter(tags="@api and not @wip").apply(pickles)
    assert [pickle.name for pickle in selected] == ["open account", "deposit 10", "deposit 20"]


def test_name_filter_is_substring_match() -> None:
    _, pickles = _compiled()
    selected = build_filter(name="deposit").apply(pickles)
    assert [pickle.name for pickle in selected] == ["deposit 10", "deposit 20"]


def test_location_filter_matches_scenario_line() -> None:
    cache, pickles = _compiled()
    selected = build_filter(location=("features/accounts.feature", 5), node_lines=cache.node_lines()).apply(pickles)
    assert [pickle.name for pickle in selected] == ["open account"]


def test_location_filter_matches_examples_row_line() -> None:
    # A row line selects only that row's pickle.
    cache, pickles = _compiled()
    selected = build_filter(location=("features/accounts.feature", 18), node_lines=cache.node_lines()).apply(pickles)
    assert [pickle.name for pickle in selected] == ["deposit 20"]


def test_location_filter_rejects_other_uri() -> None:
    cache, pickles = _compiled()
    selected = build_filter(location=("features/other.feature", 5), node_lines=cache.node_lines()).apply(pickles)
    assert selected == []


def test_predicates_are_anded() -> None:
    _, pickles = _compiled()
    selected = build_filter(tags="@api", name="close").apply(pickles)
    assert [pickle.name for pickle in selected] == ["close account"]


def test_empty_filter_keeps_everything_in_order() -> None:
    _, pickles = _compiled()
    assert PickleFilter().apply(pickles) == pickles


def test_invalid_tag_expression_is_a_config_error() -> None:
    with pytest.raises(ConfigError):
        TagFilter("@a and (")
