"""Tests for the relevance ranker.

Covers:
- query normalization and empty queries
- crisis-category exclusion for non-crisis queries
- scoring tiers (exact phrase, word hits, prefixes, verified bonus)
- deterministic ordering and name tie-breaks
"""
import pytest

from core.ranking import (
    DROP_THRESHOLD,
    EXCLUDED_SCORE,
    is_crisis_query,
    is_shelter_query,
    normalize_query,
    rank,
    score_resource,
)
from models.resource import Category, Resource


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

CRISIS = Category(id=1, slug="crisis", name="Crisis Support")
FOOD = Category(id=2, slug="food", name="Food")


def _resource(rid, name, description="", verified=True, categories=None):
    return Resource(
        id=rid,
        name=name,
        description=description,
        verified=verified,
        categories=categories or [],
    )


@pytest.fixture
def directory():
    return [
        _resource(1, "Central Food Bank", "Weekly grocery hampers", categories=[FOOD]),
        _resource(
            2,
            "Crisis Line – Suicide Prevention",
            "24/7 support line, food bank referrals",
            categories=[CRISIS],
        ),
        _resource(3, "Community Kitchen", "Hot meals daily, no food bank card needed"),
        _resource(4, "Legal Aid Clinic", "Free advice for tenants"),
    ]


# ---------------------------------------------------------------------------
# normalize_query
# ---------------------------------------------------------------------------

class TestNormalizeQuery:
    def test_strips_punctuation_and_lowercases(self):
        assert normalize_query("  Food Bank!? ") == "food bank"

    def test_keeps_hyphens(self):
        assert normalize_query("Self-Harm") == "self-harm"

    def test_empty_and_none(self):
        assert normalize_query("") == ""
        assert normalize_query(None) == ""

    def test_punctuation_only(self):
        assert normalize_query("?!...") == ""


class TestQueryClassifiers:
    def test_crisis_query(self):
        assert is_crisis_query("suicide hotline")
        assert is_crisis_query("Mental Health support")
        assert not is_crisis_query("food bank")

    def test_shelter_query(self):
        assert is_shelter_query("I'm sleeping outside tonight")
        assert is_shelter_query("it's freezing")
        assert not is_shelter_query("legal help")


# ---------------------------------------------------------------------------
# rank
# ---------------------------------------------------------------------------

class TestRank:
    @pytest.mark.parametrize("query", ["", "   ", "!!!", "?.,"])
    def test_empty_query_returns_nothing(self, directory, query):
        assert rank(query, directory) == []

    def test_no_candidates(self):
        assert rank("food", []) == []

    def test_food_bank_excludes_crisis_resource(self, directory):
        result = rank("food bank", directory)
        names = [r.name for r in result]
        assert "Central Food Bank" in names
        assert "Crisis Line – Suicide Prevention" not in names

    def test_exact_name_match_ranks_first(self, directory):
        result = rank("food bank", directory)
        assert result[0].name == "Central Food Bank"

    def test_crisis_query_includes_crisis_resources(self, directory):
        result = rank("suicide", directory)
        assert [r.id for r in result] == [2]

    def test_crisis_resource_never_appears_for_non_crisis_query(self, directory):
        for query in ("food", "line", "support", "prevention", "24/7 support line"):
            assert all(not r.has_category("crisis") for r in rank(query, directory))

    def test_non_matching_resources_dropped(self, directory):
        result = rank("tenants", directory)
        assert [r.id for r in result] == [4]

    def test_no_match_returns_empty(self, directory):
        assert rank("zzzz", directory) == []

    def test_deterministic(self, directory):
        first = rank("food", directory)
        second = rank("food", list(reversed(directory)))
        assert [r.id for r in first] == [r.id for r in second]

    def test_ties_broken_by_name(self):
        candidates = [
            _resource(1, "Beta Pantry"),
            _resource(2, "alpha Pantry"),
        ]
        result = rank("pantry", candidates)
        assert [r.id for r in result] == [2, 1]

