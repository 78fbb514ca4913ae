"""Tests for fuzzy candidate filtering and suggestion rendering."""
from grammar.suggestions import fuzzy_filter, render, suggest


class TestFuzzyFilter:

    def test_empty_query_keeps_every_candidate(self):
        assert fuzzy_filter("", ["entity", "action"]) == ["entity", "action"]
        assert fuzzy_filter(None, ["entity", "action"]) == ["entity", "action"]

    def test_subsequence_match(self):
        assert fuzzy_filter("ety", ["entity", "action"]) == ["entity"]

    def test_no_match(self):
        assert fuzzy_filter("xyz", ["entity", "action"]) == []

    def test_case_insensitive(self):
        assert fuzzy_filter("AUTH", ["Author", "Book"]) == ["Author"]

    def test_earliest_match_ranks_first(self):
        # "at" starts at 0 in "action" but at 3 in "create"
        assert fuzzy_filter("at", ["create", "action"]) == ["action", "create"]

    def test_ties_keep_candidate_order(self):
        assert fuzzy_filter("a", ["alpha", "apple", "avocado"]) == ["alpha", "apple", "avocado"]

    def test_dotted_candidates(self):
        assert fuzzy_filter("lib.ch", ["library.checkout", "shop.list"]) == ["library.checkout"]


class TestRender:

    def test_prefixes_known_words(self):
        assert render(["drop", "entity"], ["Author", "Book"]) == ["drop entity Author", "drop entity Book"]

    def test_without_known_words(self):
        assert render([], ["create"]) == ["create"]

    def test_suggest_filters_then_renders(self):
        assert suggest(["drop", "entity"], ["Author", "Book"], "bo") == ["drop entity Book"]
