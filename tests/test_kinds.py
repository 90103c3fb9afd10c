"""Tests for kind masks and parsing."""

import pytest

from palimpsest.history.kinds import COMPOSITES, Kind, parse_kind, single_kinds


class TestParseKind:
    def test_single_name(self):
        assert parse_kind("ratings") is Kind.RATINGS

    def test_names_are_case_insensitive(self):
        assert parse_kind("Tags") is Kind.TAGS

    def test_joined_names(self):
        assert parse_kind("ratings|tags") == Kind.RATINGS | Kind.TAGS

    def test_composite_name(self):
        assert parse_kind("develop") == Kind.HISTORY | Kind.MASK

    def test_integer_text(self):
        assert parse_kind("32") == Kind.RATINGS

    def test_integer(self):
        assert parse_kind(8) == Kind.TAGS

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown kind: sparkles"):
            parse_kind("ratings|sparkles")

    @pytest.mark.parametrize("value", [1.5, ["tags"], {"x": 1}, None])
    def test_non_text_values(self, value):
        with pytest.raises(ValueError, match="Invalid kind"):
            parse_kind(value)


def test_single_kinds_are_distinct_bits():
    kinds = single_kinds()
    assert len(kinds) == 13
    combined = 0
    for kind in kinds:
        assert combined & kind == 0
        combined |= kind
    assert combined == Kind.ALL


def test_composites_are_subsets_of_all():
    for mask in COMPOSITES:
        assert mask & Kind.ALL == mask


def test_lighttable_and_develop_are_disjoint():
    assert not Kind.LIGHTTABLE & Kind.DEVELOP
    assert Kind.RATINGS & Kind.LIGHTTABLE
    assert Kind.MASK & Kind.DEVELOP
