"""
Tests for action tag formatting and parsing.
"""
import pytest

from data_entity import (
    PREFIX,
    OperationKind,
    RequestState,
    format_tag,
    parse_action,
    parse_state,
    parse_tag,
)


class TestFormatTag:
    """Tests for format_tag()."""

    def test_format(self) -> None:
        """Should build PREFIX/entity/KIND_STATE tags."""
        assert format_tag("users", OperationKind.READ_MANY, RequestState.ACTIVE) == "RDE/users/READ_MANY_START"
        assert format_tag("users", OperationKind.DELETE_ONE, RequestState.FAILED) == "RDE/users/DELETE_ONE_FAIL"
        assert format_tag("posts", OperationKind.CREATE_MANY, RequestState.SUCCEEDED) == "RDE/posts/CREATE_MANY_SUCCESS"

    def test_prefix(self) -> None:
        """Should use the RDE prefix."""
        assert PREFIX == "RDE"


class TestParseTag:
    """Tests for parse_tag()."""

    @pytest.mark.parametrize("kind", list(OperationKind))
    @pytest.mark.parametrize("state", list(RequestState))
    def test_round_trip(self, kind: OperationKind, state: RequestState) -> None:
        """Should recover every kind/state pair."""
        assert parse_tag("users", format_tag("users", kind, state)) == (kind, state)

    @pytest.mark.parametrize(
        "tag",
        [
            "",
            "unrelated",
            "RDE/users/READ_MANY",
            "RDE/users/FETCH_START",
            "RDE/users/READ_MANY_DONE",
            "RDE/posts/READ_MANY_START",
            "XYZ/users/READ_MANY_START",
            "RDE/users/READ_MANY_START/extra",
        ],
    )
    def test_non_matching_tags(self, tag: str) -> None:
        """Should return None for tags that are not this entity's."""
        assert parse_tag("users", tag) is None

    @pytest.mark.parametrize("tag", [None, 42, b"RDE/users/READ_MANY_START"])
    def test_non_string_tags(self, tag) -> None:
        """Should return None for non-string input."""
        assert parse_tag("users", tag) is None

    def test_entity_name_prefix_collision(self) -> None:
        """Should not match an entity whose name only shares a prefix."""
        assert parse_tag("user", "RDE/users/READ_MANY_START") is None

    def test_parse_action_and_state(self) -> None:
        """Should expose kind and state separately."""
        tag = "RDE/users/UPDATE_MANY_SUCCESS"
        assert parse_action("users", tag) is OperationKind.UPDATE_MANY
        assert parse_state("users", tag) is RequestState.SUCCEEDED
        assert parse_action("users", "nope") is None
        assert parse_state("users", "nope") is None
