"""Tests for cache key generation."""

from collections import OrderedDict

from repocache.cache.keys import CacheKeyBuilder, build_key, is_id_condition, parse_key


class TestBuildKey:
    """Test key derivation from conditions."""

    def test_id_condition(self) -> None:
        """Id lookups produce prefix|id_<value>."""
        assert build_key("svc", {"id": "1"}) == "svc|id_1"

    def test_multiple_fields_in_given_order(self) -> None:
        """Fields are concatenated in iteration order."""
        assert build_key("svc", {"name": "A", "age": 3}) == "svc|name_A|age_3"
        assert build_key("svc", {"age": 3, "name": "A"}) == "svc|age_3|name_A"

    def test_empty_condition_is_prefix(self) -> None:
        """An empty condition yields the bare prefix."""
        assert build_key("svc", {}) == "svc"

    def test_empty_prefix(self) -> None:
        """Prefix may be empty."""
        assert build_key("", {"email": "a@x.com"}) == "|email_a@x.com"

    def test_structured_values_use_str(self) -> None:
        """Non-scalar values are rendered with str()."""
        assert build_key("p", {"tags": ["a", "b"]}) == "p|tags_['a', 'b']"
        assert build_key("p", {"active": True, "deleted_at": None}) == (
            "p|active_True|deleted_at_None"
        )

    def test_deterministic(self) -> None:
        """Same prefix and same ordered condition always give the same key."""
        condition = OrderedDict([("tenant", "acme"), ("email", "a@x.com")])
        keys = {build_key("svc", condition) for _ in range(10)}
        assert keys == {"svc|tenant_acme|email_a@x.com"}

    def test_sorted_fields(self) -> None:
        """With sort_fields, field order no longer matters."""
        first = build_key("svc", {"b": 2, "a": 1}, sort_fields=True)
        second = build_key("svc", {"a": 1, "b": 2}, sort_fields=True)
        assert first == second == "svc|a_1|b_2"

    def test_numeric_and_string_values_collide(self) -> None:
        """Values are stringified, so 1 and "1" share a key."""
        assert build_key("svc", {"id": 1}) == build_key("svc", {"id": "1"})


class TestIsIdCondition:
    """Test detection of id-only conditions."""

    def test_exact_id(self) -> None:
        assert is_id_condition({"id": "42"}) is True

    def test_id_with_other_fields(self) -> None:
        assert is_id_condition({"id": "42", "email": "a@x.com"}) is False

    def test_other_fields(self) -> None:
        assert is_id_condition({"email": "a@x.com"}) is False

    def test_empty(self) -> None:
        assert is_id_condition({}) is False


class TestParseKey:
    """Test splitting keys back into segments."""

    def test_parse_valid_key(self) -> None:
        """Valid key is parsed into ordered segments."""
        assert parse_key("svc", "svc|name_A|age_3") == [("name", "A"), ("age", "3")]

    def test_value_with_underscore(self) -> None:
        """Only the first underscore separates field and value."""
        assert parse_key("svc", "svc|email_a_b@x.com") == [("email", "a_b@x.com")]

    def test_bare_prefix(self) -> None:
        assert parse_key("svc", "svc") == []

    def test_parse_invalid_key_returns_none(self) -> None:
        """Keys outside the namespace or without segments are rejected."""
        assert parse_key("svc", "other|id_1") is None
        assert parse_key("svc", "svcx|id_1") is None
        assert parse_key("svc", "svc|noseparator") is None


class TestCacheKeyBuilder:
    """Test the namespace-bound builder."""

    def test_build_and_for_id(self) -> None:
        builder = CacheKeyBuilder("shopusers")
        assert builder.build({"email": "a@x.com"}) == "shopusers|email_a@x.com"
        assert builder.for_id("42") == "shopusers|id_42"

    def test_sort_fields(self) -> None:
        builder = CacheKeyBuilder("p", sort_fields=True)
        assert builder.build({"z": 1, "a": 2}) == "p|a_2|z_1"

    def test_parse_roundtrip(self) -> None:
        builder = CacheKeyBuilder("p")
        assert builder.parse(builder.build({"id": "9"})) == [("id", "9")]
