"""
Tests for cache key derivation.
"""

from app.cache.keys import derive_cache_key, normalize_filters, scope_pattern
from app.schemas.tag import TagFilter


class TestDeriveCacheKey:
    def test_key_shape(self):
        key = derive_cache_key("tenant:7", "tags", "list", {"category": "industry"})

        prefix, scope, tenant, collection, subkind, digest = key.split(":")
        assert (prefix, scope, tenant, collection, subkind) == ("cache", "tenant", "7", "tags", "list")
        assert len(digest) == 32

    def test_field_order_does_not_matter(self):
        first = derive_cache_key("platform", "tags", "list", {"a": 1, "b": 2})
        second = derive_cache_key("platform", "tags", "list", {"b": 2, "a": 1})

        assert first == second

    def test_none_values_are_ignored(self):
        """An omitted optional filter and an explicit null share a key."""
        with_none = derive_cache_key("platform", "tags", "list", {"search": None, "page": 1})
        without = derive_cache_key("platform", "tags", "list", {"page": 1})

        assert with_none == without

    def test_different_filters_different_keys(self):
        first = derive_cache_key("platform", "tags", "list", {"category": "skills"})
        second = derive_cache_key("platform", "tags", "list", {"category": "industry"})

        assert first != second

    def test_scopes_are_isolated(self):
        filters = {"page": 1}

        assert derive_cache_key("tenant:1", "tags", "list", filters) != derive_cache_key(
            "tenant:2", "tags", "list", filters
        )

    def test_pydantic_filters(self):
        model_key = derive_cache_key("platform", "tags", "list", TagFilter(category="skills"))
        dict_key = derive_cache_key(
            "platform",
            "tags",
            "list",
            {
                "category": "skills",
                "include_inherited": False,
                "include_inactive": False,
                "page": 1,
                "limit": 20,
            },
        )

        assert model_key == dict_key

    def test_custom_prefix(self):
        assert derive_cache_key("platform", "tags", "tree", None, prefix="tx").startswith("tx:platform:tags:tree:")


def test_normalize_filters_drops_nested_none():
    assert normalize_filters({"a": {"b": None, "c": 1}, "d": None}) == {"a": {"c": 1}}
    assert normalize_filters(None) == {}


def test_scope_pattern():
    assert scope_pattern("tenant:7", "tags") == "cache:tenant:7:tags:*"
