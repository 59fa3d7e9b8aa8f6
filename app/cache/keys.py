"""
Deterministic cache-key derivation for filtered list queries.

Keys have the shape  <prefix>:<scope>:<collection>:<subkind>:<md5-of-filters>.
"""

import hashlib
import json
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel


def normalize_filters(filters: BaseModel | Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Reduce a filter object to a canonical mapping.

    Keys whose value is None are dropped (recursively), so an omitted
    optional field and an explicit None produce the same key.
    """
    if filters is None:
        return {}
    if isinstance(filters, BaseModel):
        filters = filters.model_dump(mode="json", exclude_none=True)
    return _drop_none(dict(filters))


def _drop_none(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_drop_none(v) for v in value]
    return value


def filters_digest(filters: BaseModel | Mapping[str, Any] | None) -> str:
    """MD5 hex digest of the canonical JSON form of a filter object."""
    canonical = json.dumps(
        normalize_filters(filters),
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


def derive_cache_key(
    scope: str,
    collection: str,
    subkind: str,
    filters: BaseModel | Mapping[str, Any] | None = None,
    prefix: str = "cache",
) -> str:
    """
    Build a namespaced cache key for a filtered query.

    Example:
        derive_cache_key("tenant:7", "tags", "list", {"category": "industry"})
        -> "cache:tenant:7:tags:list:3f0c..."
    """
    return f"{prefix}:{scope}:{collection}:{subkind}:{filters_digest(filters)}"


def scope_pattern(scope: str, collection: str, prefix: str = "cache") -> str:
    """Wildcard matching every cached entry of a collection within a scope."""
    return f"{prefix}:{scope}:{collection}:*"
