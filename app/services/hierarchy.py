"""
Tag hierarchy helpers.

Tags are stored as a flat adjacency list (parent_id). These pure functions
rebuild the nested view on demand and guard parent reassignments.
"""

from collections import defaultdict
from collections.abc import Callable, Hashable, Iterable, Mapping
from typing import Any

ParentLookup = Callable[[Hashable], Hashable | None]


def build_tree(
    items: Iterable[Mapping[str, Any]],
    parent_id: Hashable | None = None,
    level: int = 0,
    path: list[str] | None = None,
    sort_key: Callable[[Mapping[str, Any]], Any] | None = None,
) -> list[dict[str, Any]]:
    """
    Convert a flat list of records into a nested tree.

    Each record must expose "id", "parent_id" and "name". Returned nodes are
    shallow copies carrying "level" (0 for roots), "path" (ancestor names
    including the node itself) and "children" only when the node has any.

    Args:
        items: Flat records
        parent_id: Parent whose subtree to build (None for the whole forest)
        level: Level assigned to the returned nodes
        path: Names of the ancestors of the returned nodes
        sort_key: Optional sibling ordering; input order is kept otherwise

    Returns:
        List of root nodes of the requested subtree
    """
    children_by_parent: dict[Hashable | None, list[Mapping[str, Any]]] = defaultdict(list)
    for item in items:
        children_by_parent[item.get("parent_id")].append(item)

    if sort_key is not None:
        for siblings in children_by_parent.values():
            siblings.sort(key=sort_key)

    return _build_level(children_by_parent, parent_id, level, list(path or []), set())


def _build_level(
    children_by_parent: Mapping[Hashable | None, list[Mapping[str, Any]]],
    parent_id: Hashable | None,
    level: int,
    path: list[str],
    seen: set,
) -> list[dict[str, Any]]:
    nodes = []
    for item in children_by_parent.get(parent_id, []):
        item_id = item["id"]
        if item_id in seen:
            continue
        seen.add(item_id)

        node_path = path + [item["name"]]
        node = dict(item)
        node["level"] = level
        node["path"] = node_path
        node.pop("children", None)

        children = _build_level(children_by_parent, item_id, level + 1, node_path, seen)
        if children:
            node["children"] = children
        nodes.append(node)
    return nodes


def flatten_tree(nodes: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Depth-first, pre-order flattening of a built tree."""
    flat: list[dict[str, Any]] = []
    stack = list(reversed(list(nodes)))
    while stack:
        node = stack.pop()
        children = node.get("children") or []
        flat.append({k: v for k, v in node.items() if k != "children"})
        stack.extend(reversed(children))
    return flat


def would_create_cycle(
    moving_id: Hashable,
    proposed_parent_id: Hashable | None,
    lookup_parent: ParentLookup,
) -> bool:
    """
    Check whether making `proposed_parent_id` the parent of `moving_id`
    would introduce a cycle.

    Walks upward from the proposed parent. Must be evaluated against the
    hierarchy as it is before the move.

    Args:
        moving_id: Node being reparented
        proposed_parent_id: New parent (None means "move to root")
        lookup_parent: Returns a node's current parent id, or None for roots

    Returns:
        True if the move must be rejected
    """
    if proposed_parent_id is None:
        return False
    if moving_id == proposed_parent_id:
        return True

    visited = set()
    current = proposed_parent_id
    while current is not None:
        if current == moving_id:
            return True
        if current in visited:
            # Existing data already contains a loop
            return True
        visited.add(current)
        current = lookup_parent(current)
    return False


def depth_of(node_id: Hashable | None, lookup_parent: ParentLookup) -> int:
    """Number of ancestors of a node (0 for a root, -1 for None)."""
    if node_id is None:
        return -1
    depth = 0
    visited = {node_id}
    current = lookup_parent(node_id)
    while current is not None and current not in visited:
        visited.add(current)
        depth += 1
        current = lookup_parent(current)
    return depth


def subtree_height(
    node_id: Hashable,
    children_of: Callable[[Hashable], Iterable[Hashable]],
) -> int:
    """Levels below a node (0 for a leaf)."""
    height = 0
    frontier = list(children_of(node_id))
    visited = {node_id}
    while frontier:
        height += 1
        next_frontier = []
        for child in frontier:
            if child in visited:
                continue
            visited.add(child)
            next_frontier.extend(children_of(child))
        frontier = [c for c in next_frontier if c not in visited]
    return height


def index_children(parent_map: Mapping[Hashable, Hashable | None]) -> dict[Hashable, list[Hashable]]:
    """Invert an id -> parent_id mapping into parent_id -> [child ids]."""
    children: dict[Hashable, list[Hashable]] = defaultdict(list)
    for node_id, parent_id in parent_map.items():
        if parent_id is not None:
            children[parent_id].append(node_id)
    return children
