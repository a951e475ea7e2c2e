# strategy_engine/entity_performance/hierarchy.py
"""
Subtree / Closure Builder

One breadth-first traversal used for two relations:
- node hierarchy (parent -> child), for responsibility subtrees
- management chain (manager -> report), for subordinate sets

The traversal keeps a seen-set, so a (wrongly) cyclic edge set terminates.
"""

import logging
from collections import deque
from typing import Dict, Hashable, Iterable, List, Optional, Set, Tuple, TYPE_CHECKING

from .exceptions import MissingOrgScope

if TYPE_CHECKING:
    from .queries import EntityQueries

logger = logging.getLogger(__name__)

Edge = Tuple[Optional[Hashable], Hashable]


def build_children_map(edges: Optional[Iterable[Edge]]) -> Dict[Hashable, List[Hashable]]:
    """Adjacency map parent -> [children]. Edges without a parent are skipped."""
    children: Dict[Hashable, List[Hashable]] = {}
    for parent, child in edges or ():
        if parent is None:
            continue
        children.setdefault(parent, []).append(child)
    return children


def build_closure(
    roots: Iterable[Hashable],
    children_map: Dict[Hashable, List[Hashable]],
) -> Set[Hashable]:
    """
    All ids reachable from `roots`, roots included.

    Args:
        roots: Starting ids
        children_map: Adjacency map from build_children_map()

    Returns:
        Set of reachable ids
    """
    seen: Set[Hashable] = set()
    queue = deque(roots)

    while queue:
        current = queue.popleft()
        if current in seen:
            continue
        seen.add(current)
        for child in children_map.get(current, ()):
            if child not in seen:
                queue.append(child)

    return seen


def build_subtree(root_id: Hashable, edges: Optional[Iterable[Edge]]) -> Set[Hashable]:
    """Subtree rooted at `root_id` over (parent, child) edges, root included."""
    return build_closure([root_id], build_children_map(edges))


class HierarchyTree:
    """
    Adjacency map built once, queried many times.

    Usage:
        tree = HierarchyTree(queries.get_node_edges(org_id))
        ids = tree.descendants(root_id)
    """

    def __init__(self, edges: Optional[Iterable[Edge]] = None):
        self._children_map = build_children_map(edges)

    def children(self, node_id: Hashable) -> List[Hashable]:
        return list(self._children_map.get(node_id, []))

    def descendants(self, node_id: Hashable, include_self: bool = True) -> Set[Hashable]:
        ids = build_closure([node_id], self._children_map)
        if not include_self:
            ids.discard(node_id)
        return ids

    def closure(self, roots: Iterable[Hashable]) -> Set[Hashable]:
        return build_closure(roots, self._children_map)

    def __repr__(self) -> str:
        return f"HierarchyTree(parents={len(self._children_map)})"


def get_subordinate_ids(queries: 'EntityQueries', user_id: str, org_id: Optional[str]) -> List[str]:
    """
    Direct and indirect reports of `user_id` within the organization.

    The user is never part of the result, even if the manager graph loops
    back onto them.
    """
    if not org_id:
        raise MissingOrgScope()

    tree = HierarchyTree(queries.get_manager_edges(org_id))
    subordinates = tree.descendants(user_id, include_self=False)

    logger.debug(f"Subordinates of {user_id}: {len(subordinates)}")
    return sorted(subordinates)
