# strategy_engine/entity_performance/responsibilities.py
"""
Responsibility Assignments

Coarse visibility layer for org-chart dashboards:
- a node assignment covers the whole subtree under the root node, and every
  KPI whose primary node lies in that subtree
- a KPI assignment covers that single KPI

Managers assign responsibilities to their direct reports only. Platform
roles (SUPER_ADMIN) are outside the responsibility tree.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from .constants import KPI_ENTITY_TYPE, RESPONSIBILITY_EXCLUDED_ROLES
from .exceptions import EntityNotFound, MissingOrgScope, Unauthorized
from .hierarchy import HierarchyTree
from .permissions import is_org_admin, normalize_role, role_in_org
from .queries import EntityQueries

logger = logging.getLogger(__name__)

NOT_DIRECT_REPORT = 'onlyAssignToDirectReportsDesc'


class ResponsibilityManager:
    """
    Responsibility assignments of one organization, acted on by one user.

    Usage:
        manager = ResponsibilityManager(queries, org_id, actor_id)
        manager.assign_node(report_id, root_node_id)
        kpi_ids = manager.get_effective_kpi_ids()
    """

    def __init__(self, queries: EntityQueries, org_id: Optional[str], actor_id: str,
                 actor_role: Optional[str] = None):
        if not org_id:
            raise MissingOrgScope()

        self.queries = queries
        self.org_id = org_id
        self.actor_id = actor_id
        self._actor_role = actor_role
        self._tree: Optional[HierarchyTree] = None

    @property
    def actor_role(self) -> str:
        if self._actor_role is None:
            self._actor_role = role_in_org(self.queries.get_user(self.actor_id), self.org_id)
        return self._actor_role

    @property
    def node_tree(self) -> HierarchyTree:
        if self._tree is None:
            self._tree = HierarchyTree(self.queries.get_node_edges(self.org_id))
        return self._tree

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    def _assert_can_use(self):
        if normalize_role(self.actor_role) in RESPONSIBILITY_EXCLUDED_ROLES:
            raise Unauthorized()

    def _assert_assignable(self, user_id: str):
        self._assert_can_use()
        if not self.queries.is_direct_report(self.org_id, self.actor_id, user_id):
            raise Unauthorized(NOT_DIRECT_REPORT)

    # -------------------------------------------------------------------------
    # Assign / unassign
    # -------------------------------------------------------------------------

    def assign_node(self, user_id: str, root_node_id: str) -> None:
        """Give `user_id` the subtree rooted at `root_node_id` (upsert)."""
        self._assert_assignable(user_id)
        if not self.queries.node_exists(self.org_id, root_node_id):
            raise EntityNotFound('Node', root_node_id)

        self.queries.upsert_node_assignment(self.org_id, user_id, root_node_id, self.actor_id)
        logger.info(f"Assigned node {root_node_id} to {user_id} by {self.actor_id}")

    def assign_kpis(self, user_id: str, kpi_ids: Iterable[str]) -> None:
        """Give `user_id` each KPI; existing pairs are left as they are."""
        self._assert_assignable(user_id)
        ids = list(dict.fromkeys(kpi_ids))
        if not ids:
            raise ValueError("Select at least one KPI")

        found = self.queries.get_entities(ids)
        missing = [
            kpi_id for kpi_id in ids
            if kpi_id not in found
            or found[kpi_id].org_id != self.org_id
            or found[kpi_id].entity_type != KPI_ENTITY_TYPE
        ]
        if missing:
            raise EntityNotFound('KPI', ', '.join(missing))

        self.queries.insert_kpi_assignments(self.org_id, user_id, ids, self.actor_id)
        logger.info(f"Assigned {len(ids)} KPIs to {user_id} by {self.actor_id}")

    def unassign_node(self, user_id: str, root_node_id: str) -> int:
        self._assert_assignable(user_id)
        return self.queries.delete_node_assignment(self.org_id, user_id, root_node_id)

    def unassign_kpi(self, user_id: str, kpi_id: str) -> int:
        self._assert_assignable(user_id)
        return self.queries.delete_kpi_assignment(self.org_id, user_id, kpi_id)

    def get_responsibilities(self, user_id: str) -> Dict[str, List[str]]:
        """Root nodes and KPIs currently assigned to a direct report."""
        self._assert_assignable(user_id)
        return {
            'root_node_ids': sorted(self.queries.get_node_assignment_roots(self.org_id, user_id)),
            'kpi_ids': sorted(self.queries.get_kpi_assignment_ids(self.org_id, user_id)),
        }

    # -------------------------------------------------------------------------
    # Visibility
    # -------------------------------------------------------------------------

    def preview_node_cascade(self, root_node_id: str) -> Optional[Dict[str, object]]:
        """
        What assigning `root_node_id` would cover.

        Returns:
            {'root_node_id', 'node_ids', 'nodes', 'kpis'} or None for an
            unknown node
        """
        self._assert_can_use()
        if not self.queries.node_exists(self.org_id, root_node_id):
            return None

        node_ids = self.node_tree.descendants(root_node_id)
        kpi_ids = self.queries.get_entity_ids_by_primary_nodes(self.org_id, node_ids, KPI_ENTITY_TYPE)
        return {
            'root_node_id': root_node_id,
            'node_ids': sorted(node_ids),
            'nodes': len(node_ids),
            'kpis': len(kpi_ids),
        }

    def get_effective_kpi_ids(self, user_id: Optional[str] = None) -> Set[str]:
        """
        KPIs visible to `user_id` (default: the acting user).

        Union of KPIs under assigned node subtrees, directly assigned KPIs
        and KPIs the user owns. Admins see every KPI of the organization.
        """
        user_id = user_id or self.actor_id
        if user_id == self.actor_id:
            role = self.actor_role
        else:
            role = role_in_org(self.queries.get_user(user_id), self.org_id)

        if is_org_admin(role):
            return {e.id for e in self.queries.get_org_entities(self.org_id, KPI_ENTITY_TYPE)}

        roots = self.queries.get_node_assignment_roots(self.org_id, user_id)
        node_ids = self.node_tree.closure(roots) if roots else set()

        kpi_ids = set(self.queries.get_kpi_assignment_ids(self.org_id, user_id))
        kpi_ids |= self.queries.get_owned_entity_ids(self.org_id, user_id, KPI_ENTITY_TYPE)
        if node_ids:
            kpi_ids |= self.queries.get_entity_ids_by_primary_nodes(self.org_id, node_ids, KPI_ENTITY_TYPE)

        logger.debug(f"Effective KPIs for {user_id}: {len(kpi_ids)} ({len(node_ids)} nodes)")
        return kpi_ids

    def __repr__(self) -> str:
        return f"ResponsibilityManager(org={self.org_id}, actor={self.actor_id})"
