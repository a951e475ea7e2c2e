# strategy_engine/entity_performance/access_control.py
"""
Access Control for Entity Performance

Classifies a user's access to an entity. Rules are evaluated in a fixed
order and the first match wins:

1. admin                    - organization admin role
2. assigned                 - direct user/entity assignment
3. dependency               - read by a formula of an entity the user is assigned
4. hierarchical             - assigned to someone in the user's subordinate closure
5. hierarchical_dependency  - read by a formula of a subordinate's assigned entity
6. none

Classification never raises for "no access"; a missing organization scope
raises MissingOrgScope.

VERSION: 1.0.0
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Set

import pandas as pd

from .dependencies import collect_entity_keys, normalize_entity_key
from .exceptions import MissingOrgScope
from .hierarchy import get_subordinate_ids
from .models import Entity
from .permissions import (
    ADMIN_ACCESS,
    ASSIGNED_ACCESS,
    DEPENDENCY_ACCESS,
    HIERARCHICAL_ACCESS,
    HIERARCHICAL_DEPENDENCY_ACCESS,
    NO_ACCESS,
    AccessResult,
    is_org_admin,
    role_in_org,
)
from .queries import EntityQueries

logger = logging.getLogger(__name__)


# =============================================================================
# CLASSIFIER RULES
# =============================================================================

@dataclass
class AccessContext:
    """Precomputed sets a classification reads."""
    is_admin: bool = False
    assigned_ids: Set[str] = field(default_factory=set)
    dependency_keys: Set[str] = field(default_factory=set)
    subordinate_assigned_ids: Set[str] = field(default_factory=set)
    subordinate_dependency_keys: Set[str] = field(default_factory=set)


@dataclass(frozen=True)
class AccessRule:
    name: str
    matches: Callable[[AccessContext, Entity], bool]
    result: AccessResult


ACCESS_RULES: List[AccessRule] = [
    AccessRule('admin', lambda ctx, entity: ctx.is_admin, ADMIN_ACCESS),
    AccessRule('assigned', lambda ctx, entity: entity.id in ctx.assigned_ids, ASSIGNED_ACCESS),
    AccessRule(
        'dependency',
        lambda ctx, entity: normalize_entity_key(entity.key) in ctx.dependency_keys,
        DEPENDENCY_ACCESS,
    ),
    AccessRule(
        'hierarchical',
        lambda ctx, entity: entity.id in ctx.subordinate_assigned_ids,
        HIERARCHICAL_ACCESS,
    ),
    AccessRule(
        'hierarchical_dependency',
        lambda ctx, entity: normalize_entity_key(entity.key) in ctx.subordinate_dependency_keys,
        HIERARCHICAL_DEPENDENCY_ACCESS,
    ),
]


def classify_access(context: AccessContext, entity: Optional[Entity]) -> AccessResult:
    """First matching rule wins; no match (or no entity) gives none."""
    if entity is None:
        return NO_ACCESS
    for rule in ACCESS_RULES:
        if rule.matches(context, entity):
            return rule.result
    return NO_ACCESS


# =============================================================================
# RESOLVER
# =============================================================================

class AccessResolver:
    """
    Access resolution for one user within one organization.

    The rule inputs (own assignments, dependency keys, subordinate closure)
    are loaded on first use and reused for every check on this instance.

    Usage:
        access = AccessResolver(queries, user_id, org_id)
        result = access.check_access(entity_id)
        results = access.batch_check_access(entity_ids)
    """

    def __init__(
        self,
        queries: EntityQueries,
        user_id: str,
        org_id: Optional[str],
        user_role: Optional[str] = None,
    ):
        if not org_id:
            raise MissingOrgScope()

        self.queries = queries
        self.user_id = user_id
        self.org_id = org_id
        self._user_role = user_role
        self._context: Optional[AccessContext] = None
        self._is_admin: Optional[bool] = None

    # -------------------------------------------------------------------------
    # Rule inputs
    # -------------------------------------------------------------------------

    @property
    def user_role(self) -> Optional[str]:
        if self._user_role is None:
            self._user_role = role_in_org(self.queries.get_user(self.user_id), self.org_id)
        return self._user_role

    @property
    def is_admin(self) -> bool:
        if self._is_admin is None:
            self._is_admin = is_org_admin(self.user_role)
        return self._is_admin

    def _org_entities(self, user_ids: Iterable[str]) -> List[Entity]:
        return [e for e in self.queries.get_assigned_entities(user_ids) if e.org_id == self.org_id]

    @property
    def context(self) -> AccessContext:
        """Every rule input, computed once."""
        if self._context is not None:
            return self._context

        if self.is_admin:
            self._context = AccessContext(is_admin=True)
            return self._context

        own = self._org_entities([self.user_id])
        subordinate_ids = get_subordinate_ids(self.queries, self.user_id, self.org_id)
        subordinate_entities = self._org_entities(subordinate_ids) if subordinate_ids else []

        self._context = AccessContext(
            is_admin=False,
            assigned_ids={e.id for e in own},
            dependency_keys=collect_entity_keys(e.formula for e in own),
            subordinate_assigned_ids={e.id for e in subordinate_entities},
            subordinate_dependency_keys=collect_entity_keys(e.formula for e in subordinate_entities),
        )
        logger.debug(
            f"Access context for {self.user_id}: {len(own)} assigned, "
            f"{len(subordinate_ids)} subordinates, {len(subordinate_entities)} subordinate entities"
        )
        return self._context

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def _classify(self, entity: Optional[Entity]) -> AccessResult:
        if entity is None or entity.org_id != self.org_id:
            return NO_ACCESS
        if self.is_admin:
            return ADMIN_ACCESS
        return classify_access(self.context, entity)

    def check_access(self, entity_id: str) -> AccessResult:
        """Access classification for a single entity."""
        entity = self.queries.get_entity(entity_id)
        result = self._classify(entity)
        logger.debug(f"Access {self.user_id} -> {entity_id}: {result.reason}")
        return result

    def batch_check_access(self, entity_ids: Iterable[str]) -> Dict[str, AccessResult]:
        """
        Classify many entities with one load of the rule inputs.

        Args:
            entity_ids: Entities to classify

        Returns:
            Dict entity_id -> AccessResult (unknown ids classify as none)
        """
        ids = list(dict.fromkeys(entity_ids))
        if not ids:
            return {}

        found = self.queries.get_entities(ids)
        return {entity_id: self._classify(found.get(entity_id)) for entity_id in ids}

    def can_edit_entity_values(self, entity_id: str) -> bool:
        return self.check_access(entity_id).can_edit_values

    # -------------------------------------------------------------------------
    # Entity sets
    # -------------------------------------------------------------------------

    def get_readable_entity_ids(self) -> Set[str]:
        """
        Every entity the user may read.

        Admins read all entities of the organization. Otherwise: assigned,
        their formula dependencies, subordinate-assigned and the
        subordinates' formula dependencies.
        """
        if self.is_admin:
            return {e.id for e in self.queries.get_org_entities(self.org_id)}

        ctx = self.context
        keys = ctx.dependency_keys | ctx.subordinate_dependency_keys
        by_key = self.queries.get_entities_by_keys(self.org_id, keys) if keys else {}

        readable = set(ctx.assigned_ids) | set(ctx.subordinate_assigned_ids)
        readable.update(e.id for e in by_key.values())
        return readable

    def get_editable_entity_ids(self) -> Set[str]:
        """Entities the user enters values for: admins all, others assigned only."""
        if self.is_admin:
            return {e.id for e in self.queries.get_org_entities(self.org_id)}
        return set(self.context.assigned_ids)

    def filter_dataframe(self, df: pd.DataFrame, entity_id_col: str = 'entity_id') -> pd.DataFrame:
        """
        Filter DataFrame to only include readable entities.

        Args:
            df: DataFrame to filter
            entity_id_col: Column name containing entity IDs

        Returns:
            Filtered DataFrame
        """
        if df.empty:
            return df

        if entity_id_col not in df.columns:
            logger.warning(f"Column '{entity_id_col}' not found in DataFrame")
            return df

        readable_ids = self.get_readable_entity_ids()

        if not readable_ids:
            logger.warning("No readable entity IDs, returning empty DataFrame")
            return df.head(0)

        filtered = df[df[entity_id_col].isin(readable_ids)]
        logger.debug(f"Filtered DataFrame: {len(df)} -> {len(filtered)} rows")
        return filtered

    def __repr__(self) -> str:
        return f"AccessResolver(user={self.user_id}, org={self.org_id}, admin={self._is_admin})"


# =============================================================================
# MODULE-LEVEL SHORTCUTS
# =============================================================================

def check_access(queries: EntityQueries, user_id: str, entity_id: str,
                 org_id: Optional[str]) -> AccessResult:
    return AccessResolver(queries, user_id, org_id).check_access(entity_id)


def batch_check_access(queries: EntityQueries, user_id: str, entity_ids: Iterable[str],
                       org_id: Optional[str]) -> Dict[str, AccessResult]:
    return AccessResolver(queries, user_id, org_id).batch_check_access(entity_ids)


def get_readable_entity_ids(queries: EntityQueries, user_id: str, org_id: Optional[str]) -> Set[str]:
    return AccessResolver(queries, user_id, org_id).get_readable_entity_ids()


def get_editable_entity_ids(queries: EntityQueries, user_id: str, org_id: Optional[str]) -> Set[str]:
    return AccessResolver(queries, user_id, org_id).get_editable_entity_ids()


def can_edit_entity_values(queries: EntityQueries, user_id: str, entity_id: str,
                           org_id: Optional[str]) -> bool:
    return AccessResolver(queries, user_id, org_id).can_edit_entity_values(entity_id)
