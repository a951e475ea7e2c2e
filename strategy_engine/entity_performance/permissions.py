# strategy_engine/entity_performance/permissions.py
"""
Permission Definitions for Entity Performance

Capability pairs attached to each access classification, plus role
helpers shared by access resolution, responsibilities and approvals.

VERSION: 1.0.0
"""

from dataclasses import dataclass
from typing import Dict, Optional

from .constants import ORG_ADMIN_ROLES, ROLE_RANK
from .models import User


# =============================================================================
# ACCESS REASONS
# =============================================================================

class AccessReason:
    ADMIN = 'admin'
    ASSIGNED = 'assigned'
    DEPENDENCY = 'dependency'
    HIERARCHICAL = 'hierarchical'
    NONE = 'none'


# =============================================================================
# ACCESS RESULT
# =============================================================================

@dataclass(frozen=True)
class AccessResult:
    """
    Outcome of classifying one user's access to one entity.

    Usage:
        result = resolver.check_access(entity_id)

        if result.can_edit_values:
            # allow value entry
    """
    can_read: bool
    can_edit_values: bool
    can_edit_definition: bool
    reason: str
    # Name of the rule that matched; the hierarchical-dependency rule
    # reports reason 'dependency'
    rule: Optional[str] = None

    @property
    def has_access(self) -> bool:
        return self.can_read

    def to_dict(self) -> Dict[str, object]:
        return {
            'can_read': self.can_read,
            'can_edit_values': self.can_edit_values,
            'can_edit_definition': self.can_edit_definition,
            'reason': self.reason,
            'rule': self.rule,
        }


ADMIN_ACCESS = AccessResult(True, True, True, AccessReason.ADMIN, 'admin')
ASSIGNED_ACCESS = AccessResult(True, True, False, AccessReason.ASSIGNED, 'assigned')
DEPENDENCY_ACCESS = AccessResult(True, False, False, AccessReason.DEPENDENCY, 'dependency')
HIERARCHICAL_ACCESS = AccessResult(True, True, False, AccessReason.HIERARCHICAL, 'hierarchical')
HIERARCHICAL_DEPENDENCY_ACCESS = AccessResult(
    True, False, False, AccessReason.DEPENDENCY, 'hierarchical_dependency'
)
NO_ACCESS = AccessResult(False, False, False, AccessReason.NONE, None)


# =============================================================================
# ROLE HELPERS
# =============================================================================

def normalize_role(role: Optional[str]) -> str:
    return str(role).strip().upper() if role else ''


def is_org_admin(role: Optional[str]) -> bool:
    return normalize_role(role) in ORG_ADMIN_ROLES


def resolve_role_rank(role: Optional[str]) -> int:
    """Approval rank of a role; unknown roles rank 0."""
    return ROLE_RANK.get(normalize_role(role), 0)


def role_in_org(user: Optional[User], org_id: Optional[str]) -> str:
    """A user's role within `org_id`; missing users and other orgs get no role."""
    if user is None or user.org_id != org_id:
        return ''
    return user.role or ''
