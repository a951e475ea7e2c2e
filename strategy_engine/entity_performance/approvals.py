# strategy_engine/entity_performance/approvals.py
"""
Approval Workflow

Period values move DRAFT -> SUBMITTED -> APPROVED, or back to DRAFT on
rejection. The organization's approval level (MANAGER by default) is
compared with the acting user's role rank:
- submit: auto-approves when the submitter already meets the level
- approve / reject: only users meeting the level
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from strategy_engine.config import config
from .access_control import AccessResolver
from .constants import (
    APPROVAL_TYPE_AUTO,
    APPROVAL_TYPE_MANUAL,
    ROLE_MANAGER,
    STATUS_APPROVED,
    STATUS_DRAFT,
    STATUS_SUBMITTED,
)
from .exceptions import EntityNotFound, InvalidStatusTransition, MissingOrgScope, Unauthorized
from .hierarchy import get_subordinate_ids
from .models import EntityValuePeriod
from .permissions import resolve_role_rank, role_in_org
from .queries import EntityQueries

logger = logging.getLogger(__name__)


class ApprovalWorkflow:
    """
    Approval actions of one user within one organization.

    Usage:
        workflow = ApprovalWorkflow(queries, org_id, user_id)
        outcome = workflow.submit(entity_id, period_id)
        if not outcome['auto_approved']:
            ...  # waits for an approver
    """

    def __init__(self, queries: EntityQueries, org_id: Optional[str], user_id: str,
                 user_role: Optional[str] = None):
        if not org_id:
            raise MissingOrgScope()

        self.queries = queries
        self.org_id = org_id
        self.user_id = user_id
        self._user_role = user_role

    @property
    def user_role(self) -> str:
        if self._user_role is None:
            self._user_role = role_in_org(self.queries.get_user(self.user_id), self.org_id)
        return self._user_role

    @property
    def approval_level(self) -> str:
        level = self.queries.get_org_approval_level(self.org_id)
        return level or config.get_app_setting("DEFAULT_APPROVAL_LEVEL", ROLE_MANAGER)

    @property
    def can_approve(self) -> bool:
        return resolve_role_rank(self.user_role) >= resolve_role_rank(self.approval_level)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _load_period(self, entity_id: str, period_id) -> EntityValuePeriod:
        if self.queries.get_entity(entity_id, org_id=self.org_id) is None:
            raise EntityNotFound('Entity', entity_id)

        period = self.queries.get_value_period_by_id(period_id, entity_id=entity_id)
        if period is None:
            raise EntityNotFound('Period', str(period_id))
        return period

    def _assert_can_approve(self):
        if not self.can_approve:
            raise Unauthorized('insufficientApprovalAuthority')

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def submit(self, entity_id: str, period_id) -> Dict[str, object]:
        """
        Submit a DRAFT period.

        Returns:
            {'status': new status, 'auto_approved': bool}

        Raises:
            Unauthorized: user cannot edit the entity's values
            EntityNotFound: unknown entity or period
            InvalidStatusTransition: period is not DRAFT
        """
        access = AccessResolver(self.queries, self.user_id, self.org_id, self._user_role)
        if not access.can_edit_entity_values(entity_id):
            raise Unauthorized()

        period = self._load_period(entity_id, period_id)
        if period.status != STATUS_DRAFT:
            raise InvalidStatusTransition(period.status, STATUS_DRAFT)

        now = datetime.now(timezone.utc)
        values = {
            'submitted_by': self.user_id,
            'submitted_at': now,
        }
        if self.can_approve:
            values.update({
                'status': STATUS_APPROVED,
                'approved_by': self.user_id,
                'approved_at': now,
                'approval_type': APPROVAL_TYPE_AUTO,
            })
        else:
            values.update({
                'status': STATUS_SUBMITTED,
                'approval_type': APPROVAL_TYPE_MANUAL,
            })

        self.queries.update_value_period(period.id, values)
        logger.info(f"Period {period.id} of {entity_id} submitted by {self.user_id}: {values['status']}")
        return {'status': values['status'], 'auto_approved': self.can_approve}

    def approve(self, entity_id: str, period_id) -> None:
        self._assert_can_approve()
        period = self._load_period(entity_id, period_id)
        if period.status != STATUS_SUBMITTED:
            raise InvalidStatusTransition(period.status, STATUS_SUBMITTED)

        self.queries.update_value_period(period.id, {
            'status': STATUS_APPROVED,
            'approved_by': self.user_id,
            'approved_at': datetime.now(timezone.utc),
        })
        logger.info(f"Period {period.id} of {entity_id} approved by {self.user_id}")

    def reject(self, entity_id: str, period_id, reason: Optional[str] = None) -> None:
        """Return a SUBMITTED period to DRAFT; the reason is appended to the note."""
        self._assert_can_approve()
        period = self._load_period(entity_id, period_id)
        if period.status != STATUS_SUBMITTED:
            raise InvalidStatusTransition(period.status, STATUS_SUBMITTED)

        note = period.note
        if reason:
            note = f"{period.note}\n\n[REJECTED] {reason}" if period.note else f"[REJECTED] {reason}"

        # Submission fields stay for the audit trail
        self.queries.update_value_period(period.id, {'status': STATUS_DRAFT, 'note': note})
        logger.info(f"Period {period.id} of {entity_id} rejected by {self.user_id}")

    def list_approvals(self, status: Optional[str] = None) -> List[EntityValuePeriod]:
        """
        SUBMITTED / APPROVED periods of entities assigned to the user or
        anyone in their subordinate closure.
        """
        self._assert_can_approve()
        if status and status not in (STATUS_SUBMITTED, STATUS_APPROVED):
            raise ValueError(f"Unsupported approval status filter: {status!r}")

        statuses = [status] if status else [STATUS_SUBMITTED, STATUS_APPROVED]
        user_ids = [self.user_id] + get_subordinate_ids(self.queries, self.user_id, self.org_id)
        return self.queries.get_value_periods_for_users(self.org_id, user_ids, statuses)

    def __repr__(self) -> str:
        return f"ApprovalWorkflow(org={self.org_id}, user={self.user_id})"
