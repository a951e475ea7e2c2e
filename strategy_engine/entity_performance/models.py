# strategy_engine/entity_performance/models.py
"""
Data classes for the strategy hierarchy and its tracked values.

Rows coming back from `queries.EntityQueries` are converted with
`from_row()`, which ignores columns the dataclass does not declare.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .constants import DIRECTION_INCREASE, STATUS_DRAFT


def _from_mapping(cls, row: Mapping[str, Any]):
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in dict(row).items() if k in names})


# =============================================================================
# PERIODS
# =============================================================================

@dataclass(frozen=True)
class PeriodWindow:
    """Concrete period window (UTC, both ends inclusive)."""
    period_type: str
    period_start: datetime
    period_end: datetime
    year: int
    ordinal: int

    def contains(self, instant: datetime) -> bool:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        # End bound is the last whole second of the window
        instant = instant.replace(microsecond=0)
        return self.period_start <= instant <= self.period_end

    @property
    def label(self) -> str:
        if self.period_type == 'MONTHLY':
            return f"{self.year}-{self.ordinal:02d}"
        if self.period_type == 'QUARTERLY':
            return f"Q{self.ordinal} {self.year}"
        return str(self.year)


# =============================================================================
# ENTITIES
# =============================================================================

@dataclass
class Entity:
    """A node of the strategy hierarchy (pillar, objective, KPI, ...)."""
    id: str
    org_id: str
    key: Optional[str]
    title: str
    entity_type: Optional[str] = None
    period_type: Optional[str] = None
    formula: Optional[str] = None
    achievement_formula: Optional[str] = None
    direction: str = DIRECTION_INCREASE
    baseline_value: Optional[float] = None
    target_value: Optional[float] = None
    parent_id: Optional[str] = None
    primary_node_id: Optional[str] = None
    owner_user_id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Entity':
        return _from_mapping(cls, row)

    @property
    def has_formula(self) -> bool:
        return bool(self.formula and self.formula.strip())


@dataclass
class EntityVariable:
    """Named input slot of one entity's formula."""
    id: str
    entity_id: str
    code: str
    display_name: Optional[str] = None
    data_type: str = 'NUMBER'
    is_required: bool = False
    is_static: bool = False
    static_value: Optional[float] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'EntityVariable':
        return _from_mapping(cls, row)


@dataclass
class EntityValuePeriod:
    """One tracked value of an entity for one period window."""
    id: Optional[str]
    entity_id: str
    period_start: datetime
    period_end: datetime
    actual_value: Optional[float] = None
    calculated_value: Optional[float] = None
    final_value: Optional[float] = None
    achievement_value: Optional[float] = None
    status: str = STATUS_DRAFT
    note: Optional[str] = None
    entered_by: Optional[str] = None
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approval_type: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'EntityValuePeriod':
        return _from_mapping(cls, row)

    @property
    def resolved_value(self) -> Optional[float]:
        """Value used downstream: final, else calculated, else actual."""
        for value in (self.final_value, self.calculated_value, self.actual_value):
            if value is not None:
                return value
        return None


# =============================================================================
# USERS
# =============================================================================

@dataclass
class User:
    id: str
    org_id: Optional[str]
    role: Optional[str] = None
    manager_id: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'User':
        return _from_mapping(cls, row)


# =============================================================================
# COMPUTATION RESULTS
# =============================================================================

@dataclass
class EntityValueResult:
    """Outcome of computing one entity for one period."""
    entity_id: str
    calculated_value: Optional[float] = None
    final_value: Optional[float] = None
    error: Optional[str] = None
    error_detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entity_id': self.entity_id,
            'calculated_value': self.calculated_value,
            'final_value': self.final_value,
            'error': self.error,
            'error_detail': self.error_detail,
        }


@dataclass
class DependencyNode:
    """Entity plus the entities its formula (transitively) reads."""
    id: str
    key: str
    title: str
    formula: Optional[str]
    entity_type: Optional[str]
    dependencies: List['DependencyNode'] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'key': self.key,
            'title': self.title,
            'formula': self.formula,
            'entity_type': self.entity_type,
            'dependencies': [d.to_dict() for d in self.dependencies],
        }
