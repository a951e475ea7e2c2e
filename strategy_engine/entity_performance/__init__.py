# strategy_engine/entity_performance/__init__.py
"""
Entity Performance Module

Computation and access resolution for strategy entities:
- periods: period window resolution (UTC)
- formula / dependencies: sandboxed formula evaluation and reference scanning
- calculator: per-period entity values, cascade recalculation
- achievement: clamped achievement percentage
- hierarchy: subtree / subordinate closures
- access_control: per-user entity access classification
- responsibilities: node / KPI responsibility assignments
- approvals: DRAFT -> SUBMITTED -> APPROVED workflow

VERSION: 1.0.0
"""

# Periods
from .periods import resolve_period, current_period, previous_period

# Formulas
from .formula import FormulaEvaluator, evaluate_formula
from .dependencies import (
    extract_dependencies,
    extract_entity_keys,
    extract_variables,
    normalize_entity_key,
)

# Computation
from .achievement import compute_achievement
from .calculator import EntityValueCalculator, compute_entity_value

# Hierarchy
from .hierarchy import HierarchyTree, build_closure, build_subtree, get_subordinate_ids

# Access
from .permissions import AccessReason, AccessResult
from .access_control import (
    AccessResolver,
    batch_check_access,
    can_edit_entity_values,
    check_access,
    get_editable_entity_ids,
    get_readable_entity_ids,
)

# Workflows
from .responsibilities import ResponsibilityManager
from .approvals import ApprovalWorkflow

# Data access
from .queries import EntityQueries
from .models import (
    DependencyNode,
    Entity,
    EntityValuePeriod,
    EntityValueResult,
    EntityVariable,
    PeriodWindow,
    User,
)

# Errors
from .exceptions import (
    CyclicDependency,
    EmptyFormula,
    EntityNotFound,
    FormulaError,
    FormulaEvaluationFailed,
    InvalidFormulaResult,
    InvalidStatusTransition,
    MissingOrgScope,
    StrategyEngineError,
    Unauthorized,
)

__all__ = [
    # Periods
    'resolve_period',
    'current_period',
    'previous_period',

    # Formulas
    'FormulaEvaluator',
    'evaluate_formula',
    'extract_dependencies',
    'extract_entity_keys',
    'extract_variables',
    'normalize_entity_key',

    # Computation
    'compute_achievement',
    'EntityValueCalculator',
    'compute_entity_value',

    # Hierarchy
    'HierarchyTree',
    'build_closure',
    'build_subtree',
    'get_subordinate_ids',

    # Access
    'AccessReason',
    'AccessResult',
    'AccessResolver',
    'check_access',
    'batch_check_access',
    'can_edit_entity_values',
    'get_readable_entity_ids',
    'get_editable_entity_ids',

    # Workflows
    'ResponsibilityManager',
    'ApprovalWorkflow',

    # Data access
    'EntityQueries',
    'DependencyNode',
    'Entity',
    'EntityValuePeriod',
    'EntityValueResult',
    'EntityVariable',
    'PeriodWindow',
    'User',

    # Errors
    'StrategyEngineError',
    'FormulaError',
    'EmptyFormula',
    'FormulaEvaluationFailed',
    'InvalidFormulaResult',
    'CyclicDependency',
    'MissingOrgScope',
    'Unauthorized',
    'EntityNotFound',
    'InvalidStatusTransition',
]

__version__ = '1.0.0'
