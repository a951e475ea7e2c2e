# strategy_engine/entity_performance/constants.py
"""
Constants for Entity Performance Module

Centralized configuration for:
- Role definitions and approval ranks
- Period cadences and value statuses
- Achievement policy
- Formula language keywords
"""

# =====================================================================
# ROLE DEFINITIONS
# =====================================================================

ROLE_MANAGER = 'MANAGER'
ROLE_EXECUTIVE = 'EXECUTIVE'
ROLE_ADMIN = 'ADMIN'
ROLE_SUPER_ADMIN = 'SUPER_ADMIN'

# Organization admin: full read/edit access on every entity of the org
ORG_ADMIN_ROLES = [ROLE_ADMIN]

# Ordered ranks used for approval comparisons (unknown role = 0)
ROLE_RANK = {
    ROLE_MANAGER: 1,
    ROLE_EXECUTIVE: 2,
    ROLE_ADMIN: 3,
    ROLE_SUPER_ADMIN: 4,
}

# Levels an organization may require for KPI value approval
APPROVAL_LEVELS = [ROLE_MANAGER, ROLE_EXECUTIVE, ROLE_ADMIN]

# Platform-level role, outside any organization's responsibility tree
RESPONSIBILITY_EXCLUDED_ROLES = [ROLE_SUPER_ADMIN]

# =====================================================================
# PERIOD DEFINITIONS
# =====================================================================

PERIOD_MONTHLY = 'MONTHLY'
PERIOD_QUARTERLY = 'QUARTERLY'
PERIOD_YEARLY = 'YEARLY'

PERIOD_TYPES = [PERIOD_MONTHLY, PERIOD_QUARTERLY, PERIOD_YEARLY]

# =====================================================================
# VALUE STATUS
# =====================================================================

STATUS_DRAFT = 'DRAFT'
STATUS_SUBMITTED = 'SUBMITTED'
STATUS_APPROVED = 'APPROVED'

VALUE_STATUSES = [STATUS_DRAFT, STATUS_SUBMITTED, STATUS_APPROVED]

APPROVAL_TYPE_AUTO = 'AUTO'
APPROVAL_TYPE_MANUAL = 'MANUAL'

# =====================================================================
# ENTITY DEFINITIONS
# =====================================================================

DIRECTION_INCREASE = 'INCREASE_IS_GOOD'
DIRECTION_DECREASE = 'DECREASE_IS_GOOD'

DATA_TYPE_NUMBER = 'NUMBER'
DATA_TYPE_PERCENTAGE = 'PERCENTAGE'

KPI_ENTITY_TYPE = 'KPI'

# =====================================================================
# ACHIEVEMENT POLICY
# =====================================================================

# Display cap for over-achievement (percent)
ACHIEVEMENT_CAP = 150.0
ACHIEVEMENT_FLOOR = 0.0

# =====================================================================
# FORMULA LANGUAGE
# =====================================================================

# Helpers callable from formulas
FORMULA_HELPERS = ['abs', 'sum', 'avg', 'min', 'max', 'pow', 'round', 'sqrt', 'floor', 'ceil']

# Identifiers never reported as variable references
FORMULA_KEYWORDS = {
    'return', 'if', 'else', 'for', 'while', 'do', 'switch', 'case', 'break',
    'continue', 'function', 'var', 'let', 'const', 'true', 'false', 'null',
    'undefined', 'this', 'new', 'typeof', 'instanceof', 'get', 'vars',
    'Math', 'Number', 'String', 'Boolean', 'Array', 'Object', 'Date', 'console',
    'and', 'or', 'not', 'True', 'False', 'None',
}

# Achievement override formulas receive exactly these names
ACHIEVEMENT_VARIABLES = ['baselineValue', 'currentValue', 'targetValue']

# =====================================================================
# TRAVERSAL DEFAULTS
# =====================================================================

DEFAULT_CASCADE_MAX_DEPTH = 5
DEFAULT_DEPENDENCY_TREE_MAX_DEPTH = 5
DEFAULT_FORMULA_MAX_LENGTH = 2000
DEFAULT_FORMULA_MAX_STEPS = 4000
