# strategy_engine/entity_performance/exceptions.py
"""
Exceptions raised by the entity performance engine.

Formula errors never escape the value calculator: they are converted into
an empty calculated value with the error attached to the result.
"""

from typing import Optional, Sequence


class StrategyEngineError(Exception):
    """Base class for all engine errors."""

    code = 'engineError'


# =============================================================================
# FORMULA ERRORS
# =============================================================================

class FormulaError(StrategyEngineError):
    """Base class for formula evaluation failures."""

    code = 'formulaError'


class EmptyFormula(FormulaError):
    code = 'emptyFormula'

    def __init__(self, message: str = "Formula is empty"):
        super().__init__(message)


class FormulaEvaluationFailed(FormulaError):
    """Evaluation raised; `detail` carries the underlying message."""

    code = 'failedToEvaluateFormula'

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Failed to evaluate formula: {detail}")


class InvalidFormulaResult(FormulaError):
    code = 'invalidFormulaResult'

    def __init__(self, result=None):
        self.result = result
        super().__init__(f"Formula result is not a finite number: {result!r}")


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class CyclicDependency(StrategyEngineError):
    """Formula references loop back onto an entity already being computed."""

    code = 'cyclicDependency'

    def __init__(self, path: Sequence[str]):
        self.path = list(path)
        super().__init__(f"Cyclic formula dependency: {' -> '.join(self.path)}")


# =============================================================================
# ACCESS ERRORS
# =============================================================================

class MissingOrgScope(StrategyEngineError):
    code = 'unauthorizedMissingOrg'

    def __init__(self, message: str = "Organization scope is required"):
        super().__init__(message)


class Unauthorized(StrategyEngineError):
    code = 'unauthorized'

    def __init__(self, message: str = "unauthorized"):
        super().__init__(message)


# =============================================================================
# WORKFLOW ERRORS
# =============================================================================

class EntityNotFound(StrategyEngineError):
    code = 'notFound'

    def __init__(self, what: str, identifier: Optional[str] = None):
        self.what = what
        self.identifier = identifier
        super().__init__(f"{what} not found: {identifier}" if identifier else f"{what} not found")


class InvalidStatusTransition(StrategyEngineError):
    code = 'invalidStatusTransition'

    def __init__(self, current: str, expected: str):
        self.current = current
        self.expected = expected
        super().__init__(f"Period is {current}, expected {expected}")
