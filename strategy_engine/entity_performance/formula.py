# strategy_engine/entity_performance/formula.py
"""
Expression Evaluator

Sandboxed evaluation of entity and achievement formulas. Source text is
parsed into a Python expression tree (`ast.parse(mode="eval")`) and walked
by a small interpreter that only knows a whitelist of node types, so no
host-language eval is ever involved.

Accepted formula dialect:
- numbers, variables, parentheses, + - * / % **
- comparisons (< <= > >= == != === !==) and && || ! (and/or/not)
- get("KEY") for other entities' values
- helpers abs, sum, avg, min, max, pow, round, sqrt, floor, ceil,
  also reachable as Math.<name>
- an optional leading `return` and trailing `;`

Comparisons and logical operators produce 1.0 / 0.0.
"""

import ast
import logging
import math
import operator
import re
from typing import Callable, Dict, Mapping, Optional

from strategy_engine.config import config
from .constants import DEFAULT_FORMULA_MAX_LENGTH, DEFAULT_FORMULA_MAX_STEPS
from .dependencies import normalize_entity_key, normalize_var_name
from .exceptions import EmptyFormula, FormulaError, FormulaEvaluationFailed, InvalidFormulaResult

logger = logging.getLogger(__name__)


# =============================================================================
# HELPERS
# =============================================================================

def _avg(*args: float) -> float:
    return sum(args) / len(args) if args else 0.0


def _js_round(value: float) -> float:
    # Math.round semantics: halves round up
    return float(math.floor(value + 0.5))


HELPER_FUNCTIONS: Dict[str, Callable[..., float]] = {
    'abs': abs,
    'sum': lambda *args: float(sum(args)),
    'avg': _avg,
    'min': min,
    'max': max,
    'pow': math.pow,
    'round': _js_round,
    'sqrt': math.sqrt,
    'floor': math.floor,
    'ceil': math.ceil,
}


def _divide(left: float, right: float) -> float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.inf if left > 0 else -math.inf
    return left / right


def _modulo(left: float, right: float) -> float:
    if right == 0:
        return math.nan
    return math.fmod(left, right)


_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: _divide,
    ast.Mod: _modulo,
    ast.Pow: math.pow,
}

_COMPARE_OPERATORS = {
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
}


# =============================================================================
# SOURCE NORMALIZATION
# =============================================================================

_RETURN_RE = re.compile(r"^\s*return\b")
_STRING_SPLIT_RE = re.compile(r"""("[^"]*"|'[^']*')""")

_TOKEN_REWRITES = [
    (re.compile(r"==="), '=='),
    (re.compile(r"!=="), '!='),
    (re.compile(r"&&"), ' and '),
    (re.compile(r"\|\|"), ' or '),
    (re.compile(r"!(?!=)"), ' not '),
    (re.compile(r"\bMath\s*\.\s*"), ''),
    (re.compile(r"\bvars\s*\.\s*"), ''),
    (re.compile(r"\btrue\b"), '1'),
    (re.compile(r"\bfalse\b"), '0'),
]


def to_expression(source: str) -> str:
    """
    Reduce formula source to a single expression.

    A source without `return` is already the expression; otherwise the
    text after `return` is used. A trailing `;` is dropped.
    """
    body = source.strip()
    if _RETURN_RE.match(body):
        body = _RETURN_RE.sub('', body, count=1)
    body = body.strip().rstrip(';').strip()

    parts = _STRING_SPLIT_RE.split(body)
    for index in range(0, len(parts), 2):
        code = parts[index]
        if ';' in code:
            raise FormulaEvaluationFailed("multiple statements are not supported")
        for pattern, replacement in _TOKEN_REWRITES:
            code = pattern.sub(replacement, code)
        parts[index] = code
    return ''.join(parts).strip()


# =============================================================================
# INTERPRETER
# =============================================================================

class _Interpreter:
    """Walks a whitelisted expression tree with a step budget."""

    def __init__(
        self,
        variables: Mapping[str, float],
        references: Mapping[str, float],
        max_steps: int,
    ):
        self.variables = variables
        self.aliases = {normalize_var_name(k): v for k, v in variables.items()}
        self.references = {normalize_entity_key(k): v for k, v in references.items()}
        self.max_steps = max_steps
        self.steps = 0

    def run(self, tree: ast.AST) -> float:
        return self._eval(tree)

    def _eval(self, node: ast.AST):
        self.steps += 1
        if self.steps > self.max_steps:
            raise RuntimeError(f"evaluation budget of {self.max_steps} steps exceeded")

        if isinstance(node, ast.Expression):
            return self._eval(node.body)

        if isinstance(node, ast.Constant):
            if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
                raise ValueError(f"unsupported constant {node.value!r}")
            return float(node.value)

        if isinstance(node, ast.Name):
            return self._lookup(node.id)

        if isinstance(node, ast.BinOp):
            op = _BINARY_OPERATORS.get(type(node.op))
            if op is None:
                raise ValueError(f"unsupported operator {type(node.op).__name__}")
            return float(op(self._eval(node.left), self._eval(node.right)))

        if isinstance(node, ast.UnaryOp):
            operand = self._eval(node.operand)
            if isinstance(node.op, ast.USub):
                return -operand
            if isinstance(node.op, ast.UAdd):
                return operand
            if isinstance(node.op, ast.Not):
                return 0.0 if operand else 1.0
            raise ValueError(f"unsupported unary operator {type(node.op).__name__}")

        if isinstance(node, ast.Compare):
            left = self._eval(node.left)
            for op_node, comparator in zip(node.ops, node.comparators):
                op = _COMPARE_OPERATORS.get(type(op_node))
                if op is None:
                    raise ValueError(f"unsupported comparison {type(op_node).__name__}")
                right = self._eval(comparator)
                if not op(left, right):
                    return 0.0
                left = right
            return 1.0

        if isinstance(node, ast.BoolOp):
            is_and = isinstance(node.op, ast.And)
            value = 0.0
            for operand in node.values:
                value = self._eval(operand)
                if is_and and not value:
                    return value
                if not is_and and value:
                    return value
            return value

        if isinstance(node, ast.IfExp):
            if self._eval(node.test):
                return self._eval(node.body)
            return self._eval(node.orelse)

        if isinstance(node, ast.Call):
            return self._call(node)

        raise ValueError(f"unsupported syntax {type(node).__name__}")

    def _lookup(self, name: str) -> float:
        if name in HELPER_FUNCTIONS:
            raise ValueError(f"helper '{name}' must be called")
        if name in self.variables:
            return float(self.variables[name] or 0.0)
        alias = normalize_var_name(name)
        if alias in self.aliases:
            return float(self.aliases[alias] or 0.0)
        # Unresolved names read as 0 so partially filled drafts still evaluate
        return 0.0

    def _call(self, node: ast.Call) -> float:
        if not isinstance(node.func, ast.Name):
            raise ValueError("only direct helper calls are allowed")
        if node.keywords:
            raise ValueError("keyword arguments are not supported")

        name = node.func.id
        if name == 'get':
            if len(node.args) != 1 or not isinstance(node.args[0], ast.Constant) \
                    or not isinstance(node.args[0].value, str):
                raise ValueError('get() takes one quoted entity key')
            key = normalize_entity_key(node.args[0].value)
            return float(self.references.get(key) or 0.0)

        helper = HELPER_FUNCTIONS.get(name)
        if helper is None:
            raise ValueError(f"unknown function '{name}'")
        args = [self._eval(arg) for arg in node.args]
        return float(helper(*args))


# =============================================================================
# PUBLIC API
# =============================================================================

class FormulaEvaluator:
    """
    Evaluate formula source against named numeric variables.

    Usage:
        evaluator = FormulaEvaluator()
        value = evaluator.evaluate("large * 2 + small", {"large": 10, "small": 5})

    Raises:
        EmptyFormula: blank source
        FormulaEvaluationFailed: parse or runtime failure (message in .detail)
        InvalidFormulaResult: result is not a finite number
    """

    def __init__(self, max_steps: Optional[int] = None, max_length: Optional[int] = None):
        self.max_length = max_length or config.get_app_setting("FORMULA_MAX_LENGTH", DEFAULT_FORMULA_MAX_LENGTH)
        if max_steps is None:
            # At least two steps per allowed character, so a formula within
            # the length cap never runs out of steps
            max_steps = max(
                config.get_app_setting("FORMULA_MAX_STEPS", DEFAULT_FORMULA_MAX_STEPS),
                2 * self.max_length,
            )
        self.max_steps = max_steps

    def evaluate(
        self,
        source: Optional[str],
        variables: Optional[Mapping[str, float]] = None,
        references: Optional[Mapping[str, float]] = None,
    ) -> float:
        raw = str(source or '').strip()
        if not raw:
            raise EmptyFormula()
        if len(raw) > self.max_length:
            raise FormulaEvaluationFailed(f"formula exceeds {self.max_length} characters")

        try:
            expression = to_expression(raw)
            tree = ast.parse(expression, mode='eval')
            interpreter = _Interpreter(variables or {}, references or {}, self.max_steps)
            result = interpreter.run(tree)
        except FormulaError:
            raise
        except (SyntaxError, ArithmeticError, ValueError, TypeError, RuntimeError, MemoryError) as e:
            logger.debug(f"Formula evaluation failed for {raw!r}: {e}")
            raise FormulaEvaluationFailed(str(e)) from e

        if not isinstance(result, float) or not math.isfinite(result):
            raise InvalidFormulaResult(result)
        return result


def evaluate_formula(
    source: Optional[str],
    variables: Optional[Mapping[str, float]] = None,
    references: Optional[Mapping[str, float]] = None,
) -> float:
    """Module-level shortcut using the configured limits."""
    return FormulaEvaluator().evaluate(source, variables, references)
