# strategy_engine/entity_performance/dependencies.py
"""
Dependency Extractor

Purely syntactic scan of formula source:
- cross-entity references written as get("KEY") / get('KEY')
- bare identifiers read as variables (keywords and helpers excluded)

Formulas are never evaluated here.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from .constants import FORMULA_HELPERS, FORMULA_KEYWORDS

_GET_CALL_RE = re.compile(r"""\bget\s*\(\s*["']([^"']+)["']\s*\)""")
_STRING_RE = re.compile(r""""[^"]*"|'[^']*'""")
_IDENTIFIER_RE = re.compile(r"\b([A-Za-z_][A-Za-z0-9_]*)\b")
_DECLARED_RE = re.compile(r"\b(?:const|let|var|function)\s+([A-Za-z_][A-Za-z0-9_]*)")
_MEMBER_RE = re.compile(r"\.\s*[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(r"\b\d+(?:\.\d*)?(?:[eE][+-]?\d+)?\b")
_NON_WORD_RE = re.compile(r"[^A-Za-z0-9_]")


def normalize_entity_key(key: Optional[str]) -> str:
    """Entity keys compare trimmed and upper-cased."""
    return str(key or '').strip().upper()


def normalize_var_name(name: Optional[str]) -> str:
    """Variable alias: non-word characters stripped, upper-cased."""
    return _NON_WORD_RE.sub('', str(name or '')).upper()


@dataclass
class FormulaDependencies:
    """Result of scanning one formula."""
    entity_keys: Set[str] = field(default_factory=set)
    variables: Set[str] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.entity_keys and not self.variables


def extract_entity_keys(formula: Optional[str]) -> List[str]:
    """
    Keys referenced through get("KEY"), normalized, in first-seen order.

    Args:
        formula: Formula source (None or empty gives no keys)

    Returns:
        Unique normalized keys
    """
    if not formula:
        return []

    keys: List[str] = []
    for match in _GET_CALL_RE.finditer(formula):
        key = normalize_entity_key(match.group(1))
        if key and key not in keys:
            keys.append(key)
    return keys


def extract_variables(formula: Optional[str]) -> List[str]:
    """
    Bare identifiers the formula reads, in first-seen order.

    get("...") calls, string literals, numeric literals, member names after
    a dot (Math.max -> Math is a keyword, max is dropped), locally declared
    names, keywords and helper names are all excluded.
    """
    if not formula:
        return []

    code = _GET_CALL_RE.sub(' ', formula)
    code = _STRING_RE.sub(' ', code)
    declared = set(_DECLARED_RE.findall(code))

    # vars.NAME reads the variable NAME
    code = re.sub(r"\bvars\s*\.\s*", ' ', code)
    code = _MEMBER_RE.sub(' ', code)
    code = _NUMBER_RE.sub(' ', code)

    excluded = FORMULA_KEYWORDS | set(FORMULA_HELPERS) | declared
    names: List[str] = []
    for match in _IDENTIFIER_RE.finditer(code):
        name = match.group(1)
        if name in excluded or name in names:
            continue
        names.append(name)
    return names


def extract_dependencies(formula: Optional[str]) -> FormulaDependencies:
    """Both halves of the scan at once."""
    return FormulaDependencies(
        entity_keys=set(extract_entity_keys(formula)),
        variables=set(extract_variables(formula)),
    )


def collect_entity_keys(formulas: Iterable[Optional[str]]) -> Set[str]:
    """Union of referenced keys over many formulas."""
    keys: Set[str] = set()
    for formula in formulas:
        keys.update(extract_entity_keys(formula))
    return keys


def references_key(formula: Optional[str], key: Optional[str]) -> bool:
    target = normalize_entity_key(key)
    return bool(target) and target in extract_entity_keys(formula)
