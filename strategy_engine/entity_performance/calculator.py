# strategy_engine/entity_performance/calculator.py
"""
Entity Value Calculator

Produces an entity's value for one period window:
- no formula: the manually entered actual value
- formula: referenced entities are resolved for the same window
  (recursively, memoized per call), variables are read from the period's
  variable values (static variables use their fixed value), then the
  formula is evaluated

Formula errors never leave this module; they come back as an
EntityValueResult with no calculated value and the error code attached.
A cyclic reference aborts the computation of every entity on the cycle.
"""

import logging
from typing import Dict, List, Optional

from strategy_engine.config import config
from .achievement import compute_achievement
from .constants import (
    DEFAULT_CASCADE_MAX_DEPTH,
    DEFAULT_DEPENDENCY_TREE_MAX_DEPTH,
    STATUS_APPROVED,
    STATUS_DRAFT,
)
from .dependencies import extract_entity_keys, normalize_entity_key
from .exceptions import CyclicDependency, EntityNotFound, FormulaError
from .formula import FormulaEvaluator
from .models import DependencyNode, Entity, EntityValueResult, PeriodWindow
from .queries import EntityQueries

logger = logging.getLogger(__name__)


class EntityValueCalculator:
    """
    Compute, persist and cascade entity values.

    Usage:
        calc = EntityValueCalculator(queries)
        result = calc.compute_entity_value(entity_id, window)
        if result.ok:
            print(result.final_value)
    """

    def __init__(self, queries: EntityQueries, evaluator: Optional[FormulaEvaluator] = None):
        self.queries = queries
        self.evaluator = evaluator or FormulaEvaluator()

    # =========================================================================
    # COMPUTATION
    # =========================================================================

    def compute_entity_value(self, entity_id: str, window: PeriodWindow) -> EntityValueResult:
        """
        Compute one entity's value for `window`.

        Raises:
            EntityNotFound: the entity itself does not exist
        """
        entity = self.queries.get_entity(entity_id)
        if entity is None:
            raise EntityNotFound('Entity', entity_id)

        memo: Dict[str, EntityValueResult] = {}
        try:
            return self._compute(entity, window, memo, [])
        except CyclicDependency as e:
            logger.error(f"❌ {e}")
            return EntityValueResult(
                entity_id=entity.id,
                error=e.code,
                error_detail=str(e),
            )

    def _compute(
        self,
        entity: Entity,
        window: PeriodWindow,
        memo: Dict[str, EntityValueResult],
        path: List[Entity],
    ) -> EntityValueResult:
        if entity.id in memo:
            return memo[entity.id]

        period = self.queries.get_value_period(entity.id, window)

        if not entity.has_formula:
            # Manual entry: final, else calculated, else actual
            value = period.resolved_value if period else None
            result = EntityValueResult(entity_id=entity.id, final_value=value)
            memo[entity.id] = result
            return result

        path = path + [entity]
        references = self._resolve_references(entity, window, memo, path)
        variables = self._load_variables(entity, period)

        try:
            value = self.evaluator.evaluate(entity.formula, variables, references)
            result = EntityValueResult(entity_id=entity.id, calculated_value=value, final_value=value)
        except FormulaError as e:
            logger.warning(f"Formula of {entity.key or entity.id} failed ({e.code}): {e}")
            result = EntityValueResult(
                entity_id=entity.id,
                error=e.code,
                error_detail=getattr(e, 'detail', None) or str(e),
            )

        memo[entity.id] = result
        return result

    def _resolve_references(
        self,
        entity: Entity,
        window: PeriodWindow,
        memo: Dict[str, EntityValueResult],
        path: List[Entity],
    ) -> Dict[str, float]:
        """Key -> value for every get("KEY") in the entity's formula."""
        keys = extract_entity_keys(entity.formula)
        if not keys:
            return {}

        found = self.queries.get_entities_by_keys(entity.org_id, keys)
        on_path = {e.id for e in path}
        references: Dict[str, float] = {}

        for key in keys:
            referenced = found.get(key)
            if referenced is None:
                logger.warning(f"Unknown entity key '{key}' in formula of {entity.key or entity.id}")
                continue

            if referenced.id in on_path:
                cycle = [normalize_entity_key(e.key) or e.id for e in path] + [key]
                raise CyclicDependency(cycle)

            value = self._compute(referenced, window, memo, path).final_value
            if value is not None:
                references[key] = value

        return references

    def _load_variables(self, entity: Entity, period) -> Dict[str, float]:
        variables = self.queries.get_variables(entity.id)
        if not variables:
            return {}

        entered = self.queries.get_variable_values(period.id) if period else {}
        values: Dict[str, float] = {}
        for variable in variables:
            if variable.is_static:
                values[variable.code] = variable.static_value if variable.static_value is not None else 0.0
            elif variable.id in entered:
                values[variable.code] = entered[variable.id]
        return values

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def recalculate(self, entity_id: str, window: PeriodWindow,
                    entered_by: Optional[str] = None) -> EntityValueResult:
        """
        Compute the value and achievement, then upsert the period row.

        A failed computation writes nothing. Approved periods are left as
        they are.
        """
        result = self.compute_entity_value(entity_id, window)
        if not result.ok:
            return result

        entity = self.queries.get_entity(entity_id)
        period = self.queries.get_value_period(entity_id, window)
        if period is not None and period.status == STATUS_APPROVED:
            logger.warning(f"Skipping recalculation of approved period {entity_id} {window.label}")
            return result

        achievement = compute_achievement(
            entity.baseline_value,
            result.final_value,
            entity.target_value,
            direction=entity.direction,
            override_formula=entity.achievement_formula,
            evaluator=self.evaluator,
        )

        values = {'achievement_value': achievement}
        if entity.has_formula:
            values['calculated_value'] = result.calculated_value
            values['final_value'] = result.final_value
        if entered_by:
            values['entered_by'] = entered_by
        if period is None:
            values['status'] = STATUS_DRAFT

        self.queries.upsert_value_period(entity_id, window, values)
        logger.info(f"Recalculated {entity.key or entity_id} {window.label}: {result.final_value}")
        return result

    # =========================================================================
    # DEPENDENTS & CASCADE
    # =========================================================================

    def find_dependent_entities(self, org_id: str, key: str,
                                candidates: Optional[List[Entity]] = None) -> List[Entity]:
        """Entities whose formula reads `key` directly."""
        target = normalize_entity_key(key)
        if candidates is None:
            candidates = self.queries.get_entities_with_formula(org_id)
        return [
            e for e in candidates
            if normalize_entity_key(e.key) != target and target in extract_entity_keys(e.formula)
        ]

    def cascade_recalculate(self, org_id: str, key: str, window: PeriodWindow,
                            max_depth: Optional[int] = None) -> List[EntityValueResult]:
        """
        Recalculate every transitive dependent of `key` for `window`.

        Breadth-first by dependency distance; stops at `max_depth` levels
        and skips keys already recalculated in this cascade.
        """
        max_depth = max_depth or config.get_app_setting("CASCADE_MAX_DEPTH", DEFAULT_CASCADE_MAX_DEPTH)
        candidates = self.queries.get_entities_with_formula(org_id)

        visited = {normalize_entity_key(key)}
        frontier = [normalize_entity_key(key)]
        results: List[EntityValueResult] = []
        depth = 0

        while frontier:
            if depth >= max_depth:
                logger.warning(f"Cascade from {key} stopped at max depth {max_depth}")
                break

            next_frontier = []
            for current in frontier:
                for dependent in self.find_dependent_entities(org_id, current, candidates):
                    dependent_key = normalize_entity_key(dependent.key)
                    if dependent_key in visited:
                        logger.warning(f"Cascade revisits {dependent_key}, skipping (possible cycle)")
                        continue
                    visited.add(dependent_key)
                    results.append(self.recalculate(dependent.id, window))
                    next_frontier.append(dependent_key)

            frontier = next_frontier
            depth += 1

        logger.info(f"Cascade from {key} {window.label}: {len(results)} entities recalculated")
        return results

    def get_dependency_tree(self, entity_id: str, max_depth: Optional[int] = None) -> Optional[DependencyNode]:
        """Nested view of the entities a formula (transitively) reads."""
        max_depth = max_depth or config.get_app_setting(
            "DEPENDENCY_TREE_MAX_DEPTH", DEFAULT_DEPENDENCY_TREE_MAX_DEPTH
        )
        entity = self.queries.get_entity(entity_id)
        if entity is None:
            return None

        visited = set()

        def build(current: Entity, depth: int) -> DependencyNode:
            visited.add(current.id)
            node = DependencyNode(
                id=current.id,
                key=current.key,
                title=current.title,
                formula=current.formula,
                entity_type=current.entity_type,
            )
            if depth >= max_depth or not current.has_formula:
                return node

            keys = extract_entity_keys(current.formula)
            found = self.queries.get_entities_by_keys(current.org_id, keys) if keys else {}
            for key in keys:
                referenced = found.get(key)
                if referenced is not None and referenced.id not in visited:
                    node.dependencies.append(build(referenced, depth + 1))
            return node

        return build(entity, 0)


def compute_entity_value(queries: EntityQueries, entity_id: str, window: PeriodWindow) -> EntityValueResult:
    return EntityValueCalculator(queries).compute_entity_value(entity_id, window)
