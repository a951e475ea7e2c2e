"""Tests for entity value computation, persistence and cascades."""

import pytest

from strategy_engine.entity_performance.calculator import EntityValueCalculator, compute_entity_value
from strategy_engine.entity_performance.exceptions import EntityNotFound
from strategy_engine.entity_performance.periods import previous_period
from strategy_engine.entity_performance.schema import entities


@pytest.fixture
def calculator(queries):
    return EntityValueCalculator(queries)


class TestComputeEntityValue:
    """Single-entity computation for one window."""

    def test_manual_entity_uses_actual_value(self, calculator, window):
        result = calculator.compute_entity_value("e-revenue", window)

        assert result.ok
        assert result.final_value == 112.5
        assert result.calculated_value is None

    def test_formula_over_variables(self, calculator, window):
        result = calculator.compute_entity_value("e-contracts", window)

        assert result.calculated_value == 25.0
        assert result.final_value == 25.0

    def test_formula_over_other_entities(self, calculator, window):
        result = calculator.compute_entity_value("e-growth", window)
        assert result.final_value == 132.5

    def test_nested_references_with_static_variable(self, calculator, window):
        result = calculator.compute_entity_value("e-score", window)
        assert result.final_value == 265.0

    def test_reference_prefers_final_value(self, calculator, queries, window):
        """An approved manual override wins over the entered actual."""
        queries.update_value_period(2, {"final_value": 40.0})

        result = calculator.compute_entity_value("e-growth", window)
        assert result.final_value == 152.5

    def test_reference_falls_back_to_calculated_value(self, calculator, queries, window):
        queries.update_value_period(2, {"actual_value": None, "calculated_value": 30.0, "final_value": 30.0})

        result = calculator.compute_entity_value("e-growth", window)
        assert result.final_value == 142.5

    def test_deterministic(self, calculator, window):
        first = calculator.compute_entity_value("e-score", window)
        second = calculator.compute_entity_value("e-score", window)
        assert first.to_dict() == second.to_dict()

    def test_missing_period_variables_read_as_zero(self, calculator, window):
        result = calculator.compute_entity_value("e-contracts", previous_period(window))
        assert result.ok
        assert result.final_value == 0.0

    def test_formula_failure_is_reported_not_raised(self, calculator, window):
        result = calculator.compute_entity_value("e-broken", window)

        assert not result.ok
        assert result.error == "invalidFormulaResult"
        assert result.calculated_value is None
        assert result.final_value is None

    def test_cycle_is_reported(self, calculator, window):
        result = calculator.compute_entity_value("e-cycle-a", window)

        assert result.error == "cyclicDependency"
        assert result.final_value is None
        assert "CYCLE_A -> CYCLE_B -> CYCLE_A" in result.error_detail

    def test_unknown_entity_raises(self, calculator, window):
        with pytest.raises(EntityNotFound):
            calculator.compute_entity_value("e-missing", window)

    def test_unknown_reference_reads_as_zero(self, queries, calculator, window, seeded_engine):
        with seeded_engine.begin() as conn:
            conn.execute(entities.update().where(entities.c.id == "e-broken").values(formula='get("NOPE") + 4'))

        assert calculator.compute_entity_value("e-broken", window).final_value == 4.0

    def test_module_shortcut(self, queries, window):
        assert compute_entity_value(queries, "e-contracts", window).final_value == 25.0


class TestRecalculate:
    """Compute and persist."""

    def test_persists_value_and_achievement(self, calculator, queries, window):
        calculator.recalculate("e-contracts", window, entered_by="u-bob")

        period = queries.get_value_period("e-contracts", window)
        assert period.calculated_value == 25.0
        assert period.final_value == 25.0
        assert period.achievement_value == 50.0
        assert period.entered_by == "u-bob"
        assert period.status == "DRAFT"

    def test_manual_entity_gets_achievement_only(self, calculator, queries, window):
        calculator.recalculate("e-revenue", window)

        period = queries.get_value_period("e-revenue", window)
        assert period.actual_value == 112.5
        assert period.calculated_value is None
        assert period.achievement_value == 50.0

    def test_creates_missing_period_as_draft(self, calculator, queries, window):
        calculator.recalculate("e-growth", window)

        period = queries.get_value_period("e-growth", window)
        assert period.final_value == 132.5
        assert period.achievement_value is None
        assert period.status == "DRAFT"

    def test_failed_computation_writes_nothing(self, calculator, queries, window):
        result = calculator.recalculate("e-broken", window)

        assert not result.ok
        assert queries.get_value_period("e-broken", window) is None

    def test_approved_period_left_untouched(self, calculator, queries, window):
        period = queries.get_value_period("e-contracts", window)
        queries.update_value_period(period.id, {"status": "APPROVED", "final_value": 99.0})

        calculator.recalculate("e-contracts", window)

        assert queries.get_value_period("e-contracts", window).final_value == 99.0


class TestDependents:
    """Reverse lookups and cascades."""

    def test_find_dependent_entities(self, calculator, org_id):
        dependents = calculator.find_dependent_entities(org_id, "obj_revenue")
        assert [e.id for e in dependents] == ["e-growth"]

    def test_cascade_reaches_transitive_dependents(self, calculator, queries, org_id, window):
        results = calculator.cascade_recalculate(org_id, "OBJ_REVENUE", window)

        assert [r.entity_id for r in results] == ["e-growth", "e-score"]
        assert queries.get_value_period("e-score", window).final_value == 265.0

    def test_cascade_depth_limit(self, calculator, org_id, window):
        results = calculator.cascade_recalculate(org_id, "OBJ_REVENUE", window, max_depth=1)
        assert [r.entity_id for r in results] == ["e-growth"]

    def test_cascade_stops_on_cycle(self, calculator, org_id, window):
        results = calculator.cascade_recalculate(org_id, "CYCLE_A", window)

        assert [r.entity_id for r in results] == ["e-cycle-b"]
        assert results[0].error == "cyclicDependency"


class TestDependencyTree:

    def test_nested_tree(self, calculator):
        tree = calculator.get_dependency_tree("e-score").to_dict()

        assert tree["key"] == "KPI_SCORE"
        growth = tree["dependencies"][0]
        assert growth["key"] == "KPI_GROWTH"
        assert [d["key"] for d in growth["dependencies"]] == ["OBJ_REVENUE", "OBJ_MARKET"]

    def test_depth_limit(self, calculator):
        tree = calculator.get_dependency_tree("e-score", max_depth=1)
        assert tree.dependencies[0].dependencies == []

    def test_cycle_visited_once(self, calculator):
        tree = calculator.get_dependency_tree("e-cycle-a")

        assert tree.dependencies[0].key == "CYCLE_B"
        assert tree.dependencies[0].dependencies == []

    def test_unknown_entity(self, calculator):
        assert calculator.get_dependency_tree("e-missing") is None
