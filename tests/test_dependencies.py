"""Tests for formula dependency extraction."""

import pytest

from strategy_engine.entity_performance.dependencies import (
    collect_entity_keys,
    extract_dependencies,
    extract_entity_keys,
    extract_variables,
    normalize_entity_key,
    normalize_var_name,
    references_key,
)


class TestEntityKeys:
    """get("KEY") reference scanning."""

    def test_two_references_no_variables(self):
        deps = extract_dependencies('get("OBJ_REVENUE") + get("OBJ_MARKET")')

        assert deps.entity_keys == {"OBJ_REVENUE", "OBJ_MARKET"}
        assert deps.variables == set()

    @pytest.mark.parametrize("source", [
        'get("KPI_A")',
        "get('KPI_A')",
        'get (  "KPI_A"  )',
        'get(\n"kpi_a"\n)',
    ])
    def test_whitespace_and_quoting(self, source):
        assert extract_entity_keys(source) == ["KPI_A"]

    def test_first_seen_order_without_duplicates(self):
        keys = extract_entity_keys('get("B") + get("A") * get("b")')
        assert keys == ["B", "A"]

    @pytest.mark.parametrize("source", [None, "", "a + b"])
    def test_no_references(self, source):
        assert extract_entity_keys(source) == []

    def test_collect_over_many_formulas(self):
        keys = collect_entity_keys(['get("A")', None, 'get("b") + get("A")'])
        assert keys == {"A", "B"}

    def test_references_key(self):
        assert references_key('get("obj_revenue") * 2', "OBJ_REVENUE")
        assert not references_key('get("OBJ_MARKET")', "OBJ_REVENUE")
        assert not references_key('get("OBJ_MARKET")', None)


class TestVariables:
    """Bare identifier scanning."""

    def test_plain_variables(self):
        assert extract_variables("large_contracts * 2 + small_contracts") == [
            "large_contracts",
            "small_contracts",
        ]

    def test_keywords_helpers_and_numbers_excluded(self):
        names = extract_variables("return max(a, 1.5e3) + Math.round(b) + sum(c, 2);")
        assert names == ["a", "b", "c"]

    def test_get_arguments_and_strings_excluded(self):
        names = extract_variables('get("OBJ_REVENUE") * weight + "label"')
        assert names == ["weight"]

    def test_vars_prefix_reads_variable(self):
        assert extract_variables("vars.factor * 2") == ["factor"]

    def test_declared_names_excluded(self):
        assert extract_variables("const ratio = a / b; return ratio;") == ["a", "b"]

    def test_boolean_literals_excluded(self):
        assert extract_variables("flag && true || !other") == ["flag", "other"]

    def test_extraction_never_evaluates(self):
        # Invalid at runtime, still scannable
        deps = extract_dependencies('get("X") / 0 + missing')
        assert deps.entity_keys == {"X"}
        assert deps.variables == {"missing"}
        assert not deps.is_empty


class TestNormalization:
    """Key and alias normalization."""

    def test_entity_key(self):
        assert normalize_entity_key("  obj_Revenue ") == "OBJ_REVENUE"
        assert normalize_entity_key(None) == ""

    def test_variable_alias(self):
        assert normalize_var_name("Large-Contracts") == "LARGECONTRACTS"
        assert normalize_var_name("small_contracts") == "SMALL_CONTRACTS"
