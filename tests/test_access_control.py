"""Tests for entity access classification."""

import pandas as pd
import pytest

from strategy_engine.entity_performance.access_control import (
    ACCESS_RULES,
    AccessContext,
    AccessResolver,
    batch_check_access,
    can_edit_entity_values,
    check_access,
    classify_access,
    get_editable_entity_ids,
    get_readable_entity_ids,
)
from strategy_engine.entity_performance.exceptions import MissingOrgScope
from strategy_engine.entity_performance.models import Entity


def _entity(entity_id, key):
    return Entity(id=entity_id, org_id="org", key=key, title=entity_id)


class TestRuleClassification:
    """Each rule in isolation, no store involved."""

    def test_rule_order(self):
        assert [r.name for r in ACCESS_RULES] == [
            "admin",
            "assigned",
            "dependency",
            "hierarchical",
            "hierarchical_dependency",
        ]

    def test_admin(self):
        result = classify_access(AccessContext(is_admin=True), _entity("k", "K"))
        assert (result.reason, result.can_read, result.can_edit_values, result.can_edit_definition) == \
            ("admin", True, True, True)

    def test_assigned(self):
        result = classify_access(AccessContext(assigned_ids={"k"}), _entity("k", "K"))
        assert (result.reason, result.can_edit_values, result.can_edit_definition) == ("assigned", True, False)

    def test_dependency_is_read_only(self):
        result = classify_access(AccessContext(dependency_keys={"K2"}), _entity("k2", "k2"))
        assert (result.reason, result.can_read, result.can_edit_values) == ("dependency", True, False)

    def test_hierarchical_can_edit_values(self):
        result = classify_access(AccessContext(subordinate_assigned_ids={"k"}), _entity("k", "K"))
        assert (result.reason, result.can_edit_values, result.can_edit_definition) == ("hierarchical", True, False)

    def test_hierarchical_dependency_reports_dependency(self):
        result = classify_access(AccessContext(subordinate_dependency_keys={"K"}), _entity("k", "K"))
        assert (result.reason, result.rule, result.can_edit_values) == ("dependency", "hierarchical_dependency", False)

    def test_none(self):
        result = classify_access(AccessContext(), _entity("k", "K"))
        assert (result.reason, result.can_read, result.can_edit_values) == ("none", False, False)

    def test_missing_entity_is_none(self):
        assert classify_access(AccessContext(is_admin=True), None).reason == "none"

    def test_assigned_beats_hierarchical(self):
        ctx = AccessContext(assigned_ids={"k"}, subordinate_assigned_ids={"k"})
        assert classify_access(ctx, _entity("k", "K")).reason == "assigned"

    def test_dependency_beats_hierarchical(self):
        ctx = AccessContext(dependency_keys={"K"}, subordinate_assigned_ids={"k"})
        assert classify_access(ctx, _entity("k", "K")).reason == "dependency"


class TestCheckAccess:
    """Classification against the seeded organisation."""

    def test_dependency_of_own_assignment(self, queries, org_id):
        """Alice is assigned KPI_GROWTH, which reads OBJ_REVENUE."""
        result = check_access(queries, "u-alice", "e-revenue", org_id)

        assert result.reason == "dependency"
        assert result.can_read
        assert not result.can_edit_values

    def test_assigned(self, queries, org_id):
        result = check_access(queries, "u-alice", "e-growth", org_id)
        assert result.reason == "assigned"
        assert result.can_edit_values
        assert not result.can_edit_definition

    def test_assigned_beats_hierarchical(self, queries, org_id):
        """The manager and their report Bob are both assigned OBJ_MARKET."""
        assert check_access(queries, "u-manager", "e-market", org_id).reason == "assigned"

    def test_hierarchical(self, queries, org_id):
        result = check_access(queries, "u-manager", "e-contracts", org_id)
        assert result.reason == "hierarchical"
        assert result.can_edit_values

    def test_hierarchical_through_indirect_report(self, queries, org_id):
        assert check_access(queries, "u-exec", "e-score", org_id).reason == "hierarchical"

    def test_hierarchical_dependency(self, queries, org_id):
        result = check_access(queries, "u-manager", "e-revenue", org_id)

        assert result.reason == "dependency"
        assert result.rule == "hierarchical_dependency"
        assert not result.can_edit_values

    def test_deleted_subordinate_grants_nothing(self, queries, org_id):
        assert check_access(queries, "u-manager", "e-cycle-a", org_id).reason == "none"

    def test_admin(self, queries, org_id):
        result = check_access(queries, "u-admin", "e-broken", org_id)
        assert result.reason == "admin"
        assert result.can_edit_definition

    def test_admin_has_no_access_outside_org(self, queries, org_id):
        assert check_access(queries, "u-admin", "e-other", org_id).reason == "none"

    def test_admin_of_another_org_gets_nothing(self, queries):
        """Org-1's admin asking in org-2's scope is not an org-2 admin."""
        result = check_access(queries, "u-admin", "e-other", "org-2")

        assert result.reason == "none"
        assert not result.can_read
        assert not result.can_edit_definition
        assert get_readable_entity_ids(queries, "u-admin", "org-2") == set()

    def test_no_access(self, queries, org_id):
        assert check_access(queries, "u-outsider", "e-revenue", org_id).reason == "none"
        assert check_access(queries, "u-bob", "e-growth", org_id).reason == "none"

    def test_unknown_entity(self, queries, org_id):
        assert check_access(queries, "u-alice", "e-missing", org_id).reason == "none"

    @pytest.mark.parametrize("org", [None, ""])
    def test_missing_org_scope_raises(self, queries, org):
        with pytest.raises(MissingOrgScope):
            check_access(queries, "u-alice", "e-growth", org)

    def test_can_edit_entity_values(self, queries, org_id):
        assert can_edit_entity_values(queries, "u-alice", "e-growth", org_id)
        assert not can_edit_entity_values(queries, "u-alice", "e-revenue", org_id)


class TestBatchCheckAccess:
    """Batch classification matches single checks."""

    ENTITY_IDS = [
        "e-revenue", "e-market", "e-contracts", "e-growth", "e-score",
        "e-cycle-a", "e-cycle-b", "e-broken", "e-deleted", "e-other", "e-missing",
    ]

    @pytest.mark.parametrize("user_id", ["u-alice", "u-bob", "u-carol", "u-manager", "u-exec", "u-admin", "u-outsider"])
    def test_batch_equals_single(self, queries, org_id, user_id):
        batch = batch_check_access(queries, user_id, self.ENTITY_IDS, org_id)

        assert list(batch) == self.ENTITY_IDS
        for entity_id in self.ENTITY_IDS:
            assert batch[entity_id] == check_access(queries, user_id, entity_id, org_id)

    def test_empty_batch(self, queries, org_id):
        assert batch_check_access(queries, "u-alice", [], org_id) == {}

    def test_rule_inputs_loaded_once(self, queries, org_id, monkeypatch):
        resolver = AccessResolver(queries, "u-manager", org_id)
        calls = []
        original = queries.get_manager_edges

        def counting(org):
            calls.append(org)
            return original(org)

        monkeypatch.setattr(queries, "get_manager_edges", counting)
        resolver.batch_check_access(self.ENTITY_IDS)
        resolver.batch_check_access(self.ENTITY_IDS)

        assert calls == [org_id]


class TestEntitySets:
    """Readable / editable entity sets and DataFrame filtering."""

    def test_readable_ids(self, queries, org_id):
        assert get_readable_entity_ids(queries, "u-alice", org_id) == {
            "e-growth", "e-revenue", "e-market", "e-score",
        }

    def test_editable_ids(self, queries, org_id):
        assert get_editable_entity_ids(queries, "u-alice", org_id) == {"e-growth"}

    def test_admin_reads_and_edits_everything_in_org(self, queries, org_id):
        everything = {e.id for e in queries.get_org_entities(org_id)}
        assert get_readable_entity_ids(queries, "u-admin", org_id) == everything
        assert get_editable_entity_ids(queries, "u-admin", org_id) == everything

    def test_outsider_reads_nothing(self, queries, org_id):
        assert get_readable_entity_ids(queries, "u-outsider", org_id) == set()

    def test_filter_dataframe(self, queries, org_id):
        df = pd.DataFrame({
            "entity_id": ["e-growth", "e-contracts", "e-revenue"],
            "value": [1, 2, 3],
        })
        filtered = AccessResolver(queries, "u-alice", org_id).filter_dataframe(df)

        assert list(filtered["entity_id"]) == ["e-growth", "e-revenue"]

    def test_filter_dataframe_without_access(self, queries, org_id):
        df = pd.DataFrame({"entity_id": ["e-growth"]})
        assert AccessResolver(queries, "u-outsider", org_id).filter_dataframe(df).empty

    def test_filter_dataframe_missing_column(self, queries, org_id):
        df = pd.DataFrame({"id": ["e-growth"]})
        assert AccessResolver(queries, "u-outsider", org_id).filter_dataframe(df) is df
