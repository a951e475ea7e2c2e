# strategy_engine/entity_performance/queries.py
"""
Data access for the entity performance engine.

Handles every store interaction the engine needs:
- point lookups of entities by id or key
- variables and per-period variable values
- entity value periods (atomic upsert per entity + period)
- user entity assignments and responsibility assignments
- manager -> report and parent -> child edge sets for closures

Soft-deleted rows (deleted_at set) are invisible to every lookup.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from sqlalchemy import and_, func, select, update, delete
from sqlalchemy.engine import Connection, Engine

from strategy_engine.db import get_db_engine, get_connection, get_transaction
from .dependencies import normalize_entity_key
from .models import Entity, EntityValuePeriod, EntityVariable, PeriodWindow, User
from .schema import (
    entities,
    entity_value_periods,
    entity_variable_values,
    entity_variables,
    nodes,
    organizations,
    responsibility_kpi_assignments,
    responsibility_node_assignments,
    user_entity_assignments,
    users,
)

logger = logging.getLogger(__name__)

_ENTITY_KEY = entities.c['key']


def _upsert_statement(conn: Connection, table, values: Mapping[str, Any],
                      index_elements: List[str], update_values: Mapping[str, Any]):
    """Single-statement insert-or-update for the connected dialect."""
    dialect = conn.dialect.name

    if dialect in ('sqlite', 'postgresql'):
        if dialect == 'sqlite':
            from sqlalchemy.dialects.sqlite import insert
        else:
            from sqlalchemy.dialects.postgresql import insert
        stmt = insert(table).values(**values)
        if update_values:
            return stmt.on_conflict_do_update(index_elements=index_elements, set_=dict(update_values))
        return stmt.on_conflict_do_nothing(index_elements=index_elements)

    if dialect == 'mysql':
        from sqlalchemy.dialects.mysql import insert
        stmt = insert(table).values(**values)
        if update_values:
            return stmt.on_duplicate_key_update(**update_values)
        return stmt.prefix_with('IGNORE')

    raise NotImplementedError(f"Upsert not supported for dialect {dialect}")


class EntityQueries:
    """
    Data loading class for entity performance.

    Usage:
        queries = EntityQueries()            # configured engine
        queries = EntityQueries(engine)      # explicit engine (tests)

        entity = queries.get_entity_by_key(org_id, "OBJ_REVENUE")
        period = queries.get_value_period(entity.id, window)
    """

    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine

    @property
    def engine(self) -> Engine:
        """Lazy load database engine."""
        if self._engine is None:
            self._engine = get_db_engine()
        return self._engine

    def _fetch_all(self, stmt) -> List[Dict[str, Any]]:
        with get_connection(self.engine) as conn:
            return [dict(row._mapping) for row in conn.execute(stmt)]

    def _fetch_one(self, stmt) -> Optional[Dict[str, Any]]:
        with get_connection(self.engine) as conn:
            row = conn.execute(stmt).first()
            return dict(row._mapping) if row is not None else None

    # =========================================================================
    # ORGANIZATIONS & USERS
    # =========================================================================

    def get_org_approval_level(self, org_id: str) -> Optional[str]:
        row = self._fetch_one(
            select(organizations.c.kpi_approval_level)
            .where(organizations.c.id == org_id, organizations.c.deleted_at.is_(None))
        )
        return row['kpi_approval_level'] if row else None

    def get_user(self, user_id: str) -> Optional[User]:
        row = self._fetch_one(
            select(users).where(users.c.id == user_id, users.c.deleted_at.is_(None))
        )
        return User.from_row(row) if row else None

    def get_manager_edges(self, org_id: str) -> List[Tuple[Optional[str], str]]:
        """(manager_id, user_id) for every active user of the organization."""
        rows = self._fetch_all(
            select(users.c.manager_id, users.c.id)
            .where(users.c.org_id == org_id, users.c.deleted_at.is_(None))
        )
        return [(r['manager_id'], r['id']) for r in rows]

    def is_direct_report(self, org_id: str, manager_id: str, user_id: str) -> bool:
        row = self._fetch_one(
            select(users.c.id).where(
                users.c.id == user_id,
                users.c.org_id == org_id,
                users.c.manager_id == manager_id,
                users.c.deleted_at.is_(None),
            )
        )
        return row is not None

    # =========================================================================
    # ENTITIES
    # =========================================================================

    def get_entity(self, entity_id: str, org_id: Optional[str] = None) -> Optional[Entity]:
        conditions = [entities.c.id == entity_id, entities.c.deleted_at.is_(None)]
        if org_id:
            conditions.append(entities.c.org_id == org_id)
        row = self._fetch_one(select(entities).where(*conditions))
        return Entity.from_row(row) if row else None

    def get_entity_by_key(self, org_id: str, key: str) -> Optional[Entity]:
        found = self.get_entities_by_keys(org_id, [key])
        return found.get(normalize_entity_key(key))

    def get_entities_by_keys(self, org_id: str, keys: Iterable[str]) -> Dict[str, Entity]:
        """Entities keyed by normalized key (case-insensitive match)."""
        wanted = sorted({normalize_entity_key(k) for k in keys if normalize_entity_key(k)})
        if not wanted:
            return {}

        rows = self._fetch_all(
            select(entities).where(
                entities.c.org_id == org_id,
                entities.c.deleted_at.is_(None),
                func.upper(func.trim(_ENTITY_KEY)).in_(wanted),
            )
        )
        return {normalize_entity_key(r['key']): Entity.from_row(r) for r in rows}

    def get_entities(self, entity_ids: Iterable[str]) -> Dict[str, Entity]:
        ids = list(set(entity_ids))
        if not ids:
            return {}
        rows = self._fetch_all(
            select(entities).where(entities.c.id.in_(ids), entities.c.deleted_at.is_(None))
        )
        return {r['id']: Entity.from_row(r) for r in rows}

    def get_org_entities(self, org_id: str, entity_type: Optional[str] = None) -> List[Entity]:
        conditions = [entities.c.org_id == org_id, entities.c.deleted_at.is_(None)]
        if entity_type:
            conditions.append(entities.c.entity_type == entity_type)
        rows = self._fetch_all(select(entities).where(*conditions).order_by(entities.c.id))
        return [Entity.from_row(r) for r in rows]

    def get_entities_with_formula(self, org_id: str) -> List[Entity]:
        rows = self._fetch_all(
            select(entities).where(
                entities.c.org_id == org_id,
                entities.c.deleted_at.is_(None),
                entities.c.formula.is_not(None),
            ).order_by(entities.c.id)
        )
        return [Entity.from_row(r) for r in rows]

    def get_entity_ids_by_primary_nodes(self, org_id: str, node_ids: Iterable[str],
                                        entity_type: Optional[str] = None) -> Set[str]:
        ids = list(set(node_ids))
        if not ids:
            return set()
        conditions = [
            entities.c.org_id == org_id,
            entities.c.deleted_at.is_(None),
            entities.c.primary_node_id.in_(ids),
        ]
        if entity_type:
            conditions.append(entities.c.entity_type == entity_type)
        return {r['id'] for r in self._fetch_all(select(entities.c.id).where(*conditions))}

    def get_owned_entity_ids(self, org_id: str, user_id: str,
                             entity_type: Optional[str] = None) -> Set[str]:
        conditions = [
            entities.c.org_id == org_id,
            entities.c.deleted_at.is_(None),
            entities.c.owner_user_id == user_id,
        ]
        if entity_type:
            conditions.append(entities.c.entity_type == entity_type)
        return {r['id'] for r in self._fetch_all(select(entities.c.id).where(*conditions))}

    # =========================================================================
    # NODES
    # =========================================================================

    def get_node_edges(self, org_id: str) -> List[Tuple[Optional[str], str]]:
        """(parent_id, node_id) for every active node of the organization."""
        rows = self._fetch_all(
            select(nodes.c.parent_id, nodes.c.id)
            .where(nodes.c.org_id == org_id, nodes.c.deleted_at.is_(None))
        )
        return [(r['parent_id'], r['id']) for r in rows]

    def node_exists(self, org_id: str, node_id: str) -> bool:
        row = self._fetch_one(
            select(nodes.c.id).where(
                nodes.c.id == node_id, nodes.c.org_id == org_id, nodes.c.deleted_at.is_(None)
            )
        )
        return row is not None

    # =========================================================================
    # VARIABLES
    # =========================================================================

    def get_variables(self, entity_id: str) -> List[EntityVariable]:
        rows = self._fetch_all(
            select(entity_variables)
            .where(entity_variables.c.entity_id == entity_id)
            .order_by(entity_variables.c.code)
        )
        return [EntityVariable.from_row(r) for r in rows]

    def get_variable_values(self, value_period_id) -> Dict[str, float]:
        """variable id -> value for one period row."""
        rows = self._fetch_all(
            select(entity_variable_values.c.entity_variable_id, entity_variable_values.c.value)
            .where(entity_variable_values.c.entity_value_id == value_period_id)
        )
        return {r['entity_variable_id']: r['value'] for r in rows}

    # =========================================================================
    # VALUE PERIODS
    # =========================================================================

    def get_value_period(self, entity_id: str, window: PeriodWindow) -> Optional[EntityValuePeriod]:
        row = self._fetch_one(
            select(entity_value_periods).where(
                entity_value_periods.c.entity_id == entity_id,
                entity_value_periods.c.period_start == window.period_start,
                entity_value_periods.c.period_end == window.period_end,
            )
        )
        return EntityValuePeriod.from_row(row) if row else None

    def get_value_period_by_id(self, period_id, entity_id: Optional[str] = None) -> Optional[EntityValuePeriod]:
        conditions = [entity_value_periods.c.id == period_id]
        if entity_id:
            conditions.append(entity_value_periods.c.entity_id == entity_id)
        row = self._fetch_one(select(entity_value_periods).where(*conditions))
        return EntityValuePeriod.from_row(row) if row else None

    def _upsert_period(self, conn: Connection, entity_id: str, window: PeriodWindow,
                       values: Mapping[str, Any]):
        key = {
            'entity_id': entity_id,
            'period_start': window.period_start,
            'period_end': window.period_end,
        }
        conn.execute(_upsert_statement(
            conn,
            entity_value_periods,
            {**key, **values},
            ['entity_id', 'period_start', 'period_end'],
            values,
        ))
        return conn.execute(
            select(entity_value_periods).where(
                and_(*(entity_value_periods.c[name] == value for name, value in key.items()))
            )
        ).first()

    def upsert_value_period(self, entity_id: str, window: PeriodWindow,
                            values: Mapping[str, Any]) -> EntityValuePeriod:
        """
        Insert or update the (entity, period) row in one statement.

        Args:
            entity_id: Owning entity
            window: Period window (start/end identify the row)
            values: Column values to write (calculated_value, final_value, ...)
        """
        with get_transaction(self.engine) as conn:
            row = self._upsert_period(conn, entity_id, window, values)
        logger.debug(f"Upserted value period for {entity_id} {window.label}")
        return EntityValuePeriod.from_row(row._mapping)

    def save_variable_values(self, entity_id: str, window: PeriodWindow,
                             values_by_variable_id: Mapping[str, float],
                             period_values: Optional[Mapping[str, Any]] = None) -> EntityValuePeriod:
        """
        Write a period's variable values as one group.

        The period row and every variable value row are written in a single
        transaction, so readers never see a half-written set.
        """
        with get_transaction(self.engine) as conn:
            row = self._upsert_period(conn, entity_id, window, dict(period_values or {}))
            period_id = row._mapping['id']
            for variable_id, value in values_by_variable_id.items():
                conn.execute(_upsert_statement(
                    conn,
                    entity_variable_values,
                    {'entity_value_id': period_id, 'entity_variable_id': variable_id, 'value': value},
                    ['entity_value_id', 'entity_variable_id'],
                    {'value': value},
                ))
        logger.info(f"Saved {len(values_by_variable_id)} variable values for {entity_id} {window.label}")
        return EntityValuePeriod.from_row(row._mapping)

    def get_value_periods_for_users(self, org_id: str, user_ids: Iterable[str],
                                    statuses: Iterable[str]) -> List[EntityValuePeriod]:
        """Periods of entities assigned to any of `user_ids`, newest submission first."""
        users_list = list(set(user_ids))
        status_list = list(statuses)
        if not users_list or not status_list:
            return []

        assigned = (
            select(user_entity_assignments.c.entity_id)
            .where(user_entity_assignments.c.user_id.in_(users_list))
        )
        rows = self._fetch_all(
            select(entity_value_periods)
            .select_from(entity_value_periods.join(
                entities, entities.c.id == entity_value_periods.c.entity_id
            ))
            .where(
                entities.c.org_id == org_id,
                entities.c.deleted_at.is_(None),
                entities.c.id.in_(assigned),
                entity_value_periods.c.status.in_(status_list),
            )
            .order_by(entity_value_periods.c.submitted_at.desc(), entity_value_periods.c.id.desc())
        )
        return [EntityValuePeriod.from_row(r) for r in rows]

    def update_value_period(self, period_id, values: Mapping[str, Any]) -> None:
        with get_transaction(self.engine) as conn:
            conn.execute(
                update(entity_value_periods)
                .where(entity_value_periods.c.id == period_id)
                .values(**values)
            )

    # =========================================================================
    # USER ENTITY ASSIGNMENTS
    # =========================================================================

    def has_assignment(self, user_id: str, entity_id: str) -> bool:
        row = self._fetch_one(
            select(user_entity_assignments.c.id).where(
                user_entity_assignments.c.user_id == user_id,
                user_entity_assignments.c.entity_id == entity_id,
            )
        )
        return row is not None

    def get_assigned_entity_ids(self, user_ids: Iterable[str],
                                entity_ids: Optional[Iterable[str]] = None) -> Set[str]:
        """Entities assigned to any of `user_ids`, optionally restricted."""
        users_list = list(set(user_ids))
        if not users_list:
            return set()
        conditions = [user_entity_assignments.c.user_id.in_(users_list)]
        if entity_ids is not None:
            wanted = list(set(entity_ids))
            if not wanted:
                return set()
            conditions.append(user_entity_assignments.c.entity_id.in_(wanted))
        rows = self._fetch_all(select(user_entity_assignments.c.entity_id).where(*conditions))
        return {r['entity_id'] for r in rows}

    def get_assigned_entities(self, user_ids: Iterable[str]) -> List[Entity]:
        """Active entities assigned to any of `user_ids` (with formulas)."""
        users_list = list(set(user_ids))
        if not users_list:
            return []
        rows = self._fetch_all(
            select(entities)
            .select_from(entities.join(
                user_entity_assignments, user_entity_assignments.c.entity_id == entities.c.id
            ))
            .where(
                user_entity_assignments.c.user_id.in_(users_list),
                entities.c.deleted_at.is_(None),
            )
            .distinct()
        )
        return [Entity.from_row(r) for r in rows]

    def assign_entity(self, user_id: str, entity_id: str) -> None:
        with get_transaction(self.engine) as conn:
            conn.execute(_upsert_statement(
                conn,
                user_entity_assignments,
                {'user_id': user_id, 'entity_id': entity_id},
                ['user_id', 'entity_id'],
                {},
            ))

    # =========================================================================
    # RESPONSIBILITY ASSIGNMENTS
    # =========================================================================

    def get_node_assignment_roots(self, org_id: str, user_id: str) -> List[str]:
        rows = self._fetch_all(
            select(responsibility_node_assignments.c.root_node_id).where(
                responsibility_node_assignments.c.org_id == org_id,
                responsibility_node_assignments.c.assigned_to_id == user_id,
            )
        )
        return [r['root_node_id'] for r in rows]

    def get_kpi_assignment_ids(self, org_id: str, user_id: str) -> Set[str]:
        rows = self._fetch_all(
            select(responsibility_kpi_assignments.c.kpi_id).where(
                responsibility_kpi_assignments.c.org_id == org_id,
                responsibility_kpi_assignments.c.assigned_to_id == user_id,
            )
        )
        return {r['kpi_id'] for r in rows}

    def upsert_node_assignment(self, org_id: str, user_id: str, root_node_id: str,
                               assigned_by_id: Optional[str]) -> None:
        with get_transaction(self.engine) as conn:
            conn.execute(_upsert_statement(
                conn,
                responsibility_node_assignments,
                {
                    'org_id': org_id,
                    'assigned_to_id': user_id,
                    'root_node_id': root_node_id,
                    'assigned_by_id': assigned_by_id,
                },
                ['assigned_to_id', 'root_node_id'],
                {'assigned_by_id': assigned_by_id},
            ))

    def insert_kpi_assignments(self, org_id: str, user_id: str, kpi_ids: Iterable[str],
                               assigned_by_id: Optional[str]) -> None:
        """Duplicates are skipped."""
        with get_transaction(self.engine) as conn:
            for kpi_id in kpi_ids:
                conn.execute(_upsert_statement(
                    conn,
                    responsibility_kpi_assignments,
                    {
                        'org_id': org_id,
                        'assigned_to_id': user_id,
                        'kpi_id': kpi_id,
                        'assigned_by_id': assigned_by_id,
                    },
                    ['assigned_to_id', 'kpi_id'],
                    {},
                ))

    def delete_node_assignment(self, org_id: str, user_id: str, root_node_id: str) -> int:
        with get_transaction(self.engine) as conn:
            result = conn.execute(
                delete(responsibility_node_assignments).where(
                    responsibility_node_assignments.c.org_id == org_id,
                    responsibility_node_assignments.c.assigned_to_id == user_id,
                    responsibility_node_assignments.c.root_node_id == root_node_id,
                )
            )
            return result.rowcount

    def delete_kpi_assignment(self, org_id: str, user_id: str, kpi_id: str) -> int:
        with get_transaction(self.engine) as conn:
            result = conn.execute(
                delete(responsibility_kpi_assignments).where(
                    responsibility_kpi_assignments.c.org_id == org_id,
                    responsibility_kpi_assignments.c.assigned_to_id == user_id,
                    responsibility_kpi_assignments.c.kpi_id == kpi_id,
                )
            )
            return result.rowcount

    def __repr__(self) -> str:
        return f"EntityQueries(engine={self._engine!r})"
