# strategy_engine/entity_performance/schema.py
"""
Table definitions for the entity performance store.

Only the columns the engine reads or writes are declared. Rows are never
hard-deleted while values reference them; `deleted_at` marks soft deletes.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

organizations = Table(
    'organizations', metadata,
    Column('id', String(36), primary_key=True),
    Column('name', String(255), nullable=False),
    Column('kpi_approval_level', String(32), nullable=True),
    Column('deleted_at', DateTime(timezone=True), nullable=True),
)

users = Table(
    'users', metadata,
    Column('id', String(36), primary_key=True),
    Column('org_id', String(36), ForeignKey('organizations.id'), nullable=True),
    Column('name', String(255), nullable=True),
    Column('role', String(32), nullable=True),
    Column('manager_id', String(36), ForeignKey('users.id'), nullable=True),
    Column('deleted_at', DateTime(timezone=True), nullable=True),
)

nodes = Table(
    'nodes', metadata,
    Column('id', String(36), primary_key=True),
    Column('org_id', String(36), ForeignKey('organizations.id'), nullable=False),
    Column('name', String(255), nullable=False),
    Column('parent_id', String(36), ForeignKey('nodes.id'), nullable=True),
    Column('deleted_at', DateTime(timezone=True), nullable=True),
)

entities = Table(
    'entities', metadata,
    Column('id', String(36), primary_key=True),
    Column('org_id', String(36), ForeignKey('organizations.id'), nullable=False),
    Column('key', String(128), nullable=True),
    Column('title', String(255), nullable=False),
    Column('entity_type', String(32), nullable=True),
    Column('period_type', String(16), nullable=True),
    Column('formula', Text, nullable=True),
    Column('achievement_formula', Text, nullable=True),
    Column('direction', String(32), nullable=False, default='INCREASE_IS_GOOD'),
    Column('baseline_value', Float, nullable=True),
    Column('target_value', Float, nullable=True),
    Column('parent_id', String(36), ForeignKey('entities.id'), nullable=True),
    Column('primary_node_id', String(36), ForeignKey('nodes.id'), nullable=True),
    Column('owner_user_id', String(36), ForeignKey('users.id'), nullable=True),
    Column('deleted_at', DateTime(timezone=True), nullable=True),
    UniqueConstraint('org_id', 'key', name='entity_org_key_unique'),
)

entity_variables = Table(
    'entity_variables', metadata,
    Column('id', String(36), primary_key=True),
    Column('entity_id', String(36), ForeignKey('entities.id'), nullable=False),
    Column('code', String(64), nullable=False),
    Column('display_name', String(255), nullable=True),
    Column('data_type', String(16), nullable=False, default='NUMBER'),
    Column('is_required', Boolean, nullable=False, default=False),
    Column('is_static', Boolean, nullable=False, default=False),
    Column('static_value', Float, nullable=True),
    UniqueConstraint('entity_id', 'code', name='entity_variable_code_unique'),
)

entity_value_periods = Table(
    'entity_value_periods', metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('entity_id', String(36), ForeignKey('entities.id'), nullable=False),
    Column('period_start', DateTime(timezone=True), nullable=False),
    Column('period_end', DateTime(timezone=True), nullable=False),
    Column('actual_value', Float, nullable=True),
    Column('calculated_value', Float, nullable=True),
    Column('final_value', Float, nullable=True),
    Column('achievement_value', Float, nullable=True),
    Column('status', String(16), nullable=False, default='DRAFT'),
    Column('note', Text, nullable=True),
    Column('entered_by', String(36), nullable=True),
    Column('submitted_by', String(36), nullable=True),
    Column('submitted_at', DateTime(timezone=True), nullable=True),
    Column('approved_by', String(36), nullable=True),
    Column('approved_at', DateTime(timezone=True), nullable=True),
    Column('approval_type', String(16), nullable=True),
    UniqueConstraint('entity_id', 'period_start', 'period_end', name='entity_period_unique'),
)

entity_variable_values = Table(
    'entity_variable_values', metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('entity_value_id', Integer, ForeignKey('entity_value_periods.id'), nullable=False),
    Column('entity_variable_id', String(36), ForeignKey('entity_variables.id'), nullable=False),
    Column('value', Float, nullable=False),
    UniqueConstraint('entity_value_id', 'entity_variable_id', name='entity_variable_value_unique'),
)

user_entity_assignments = Table(
    'user_entity_assignments', metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('entity_id', String(36), ForeignKey('entities.id'), nullable=False),
    UniqueConstraint('user_id', 'entity_id', name='user_entity_assignment_unique'),
)

responsibility_node_assignments = Table(
    'responsibility_node_assignments', metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('org_id', String(36), ForeignKey('organizations.id'), nullable=False),
    Column('assigned_to_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('root_node_id', String(36), ForeignKey('nodes.id'), nullable=False),
    Column('assigned_by_id', String(36), ForeignKey('users.id'), nullable=True),
    UniqueConstraint('assigned_to_id', 'root_node_id', name='responsibility_node_unique'),
)

responsibility_kpi_assignments = Table(
    'responsibility_kpi_assignments', metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('org_id', String(36), ForeignKey('organizations.id'), nullable=False),
    Column('assigned_to_id', String(36), ForeignKey('users.id'), nullable=False),
    Column('kpi_id', String(36), ForeignKey('entities.id'), nullable=False),
    Column('assigned_by_id', String(36), ForeignKey('users.id'), nullable=True),
    UniqueConstraint('assigned_to_id', 'kpi_id', name='responsibility_kpi_unique'),
)
