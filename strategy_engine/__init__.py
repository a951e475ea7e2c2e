# strategy_engine/__init__.py
"""
Strategy Engine - shared utilities

This package contains utilities shared by the engine modules:
- config: Configuration management (.env + environment)
- db: Database connection management with pooling

Usage:
    from strategy_engine import config, get_db_engine
    from strategy_engine.entity_performance import EntityValueCalculator, AccessResolver
"""

# Configuration
from .config import (
    config,
    Config,
    DatabaseConfig,
)

# Database
from .db import (
    get_db_engine,
    check_db_connection,
    reset_db_engine,
    get_connection,
    get_transaction,
    execute_query,
    execute_query_df,
)

__all__ = [
    # Config
    'config',
    'Config',
    'DatabaseConfig',

    # Database
    'get_db_engine',
    'check_db_connection',
    'reset_db_engine',
    'get_connection',
    'get_transaction',
    'execute_query',
    'execute_query_df',
]

__version__ = '1.0.0'
