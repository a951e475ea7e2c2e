# strategy_engine/config.py
"""
Centralized Configuration Management

Version: 1.0.0
Features:
- Local .env loading (python-dotenv)
- Singleton pattern for efficiency
- Type-safe getters with defaults
- Full DATABASE_URL override (used by tests and non-MySQL deployments)
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from typing import Dict, Any, Optional
from dataclasses import dataclass

# Initialize logger
logger = logging.getLogger(__name__)


@dataclass
class DatabaseConfig:
    """Database configuration container"""
    host: str
    port: int
    user: str
    password: str
    database: str
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'host': self.host,
            'port': self.port,
            'user': self.user,
            'password': self.password,
            'database': self.database,
            'url': self.url,
        }

    def is_configured(self) -> bool:
        if self.url:
            return True
        return bool(self.host and self.user and self.password)


class Config:
    """
    Centralized configuration management

    Usage:
        from strategy_engine.config import config

        # Get database config
        db_config = config.get_db_config()

        # Get engine settings
        steps = config.get_app_setting("FORMULA_MAX_STEPS", 4000)
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._load_config()
        self._initialized = True

    def _load_config(self):
        """Load configuration from the environment"""
        self._load_env_file()
        self._load_db_config()
        self._load_app_config()
        self._log_config_status()

    def _load_env_file(self):
        """Find and load .env file"""
        env_paths = [
            Path.cwd() / ".env",
            Path(__file__).parent.parent / ".env",
        ]

        for env_path in env_paths:
            if env_path.exists():
                load_dotenv(env_path)
                logger.info(f"Loaded .env from: {env_path}")
                break

    def _load_db_config(self):
        """Database settings. Validated when the engine is built, not here."""
        self._db_config = DatabaseConfig(
            host=os.getenv("DB_HOST", ""),
            port=int(os.getenv("DB_PORT", "3306")),
            user=os.getenv("DB_USER", ""),
            password=os.getenv("DB_PASSWORD", ""),
            database=os.getenv("DB_NAME", os.getenv("DB_DATABASE", "strategy")),
            url=os.getenv("DATABASE_URL") or None,
        )

    def _load_app_config(self):
        """Load engine-specific settings"""
        self._app_config = {
            # Database pool
            "DB_POOL_SIZE": int(os.getenv("DB_POOL_SIZE", "5")),
            "DB_POOL_RECYCLE": int(os.getenv("DB_POOL_RECYCLE", "3600")),

            # Formula evaluation limits
            "FORMULA_MAX_LENGTH": int(os.getenv("FORMULA_MAX_LENGTH", "2000")),
            "FORMULA_MAX_STEPS": int(os.getenv("FORMULA_MAX_STEPS", "4000")),

            # Dependency traversal
            "CASCADE_MAX_DEPTH": int(os.getenv("CASCADE_MAX_DEPTH", "5")),
            "DEPENDENCY_TREE_MAX_DEPTH": int(os.getenv("DEPENDENCY_TREE_MAX_DEPTH", "5")),

            # Approval workflow
            "DEFAULT_APPROVAL_LEVEL": os.getenv("DEFAULT_APPROVAL_LEVEL", "MANAGER").upper(),
        }

    def _log_config_status(self):
        """Log configuration status"""
        if self._db_config.url:
            logger.info("Database: DATABASE_URL override")
        elif self._db_config.is_configured():
            logger.info(f"Database: {self._db_config.host}/{self._db_config.database}")
        else:
            logger.info("Database: not configured")

    # ==================== PUBLIC GETTERS ====================

    def get_db_config(self) -> Dict[str, Any]:
        """Get database configuration as dictionary"""
        return self._db_config.to_dict()

    def is_db_configured(self) -> bool:
        return self._db_config.is_configured()

    def get_app_setting(self, key: str, default: Any = None) -> Any:
        """Get application setting with default"""
        return self._app_config.get(key, default)

    # ==================== PROPERTIES ====================

    @property
    def app_config(self) -> Dict[str, Any]:
        return self._app_config.copy()


# ==================== SINGLETON INSTANCE ====================

config = Config()

__all__ = [
    'config',
    'Config',
    'DatabaseConfig',
]
