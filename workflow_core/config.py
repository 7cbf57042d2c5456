"""Configuration management for the workflow orchestration core."""

import os
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DatabaseType(str, Enum):
    """Supported database types."""
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"


class EngineConfig(BaseModel):
    """Engine configuration settings."""

    # Retry settings
    max_retries: int = Field(default=3, description="Retries for RETRY rules and retryable tasks")
    retry_base_delay: float = Field(
        default=1.0,
        description="Linear backoff base in seconds; retry n waits base * n"
    )

    # Task settings
    default_task_timeout: int = Field(
        default=5000,
        description="Default API task timeout in milliseconds"
    )

    # Database settings
    database_url: str = Field(
        default="sqlite:///./workflows.db",
        description="Workflow store connection URL"
    )
    database_echo: bool = Field(default=False, description="Enable SQLAlchemy query logging")

    # Logging settings
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )
    log_file: Optional[str] = Field(default=None, description="Log file path")
    structured_logging: bool = Field(default=False, description="Emit JSON log lines")

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL format."""
        if not v:
            raise ValueError("Database URL cannot be empty")

        supported_schemes = ['sqlite', 'postgresql', 'mysql']
        scheme = v.split('://')[0].split('+')[0].lower()

        if scheme not in supported_schemes:
            raise ValueError(f"Unsupported database scheme: {scheme}. Supported: {supported_schemes}")

        return v

    @field_validator('max_retries')
    @classmethod
    def validate_max_retries(cls, v):
        """Validate retry count."""
        if v < 0:
            raise ValueError("Max retries cannot be negative")
        return v

    @field_validator('retry_base_delay')
    @classmethod
    def validate_retry_base_delay(cls, v):
        """Validate backoff base delay."""
        if v < 0:
            raise ValueError("Retry base delay cannot be negative")
        return v

    @field_validator('default_task_timeout')
    @classmethod
    def validate_default_task_timeout(cls, v):
        """Validate default task timeout."""
        if v < 1:
            raise ValueError("Default task timeout must be at least 1 millisecond")
        return v

    @property
    def database_type(self) -> DatabaseType:
        """Get the database type from the URL."""
        scheme = self.database_url.split('://')[0].lower()
        if scheme.startswith('sqlite'):
            return DatabaseType.SQLITE
        elif scheme.startswith('postgresql'):
            return DatabaseType.POSTGRESQL
        elif scheme.startswith('mysql'):
            return DatabaseType.MYSQL
        else:
            raise ValueError(f"Unknown database type: {scheme}")

    @property
    def is_sqlite(self) -> bool:
        """Check if using SQLite database."""
        return self.database_type == DatabaseType.SQLITE

    @classmethod
    def from_env(cls) -> 'EngineConfig':
        """Create configuration from WORKFLOW_ENGINE_* environment variables."""
        def get_env(key: str, default=None, type_func=str):
            """Get environment variable with type conversion."""
            value = os.getenv(f"WORKFLOW_ENGINE_{key}")
            if value is None:
                return default
            if type_func == bool:
                return str(value).lower() in ('true', '1', 'yes', 'on')
            return type_func(value)

        return cls(
            max_retries=get_env("MAX_RETRIES", 3, int),
            retry_base_delay=get_env("RETRY_BASE_DELAY", 1.0, float),
            default_task_timeout=get_env("DEFAULT_TASK_TIMEOUT", 5000, int),
            database_url=get_env("DATABASE_URL", "sqlite:///./workflows.db"),
            database_echo=get_env("DATABASE_ECHO", False, bool),
            log_level=LogLevel(get_env("LOG_LEVEL", "INFO").upper()),
            log_format=get_env("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            log_file=get_env("LOG_FILE", None),
            structured_logging=get_env("STRUCTURED_LOGGING", False, bool)
        )


# Global configuration instance
_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = EngineConfig.from_env()
    return _config


def load_config(config_file: Optional[str] = None) -> EngineConfig:
    """Load configuration from a .env file, then environment variables."""
    global _config

    if config_file and os.path.exists(config_file):
        from dotenv import load_dotenv
        load_dotenv(config_file)
    elif os.path.exists('.env'):
        from dotenv import load_dotenv
        load_dotenv('.env')

    _config = EngineConfig.from_env()

    return _config


def reset_config():
    """Reset the global configuration instance (mainly for testing)."""
    global _config
    _config = None


def get_testing_config() -> EngineConfig:
    """Get testing configuration."""
    return EngineConfig(
        max_retries=3,
        retry_base_delay=0.0,
        database_url="sqlite:///:memory:",
        log_level=LogLevel.WARNING
    )
