"""Application settings loaded from the environment."""

from typing import Optional

from pydantic import Field, PostgresDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from billsync.core.config.enums import Environment


class Settings(BaseSettings):
    """Settings for the billsync backend.

    Attributes:
    ----------
        ENVIRONMENT (Environment): Deployment environment.
        LOCAL_DEVELOPMENT (bool): Emit human-readable logs instead of JSON.
        LOG_LEVEL (str): Root log level.
        TESTING (bool): Set by the test suite.
        POSTGRES_HOST (str): PostgreSQL host.
        POSTGRES_PORT (int): PostgreSQL port.
        POSTGRES_USER (str): PostgreSQL user.
        POSTGRES_PASSWORD (str): PostgreSQL password.
        POSTGRES_DB (str): PostgreSQL database name.
        POSTGRES_SSLMODE (str): SSL mode for the connection ("disable" for PgBouncer).
        db_pool_size (int): Base size of the SQLAlchemy connection pool.
        db_pool_max_overflow (int): Extra connections allowed above the pool size.
        BILLING_DEFAULT_SOURCE (str): Source recorded when a caller does not supply one.
        BILLING_REJECT_DUPLICATE_EVENT_IDS (bool): Skip events whose provider event id
            already has an audit entry.
        METRICS_ENABLED (bool): Wire Prometheus metrics instead of the no-op fake.
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    ENVIRONMENT: Environment = Environment.LOCAL
    LOCAL_DEVELOPMENT: bool = False
    LOG_LEVEL: str = "INFO"
    TESTING: bool = False

    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "billsync"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "billsync"
    POSTGRES_SSLMODE: str = "prefer"

    db_pool_size: int = 20
    db_pool_max_overflow: int = 40

    BILLING_DEFAULT_SOURCE: str = "webhook"
    BILLING_REJECT_DUPLICATE_EVENT_IDS: bool = False

    METRICS_ENABLED: bool = True

    SQLALCHEMY_ASYNC_DATABASE_URI: Optional[PostgresDsn] = Field(
        default=None, validate_default=True
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return level

    @field_validator("SQLALCHEMY_ASYNC_DATABASE_URI", mode="before")
    @classmethod
    def _assemble_db_connection(cls, v: Optional[str], info) -> str:
        """Build the asyncpg connection URI from the POSTGRES_* parts when not set."""
        if isinstance(v, str) and v:
            return v
        data = info.data
        return str(
            PostgresDsn.build(
                scheme="postgresql+asyncpg",
                username=data.get("POSTGRES_USER"),
                password=data.get("POSTGRES_PASSWORD") or None,
                host=data.get("POSTGRES_HOST"),
                port=data.get("POSTGRES_PORT"),
                path=data.get("POSTGRES_DB") or "",
            )
        )
