"""Configuration management for the Library Insights MCP Server.

Settings come from the environment (prefix ``LIBRARY_INSIGHTS_``) or a local
``.env`` file and are validated with Pydantic v2. Two groups live here:

1. Server settings - identification, storage, logging, response caching
2. Analytics defaults - lookback windows, staffing ratio, fine rate
"""

from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseSettings):
    """Library Insights server configuration.

    The analytics core never reads this object directly; the resource layer
    pulls the values it needs and passes them to the report builders as
    plain keyword arguments.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIBRARY_INSIGHTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Server Metadata ===

    server_name: str = Field(
        default="library-insights",
        description="MCP server name used in protocol handshake",
        pattern=r"^[a-z0-9-]+$",
    )

    server_version: str = Field(
        default="0.1.0",
        description="Server version for capability negotiation",
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9.]+)?$",
    )

    # === Database Configuration ===

    database_path: Path = Field(
        default=Path("data/library.db"),
        description="SQLite database file path",
    )

    # === Development Configuration ===

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
    )

    # === Observability ===

    observability_enabled: bool = Field(
        default=False,
        description="Configure Logfire tracing at startup",
    )

    observability_environment: str = Field(
        default="development",
        description="Environment name attached to exported spans",
    )

    logfire_token: str | None = Field(
        default=None,
        description="Logfire write token; spans are only exported when set",
    )

    # === Response Cache ===

    resource_cache_ttl: int = Field(
        default=15,
        description="Report response cache time-to-live in seconds (0 disables)",
        ge=0,
    )

    # === Analytics Defaults ===

    default_lookback_days: int = Field(
        default=30,
        description="Lookback window used when a report does not specify one",
        ge=1,
        le=365,
    )

    visits_per_staff: int = Field(
        default=25,
        description="Visits one staff member can handle over the lookback window",
        ge=1,
    )

    staffing_top_n: int = Field(
        default=5,
        description="Number of peak hours returned by the staffing report",
        ge=1,
        le=24,
    )

    fine_per_day: float = Field(
        default=1.00,
        description="Fine charged per whole day overdue",
        ge=0.0,
    )

    underutilized_max_borrows: int = Field(
        default=0,
        description="Books with at most this many borrows in the window are underutilized",
        ge=0,
    )

    report_timezone: str = Field(
        default="UTC",
        description="IANA time zone used for hour-of-day and day-of-week buckets",
    )

    default_branch: str = Field(
        default="Main",
        description="Branch assigned to visits that do not name one",
        min_length=1,
    )

    # === Validation Methods ===

    @field_validator("database_path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Resolve the database path and make sure its directory exists."""
        abs_path = v.absolute()
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        if not abs_path.parent.is_dir():
            raise ValueError(f"Database directory {abs_path.parent} is not accessible")
        return abs_path

    @field_validator("server_name")
    @classmethod
    def validate_server_name(cls, v: str) -> str:
        if len(v) < 3:
            raise ValueError("Server name must be at least 3 characters")
        if len(v) > 50:
            raise ValueError("Server name must not exceed 50 characters")
        return v

    @field_validator("report_timezone")
    @classmethod
    def validate_report_timezone(cls, v: str) -> str:
        """Reject zone names the tz database does not know."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {v}") from e
        return v

    # === Computed Properties ===

    @property
    def is_development(self) -> bool:
        return self.debug or self.log_level == "DEBUG"

    @property
    def tzinfo(self) -> ZoneInfo:
        """Time zone object for report bucketing."""
        return ZoneInfo(self.report_timezone)

    @property
    def server_info(self) -> dict[str, str]:
        return {
            "name": self.server_name,
            "version": self.server_version,
        }

    def get_database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        return f"sqlite:///{self.database_path}"


# === Global Configuration Instance ===


class _ConfigStore:
    """Internal storage for configuration singleton."""

    _instance: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Get or create the global configuration instance."""
    if _ConfigStore._instance is None:  # type: ignore[reportPrivateUsage]
        _ConfigStore._instance = ServerConfig()  # type: ignore[reportPrivateUsage]
    return _ConfigStore._instance  # type: ignore[reportPrivateUsage]


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    _ConfigStore._instance = None  # type: ignore[reportPrivateUsage]
