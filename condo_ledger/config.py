"""Application configuration from environment variables."""

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = Field(
        default="sqlite:///./condo_ledger.db",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(
        default=False, description="Log SQL statements through the sqlalchemy.engine logger"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: str = Field(default="logs/server.log", description="Path to log file")

    # Ledger
    charge_day_of_month: int = Field(
        default=1,
        ge=1,
        le=28,
        description="Day of the month generated charges are dated on",
    )
    report_footer_default: str = Field(
        default="Building Administration System",
        description="Footer printed on statements when none is configured",
    )

    # API
    api_title: str = Field(default="Condo Ledger API", description="API title")
    api_version: str = Field(default="0.1.0", description="API version")


# Global settings instance
settings = Settings()
