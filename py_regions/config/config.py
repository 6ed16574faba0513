from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .generator_settings import RegionGeneratorOptions


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="REGIONS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Database Configuration
    database_url: str = Field(default="sqlite:///regions.db", description="SQLAlchemy database URL")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Logging format (plain or json)")

    # Region Generation Configuration
    generator: RegionGeneratorOptions = Field(
        default_factory=RegionGeneratorOptions, description="Default generator options"
    )


# Instantiate singleton settings object
settings = Settings()
