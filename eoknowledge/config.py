"""
Centralized configuration management for the application.
Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field, validator


# ============================================================================
# Path Configuration
# ============================================================================

PACKAGE_DIR = Path(__file__).parent
PROJECT_ROOT = PACKAGE_DIR.parent
OUTPUTS_DIR = PROJECT_ROOT / "outputs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ========================================================================
    # Application Configuration
    # ========================================================================
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_to_file: bool = Field(default=True, alias="LOG_TO_FILE")
    logs_dir: Path = Field(default=PROJECT_ROOT / "logs", alias="LOGS_DIR")

    # ========================================================================
    # Extraction Configuration
    # ========================================================================
    enabled_extractors: str = Field(
        default="date,requirement,impact,entity,definition,authority",
        alias="ENABLED_EXTRACTORS",
    )
    context_window: int = Field(default=100, alias="CONTEXT_WINDOW")
    min_entity_name_length: int = Field(default=4, alias="MIN_ENTITY_NAME_LENGTH")

    @property
    def enabled_extractors_list(self) -> list[str]:
        """Enabled extractor types as a list."""
        return [name.strip() for name in self.enabled_extractors.split(",") if name.strip()]

    # ========================================================================
    # Impact Linking Configuration
    # ========================================================================
    relatedness_threshold: float = Field(default=0.3, alias="RELATEDNESS_THRESHOLD")
    link_impacts_to_requirements: bool = Field(default=True, alias="LINK_IMPACTS_TO_REQUIREMENTS")

    class Config:
        """Pydantic settings config."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @validator("relatedness_threshold")
    def validate_threshold(cls, v):
        """Ensure relatedness threshold is between 0 and 1."""
        if not 0 <= v <= 1:
            raise ValueError("relatedness_threshold must be between 0 and 1")
        return v

    @validator("context_window", "min_entity_name_length")
    def validate_positive(cls, v):
        """Ensure window sizes and lengths are not negative."""
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    @validator("log_level")
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @validator("environment")
    def validate_environment(cls, v):
        """Ensure environment is valid."""
        valid_envs = {"development", "production", "testing"}
        if v.lower() not in valid_envs:
            raise ValueError(f"environment must be one of {valid_envs}")
        return v.lower()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Returns:
        Settings: Application configuration object
    """
    return Settings()


# Convenience access
settings = get_settings()
