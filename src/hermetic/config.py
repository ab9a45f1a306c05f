"""hermetic configuration settings."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hermetic.infrastructure.config.settings_utils import env_flag, env_names, env_path, env_str
from hermetic.infrastructure.logging_setup import configure_logging
from hermetic.infrastructure.storage.path_guard import normalize_path
from hermetic.infrastructure.storage.temp_dirs import DEFAULT_PREFIX, TempDirectoryProvider


class Settings(BaseSettings):
    """Sandbox settings with env var support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )

    # Ephemeral directories (None means the platform temp dir)
    temp_root: Optional[Path] = Field(
        default_factory=lambda: env_path("TEMP_ROOT")
    )
    temp_prefix: str = Field(
        default_factory=lambda: env_str("TEMP_PREFIX", DEFAULT_PREFIX)
    )

    # Names exempt from environment restoration in every EnvironmentSandbox
    preserved_env: list[str] = Field(
        default_factory=lambda: env_names("PRESERVED_ENV")
    )

    # Observability
    log_level: str = Field(default_factory=lambda: env_str("LOG_LEVEL", "INFO"))
    log_json: bool = Field(default_factory=lambda: env_flag("LOG_JSON", False))

    @field_validator("temp_root", mode="after")
    @classmethod
    def _normalize_temp_root(cls, value: Optional[Path]) -> Optional[Path]:
        if value is None:
            return None
        return normalize_path(value)

    @field_validator("temp_prefix", mode="after")
    @classmethod
    def _validate_temp_prefix(cls, value: str) -> str:
        if "/" in value or "\\" in value:
            raise ValueError("temp_prefix must not contain path separators")
        return value

    def setup_logging(self) -> None:
        configure_logging(level=self.log_level, json_logs=self.log_json)

    def ensure_directories(self) -> None:
        """Ensure the configured temp root exists."""
        if self.temp_root is not None:
            self.temp_root.mkdir(parents=True, exist_ok=True)

    def temp_directory_provider(self) -> TempDirectoryProvider:
        return TempDirectoryProvider(root=self.temp_root, prefix=self.temp_prefix)


# Global settings instance
settings = Settings()
