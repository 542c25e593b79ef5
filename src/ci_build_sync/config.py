"""Configuration settings for CI Build Sync."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ci_build_sync.schemas.enums import PipelineType
from ci_build_sync.schemas.pipeline import Pipeline


class SyncConfig(BaseModel):
    """Configuration for build sync behavior.

    Controls page sizes used against the provider API and the
    transport-level request timeout.
    """

    runs_page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Runs per page when discovering new builds",
    )
    commits_page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Commits per page when attributing commits to builds",
    )
    verify_page_size: int = Field(
        default=1,
        ge=1,
        le=100,
        description="Runs requested by the reachability check",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP transport timeout for provider requests",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging behavior.

    Controls file logging, rotation, and output format.
    """

    log_file: str | None = Field(
        default=None,
        description="Optional path for file logging (enables rotation)",
    )
    rotation: str = Field(
        default="10 MB",
        description="When to rotate log file (e.g., '10 MB', '1 day')",
    )
    retention: str = Field(
        default="7 days",
        description="How long to keep rotated logs",
    )
    serialize: bool = Field(
        default=False,
        description="If True, output JSON format to file",
    )


class PipelineConfig(BaseModel):
    """A pipeline entry as written in configuration.

    Example (PIPELINES env var, JSON):
        [{"id": "web", "name": "Web CI", "url": "https://github.com/acme/web",
          "branches": ["main"]}]
    """

    id: str = Field(description="Stable pipeline identifier")
    name: str = Field(description="Display name")
    url: str = Field(description="Repository URL on the provider")
    type: PipelineType = Field(default=PipelineType.GITHUB_ACTIONS)
    credential: str = Field(
        default="",
        description="Access token (falls back to GITHUB_TOKEN when empty)",
    )
    branches: list[str] = Field(
        default_factory=list,
        description="Branches to attribute commits for (empty = all branches)",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # --------------------------------------------------------------------------
    # Database
    # --------------------------------------------------------------------------
    database_url: str = Field(
        default="sqlite+aiosqlite:///./ci_builds.db",
        description="Async SQLAlchemy database connection string",
    )

    # --------------------------------------------------------------------------
    # Provider credentials
    # --------------------------------------------------------------------------
    github_token: str = Field(
        default="",
        description="Fallback GitHub token for pipelines without a credential",
    )

    # --------------------------------------------------------------------------
    # Application
    # --------------------------------------------------------------------------
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # --------------------------------------------------------------------------
    # Sync Configuration
    # --------------------------------------------------------------------------
    sync: SyncConfig = Field(
        default_factory=SyncConfig,
        description="Build sync behavior configuration",
    )

    # --------------------------------------------------------------------------
    # Logging Configuration
    # --------------------------------------------------------------------------
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration (file output, rotation)",
    )

    # --------------------------------------------------------------------------
    # Tracked Pipelines
    # --------------------------------------------------------------------------
    pipelines: list[PipelineConfig] = Field(
        default_factory=list,
        description="Pipelines to sync (JSON list in the PIPELINES env var)",
    )

    def get_pipelines(self) -> list[Pipeline]:
        """Resolve configured pipelines into immutable Pipeline values."""
        return [
            Pipeline(
                id=entry.id,
                name=entry.name,
                url=entry.url,
                type=entry.type,
                credential=entry.credential or self.github_token,
                branches=frozenset(entry.branches),
            )
            for entry in self.pipelines
        ]

    def get_pipeline(self, pipeline_id: str) -> Pipeline | None:
        """Look up a configured pipeline by id."""
        for pipeline in self.get_pipelines():
            if pipeline.id == pipeline_id:
                return pipeline
        return None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
