"""
config.py

Environment-based settings for the Production Project Workflow Engine.

Every setting can be overridden with a PROJECTS_-prefixed environment
variable (e.g. PROJECTS_LOG_LEVEL=DEBUG) or a local .env file.

Use cases receive a Settings instance explicitly; only the HTTP layer and
the entry point call get_settings().
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PROJECTS_",
        env_file=".env",
        extra="ignore",
    )

    # Application
    app_name: str = "Production Project Workflow API"
    version: str = "1.0.0"
    api_prefix: str = "/api/v1"

    # Server
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    reload: bool = False
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    # Workflow behaviour
    action_url_template: str = "/projects/{project_id}"
    conceal_hidden_projects: bool = Field(
        default=True,
        description=(
            "Report projects the actor may not view as 404 instead of 403 "
            "at the HTTP boundary."
        ),
    )

    # Integrations
    mcp_enabled: bool = True

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        valid = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
        if level not in valid:
            raise ValueError(f"log_level must be one of: {sorted(valid)}")
        return level

    @field_validator("action_url_template")
    @classmethod
    def validate_action_url_template(cls, v: str) -> str:
        if "{project_id}" not in v:
            raise ValueError("action_url_template must contain '{project_id}'")
        return v


@lru_cache()
def get_settings() -> Settings:
    return Settings()
