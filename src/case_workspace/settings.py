"""Service-specific settings for case-workspace.

All settings use the CASE_WORKSPACE_ env prefix.
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for case-workspace.

    Environment variable prefix: CASE_WORKSPACE_
    """

    service_name: str = "case-workspace"

    # Snapshot persistence
    storage_backend: Literal["memory", "json_file", "sql"] = "memory"
    storage_key: str = "life-ai.case-management"
    storage_path: str = ".case-workspace/snapshots"
    database_url: str = "sqlite:///./case-workspace.db"

    # Audit log
    activity_limit: int = 25

    # Observability
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    model_config = SettingsConfigDict(env_prefix="CASE_WORKSPACE_", env_file=".env", extra="ignore")
