"""
guarduim.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for the controller and the operator API.
- Hide secrets from repr/logging (e.g., JWT secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_JWT_SECRET = "dev-secret-change-me"


class Settings(BaseSettings):
    """
    All knobs are read from `GUARDUIM_*` environment variables.
    List-valued settings (e.g. `audit_log_command`) are given as JSON arrays.
    """

    model_config = SettingsConfigDict(env_prefix="GUARDUIM_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "guarduim"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Auth
    jwt_alg: str = "HS256"
    jwt_issuer: str = "guarduim"
    jwt_audience: str = "guarduim-api"
    jwt_secret: str = Field(default=DEV_JWT_SECRET, repr=False)
    jwt_leeway_seconds: int = Field(default=30, ge=0)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./guarduim.db"

    # Controller loop
    controller_enabled: bool = True
    workers: int = Field(default=4, ge=1)
    requeue_after_seconds: float = Field(default=30.0, gt=0)
    resync_interval_seconds: float = Field(default=60.0, gt=0)
    call_timeout_seconds: float = Field(default=10.0, gt=0)
    backoff_base_seconds: float = Field(default=0.5, gt=0)
    backoff_max_seconds: float = Field(default=300.0, gt=0)
    cleanup_bindings_on_delete: bool = False

    # Operating namespace: explicit value wins over the service-account file.
    watch_namespace: str | None = None
    all_namespaces: bool = False
    namespace_file: str = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

    # Enforcement
    deny_role_name: str = "guarduim-deny"

    # Failure signal source
    signal_source: Literal["exec", "http"] = "exec"
    audit_log_command: list[str] = Field(
        default_factory=lambda: [
            "oc",
            "adm",
            "node-logs",
            "--role=master",
            "--path=oauth-server/audit.log",
        ]
    )
    signal_api_base_url: str = "http://localhost:9090"
    signal_api_path: str = "/v1/failures/{username}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Settings are read once per process; tests construct `Settings(...)` directly instead.
