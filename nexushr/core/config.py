import os
import logging
from pydantic import BaseModel, Field
from typing import Optional
from dotenv import load_dotenv


def _env(name: str, default: Optional[str] = None):
    return Field(default_factory=lambda: os.getenv(name, default))


def _env_int(name: str, default: int):
    return Field(default_factory=lambda: int(os.getenv(name, str(default))))


def _env_float(name: str, default: float):
    return Field(default_factory=lambda: float(os.getenv(name, str(default))))


def _env_flag(name: str, default: str = "false"):
    return Field(default_factory=lambda: os.getenv(name, default).lower() == "true")


class AISettings(BaseModel):
    openrouter_api_key: Optional[str] = _env("OPENROUTER_API_KEY")
    model_name: str = _env("AI_MODEL_NAME", "google/gemini-2.0-flash-001")
    kill_switch: bool = _env_flag("AI_KILL_SWITCH")
    timeout_seconds: float = 10.0


class SyncSettings(BaseModel):
    # Remote API base URL. Unset means local-only mode.
    api_url: Optional[str] = _env("NEXUS_API_URL")
    request_timeout: float = _env_float("NEXUS_REQUEST_TIMEOUT", 5.0)

    # Attempts made inside a single push before the entry is left queued
    push_attempts: int = _env_int("NEXUS_SYNC_PUSH_ATTEMPTS", 2)
    push_wait_seconds: float = _env_float("NEXUS_SYNC_PUSH_WAIT", 0.5)

    # Retry worker backoff between pushes
    retry_base_seconds: float = _env_float("NEXUS_SYNC_RETRY_BASE", 30.0)
    retry_max_seconds: float = _env_float("NEXUS_SYNC_RETRY_MAX", 3600.0)
    max_attempts: int = _env_int("NEXUS_SYNC_MAX_ATTEMPTS", 10)


class SchedulerSettings(BaseModel):
    auto_approve_interval: float = _env_float("NEXUS_AUTO_APPROVE_INTERVAL", 60.0)
    refresh_interval: float = _env_float("NEXUS_REFRESH_INTERVAL", 300.0)
    retry_interval: float = _env_float("NEXUS_RETRY_INTERVAL", 30.0)
    connectivity_interval: float = _env_float("NEXUS_CONNECTIVITY_INTERVAL", 15.0)


class Config(BaseModel):
    app_name: str = "NexusHR"
    environment: str = _env("APP_ENV", "development")
    version: str = "2.0.0"
    log_level: str = _env("LOG_LEVEL", "INFO")
    request_id_header: str = "X-Request-ID"

    # Local store (client side) and reference backend storage
    local_database_url: str = _env("NEXUS_LOCAL_DB_URL", "sqlite:///./nexushr_local.db")
    server_database_url: str = _env("NEXUS_SERVER_DB_URL", "sqlite:///./nexushr_server.db")

    # Accounts
    admin_user: str = _env("NEXUS_ADMIN_USER", "admin")
    admin_password: str = _env("NEXUS_ADMIN_PASSWORD", "dev-only-8278")
    default_employee_password: str = "1234"
    min_password_length: int = 4

    # Leave workflow
    auto_approve_hours: float = _env_float("NEXUS_AUTO_APPROVE_HOURS", 6.0)

    # Payroll
    pay_day: int = 10

    sync: SyncSettings = Field(default_factory=SyncSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    ai: AISettings = Field(default_factory=AISettings)


_logger = logging.getLogger(__name__)


def load_settings(**overrides) -> Config:
    """
    Build the configuration object from the environment.

    Called once at startup; the result is passed explicitly to every service.
    """
    load_dotenv()
    settings = Config(**overrides)

    # --- Startup Validation for Production ---
    if settings.environment not in ("development", "testing"):
        if "dev-only" in settings.admin_password:
            raise RuntimeError(
                "FATAL: NEXUS_ADMIN_PASSWORD must be set for non-development environments."
            )
    elif "dev-only" in settings.admin_password:
        _logger.warning("Using default admin password - only acceptable in development.")
    return settings
