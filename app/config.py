"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_PLAN_PROVIDERS = {"gemini", "openrouter"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Fitcoach service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_level: str
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  plan_provider: str
  plan_model: str | None
  gemini_api_key: str | None
  openrouter_api_key: str | None
  step_timeout_seconds: float
  step_fallback_enabled: bool
  step_claim_ttl_seconds: int
  stale_record_seconds: int
  client_stale_seconds: int
  plan_frequency_days: int
  generation_auto_advance: bool
  startup_stale_sweep: bool
  email_notifications_enabled: bool
  email_from_address: str | None
  email_from_name: str | None
  mailersend_api_key: str | None
  mailersend_timeout_seconds: int
  mailersend_base_url: str


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("FITCOACH_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("FITCOACH_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("FITCOACH_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or raw.strip() == "":
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("FITCOACH_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("FITCOACH_DEBUG"))

  log_max_bytes = _positive_int("FITCOACH_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("FITCOACH_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("FITCOACH_LOG_BACKUP_COUNT must be zero or a positive integer.")

  plan_provider = (os.getenv("FITCOACH_PLAN_PROVIDER") or "gemini").strip().lower()
  if plan_provider not in _PLAN_PROVIDERS:
    raise ValueError(f"FITCOACH_PLAN_PROVIDER must be one of: {', '.join(sorted(_PLAN_PROVIDERS))}.")

  # The per-step call budget and the staleness thresholds are independent timers.
  step_timeout_seconds = float(os.getenv("FITCOACH_STEP_TIMEOUT_SECONDS", "8"))
  if step_timeout_seconds <= 0:
    raise ValueError("FITCOACH_STEP_TIMEOUT_SECONDS must be positive.")

  step_claim_ttl_seconds = _positive_int("FITCOACH_STEP_CLAIM_TTL_SECONDS", "60")
  stale_record_seconds = _positive_int("FITCOACH_STALE_RECORD_SECONDS", "900")
  client_stale_seconds = _positive_int("FITCOACH_CLIENT_STALE_SECONDS", "600")
  if step_claim_ttl_seconds < step_timeout_seconds:
    raise ValueError("FITCOACH_STEP_CLAIM_TTL_SECONDS must not be shorter than FITCOACH_STEP_TIMEOUT_SECONDS.")

  plan_frequency_days = int(os.getenv("FITCOACH_PLAN_FREQUENCY_DAYS", "30"))
  if plan_frequency_days < 0:
    raise ValueError("FITCOACH_PLAN_FREQUENCY_DAYS must be zero or a positive integer.")

  email_notifications_enabled = _parse_bool(os.getenv("FITCOACH_EMAIL_NOTIFICATIONS_ENABLED"))
  email_from_address = _optional_str(os.getenv("FITCOACH_EMAIL_FROM_ADDRESS"))
  mailersend_api_key = _optional_str(os.getenv("FITCOACH_MAILERSEND_API_KEY"))
  mailersend_timeout_seconds = int(os.getenv("FITCOACH_MAILERSEND_TIMEOUT_SECONDS", "10"))

  # Validate notification settings only when notifications are enabled.
  if email_notifications_enabled:
    if not email_from_address:
      raise ValueError("FITCOACH_EMAIL_FROM_ADDRESS must be set when email notifications are enabled.")

    if not mailersend_api_key:
      raise ValueError("FITCOACH_MAILERSEND_API_KEY must be set when email notifications are enabled.")

    if mailersend_timeout_seconds <= 0:
      raise ValueError("FITCOACH_MAILERSEND_TIMEOUT_SECONDS must be a positive integer.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("FITCOACH_ALLOWED_ORIGINS")),
    debug=debug,
    log_level=(os.getenv("FITCOACH_LOG_LEVEL") or ("DEBUG" if debug else "INFO")).strip().upper(),
    log_dir=(os.getenv("FITCOACH_LOG_DIR") or "logs").strip(),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("FITCOACH_LOG_HTTP_4XX")),
    pg_dsn=os.getenv("FITCOACH_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=int(os.getenv("FITCOACH_PG_CONNECT_TIMEOUT", "5")),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    plan_provider=plan_provider,
    plan_model=_optional_str(os.getenv("FITCOACH_PLAN_MODEL")),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    openrouter_api_key=_optional_str(os.getenv("OPENROUTER_API_KEY")),
    step_timeout_seconds=step_timeout_seconds,
    step_fallback_enabled=_parse_bool(os.getenv("FITCOACH_STEP_FALLBACK_ENABLED"), default=True),
    step_claim_ttl_seconds=step_claim_ttl_seconds,
    stale_record_seconds=stale_record_seconds,
    client_stale_seconds=client_stale_seconds,
    plan_frequency_days=plan_frequency_days,
    generation_auto_advance=_parse_bool(os.getenv("FITCOACH_GENERATION_AUTO_ADVANCE")),
    startup_stale_sweep=_parse_bool(os.getenv("FITCOACH_STARTUP_STALE_SWEEP"), default=True),
    email_notifications_enabled=email_notifications_enabled,
    email_from_address=email_from_address,
    email_from_name=_optional_str(os.getenv("FITCOACH_EMAIL_FROM_NAME")),
    mailersend_api_key=mailersend_api_key,
    mailersend_timeout_seconds=mailersend_timeout_seconds,
    mailersend_base_url=(os.getenv("FITCOACH_MAILERSEND_BASE_URL") or "https://api.mailersend.com/v1").strip(),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Keep database configuration isolated so migrations don't require unrelated env vars.
  debug = _parse_bool(os.getenv("FITCOACH_DEBUG"))
  pg_connect_timeout = _positive_int("FITCOACH_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = os.getenv("FITCOACH_PG_DSN") or os.getenv("DATABASE_URL")

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)
