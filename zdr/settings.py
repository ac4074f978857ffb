from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Deployment layout
    deploy_dir: str = os.getenv("ZDR_DEPLOY_DIR", "/opt/deployments")
    manifest_suffix: str = os.getenv("ZDR_MANIFEST_SUFFIX", "docker-compose.yml")
    service_prefix: str = os.getenv("ZDR_SERVICE_PREFIX", "app")
    compose_project: str | None = os.getenv("ZDR_COMPOSE_PROJECT")

    # Timeouts for calls into the orchestration runtime
    apply_timeout_s: int = _env_int("ZDR_APPLY_TIMEOUT_S", 120)
    confirm_timeout_s: int = _env_int("ZDR_CONFIRM_TIMEOUT_S", 30)
    docker_timeout_s: int = _env_int("ZDR_DOCKER_TIMEOUT_S", 10)

    # Optional post-apply probe of the target's version subdomain, e.g. "/health".
    health_path: str | None = os.getenv("ZDR_HEALTH_PATH")
    health_scheme: str = os.getenv("ZDR_HEALTH_SCHEME", "https")

    # Event journal
    db_path: str = os.getenv("ZDR_DB_PATH", "zdr.db")

    # HTTP API (basic auth). No password configured means every request is rejected.
    api_user: str = os.getenv("ZDR_API_USER", "admin")
    api_password: str | None = os.getenv("ZDR_API_PASSWORD")

    # Email alerting (optional)
    enable_email: bool = _env_bool("ZDR_ENABLE_EMAIL", False)
    smtp_host: str = os.getenv("ZDR_SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = _env_int("ZDR_SMTP_PORT", 587)
    smtp_user: str | None = os.getenv("ZDR_SMTP_USER")
    smtp_password: str | None = os.getenv("ZDR_SMTP_PASSWORD")
    email_from: str | None = os.getenv("ZDR_EMAIL_FROM")
    email_to: str | None = os.getenv("ZDR_EMAIL_TO")


settings = Settings()
