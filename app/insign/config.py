import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    jwt_secret: str
    jwt_expires_in_days: int

    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_pass: str
    smtp_from: str

    app_client_url: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    smtp_user = _getenv("SMTP_USER", "")
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///insign.db"),
        log_level=_getenv("LOG_LEVEL", "INFO"),
        jwt_secret=_getenv("JWT_SECRET", "change-me"),
        jwt_expires_in_days=_getenv_int("JWT_EXPIRES_IN_DAYS", 7),
        smtp_host=_getenv("SMTP_HOST", ""),
        smtp_port=_getenv_int("SMTP_PORT", 465),
        smtp_user=smtp_user,
        smtp_pass=_getenv("SMTP_PASS", ""),
        # Sender falls back to the SMTP login.
        smtp_from=_getenv("SMTP_FROM", smtp_user),
        app_client_url=_getenv("APP_CLIENT_URL", "https://example.com"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "JWT_SECRET": s.jwt_secret,
        "JWT_EXPIRES_IN_DAYS": s.jwt_expires_in_days,
        "SMTP_HOST": s.smtp_host,
        "SMTP_PORT": s.smtp_port,
        "SMTP_USER": s.smtp_user,
        "SMTP_PASS": s.smtp_pass,
        "SMTP_FROM": s.smtp_from,
        "APP_CLIENT_URL": s.app_client_url,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        "JSON_SORT_KEYS": False,
    }
