"""
Application settings loaded from environment variables.

Values are read once by load_settings() (after loading an optional .env file)
and passed down explicitly to the database, auth and notification layers.
"""

import logging
import os
import secrets
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ["HS256", "HS384", "HS512"]

# 7 days, matching the lifetime of the login cookie
DEFAULT_TOKEN_EXPIRE_MINUTES = 7 * 24 * 60
MAX_TOKEN_EXPIRE_MINUTES = 30 * 24 * 60


def _first_env(*names: str, default: Optional[str] = None) -> Optional[str]:
    """Return the first non-empty environment variable among names."""
    for name in names:
        value = os.environ.get(name)
        if value is not None and value.strip():
            return value
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def is_production_like(environment: str) -> bool:
    """
    Check if an environment name is production-like (production or staging).

    Used for security-sensitive checks like JWT secret validation and
    secure cookie settings.
    """
    return environment.lower() in ("production", "staging")


@dataclass
class Settings:
    database_url: str = "sqlite:///./taskboard.db"
    jwt_secret_key: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = DEFAULT_TOKEN_EXPIRE_MINUTES
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    create_tables: bool = True

    # SMTP settings for registration emails (notifications disabled when smtp_user is empty)
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = ""

    @property
    def cookie_secure(self) -> bool:
        return is_production_like(self.environment)

    @property
    def cookie_samesite(self) -> str:
        return "strict" if is_production_like(self.environment) else "lax"


def _load_token_expiry() -> int:
    try:
        minutes = int(os.environ.get("ACCESS_TOKEN_EXPIRE_MINUTES", str(DEFAULT_TOKEN_EXPIRE_MINUTES)))
    except ValueError:
        logger.warning(
            "⚠️  Invalid ACCESS_TOKEN_EXPIRE_MINUTES value in environment. "
            f"Using default of {DEFAULT_TOKEN_EXPIRE_MINUTES} minutes."
        )
        return DEFAULT_TOKEN_EXPIRE_MINUTES

    if minutes < 1 or minutes > MAX_TOKEN_EXPIRE_MINUTES:
        logger.warning(
            f"⚠️  ACCESS_TOKEN_EXPIRE_MINUTES={minutes} is outside safe range (1-{MAX_TOKEN_EXPIRE_MINUTES}). "
            f"Using default of {DEFAULT_TOKEN_EXPIRE_MINUTES} minutes."
        )
        return DEFAULT_TOKEN_EXPIRE_MINUTES
    return minutes


def _load_jwt_secret(environment: str) -> str:
    secret = _first_env("JWT_SECRET_KEY", "JWT_SECRET")
    if secret:
        return secret

    if is_production_like(environment):
        raise ValueError(
            "JWT_SECRET_KEY environment variable is required in production. "
            "Generate a secure key with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
        )

    logger.warning(
        "⚠️  JWT_SECRET_KEY not set! Using temporary development key. "
        "This is INSECURE for production. Set JWT_SECRET_KEY environment variable."
    )
    return "dev-insecure-key-" + secrets.token_urlsafe(32)


def load_settings() -> Settings:
    """
    Build Settings from the process environment.

    Raises:
        ValueError: if a production-like environment has no JWT secret
    """
    load_dotenv(override=False)

    environment = os.environ.get("ENVIRONMENT", "development")

    algorithm = os.environ.get("JWT_ALGORITHM", "HS256")
    if algorithm not in SUPPORTED_ALGORITHMS:
        logger.warning(
            f"⚠️  Unsupported JWT_ALGORITHM={algorithm}. Using HS256. "
            f"Supported: {', '.join(SUPPORTED_ALGORITHMS)}"
        )
        algorithm = "HS256"

    try:
        smtp_port = int(os.environ.get("SMTP_PORT", "587"))
    except ValueError:
        logger.warning("⚠️  Invalid SMTP_PORT value in environment. Using default of 587.")
        smtp_port = 587

    smtp_user = _first_env("SMTP_USER", "EMAIL_SENDER", default="")
    origins = os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")

    settings = Settings(
        database_url=_first_env("DATABASE_URL", "DB_URL", default="sqlite:///./taskboard.db"),
        jwt_secret_key=_load_jwt_secret(environment),
        jwt_algorithm=algorithm,
        access_token_expire_minutes=_load_token_expiry(),
        environment=environment,
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        cors_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
        create_tables=_env_bool("CREATE_TABLES", True),
        smtp_host=os.environ.get("SMTP_HOST", "smtp.gmail.com"),
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_password=_first_env("SMTP_PASS", "EMAIL_PASSWORD", default=""),
        smtp_from=_first_env("SMTP_FROM", default=smtp_user),
    )
    logger.debug(f"Settings loaded for environment: {settings.environment}")
    return settings
