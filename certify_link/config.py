"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = os.getenv("APP_NAME", "Certify Link")
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = _flag("DEBUG")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    API_PREFIX: str = os.getenv("API_PREFIX", "/api/v1")

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # CORS: comma-separated origins. Empty allows any origin outside production.
    CORS_ORIGINS: list[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "").split(",")
        if origin.strip()
    ]

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/certify_link"
    )

    # JWT
    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-me-access-secret")
    JWT_REFRESH_SECRET: str = os.getenv(
        "JWT_REFRESH_SECRET", "change-me-refresh-secret"
    )
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
        os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15")
    )
    REFRESH_TOKEN_EXPIRE_DAYS: int = int(
        os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7")
    )
    REMEMBER_ME_ACCESS_DAYS: int = int(os.getenv("REMEMBER_ME_ACCESS_DAYS", "7"))
    REMEMBER_ME_REFRESH_DAYS: int = int(
        os.getenv("REMEMBER_ME_REFRESH_DAYS", "90")
    )

    # Security
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))
    PASSWORD_MIN_LENGTH: int = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))
    PASSWORD_HISTORY_LIMIT: int = int(os.getenv("PASSWORD_HISTORY_LIMIT", "5"))
    MAX_LOGIN_ATTEMPTS: int = int(os.getenv("MAX_LOGIN_ATTEMPTS", "5"))
    ACCOUNT_LOCKOUT_MINUTES: int = int(
        os.getenv("ACCOUNT_LOCKOUT_MINUTES", "30")
    )
    PASSWORD_RESET_EXPIRE_MINUTES: int = int(
        os.getenv("PASSWORD_RESET_EXPIRE_MINUTES", "60")
    )

    # ORASS (Oracle policy database, read-only)
    ORASS_HOST: str = os.getenv("ORASS_HOST", "localhost")
    ORASS_PORT: int = int(os.getenv("ORASS_PORT", "1521"))
    ORASS_SID: str = os.getenv("ORASS_SID", "ORCL")
    ORASS_USERNAME: str = os.getenv("ORASS_USERNAME", "")
    ORASS_PASSWORD: str = os.getenv("ORASS_PASSWORD", "")
    ORASS_CONNECTION_TIMEOUT: int = int(
        os.getenv("ORASS_CONNECTION_TIMEOUT", "30")
    )
    ORASS_REQUEST_TIMEOUT: int = int(os.getenv("ORASS_REQUEST_TIMEOUT", "60"))
    ORASS_DATABASE_URL: str = os.getenv(
        "ORASS_DATABASE_URL",
        f"oracle+oracledb://{ORASS_USERNAME}:{ORASS_PASSWORD}"
        f"@{ORASS_HOST}:{ORASS_PORT}/?service_name={ORASS_SID}",
    )

    # ASACI (certificate issuance provider)
    ASACI_BASE_URL: str = os.getenv(
        "ASACI_BASE_URL", "https://asaci.example.com/api/v1"
    )
    ASACI_API_KEY: str = os.getenv("ASACI_API_KEY", "")
    ASACI_TIMEOUT: float = float(os.getenv("ASACI_TIMEOUT", "30"))
    ASACI_EMAIL: str = os.getenv("ASACI_EMAIL", "")
    ASACI_PASSWORD: str = os.getenv("ASACI_PASSWORD", "")
    ASACI_CLIENT_NAME: str = os.getenv("ASACI_CLIENT_NAME", "certify-link")

    # Circuit breaker and rate limit (read but not enforced)
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = int(
        os.getenv("CIRCUIT_BREAKER_FAILURE_THRESHOLD", "5")
    )
    CIRCUIT_BREAKER_RESET_TIMEOUT: int = int(
        os.getenv("CIRCUIT_BREAKER_RESET_TIMEOUT", "60000")
    )
    RATE_LIMIT_WINDOW_MS: int = int(os.getenv("RATE_LIMIT_WINDOW_MS", "900000"))
    RATE_LIMIT_MAX_REQUESTS: int = int(
        os.getenv("RATE_LIMIT_MAX_REQUESTS", "100")
    )

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Feature flags
    ENABLE_SWAGGER: bool = _flag("ENABLE_SWAGGER", "true")
    ENABLE_TWO_FACTOR: bool = _flag("ENABLE_TWO_FACTOR", "true")

    # Bootstrap data
    SEED_DEFAULT_DATA: bool = _flag("SEED_DEFAULT_DATA")
    ADMIN_EMAIL: str = os.getenv("ADMIN_EMAIL", "")
    ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    The Settings object is created once and reused for all
    subsequent calls.
    """
    return Settings()
