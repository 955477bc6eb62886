"""Application configuration with environment variables."""

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_JWT_SECRET = "change-this-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # All routers are mounted under this prefix
    API_PREFIX: str = "/api/v1"

    # Set to True when running behind nginx/a load balancer to trust X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # Session token (supports key rotation)
    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 24

    # External identity provider (RS256 tokens verified against JWKS)
    AUTH0_DOMAIN: str = ""
    AUTH0_AUDIENCE: str = ""

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Rate limits (slowapi notation); empty string disables a window
    RATE_LIMIT_SHORT: str = "10 per 1 second"
    RATE_LIMIT_MEDIUM: str = "50 per 10 seconds"
    RATE_LIMIT_LONG: str = "100 per 60 seconds"
    REDIS_URL: str = ""

    # Document storage
    STORAGE_BACKEND: str = "local"  # "local" or "s3"
    S3_BUCKET_NAME: str = "clinicroute-documents"
    S3_REGION: str = "eu-west-2"
    LOCAL_STORAGE_URL: str = "http://localhost:8000/files"
    DOCUMENT_URL_EXPIRES_SECONDS: int = 3600
    MAX_DOCUMENT_SIZE_BYTES: int = 10 * 1024 * 1024

    # Workflow
    DEFAULT_SLA_DAYS: int = 5

    # Error tracking
    SENTRY_DSN: str = ""

    @model_validator(mode="after")
    def _require_real_secret_in_production(self) -> "Settings":
        if self.ENV == "production" and self.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise ValueError("JWT_SECRET must be set in production")
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def rate_limits(self) -> list[str]:
        """Configured short/medium/long windows, skipping disabled ones."""
        windows = [self.RATE_LIMIT_SHORT, self.RATE_LIMIT_MEDIUM, self.RATE_LIMIT_LONG]
        return [w for w in windows if w.strip()]

    @property
    def external_identity_enabled(self) -> bool:
        return bool(self.AUTH0_DOMAIN and self.AUTH0_AUDIENCE)


settings = Settings()
