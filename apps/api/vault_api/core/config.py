"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.03.00"

    # Database
    DATABASE_URL: str

    # Owner session token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 4

    # Service credential for the scheduler and internal callers
    INTERNAL_SECRET: str = ""

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_PORTAL: int = 10  # OTP request/verify attempts
    RATE_LIMIT_API: int = 60  # General API

    # Email gateway (Resend)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "Family Vault <onboarding@resend.dev>"

    # Push gateway (Firebase Cloud Messaging v1)
    FCM_PROJECT_ID: str = ""
    FCM_SERVICE_ACCOUNT_JSON: str = ""  # Inline JSON or path to the key file

    # Document storage
    STORAGE_BACKEND: str = "local"  # "local" or "s3"
    S3_BUCKET: str = "vault-documents"
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    SIGNED_URL_TTL_SECONDS: int = 3600

    # Emergency portal
    OTP_TTL_MINUTES: int = 10
    OTP_LENGTH: int = 6
    PORTAL_SESSION_MINUTES: int = 30
    PORTAL_VIEW_GRANTS_DOWNLOAD: bool = False  # Legacy: "view" grants also allowed download

    # Inactivity monitor
    INACTIVITY_REPEAT_WINDOW_ALERTS: bool = False  # Re-send day-window stages on every run
    INACTIVITY_MAX_CONCURRENCY: int = 1

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
    def otp_hash_key(self) -> bytes:
        """Key for hashing one-time codes at rest."""
        return f"otp:{self.JWT_SECRET}".encode()


settings = Settings()
