"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Database
    database_url: str = "sqlite:///./enxoval.db"

    # JWT Configuration (admin portal sessions)
    jwt_secret: str = "dev-secret-change-me-in-production"
    jwt_issuer: str = "enxoval"
    jwt_audience: str = "enxoval-admin"
    jwt_access_token_expire_minutes: int = 60

    # Comma-separated list of allowed origins (empty uses default localhost list)
    allowed_origins: str = ""

    # Mercado Pago
    # The mercadopago_settings row takes precedence over the access token below
    mp_access_token: str = ""
    mp_webhook_secret: str = ""
    mp_api_base_url: str = "https://api.mercadopago.com"
    mp_notification_url: str = ""
    mp_timeout_seconds: float = 15.0
    currency_id: str = "BRL"

    # Public storefront, base for back_urls
    site_url: str = "https://baby-vivi-lili.lovable.app"

    # Transactional email (Resend)
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    email_from: str = "Enxoval <onboarding@resend.dev>"

    # Object storage for product and couple photos
    upload_dir: str = "./uploads"
    public_upload_base_url: str = "/uploads"
    max_upload_bytes: int = 5 * 1024 * 1024

    # Environment
    environment: str = "development"
    debug: bool = True

    # Rate limiting
    login_rate_limit: str = "5/minute"
    checkout_rate_limit: str = "10/minute"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def validate_production_secrets(self) -> list[str]:
        """
        Validate that secrets are properly configured for production.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        WEAK_SECRETS = {
            "dev-secret-change-me-in-production",
            "secret",
            "password",
            "changeme",
            "default",
        }

        if self.environment == "production":
            if self.jwt_secret in WEAK_SECRETS or len(self.jwt_secret) < 32:
                errors.append(
                    "JWT_SECRET must be at least 32 characters and not a default value in production"
                )

            if self.debug:
                errors.append("DEBUG must be False in production")

            if self.mp_access_token and not self.mp_webhook_secret:
                errors.append(
                    "MP_WEBHOOK_SECRET must be set when using Mercado Pago"
                )

            if not self.allowed_origins:
                errors.append(
                    "ALLOWED_ORIGINS must be set in production (comma-separated list of allowed domains)"
                )

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience exports
settings = get_settings()

DATABASE_URL = settings.database_url
JWT_SECRET = settings.jwt_secret
JWT_ISSUER = settings.jwt_issuer
JWT_AUDIENCE = settings.jwt_audience
