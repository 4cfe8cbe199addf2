"""
Configuration settings for the application
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Trial lifecycle defaults
DEFAULT_TRIAL_DAYS = 7
DEFAULT_DELETION_GRACE_HOURS = 24

# Session tokens and the auth cookie share one lifetime
DEFAULT_JWT_EXPIRE_SECONDS = 7 * 24 * 60 * 60

# Product configuration is re-read from the environment after this many seconds
PRODUCT_CONFIG_TTL_SECONDS = 300


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Core authentication and security
    jwt_secret_key: Optional[str] = Field(default=None, alias="JWT_SECRET_KEY")
    jwt_expire_seconds: int = Field(default=DEFAULT_JWT_EXPIRE_SECONDS, alias="JWT_EXPIRE_SECONDS")
    cron_secret: Optional[str] = Field(default=None, alias="CRON_SECRET")

    # Stripe billing configuration
    stripe_secret_key: Optional[str] = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: Optional[str] = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")
    stripe_limited_time_product_id: Optional[str] = Field(default=None, alias="STRIPE_LIMITED_TIME_PRODUCT_ID")
    stripe_limited_time_price_id: Optional[str] = Field(default=None, alias="STRIPE_LIMITED_TIME_PRICE_ID")
    stripe_pro_product_id: Optional[str] = Field(default=None, alias="STRIPE_PRO_PRODUCT_ID")
    stripe_pro_price_id: Optional[str] = Field(default=None, alias="STRIPE_PRO_PRICE_ID")

    # AxieStudio tool account API
    axiestudio_app_url: str = Field(default="https://flow.axiestudio.se", alias="AXIESTUDIO_APP_URL")
    axiestudio_username: Optional[str] = Field(default=None, alias="AXIESTUDIO_USERNAME")
    axiestudio_password: Optional[str] = Field(default=None, alias="AXIESTUDIO_PASSWORD")
    axiestudio_api_key: Optional[str] = Field(default=None, alias="AXIESTUDIO_API_KEY")

    # Trial lifecycle
    trial_days: int = Field(default=DEFAULT_TRIAL_DAYS, alias="TRIAL_DAYS")
    deletion_grace_hours: int = Field(default=DEFAULT_DELETION_GRACE_HOURS, alias="DELETION_GRACE_HOURS")

    # Infrastructure configuration
    database_url: Optional[str] = Field(default="sqlite+aiosqlite:///./sql_app.db", alias="DATABASE_URL")

    # Frontend configuration
    frontend_url: Optional[str] = Field(default="http://localhost:5173", alias="FRONTEND_URL")

    # Render.com deployment configuration
    render: Optional[str] = Field(default=None, alias="RENDER")
    render_external_url: Optional[str] = Field(default=None, alias="RENDER_EXTERNAL_URL")
    render_service_name: Optional[str] = Field(default=None, alias="RENDER_SERVICE_NAME")

    # Environment configuration
    env: Optional[str] = Field(default=None, alias="ENV")


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.render) or (settings.env and settings.env.lower() == "production")
