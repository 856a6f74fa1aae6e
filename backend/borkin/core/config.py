# backend/borkin/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .enums import PaymentEnvironment

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.info(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


TEST_KEY_PREFIXES = ("sk_test_", "rk_test_")


def _mode_from_key(key: str) -> Optional[PaymentEnvironment]:
    if not key:
        return None
    if key.startswith(TEST_KEY_PREFIXES):
        return PaymentEnvironment.TEST
    return PaymentEnvironment.LIVE


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")
    database_url: str = Field(
        default="sqlite:///./borkin.db",
        description="SQLAlchemy database URL",
    )
    app_url: str = Field(
        default="http://localhost:3000",
        alias="NEXT_PUBLIC_APP_URL",
        description="Public frontend URL used for Stripe return links",
    )

    # Stripe Configuration
    stripe_publishable_key: str = Field(
        default="", description="Stripe publishable key for frontend"
    )
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_mode: Optional[Literal["test", "live"]] = Field(
        default=None,
        description="Expected processor environment; must agree with the secret key",
    )
    stripe_currency: str = Field(default="usd", description="Default currency for payments")
    stripe_timeout_seconds: int = Field(default=8, description="Network timeout for Stripe calls")

    # Fee schedule
    platform_fee_percentage: float = Field(
        default=5, description="Platform fee percentage (5 = 5%)"
    )
    processor_fee_percentage: float = Field(
        default=2.9, description="Estimated card processing percentage (2.9 = 2.9%)"
    )
    processor_fixed_fee_cents: int = Field(
        default=30, description="Estimated fixed card processing fee per charge, in cents"
    )

    # Identity provider (user deletion on admin removal)
    identity_provider_api_url: str = Field(
        default="https://api.clerk.dev/v1", alias="CLERK_API_URL"
    )
    identity_provider_secret_key: SecretStr = Field(
        default=SecretStr(""), alias="CLERK_SECRET_KEY"
    )
    identity_provider_timeout_seconds: float = Field(default=5.0)

    admin_emails_csv: str = Field(default="admin@borkinindustries.com", alias="ADMIN_EMAILS")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("platform_fee_percentage", "processor_fee_percentage")
    @classmethod
    def _validate_percentage(cls, value: float) -> float:
        if value < 0 or value >= 100:
            raise ValueError("fee percentages must be within [0, 100)")
        return value

    @field_validator("processor_fixed_fee_cents")
    @classmethod
    def _validate_fixed_fee(cls, value: int) -> int:
        if value < 0:
            raise ValueError("processor_fixed_fee_cents must be non-negative")
        return value

    @model_validator(mode="after")
    def _check_stripe_mode_matches_key(self) -> "Settings":
        """STRIPE_MODE may only restate what the secret key already implies."""
        key_mode = _mode_from_key(self.stripe_secret_key.get_secret_value())
        if self.stripe_mode and key_mode and self.stripe_mode != key_mode.value:
            raise ValueError(
                f"STRIPE_MODE={self.stripe_mode} contradicts STRIPE_SECRET_KEY, "
                f"which is a {key_mode.value} key"
            )
        return self

    @property
    def payment_environment(self) -> PaymentEnvironment:
        """
        Processor environment the configured key operates in.

        Objects are created under the key's environment, so the key prefix
        decides; STRIPE_MODE only applies when no key is configured.
        """
        key_mode = _mode_from_key(self.stripe_secret_key.get_secret_value())
        if key_mode is not None:
            return key_mode
        return PaymentEnvironment(self.stripe_mode or PaymentEnvironment.TEST.value)

    @property
    def admin_emails(self) -> set[str]:
        return {
            email.strip().lower() for email in self.admin_emails_csv.split(",") if email.strip()
        }


settings = Settings()
logger.info(
    "[CONFIG] Payment configuration: environment=%s stripe_mode=%s currency=%s",
    settings.environment,
    settings.payment_environment.value,
    settings.stripe_currency,
)
