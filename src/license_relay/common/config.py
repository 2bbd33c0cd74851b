"""license-relay configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

# Stripe event types fulfilled unless RELAY_HANDLED_EVENT_TYPES says otherwise.
CHECKOUT_EVENT_TYPES = (
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
)

# Settings that must be set before the service may run outside development.
_REQUIRED_IN_PRODUCTION = (
    "stripe_webhook_secret",
    "admin_issue_secret",
    "keygen_account_id",
    "keygen_api_token",
)


class RelaySettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RELAY_")

    environment: str = "development"
    log_level: str = "INFO"

    # API
    api_title: str = "license-relay"
    api_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8080

    # Stripe
    stripe_webhook_secret: str = ""
    stripe_secret_key: str = ""
    webhook_tolerance: int = 300  # seconds
    handled_event_types: list[str] = list(CHECKOUT_EVENT_TYPES)

    # Price id -> Keygen policy id.  JSON object, e.g. '{"price_123": "pol_abc"}'.
    # Entries override those loaded from price_policy_file.
    price_policy_map: str = ""
    price_policy_file: str = ""

    # Keygen
    keygen_base_url: str = "https://api.keygen.sh"
    keygen_account_id: str = ""
    keygen_api_token: str = ""
    keygen_product_id: str = ""
    keygen_timeout: float = 30.0
    forward_idempotency_key: bool = False

    # Admin issue
    admin_issue_secret: str = ""

    # Email delivery: "", "smtp" or "sendgrid"
    email_transport: str = ""
    product_name: str = "Prompt Locker Pro"
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_secure: bool = False
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_from: str = ""
    sendgrid_api_key: str = ""

    @property
    def keygen_configured(self) -> bool:
        return bool(self.keygen_account_id and self.keygen_api_token)

    def validate_for_production(self) -> None:
        """Raise if required secrets are missing in non-development environments."""
        missing = [field for field in _REQUIRED_IN_PRODUCTION if not getattr(self, field)]

        if self.environment != "development" and missing:
            env_vars = ", ".join(f"RELAY_{f.upper()}" for f in missing)
            raise RuntimeError(
                f"Missing required settings in '{self.environment}' environment: {env_vars}"
            )

        if missing:
            warnings.warn(
                "license-relay is running without "
                + ", ".join(f"RELAY_{f.upper()}" for f in missing)
                + "; webhook and admin requests will be rejected",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> RelaySettings:
    settings = RelaySettings()
    settings.validate_for_production()
    return settings
