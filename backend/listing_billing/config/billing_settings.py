"""
Environment-driven settings for the billing core.

Settings are read on every call so tests and operators can change the
environment without restarting the interpreter.

Environment:
- DATABASE_URL: SQLAlchemy URL (postgres:// is normalized)
- STRIPE_WEBHOOK_SECRET: Stripe endpoint signing secret (whsec_...)
- STRIPE_WEBHOOK_TOLERANCE_SECONDS: max signature age (default: 300)
- WEBHOOK_EVENT_RETENTION_DAYS: ledger retention (default: 90)
- RATE_LIMIT_RETENTION_MINUTES: counter window retention (default: 60)
- RATE_LIMITS_CONFIG_PATH: override path to rate_limits.yml
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BillingSettings:
    database_url: Optional[str]
    stripe_webhook_secret: Optional[str]
    stripe_webhook_tolerance_seconds: int
    webhook_event_retention_days: int
    rate_limit_retention_minutes: int
    rate_limits_config_path: Optional[str]


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def get_billing_settings() -> BillingSettings:
    """Build settings from the current environment."""
    return BillingSettings(
        database_url=os.getenv("DATABASE_URL"),
        stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
        stripe_webhook_tolerance_seconds=_int_env("STRIPE_WEBHOOK_TOLERANCE_SECONDS", 300),
        webhook_event_retention_days=_int_env("WEBHOOK_EVENT_RETENTION_DAYS", 90),
        rate_limit_retention_minutes=_int_env("RATE_LIMIT_RETENTION_MINUTES", 60),
        rate_limits_config_path=os.getenv("RATE_LIMITS_CONFIG_PATH") or None,
    )
