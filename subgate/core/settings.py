from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    # AWS / DynamoDB
    aws_region: str = os.environ.get("AWS_REGION", "us-east-1")
    # Empty means the regional AWS endpoint; set for DynamoDB Local.
    ddb_endpoint_url: str = os.environ.get("DDB_ENDPOINT_URL", "")

    users_table_name: str = os.environ.get("USERS_TABLE_NAME", "subgate_users")
    users_referral_index: str = os.environ.get("USERS_REFERRAL_INDEX", "referral_username-index")
    invoices_table_name: str = os.environ.get("INVOICES_TABLE_NAME", "subgate_invoices")
    promos_table_name: str = os.environ.get("PROMOS_TABLE_NAME", "subgate_promos")

    # Plisio
    plisio_api_key: str = os.environ.get("PLISIO_API_KEY", "")
    plisio_secret_key: str = os.environ.get("PLISIO_SECRET_KEY", "")
    plisio_base_url: str = os.environ.get("PLISIO_BASE_URL", "https://plisio.net/api/v1").rstrip("/")

    # Cryptomus
    cryptomus_api_key: str = os.environ.get("CRYPTOMUS_API_KEY", "")
    cryptomus_merchant_id: str = os.environ.get("CRYPTOMUS_MERCHANT_ID", "")
    cryptomus_base_url: str = os.environ.get("CRYPTOMUS_BASE_URL", "https://api.cryptomus.com/v1").rstrip("/")

    # Checkout
    public_base_url: str = os.environ.get("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
    default_payment_provider: str = os.environ.get("DEFAULT_PAYMENT_PROVIDER", "plisio").lower()
    provider_timeout_seconds: float = float(os.environ.get("PROVIDER_TIMEOUT_SECONDS", "15"))
    source_currency: str = os.environ.get("SOURCE_CURRENCY", "USD").upper()

    # Discounts
    free_subscription_threshold: int = int(os.environ.get("FREE_SUBSCRIPTION_THRESHOLD", "90"))
    affiliate_tier_a_percent: int = int(os.environ.get("AFFILIATE_TIER_A_PERCENT", "1"))

    # Trial
    trial_days: int = int(os.environ.get("TRIAL_DAYS", "2"))

    # Server
    port: int = int(os.environ.get("PORT", "8000"))
    log_level: str = os.environ.get("LOG_LEVEL", "INFO")
    metrics_enabled: bool = os.environ.get("METRICS_ENABLED", "1") not in ("0", "false", "False")


S = Settings()
