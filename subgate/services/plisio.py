from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict

import requests

from subgate.core.crypto import verify_plisio_callback
from subgate.core.settings import S, Settings
from subgate.services.payment_provider import CallbackEvent, Checkout, PaymentProvider, UpstreamError, format_amount


PLISIO_STATUS_MAP = {
    "completed": "paid",
    "mismatch": "paid_over",
    "expired": "expired",
    "cancelled": "canceled",
    "error": "failed",
    "new": "pending",
    "pending": "pending",
    "pending internal": "pending",
}


class PlisioProvider(PaymentProvider):
    name = "plisio"
    invalid_signature_status = 422
    status_map = PLISIO_STATUS_MAP

    def __init__(self, settings: Settings = S) -> None:
        self.settings = settings

    def callback_url(self, public_base_url: str) -> str:
        # json=true makes Plisio post a JSON body signed with verify_hash.
        return f"{public_base_url}/plisio-callback?json=true"

    def create_checkout(
        self,
        *,
        amount: Decimal,
        currency: str,
        order_number: str,
        subscription_type: str,
    ) -> Checkout:
        if not self.settings.plisio_api_key:
            raise UpstreamError("PLISIO_API_KEY not set")
        params = {
            "source_currency": self.settings.source_currency,
            "source_amount": format_amount(amount),
            "currency": currency,
            "order_number": order_number,
            "order_name": f"Subscription {subscription_type}",
            "callback_url": self.callback_url(self.settings.public_base_url),
            "api_key": self.settings.plisio_api_key,
        }
        try:
            r = requests.get(
                f"{self.settings.plisio_base_url}/invoices/new",
                params=params,
                timeout=self.settings.provider_timeout_seconds,
            )
            body = r.json()
        except (requests.RequestException, ValueError) as exc:
            raise UpstreamError(f"Plisio request failed: {exc}") from exc

        if r.status_code != 200 or body.get("status") != "success":
            raise UpstreamError(f"Plisio invoice failed: {r.status_code} {body}")

        data = body.get("data") or {}
        if not data.get("invoice_url") or not data.get("txn_id"):
            raise UpstreamError(f"Plisio invoice response incomplete: {data}")
        return Checkout(
            invoice_url=data["invoice_url"],
            txn_id=str(data["txn_id"]),
            provider_amount=str(data["invoice_total_sum"]) if data.get("invoice_total_sum") is not None else None,
        )

    def verify_callback(self, payload: Any) -> bool:
        return verify_plisio_callback(payload, self.settings.plisio_secret_key)

    def parse_callback(self, payload: Dict[str, Any]) -> CallbackEvent:
        provider_status = str(payload.get("status") or "")
        return CallbackEvent(
            order_number=str(payload.get("order_number") or ""),
            status=self.normalize_status(provider_status),
            provider_status=provider_status,
            txn_id=str(payload["txn_id"]) if payload.get("txn_id") else None,
        )
