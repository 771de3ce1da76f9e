from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict

import requests

from subgate.core.crypto import compact_json, cryptomus_sign_body, verify_cryptomus_callback
from subgate.core.settings import S, Settings
from subgate.services.payment_provider import CallbackEvent, Checkout, PaymentProvider, UpstreamError, format_amount


CRYPTOMUS_STATUS_MAP = {
    "paid": "paid",
    "paid_over": "paid_over",
    "cancel": "canceled",
    "fail": "failed",
    "system_fail": "failed",
    "wrong_amount": "rejected",
    "locked": "rejected",
    "confirm_check": "confirm_check",
    "process": "pending",
    "check": "pending",
    "wrong_amount_waiting": "pending",
}


class CryptomusProvider(PaymentProvider):
    name = "cryptomus"
    invalid_signature_status = 400
    status_map = CRYPTOMUS_STATUS_MAP

    def __init__(self, settings: Settings = S) -> None:
        self.settings = settings

    def create_checkout(
        self,
        *,
        amount: Decimal,
        currency: str,
        order_number: str,
        subscription_type: str,
    ) -> Checkout:
        if not (self.settings.cryptomus_api_key and self.settings.cryptomus_merchant_id):
            raise UpstreamError("CRYPTOMUS_API_KEY / CRYPTOMUS_MERCHANT_ID not set")
        payload = {
            "amount": format_amount(amount),
            "currency": self.settings.source_currency,
            "to_currency": currency,
            "order_id": order_number,
            "url_callback": self.callback_url(self.settings.public_base_url),
            "additional_data": f"Subscription {subscription_type}",
        }
        body = compact_json(payload)
        headers = {
            "merchant": self.settings.cryptomus_merchant_id,
            "sign": cryptomus_sign_body(body, self.settings.cryptomus_api_key),
            "Content-Type": "application/json",
        }
        try:
            r = requests.post(
                f"{self.settings.cryptomus_base_url}/payment",
                headers=headers,
                data=body.encode("utf-8"),
                timeout=self.settings.provider_timeout_seconds,
            )
            data = r.json()
        except (requests.RequestException, ValueError) as exc:
            raise UpstreamError(f"Cryptomus request failed: {exc}") from exc

        if r.status_code != 200 or data.get("state") != 0:
            raise UpstreamError(f"Cryptomus payment failed: {r.status_code} {data}")

        result = data.get("result") or {}
        if not result.get("url") or not result.get("uuid"):
            raise UpstreamError(f"Cryptomus payment response incomplete: {result}")
        return Checkout(
            invoice_url=result["url"],
            txn_id=str(result["uuid"]),
            provider_amount=str(result["amount"]) if result.get("amount") is not None else None,
        )

    def verify_callback(self, payload: Any) -> bool:
        return verify_cryptomus_callback(payload, self.settings.cryptomus_api_key)

    def parse_callback(self, payload: Dict[str, Any]) -> CallbackEvent:
        provider_status = str(payload.get("status") or "")
        return CallbackEvent(
            order_number=str(payload.get("order_id") or ""),
            status=self.normalize_status(provider_status),
            provider_status=provider_status,
            txn_id=str(payload["uuid"]) if payload.get("uuid") else None,
        )
