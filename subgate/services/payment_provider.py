from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional


class UpstreamError(Exception):
    """The payment provider refused the request or could not be reached."""


@dataclass(frozen=True)
class Checkout:
    invoice_url: str
    txn_id: str
    provider_amount: Optional[str] = None


@dataclass(frozen=True)
class CallbackEvent:
    order_number: str
    status: str
    provider_status: str
    txn_id: Optional[str] = None


class PaymentProvider(ABC):
    name: str = ""
    # HTTP status returned for a callback whose signature does not match.
    invalid_signature_status: int = 400
    # Native provider status -> invoice status.
    status_map: Mapping[str, str] = {}

    @abstractmethod
    def create_checkout(
        self,
        *,
        amount: Decimal,
        currency: str,
        order_number: str,
        subscription_type: str,
    ) -> Checkout:
        ...

    @abstractmethod
    def verify_callback(self, payload: Any) -> bool:
        ...

    @abstractmethod
    def parse_callback(self, payload: Dict[str, Any]) -> CallbackEvent:
        ...

    def callback_url(self, public_base_url: str) -> str:
        return f"{public_base_url}/{self.name}-callback"

    def normalize_status(self, provider_status: str) -> str:
        s = (provider_status or "").strip().lower()
        return self.status_map.get(s, s)


def format_amount(amount: Decimal) -> str:
    return str(Decimal(str(amount)).quantize(Decimal("0.01")))
