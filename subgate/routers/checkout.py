from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends

from subgate.core.normalize import normalize_optional_username, normalize_promo_code, normalize_username
from subgate.core.settings import S
from subgate.core.tables import Tables, get_tables
from subgate.models import CreateInvoiceReq
from subgate.services.checkout import fail, start_checkout
from subgate.services.payment_provider import PaymentProvider
from subgate.services.providers import get_providers

router = APIRouter(tags=["checkout"])


@router.post("/create-invoice")
def create_invoice_endpoint(
    body: CreateInvoiceReq,
    tables: Tables = Depends(get_tables),
    providers: Dict[str, PaymentProvider] = Depends(get_providers),
):
    provider = providers.get((body.provider or S.default_payment_provider).lower())
    if provider is None:
        return fail("Unsupported payment provider.")
    return start_checkout(
        tables,
        provider,
        username=normalize_username(body.username),
        subscription_type=body.subscription_type,
        currency=body.currency.strip(),
        promo_code=normalize_promo_code(body.promo_code),
        referral_username=normalize_optional_username(body.referral_username),
        display_username=body.username.strip(),
    )
