from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from subgate.core.tables import Tables
from subgate.metrics import record_free_subscription, record_invoice_created, record_upstream_failure
from subgate.services.affiliates import count_valid_affiliates
from subgate.services.invoices import create_invoice, new_order_number
from subgate.services.payment_provider import PaymentProvider, UpstreamError
from subgate.services.pricing import (
    BASE_PRICES,
    adjusted_price,
    adjusted_prices,
    is_free_subscription,
    is_paid_duration,
    prices_out,
    total_discount_percent,
)
from subgate.services.promos import PROMO_EXHAUSTED, consume_promo, revert_promo, verify_promo
from subgate.services.subscriptions import upsert_subscription

logger = logging.getLogger(__name__)

INVALID_SUBSCRIPTION_TYPE = "Invalid subscription type."
UPSTREAM_FAILED = "Could not create the payment invoice. Please try again."
FREE_GRANTED = "Congratulations! Your discounts cover this subscription, it has been activated for free."


@dataclass(frozen=True)
class Quote:
    affiliate_number: int
    discount_percent: Decimal
    promo_discount: Decimal = Decimal(0)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fail(message: str) -> Dict[str, Any]:
    return {"success": False, "message": message}


def quote(tables: Tables, username: str, subscription_type: str, promo_code: Optional[str]) -> Quote:
    affiliate_number = count_valid_affiliates(tables, username)
    promo_discount = Decimal(0)
    if promo_code:
        check = verify_promo(tables, promo_code, subscription_type)
        if not check.valid:
            return Quote(affiliate_number, Decimal(0), error=check.reason)
        promo_discount = check.discount
    pct = total_discount_percent(promo_discount, affiliate_number)
    return Quote(affiliate_number, pct, promo_discount)


def adjusted_price_list(tables: Tables, username: str, subscription_type: str, promo_code: Optional[str]) -> Dict[str, Any]:
    q = quote(tables, username, subscription_type, promo_code)
    if not q.ok:
        out = fail(q.error or "")
        out["affiliateNumber"] = q.affiliate_number
        return out
    return {
        "success": True,
        "adjustedPrices": prices_out(adjusted_prices(q.discount_percent)),
        "affiliateNumber": q.affiliate_number,
        "totalDiscount": float(q.discount_percent),
    }


def _revert_after_error(tables: Tables, promo_code: str) -> None:
    try:
        revert_promo(tables, promo_code)
    except Exception:
        logger.exception("Compensating revert of promo %s failed", promo_code)


def start_checkout(
    tables: Tables,
    provider: PaymentProvider,
    *,
    username: str,
    subscription_type: str,
    currency: str,
    promo_code: Optional[str] = None,
    referral_username: Optional[str] = None,
    display_username: Optional[str] = None,
) -> Dict[str, Any]:
    if not is_paid_duration(subscription_type):
        return fail(INVALID_SUBSCRIPTION_TYPE)

    q = quote(tables, username, subscription_type, promo_code)
    if not q.ok:
        return fail(q.error or "")

    consumed = False
    if promo_code:
        if not consume_promo(tables, promo_code):
            return fail(PROMO_EXHAUSTED)
        consumed = True

    try:
        if is_free_subscription(q.discount_percent):
            upsert_subscription(
                tables,
                username,
                subscription_type,
                referral_username,
                display_username=display_username,
            )
            record_free_subscription()
            logger.info(
                "Free %s subscription granted to %s (discount %s%%)",
                subscription_type,
                username,
                q.discount_percent,
            )
            return {"success": True, "freeSubscription": True, "message": FREE_GRANTED}

        amount = adjusted_price(BASE_PRICES[subscription_type], q.discount_percent)
        order_number = new_order_number(username)
        try:
            checkout = provider.create_checkout(
                amount=amount,
                currency=currency,
                order_number=order_number,
                subscription_type=subscription_type,
            )
        except UpstreamError as exc:
            logger.warning("%s checkout failed for %s: %s", provider.name, order_number, exc)
            record_upstream_failure(provider.name)
            if consumed:
                consumed = False
                revert_promo(tables, promo_code)
            return fail(UPSTREAM_FAILED)

        create_invoice(
            tables,
            order_number=order_number,
            txn_id=checkout.txn_id,
            provider=provider.name,
            username=username,
            subscription_type=subscription_type,
            amount=amount,
            currency=currency,
            promo_code=promo_code,
            referral_username=referral_username,
            invoice_url=checkout.invoice_url,
            provider_amount=checkout.provider_amount,
        )
    except Exception:
        if consumed:
            _revert_after_error(tables, promo_code)
        raise

    record_invoice_created(provider.name)
    logger.info("Invoice %s created with %s for %s %s", order_number, provider.name, amount, currency)
    return {"success": True, "invoiceUrl": checkout.invoice_url, "orderNumber": order_number}
