from __future__ import annotations

import logging
from dataclasses import dataclass

from subgate.core.tables import Tables
from subgate.services.invoices import (
    FAILURE_STATUSES,
    SUCCESS_STATUSES,
    get_invoice,
    mark_subscription_applied,
    release_subscription_applied,
    update_invoice_status,
)
from subgate.services.payment_provider import CallbackEvent
from subgate.services.promos import reclaim_promo_for_invoice, revert_promo_for_invoice
from subgate.services.subscriptions import upsert_subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    http_status: int
    outcome: str
    order_number: str
    status: str

    def to_response(self) -> dict:
        return {
            "received": self.http_status == 200,
            "outcome": self.outcome,
            "orderNumber": self.order_number,
            "status": self.status,
        }


def reconcile(tables: Tables, event: CallbackEvent) -> ReconcileResult:
    """Apply a verified provider callback to the invoice and the user.

    paid / paid_over credit the subscription once per invoice; a missing
    invoice is a 404 and nothing else is touched. A payment that lands after
    a failure status takes the returned promo use back. expired / failed /
    canceled / rejected give back the invoice's promo use once, unless it was
    already credited. Every other status is only recorded, and never over a
    credited invoice's status.
    """
    order_number = event.order_number
    status = event.status

    def result(http_status: int, outcome: str) -> ReconcileResult:
        return ReconcileResult(http_status, outcome, order_number, status)

    if not order_number:
        logger.warning("Callback without order number (status %s)", event.provider_status)
        return result(400, "missing_order_number")

    found = update_invoice_status(tables, order_number, status, event.txn_id, event.provider_status)
    invoice = get_invoice(tables, order_number) if found else None

    if status in SUCCESS_STATUSES:
        if not invoice:
            logger.warning("Success callback for unknown order %s", order_number)
            return result(404, "invoice_not_found")
        if not mark_subscription_applied(tables, order_number):
            logger.info("Order %s already credited; ignoring %s", order_number, status)
            return result(200, "already_credited")
        try:
            upsert_subscription(
                tables,
                invoice["username"],
                invoice["subscription_type"],
                invoice.get("referral_username"),
            )
        except Exception:
            # Let the provider's retry credit it.
            release_subscription_applied(tables, order_number)
            raise
        promo_code = invoice.get("promo_code")
        if promo_code and invoice.get("promo_reverted_at"):
            reclaim_promo_for_invoice(tables, order_number, promo_code)
        logger.info("Order %s %s: %s credited with %s", order_number, status, invoice["username"], invoice["subscription_type"])
        return result(200, "credited")

    if status in FAILURE_STATUSES:
        if not invoice:
            logger.warning("%s callback for unknown order %s", status, order_number)
            return result(200, "invoice_not_found")
        promo_code = invoice.get("promo_code")
        if not promo_code:
            return result(200, "closed")
        if invoice.get("subscription_applied_at"):
            logger.warning("Order %s was already credited; keeping promo %s consumed", order_number, promo_code)
            return result(200, "closed")
        if revert_promo_for_invoice(tables, order_number, promo_code):
            return result(200, "promo_reverted")
        return result(200, "promo_already_reverted")

    if not found:
        logger.warning("%s callback for unknown order %s", status, order_number)
        return result(200, "invoice_not_found")
    return result(200, "recorded")
