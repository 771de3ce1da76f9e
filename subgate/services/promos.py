from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

from subgate.core.tables import Tables
from subgate.core.time import now_ts
from subgate.metrics import record_promo_event

logger = logging.getLogger(__name__)

PROMO_NOT_FOUND = "Invalid promo code."
PROMO_EXPIRED = "This promo code has expired."
PROMO_EXHAUSTED = "This promo code has reached its usage limit."
PROMO_NOT_APPLICABLE = "This promo code does not apply to the selected subscription duration."


@dataclass(frozen=True)
class PromoCheck:
    valid: bool
    discount: Decimal = Decimal(0)
    reason: Optional[str] = None


def _conditional_failed(exc: ClientError) -> bool:
    return exc.response["Error"]["Code"] == "ConditionalCheckFailedException"


def get_promo(tables: Tables, code: str) -> Optional[Dict[str, Any]]:
    return tables.promos.get_item(Key={"code": code}).get("Item")


def verify_promo(tables: Tables, code: str, subscription_type: str, now: Optional[int] = None) -> PromoCheck:
    # Order matters for the message the client shows.
    promo = get_promo(tables, code)
    if not promo:
        return PromoCheck(valid=False, reason=PROMO_NOT_FOUND)

    now = now_ts() if now is None else int(now)
    if now > int(promo.get("expiration_date") or 0):
        return PromoCheck(valid=False, reason=PROMO_EXPIRED)

    if int(promo.get("usage_limit") or 0) <= 0:
        return PromoCheck(valid=False, reason=PROMO_EXHAUSTED)

    if subscription_type not in (promo.get("applicable_durations") or []):
        return PromoCheck(valid=False, reason=PROMO_NOT_APPLICABLE)

    return PromoCheck(valid=True, discount=Decimal(str(promo.get("discount", 0))))


def consume_promo(tables: Tables, code: str) -> bool:
    try:
        tables.promos.update_item(
            Key={"code": code},
            UpdateExpression="ADD #n :neg",
            ConditionExpression="attribute_exists(#c) AND #n > :zero",
            ExpressionAttributeNames={"#c": "code", "#n": "usage_limit"},
            ExpressionAttributeValues={":neg": -1, ":zero": 0},
        )
    except ClientError as exc:
        if _conditional_failed(exc):
            logger.warning("Promo %s could not be consumed: missing or exhausted", code)
            return False
        raise
    record_promo_event("consume")
    return True


def revert_promo(tables: Tables, code: str) -> bool:
    try:
        tables.promos.update_item(
            Key={"code": code},
            UpdateExpression="ADD #n :one",
            ConditionExpression="attribute_exists(#c)",
            ExpressionAttributeNames={"#c": "code", "#n": "usage_limit"},
            ExpressionAttributeValues={":one": 1},
        )
    except ClientError as exc:
        if _conditional_failed(exc):
            logger.warning("Promo %s no longer exists; nothing to revert", code)
            return False
        raise
    record_promo_event("revert")
    logger.info("Promo %s reverted", code)
    return True


def revert_promo_for_invoice(tables: Tables, order_number: str, code: str) -> bool:
    """Give the promo use back at most once per invoice."""
    try:
        tables.invoices.update_item(
            Key={"order_number": order_number},
            UpdateExpression="SET #r = :now",
            ConditionExpression="attribute_exists(#o) AND attribute_not_exists(#r) AND attribute_not_exists(#a)",
            ExpressionAttributeNames={"#o": "order_number", "#r": "promo_reverted_at", "#a": "subscription_applied_at"},
            ExpressionAttributeValues={":now": now_ts()},
        )
    except ClientError as exc:
        if _conditional_failed(exc):
            logger.info("Promo %s already reverted or order %s already credited", code, order_number)
            return False
        raise
    return revert_promo(tables, code)


def reclaim_promo_for_invoice(tables: Tables, order_number: str, code: str) -> bool:
    """Take back a promo use that a failure status returned before the invoice was paid.

    Clears the invoice's promo_reverted_at marker, so it runs at most once per
    revert. The counter is charged even at zero: the paid invoice used the code.
    """
    try:
        tables.invoices.update_item(
            Key={"order_number": order_number},
            UpdateExpression="REMOVE #r",
            ConditionExpression="attribute_exists(#r)",
            ExpressionAttributeNames={"#r": "promo_reverted_at"},
        )
    except ClientError as exc:
        if _conditional_failed(exc):
            return False
        raise
    try:
        tables.promos.update_item(
            Key={"code": code},
            UpdateExpression="ADD #n :neg",
            ConditionExpression="attribute_exists(#c)",
            ExpressionAttributeNames={"#c": "code", "#n": "usage_limit"},
            ExpressionAttributeValues={":neg": -1},
        )
    except ClientError as exc:
        if _conditional_failed(exc):
            logger.warning("Promo %s no longer exists; nothing to reclaim for order %s", code, order_number)
            return False
        raise
    record_promo_event("reclaim")
    logger.info("Promo %s reclaimed for late payment of order %s", code, order_number)
    return True
