from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from subgate.core.tables import Tables
from subgate.core.time import now_ms, now_ts

logger = logging.getLogger(__name__)

PENDING = "pending"
SUCCESS_STATUSES = frozenset({"paid", "paid_over"})
FAILURE_STATUSES = frozenset({"expired", "failed", "canceled", "rejected"})
NON_TERMINAL_STATUSES = frozenset({PENDING, "confirm_check"})
INVOICE_STATUSES = SUCCESS_STATUSES | FAILURE_STATUSES | NON_TERMINAL_STATUSES


def _conditional_failed(exc: ClientError) -> bool:
    return exc.response["Error"]["Code"] == "ConditionalCheckFailedException"


def new_order_number(username: str) -> str:
    return f"{username}-{now_ms()}"


def create_invoice(
    tables: Tables,
    *,
    order_number: str,
    txn_id: str,
    provider: str,
    username: str,
    subscription_type: str,
    amount: Decimal,
    currency: str,
    promo_code: Optional[str] = None,
    referral_username: Optional[str] = None,
    invoice_url: Optional[str] = None,
    provider_amount: Optional[str] = None,
) -> str:
    ts = now_ts()
    item: Dict[str, Any] = {
        "order_number": order_number,
        "txn_id": txn_id,
        "provider": provider,
        "username": username,
        "subscription_type": subscription_type,
        "amount": Decimal(str(amount)),
        "currency": currency,
        "status": PENDING,
        "created_at": ts,
        "updated_at": ts,
    }
    if promo_code:
        item["promo_code"] = promo_code
    if referral_username:
        item["referral_username"] = referral_username
    if invoice_url:
        item["invoice_url"] = invoice_url
    if provider_amount:
        item["provider_amount"] = str(provider_amount)
    tables.invoices.put_item(
        Item=item,
        ConditionExpression="attribute_not_exists(#o)",
        ExpressionAttributeNames={"#o": "order_number"},
    )
    return order_number


def get_invoice(tables: Tables, order_number: str) -> Optional[Dict[str, Any]]:
    return tables.invoices.get_item(Key={"order_number": order_number}).get("Item")


def _update_if(tables: Tables, order_number: str, sets: List[str], condition: str, names, values) -> bool:
    try:
        tables.invoices.update_item(
            Key={"order_number": order_number},
            UpdateExpression="SET " + ", ".join(sets),
            ConditionExpression=condition,
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )
    except ClientError as exc:
        if _conditional_failed(exc):
            return False
        raise
    return True


def update_invoice_status(
    tables: Tables,
    order_number: str,
    status: str,
    txn_id: Optional[str] = None,
    provider_status: Optional[str] = None,
) -> int:
    """Record a provider status. Returns 1 if the invoice exists, 0 otherwise.

    A credited invoice only takes success statuses; any later status is
    kept in provider_status and the invoice status stays as it was.
    """
    sets = ["#m = :m"]
    names = {"#o": "order_number", "#m": "updated_at"}
    values: Dict[str, Any] = {":m": now_ts()}
    if txn_id:
        names["#x"] = "txn_id"
        values[":x"] = str(txn_id)
        sets.append("#x = :x")
    if provider_status:
        names["#p"] = "provider_status"
        values[":p"] = provider_status
        sets.append("#p = :p")

    condition = "attribute_exists(#o)"
    status_names = dict(names, **{"#s": "status"})
    if status not in SUCCESS_STATUSES:
        condition += " AND attribute_not_exists(#a)"
        status_names["#a"] = "subscription_applied_at"
    if _update_if(tables, order_number, ["#s = :s"] + sets, condition, status_names, dict(values, **{":s": status})):
        return 1
    if status in SUCCESS_STATUSES:
        return 0

    if _update_if(tables, order_number, sets, "attribute_exists(#o)", names, values):
        logger.info("Order %s already credited; kept its status over %s", order_number, status)
        return 1
    return 0


def mark_subscription_applied(tables: Tables, order_number: str) -> bool:
    """Claim the one-time credit for this invoice; False if already claimed or missing."""
    try:
        tables.invoices.update_item(
            Key={"order_number": order_number},
            UpdateExpression="SET #a = :now",
            ConditionExpression="attribute_exists(#o) AND attribute_not_exists(#a)",
            ExpressionAttributeNames={"#o": "order_number", "#a": "subscription_applied_at"},
            ExpressionAttributeValues={":now": now_ts()},
        )
    except ClientError as exc:
        if _conditional_failed(exc):
            return False
        raise
    return True


def release_subscription_applied(tables: Tables, order_number: str) -> None:
    tables.invoices.update_item(
        Key={"order_number": order_number},
        UpdateExpression="REMOVE #a",
        ExpressionAttributeNames={"#a": "subscription_applied_at"},
    )
