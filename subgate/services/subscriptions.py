from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

from subgate.core.settings import S
from subgate.core.tables import Tables
from subgate.core.time import add_months, add_years, from_ts, now_ts, to_ts, utc_now
from subgate.metrics import record_trial_granted
from subgate.services.affiliates import count_valid_affiliates

logger = logging.getLogger(__name__)

TRIAL = "trial"
PAID_DURATION_MONTHS = {
    "1_month": 1,
    "3_months": 3,
    "6_months": 6,
}
SUBSCRIPTION_TYPES = (TRIAL, "1_month", "3_months", "6_months", "12_months")
TYPE_LABELS = {
    TRIAL: "trial",
    "1_month": "1-month",
    "3_months": "3-month",
    "6_months": "6-month",
    "12_months": "12-month",
}


class SubscriptionWriteConflict(RuntimeError):
    pass


def _conditional_failed(exc: ClientError) -> bool:
    return exc.response["Error"]["Code"] == "ConditionalCheckFailedException"


def subscription_end_for(subscription_type: str, from_dt: datetime, *, trial_days: int = S.trial_days) -> datetime:
    if subscription_type in PAID_DURATION_MONTHS:
        return add_months(from_dt, PAID_DURATION_MONTHS[subscription_type])
    if subscription_type == "12_months":
        return add_years(from_dt, 1)
    if subscription_type == TRIAL:
        return from_dt + timedelta(days=trial_days)
    raise ValueError(f"Invalid subscription type: {subscription_type}")


def get_user(tables: Tables, username: str) -> Optional[Dict[str, Any]]:
    return tables.users.get_item(Key={"username": username}).get("Item")


def add_user(
    tables: Tables,
    username: str,
    subscription_type: str,
    start: int,
    end: int,
    referral_username: Optional[str] = None,
    *,
    display_username: Optional[str] = None,
) -> bool:
    ts = now_ts()
    item: Dict[str, Any] = {
        "username": username,
        "display_username": display_username or username,
        "subscription_type": subscription_type,
        "subscription_start": int(start),
        "subscription_end": int(end),
        "created_at": ts,
        "updated_at": ts,
    }
    # Absent rather than null, so the referral index and if_not_exists both see "unset".
    if referral_username:
        item["referral_username"] = referral_username
    try:
        tables.users.put_item(
            Item=item,
            ConditionExpression="attribute_not_exists(#u)",
            ExpressionAttributeNames={"#u": "username"},
        )
    except ClientError as exc:
        if _conditional_failed(exc):
            return False
        raise
    return True


def update_subscription(
    tables: Tables,
    username: str,
    subscription_type: str,
    end: int,
    referral_username: Optional[str] = None,
) -> bool:
    sets = ["#t = :t", "#e = :e", "#m = :m"]
    names = {"#u": "username", "#t": "subscription_type", "#e": "subscription_end", "#m": "updated_at"}
    values: Dict[str, Any] = {":t": subscription_type, ":e": int(end), ":m": now_ts()}
    if referral_username:
        # First referral wins; later renewals never overwrite it.
        names["#r"] = "referral_username"
        values[":r"] = referral_username
        sets.append("#r = if_not_exists(#r, :r)")
    try:
        tables.users.update_item(
            Key={"username": username},
            UpdateExpression="SET " + ", ".join(sets),
            ConditionExpression="attribute_exists(#u)",
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )
    except ClientError as exc:
        if _conditional_failed(exc):
            return False
        raise
    return True


def upsert_subscription(
    tables: Tables,
    username: str,
    subscription_type: str,
    referral_username: Optional[str] = None,
    *,
    display_username: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """Extend an existing user or create a new one. Returns the new end timestamp."""
    start_dt = now or utc_now()
    end = to_ts(subscription_end_for(subscription_type, start_dt))

    if update_subscription(tables, username, subscription_type, end, referral_username):
        logger.info("Renewed %s subscription for %s", subscription_type, username)
        return end
    if add_user(
        tables,
        username,
        subscription_type,
        to_ts(start_dt),
        end,
        referral_username,
        display_username=display_username,
    ):
        logger.info("Created %s subscription for new user %s", subscription_type, username)
        return end
    # The user appeared between the update and the insert.
    if update_subscription(tables, username, subscription_type, end, referral_username):
        logger.info("Renewed %s subscription for %s after concurrent insert", subscription_type, username)
        return end
    raise SubscriptionWriteConflict(f"Could not write subscription for {username}")


def grant_trial(tables: Tables, username: str, *, display_username: Optional[str] = None) -> bool:
    start_dt = utc_now()
    end_dt = subscription_end_for(TRIAL, start_dt)
    granted = add_user(tables, username, TRIAL, to_ts(start_dt), to_ts(end_dt), None, display_username=display_username)
    if granted:
        record_trial_granted()
        logger.info("Trial granted to %s until %s", username, end_dt.isoformat())
    return granted


def _fmt_date(ts: int) -> str:
    return from_ts(ts).strftime("%Y-%m-%d")


def subscription_status(tables: Tables, username: str, *, display_username: Optional[str] = None) -> Dict[str, Any]:
    user = get_user(tables, username)
    if not user:
        return {
            "isValid": False,
            "message": f"Welcome, {display_username or username}! Please subscribe to use the application.",
            "needsSubscription": True,
            "availableTrial": True,
            "affiliateNumber": 0,
        }

    affiliate_number = count_valid_affiliates(tables, username)
    end = int(user.get("subscription_end") or 0)
    sub_type = user.get("subscription_type", "")
    label = TYPE_LABELS.get(sub_type, sub_type)

    if now_ts() <= end:
        out: Dict[str, Any] = {
            "isValid": True,
            "message": f"Your {label} subscription is valid until {_fmt_date(end)}.",
            "affiliateNumber": affiliate_number,
            "availableTrial": False,
        }
    else:
        out = {
            "isValid": False,
            "message": f"Your subscription expired on {_fmt_date(end)}. Please renew it.",
            "needsRenewal": True,
            "affiliateNumber": affiliate_number,
            "availableTrial": False,
        }
    out["subscriptionType"] = sub_type
    out["subscriptionEnd"] = end
    if user.get("referral_username"):
        out["referralUsername"] = user["referral_username"]
    return out
