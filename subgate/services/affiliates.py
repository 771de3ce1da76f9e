from __future__ import annotations

from typing import Any, Dict, Optional

from subgate.core.tables import Tables
from subgate.core.time import now_ts


def count_valid_affiliates(tables: Tables, username: str, now: Optional[int] = None) -> int:
    """Referred users whose subscription has not ended yet."""
    now = now_ts() if now is None else int(now)
    kwargs: Dict[str, Any] = {
        "IndexName": tables.referral_index,
        "KeyConditionExpression": "#r = :r",
        "FilterExpression": "#e >= :now",
        "ExpressionAttributeNames": {"#r": "referral_username", "#e": "subscription_end"},
        "ExpressionAttributeValues": {":r": username, ":now": now},
        "Select": "COUNT",
    }
    total = 0
    while True:
        resp = tables.users.query(**kwargs)
        total += int(resp.get("Count", 0))
        last = resp.get("LastEvaluatedKey")
        if not last:
            return total
        kwargs["ExclusiveStartKey"] = last
