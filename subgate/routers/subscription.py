from __future__ import annotations

from fastapi import APIRouter, Depends

from subgate.core.normalize import normalize_username
from subgate.core.settings import S
from subgate.core.tables import Tables, get_tables
from subgate.models import RequestTrialReq, VerifyUserReq
from subgate.services.subscriptions import grant_trial, subscription_status

router = APIRouter(tags=["subscription"])

TRIAL_GRANTED = "Trial activated. You can now use the application for {days} days."
TRIAL_UNAVAILABLE = "The trial period is only available to new users."


@router.post("/verify-user")
def verify_user(body: VerifyUserReq, tables: Tables = Depends(get_tables)):
    username = normalize_username(body.username)
    return subscription_status(tables, username, display_username=body.username.strip())


@router.post("/request-trial")
def request_trial(body: RequestTrialReq, tables: Tables = Depends(get_tables)):
    username = normalize_username(body.username)
    if not grant_trial(tables, username, display_username=body.username.strip()):
        return {"success": False, "message": TRIAL_UNAVAILABLE}
    return {"success": True, "message": TRIAL_GRANTED.format(days=S.trial_days)}
