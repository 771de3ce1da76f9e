from __future__ import annotations

from fastapi import APIRouter, Depends

from subgate.core.normalize import normalize_promo_code, normalize_username
from subgate.core.tables import Tables, get_tables
from subgate.models import AdjustedPricesReq, ApplyPromoReq
from subgate.services.checkout import INVALID_SUBSCRIPTION_TYPE, adjusted_price_list, fail
from subgate.services.pricing import is_paid_duration, prices_out, promo_prices
from subgate.services.promos import PROMO_NOT_FOUND, verify_promo

router = APIRouter(tags=["pricing"])


@router.post("/apply-promo")
def apply_promo(body: ApplyPromoReq, tables: Tables = Depends(get_tables)):
    code = normalize_promo_code(body.promo_code)
    if not code:
        return fail(PROMO_NOT_FOUND)
    if not is_paid_duration(body.subscription_type):
        return fail(INVALID_SUBSCRIPTION_TYPE)
    check = verify_promo(tables, code, body.subscription_type)
    if not check.valid:
        return fail(check.reason or PROMO_NOT_FOUND)
    return {
        "success": True,
        "updatedPrices": prices_out(promo_prices(body.subscription_type, check.discount)),
        "appliedTo": body.subscription_type,
    }


@router.post("/get-adjusted-prices")
def get_adjusted_prices(body: AdjustedPricesReq, tables: Tables = Depends(get_tables)):
    username = normalize_username(body.username)
    return adjusted_price_list(tables, username, body.subscription_type, normalize_promo_code(body.promo_code))
