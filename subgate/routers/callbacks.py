from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from subgate.core.normalize import client_ip_from_request
from subgate.core.tables import Tables, get_tables
from subgate.metrics import record_callback
from subgate.services.payment_provider import PaymentProvider
from subgate.services.providers import get_providers
from subgate.services.reconcile import reconcile

logger = logging.getLogger(__name__)

router = APIRouter(tags=["callbacks"])


def _parse_body(raw_body: bytes) -> Any:
    try:
        return json.loads(raw_body.decode("utf-8") or "{}")
    except (UnicodeDecodeError, ValueError):
        return None


@router.post("/{provider_name}-callback")
async def payment_callback(
    provider_name: str,
    req: Request,
    tables: Tables = Depends(get_tables),
    providers: Dict[str, PaymentProvider] = Depends(get_providers),
):
    provider = providers.get(provider_name.lower())
    if provider is None:
        raise HTTPException(404, "Unknown payment provider")

    payload = _parse_body(await req.body())

    # Nothing is written before the signature checks out.
    if not provider.verify_callback(payload):
        logger.warning("Rejected %s callback with bad signature from %s", provider.name, client_ip_from_request(req))
        record_callback(provider.name, "invalid_signature")
        raise HTTPException(provider.invalid_signature_status, "Invalid callback signature")

    event = provider.parse_callback(payload)
    result = await run_in_threadpool(reconcile, tables, event)
    record_callback(provider.name, result.outcome)

    if result.http_status == 404:
        raise HTTPException(404, "Invoice not found")
    if result.http_status == 400:
        raise HTTPException(400, "Missing order number")
    return result.to_response()
