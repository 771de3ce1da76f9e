from __future__ import annotations

from typing import Dict

from fastapi import Request

from subgate.core.settings import S, Settings
from subgate.services.cryptomus import CryptomusProvider
from subgate.services.payment_provider import PaymentProvider
from subgate.services.plisio import PlisioProvider


def build_providers(settings: Settings = S) -> Dict[str, PaymentProvider]:
    providers = (PlisioProvider(settings), CryptomusProvider(settings))
    return {p.name: p for p in providers}


def get_providers(request: Request) -> Dict[str, PaymentProvider]:
    return request.app.state.providers
