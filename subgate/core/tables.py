from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request

from .aws import dynamodb_resource
from .settings import S, Settings

@dataclass(frozen=True)
class Tables:
    users: Any
    invoices: Any
    promos: Any
    referral_index: str = S.users_referral_index


def build_tables(settings: Settings = S, ddb: Optional[Any] = None) -> Tables:
    ddb = ddb or dynamodb_resource(settings)
    return Tables(
        users=ddb.Table(settings.users_table_name),
        invoices=ddb.Table(settings.invoices_table_name),
        promos=ddb.Table(settings.promos_table_name),
        referral_index=settings.users_referral_index,
    )


def get_tables(request: Request) -> Tables:
    return request.app.state.tables
