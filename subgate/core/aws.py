from __future__ import annotations

from typing import Any

import boto3

from .settings import S, Settings


def dynamodb_resource(settings: Settings = S) -> Any:
    session = boto3.session.Session(region_name=settings.aws_region or "us-east-1")
    kwargs = {}
    if settings.ddb_endpoint_url:
        kwargs["endpoint_url"] = settings.ddb_endpoint_url
    return session.resource("dynamodb", **kwargs)
