from __future__ import annotations

import base64
import hashlib
import hmac
import json
from typing import Any, Dict, Optional

def compact_json(data: Any) -> str:
    # Same text JSON.stringify produces: no whitespace, non-ASCII kept as-is.
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)

def php_json(data: Any) -> str:
    # PHP json_encode(..., JSON_UNESCAPED_UNICODE) also escapes forward slashes.
    return compact_json(data).replace("/", "\\/")

def _without(data: Dict[str, Any], field: str) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k != field}

def hmac_sha1_hex(secret: str, message: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha1).hexdigest()

def plisio_verify_hash(data: Dict[str, Any], secret: str) -> str:
    ordered = dict(sorted(_without(data, "verify_hash").items()))
    return hmac_sha1_hex(secret, compact_json(ordered))

def verify_plisio_callback(data: Any, secret: str) -> bool:
    if not isinstance(data, dict) or not secret:
        return False
    provided = data.get("verify_hash")
    if not isinstance(provided, str) or not provided:
        return False
    return hmac.compare_digest(plisio_verify_hash(data, secret), provided)

def cryptomus_sign_body(body: str, api_key: str) -> str:
    encoded = base64.b64encode(body.encode("utf-8")).decode("ascii")
    return hashlib.md5((encoded + api_key).encode("utf-8")).hexdigest()

def cryptomus_sign(data: Dict[str, Any], api_key: str) -> str:
    return cryptomus_sign_body(php_json(_without(data, "sign")), api_key)

def verify_cryptomus_callback(data: Any, api_key: str) -> bool:
    if not isinstance(data, dict) or not api_key:
        return False
    provided: Optional[str] = data.get("sign")
    if not isinstance(provided, str) or not provided:
        return False
    return hmac.compare_digest(cryptomus_sign(data, api_key), provided)
