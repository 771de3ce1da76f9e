from __future__ import annotations

from typing import Optional

from fastapi import HTTPException

def client_ip_from_request(req) -> str:
    xff = req.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    return req.client.host if req.client else "0.0.0.0"

def normalize_username(s: str) -> str:
    s = (s or "").strip().lower()
    if not s or len(s) > 128:
        raise HTTPException(400, "Invalid username")
    return s

def normalize_optional_username(s: Optional[str]) -> Optional[str]:
    s = (s or "").strip().lower()
    return s or None

def normalize_promo_code(s: Optional[str]) -> Optional[str]:
    s = (s or "").strip()
    return s or None
