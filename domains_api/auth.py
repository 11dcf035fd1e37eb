from __future__ import annotations

import hmac
from typing import Any

from fastapi import Depends, Request

from domains_api.schema import ApiError
from domains_api.settings import ServiceSettings


MSG_UNAUTHORIZED = "未授权访问"


def _auth_header_token(req: Request) -> str:
    raw = req.headers.get("authorization") or ""
    if not raw:
        return ""
    parts = raw.split(None, 1)
    if len(parts) != 2:
        return ""
    scheme, rest = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer":
        return ""
    return rest


def request_token(req: Request) -> str:
    """Query parameter ?token= wins over the Authorization header."""
    token = (req.query_params.get("token") or "").strip()
    return token or _auth_header_token(req)


def get_settings(req: Request) -> ServiceSettings:
    settings: Any = getattr(req.app.state, "settings", None)
    if not isinstance(settings, ServiceSettings):
        raise RuntimeError("Service settings not configured")
    return settings


def require_api_token(req: Request, settings: ServiceSettings = Depends(get_settings)) -> None:
    token = request_token(req)
    expected = (settings.api_token or "").strip()
    if not token or not expected:
        raise ApiError(401, MSG_UNAUTHORIZED)
    if not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        raise ApiError(401, MSG_UNAUTHORIZED)
