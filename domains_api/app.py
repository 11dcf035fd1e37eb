from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from domains_api import db as dbm
from domains_api.auth import require_api_token
from domains_api.checker import check_single_domain, run_batch_check
from domains_api.schema import (
    ApiEnvelope,
    ApiError,
    BatchCheckData,
    BatchCheckRequest,
    DomainCheckData,
    DomainCheckRequest,
    NotifiedDomain,
)
from domains_api.settings import ServiceSettings


LOGGER = logging.getLogger("domains-support")

MSG_DONE = "检查完成"
MSG_BAD_DOMAINS = "请求参数错误, 需要提供一个包含域名的数组"
MSG_NO_ALERT_CONFIG = "未找到告警配置"
MSG_BATCH_FAILED = "检查执行失败: "
MSG_CHECK_FAILED = "检查失败"


def _envelope_response(status: int, message: str, data: Any = None) -> JSONResponse:
    env = ApiEnvelope(status=status, message=message, data=data)
    return JSONResponse(content=env.model_dump(), status_code=status)


async def _read_json_body(req: Request) -> Any:
    raw = await req.body()
    if not raw.strip():
        return None
    return json.loads(raw)


def _domains_from_query(req: Request) -> list[str]:
    raw = req.query_params.get("domains") or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


async def _parse_batch_request(req: Request) -> list[str]:
    try:
        payload = await _read_json_body(req)
    except ValueError as exc:
        raise ApiError(400, MSG_BAD_DOMAINS) from exc

    if payload is None and req.method == "GET":
        query_domains = _domains_from_query(req)
        payload = {"domains": query_domains} if query_domains else None

    if not isinstance(payload, dict):
        raise ApiError(400, MSG_BAD_DOMAINS)
    try:
        parsed = BatchCheckRequest.model_validate(payload)
    except ValidationError as exc:
        raise ApiError(400, MSG_BAD_DOMAINS) from exc

    domains = parsed.normalized_domains()
    if not domains:
        raise ApiError(400, MSG_BAD_DOMAINS)
    return domains


def create_app(settings: ServiceSettings | None = None) -> FastAPI:
    app = FastAPI(title="Domains-Support Checks", version="0.1.0")
    app.state.settings = settings or ServiceSettings()

    @app.on_event("startup")
    def _startup() -> None:
        dbm.ensure_schema(app.state.settings)

    @app.exception_handler(ApiError)
    async def _api_error_handler(req: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(content=exc.envelope().model_dump(), status_code=exc.status)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"ok": True, "ts": time.time()}

    async def _batch_check(req: Request) -> JSONResponse:
        settings2: ServiceSettings = app.state.settings
        domains = await _parse_batch_request(req)
        try:
            config = await asyncio.to_thread(dbm.get_alert_config, settings2)
            if config is None:
                LOGGER.warning("No alert configuration found")
                raise ApiError(404, MSG_NO_ALERT_CONFIG)
            LOGGER.info(
                "Loaded alert config days=%s has_tg_token=%s has_tg_userid=%s has_wechat=%s",
                config.days,
                bool(config.tg_token),
                bool(config.tg_userid),
                config.wechat_enabled,
            )

            async with httpx.AsyncClient(headers={"User-Agent": settings2.http_user_agent}) as http_client:
                outcome = await run_batch_check(
                    settings2,
                    http_client=http_client,
                    config=config,
                    domains=domains,
                )
        except ApiError:
            raise
        except Exception as exc:
            LOGGER.exception("Batch check failed")
            return _envelope_response(500, MSG_BATCH_FAILED + str(exc))

        data = BatchCheckData(
            total_domains=outcome.total_domains,
            notified_domains=[
                NotifiedDomain(domain=d.domain, remainingDays=d.remaining_days, expiry_date=d.expiry_date)
                for d in outcome.notified
            ],
        )
        return _envelope_response(200, MSG_DONE, data.model_dump())

    @app.post("/api/check")
    async def api_check(req: Request, _auth: None = Depends(require_api_token)) -> JSONResponse:
        return await _batch_check(req)

    @app.get("/api/check")
    async def api_check_get(req: Request, _auth: None = Depends(require_api_token)) -> JSONResponse:
        return await _batch_check(req)

    @app.post("/api/domains/check")
    async def api_domain_check(req: Request) -> JSONResponse:
        settings2: ServiceSettings = app.state.settings
        try:
            payload = await _read_json_body(req)
            parsed = DomainCheckRequest.model_validate(payload)
            async with httpx.AsyncClient(headers={"User-Agent": settings2.http_user_agent}) as http_client:
                probe = await check_single_domain(settings2, http_client=http_client, domain=parsed.domain)
        except Exception as exc:
            LOGGER.exception("Domain check failed")
            return _envelope_response(500, str(exc) or MSG_CHECK_FAILED)

        status = dbm.STATUS_ONLINE if probe.online else dbm.STATUS_OFFLINE
        return _envelope_response(200, MSG_DONE, DomainCheckData(status=status).model_dump())

    return app


app = create_app()
