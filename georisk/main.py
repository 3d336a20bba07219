from __future__ import annotations

import logging
import os
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

from georisk.errors import ApiError
from georisk.routes import locations, reports, users
from georisk.routes._deps import error_response, request_id_from_request, trace_id_from_request
from georisk.schemas import success_envelope
from georisk.security import (
    JwtSecurityConfig,
    identity_from_headers,
    parse_and_validate_bearer_token,
    redact_sensitive,
)
from georisk.service import ReportService, create_service_from_env

logger = logging.getLogger(__name__)

_SECURITY_CODES = {"AUTH_UNAUTHORIZED", "AUTH_FORBIDDEN"}


def create_app(service: ReportService | None = None) -> FastAPI:
    app = FastAPI(title="GeoRisk Report API", version="0.1.0")
    security_cfg = JwtSecurityConfig.from_env()
    app.state.security_cfg = security_cfg
    app.state.service = service if service is not None else create_service_from_env()

    cors_origins = os.environ.get("CORS_ALLOW_ORIGINS", "http://127.0.0.1:8081,http://localhost:8081")
    allow_origins = [x.strip() for x in cors_origins.split(",") if x.strip()]
    if allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _log_security_block(request: Request, exc: ApiError) -> None:
        headers_obj = dict(request.headers.items())
        headers_payload = redact_sensitive(headers_obj) if security_cfg.log_redaction_enabled else headers_obj
        logger.warning(
            "security_blocked code=%s path=%s trace_id=%s detail=%s headers=%s",
            exc.code,
            request.url.path,
            trace_id_from_request(request),
            exc.message,
            headers_payload,
        )

    def _api_error_response(request: Request, exc: ApiError):
        return error_response(
            request,
            code=exc.code,
            message=exc.message,
            error_class=exc.error_class,
            retryable=exc.retryable,
            status_code=exc.http_status,
            details=exc.details,
        )

    @app.middleware("http")
    async def resolve_identity(request: Request, call_next):
        request.state.trace_id = request.headers.get("x-trace-id", "").strip() or uuid.uuid4().hex
        request.state.request_id = request.headers.get("x-request-id", f"req_{uuid.uuid4().hex[:12]}")
        request.state.identity = None
        try:
            if request.url.path.startswith("/api/v1/"):
                authorization = request.headers.get("Authorization")
                if security_cfg.enabled:
                    # No header: leave the identity empty and let the operation decide.
                    if authorization:
                        request.state.identity = parse_and_validate_bearer_token(
                            authorization=authorization,
                            cfg=security_cfg,
                        )
                else:
                    request.state.identity = identity_from_headers(request.headers)
        except ApiError as exc:
            _log_security_block(request, exc)
            response = _api_error_response(request, exc)
        else:
            response = await call_next(request)
        response.headers["x-trace-id"] = trace_id_from_request(request)
        response.headers["x-request-id"] = request_id_from_request(request)
        return response

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        if exc.code in _SECURITY_CODES:
            _log_security_block(request, exc)
        elif exc.http_status >= 500:
            logger.error("request_failed code=%s path=%s message=%s", exc.code, request.url.path, exc.message)
        return _api_error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        fields = [".".join(str(x) for x in err.get("loc", ()) if x != "body") for err in exc.errors()]
        return error_response(
            request,
            code="REQ_VALIDATION_FAILED",
            message="invalid payload",
            error_class="validation",
            retryable=False,
            status_code=400,
            details={"fields": fields},
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(
                request,
                code="REQ_NOT_FOUND",
                message="resource not found",
                error_class="validation",
                retryable=False,
                status_code=404,
            )
        return error_response(
            request,
            code="REQ_HTTP_ERROR",
            message=str(exc.detail),
            error_class="validation",
            retryable=False,
            status_code=exc.status_code,
        )

    @app.get("/healthz")
    def healthz(request: Request) -> dict[str, object]:
        return success_envelope({"status": "ok"}, trace_id_from_request(request))

    @app.get("/api/v1/health")
    def health_api(request: Request) -> dict[str, object]:
        data = {"status": "ok", "store_backend": request.app.state.service.record_store.backend_name}
        return success_envelope(data, trace_id_from_request(request))

    app.include_router(locations.router)
    app.include_router(reports.router)
    app.include_router(users.router)
    return app


app = create_app()
