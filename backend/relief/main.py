from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse

from relief.api.routes.admin import router as admin_router
from relief.api.routes.reports import router as reports_router
from relief.api.routes.sms import WEBHOOK_PATH
from relief.api.routes.sms import router as sms_router
from relief.core.config import settings
from relief.core.logging import configure_logging

logger = logging.getLogger("relief")


# -------------------------
# Response helpers
# -------------------------
def ok(data: Any = None, meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"success": True, "data": data, "error": None, "meta": meta or {}}


def fail(
    code: str,
    message: str,
    details: Optional[Any] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "success": False,
        "data": None,
        "error": {"code": code, "message": message, "details": details},
        "meta": meta or {},
    }


# -------------------------
# App factory
# -------------------------
app = FastAPI(
    title="Relief SMS Intake API",
    version="0.1.0",
    default_response_class=ORJSONResponse,
)


# -------------------------
# Middleware
# -------------------------
app.add_middleware(GZipMiddleware, minimum_size=1024)

# Browser dashboards read /reports; the webhook itself is server-to-server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request-id + timing + body-size guard
@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    start = time.perf_counter()

    # An SMS payload is a few hundred bytes; anything huge is not the gateway.
    # The webhook enforces its own limit since it must always answer 200.
    content_length = request.headers.get("content-length")
    if content_length is not None and request.url.path != WEBHOOK_PATH:
        try:
            if int(content_length) > settings.MAX_BODY_BYTES:
                return ORJSONResponse(
                    status_code=413,
                    content=fail(
                        code="PAYLOAD_TOO_LARGE",
                        message=f"Request body too large. Max is {settings.MAX_BODY_KB} KB.",
                        meta={"request_id": request_id},
                    ),
                )
        except ValueError:
            pass

    response = await call_next(request)

    response.headers["x-request-id"] = request_id
    response.headers["x-response-ms"] = f"{(time.perf_counter() - start) * 1000:.2f}"
    return response


# -------------------------
# Routes
# -------------------------
@app.get("/health", response_class=ORJSONResponse)
async def health():
    return ok({"status": "ok", "env": settings.ENV})


app.include_router(sms_router, prefix="", tags=["sms"])
app.include_router(reports_router)
app.include_router(admin_router)


# -------------------------
# Error handling
# -------------------------
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    details = None
    if settings.ENV == "dev":
        details = {"type": exc.__class__.__name__, "message": str(exc)}

    return ORJSONResponse(
        status_code=500,
        content=fail(
            code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            details=details,
        ),
    )


# -------------------------
# Startup / shutdown
# -------------------------
@app.on_event("startup")
async def on_startup():
    configure_logging(settings.LOG_LEVEL)

    from relief.db.session import get_session_factory, init_db
    from relief.services.factories import get_gateway, get_outbox, get_report_cache
    from relief.services.gemini_service import gemini_enabled

    await init_db()

    # Audit rows parked while the DB was unavailable get another chance now.
    gateway = get_gateway(get_session_factory(), get_outbox(), get_report_cache())
    result = await gateway.replay_audit_outbox()
    if result.success or result.failed:
        logger.info("Audit outbox replay: %s", result.as_dict())

    if gemini_enabled():
        logger.info("Gemini enabled (model=%s)", settings.GEMINI_MODEL)
    else:
        logger.warning("Gemini disabled; every SMS will be logged as a parse failure.")

    if not settings.SMS_WEBHOOK_SECRET:
        logger.warning("SMS_WEBHOOK_SECRET not set; webhook signatures are not verified.")


@app.on_event("shutdown")
async def on_shutdown():
    from relief.db.session import dispose_db

    await dispose_db()
