import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from fellowship.api.v1.activities.router import router as activities_router
from fellowship.api.v1.activities.types_router import router as activity_types_router
from fellowship.api.v1.analytics.router import router as analytics_router
from fellowship.api.v1.audit_logs.router import router as audit_logs_router
from fellowship.api.v1.auth.router import router as auth_router
from fellowship.api.v1.finances.router import router as finances_router
from fellowship.api.v1.inventory.router import router as inventory_router
from fellowship.api.v1.invitations.router import router as invitations_router
from fellowship.api.v1.members.router import router as members_router
from fellowship.api.v1.notifications.router import router as notifications_router
from fellowship.api.v1.reports.router import router as reports_router
from fellowship.api.v1.sites.router import router as sites_router
from fellowship.api.v1.small_groups.router import router as small_groups_router
from fellowship.api.v1.users.router import router as users_router
from fellowship.core.exceptions import STATUS_BY_CODE, ErrorCode
from fellowship.core.logging_config import configure_logging

logger = logging.getLogger(__name__)

_CODE_BY_STATUS = {v: k for k, v in STATUS_BY_CODE.items()}


def _error_body(message: str, code: ErrorCode, **extra) -> dict:
    error = {"message": message, "code": code.value}
    error.update(extra)
    return {"success": False, "data": None, "error": error}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTPException (auth, RBAC, 404 routes) in the same envelope services use."""
    detail = exc.detail
    extra = {}
    if isinstance(detail, dict):
        message = str(detail.get("message", ""))
        code = ErrorCode(detail.get("code", _CODE_BY_STATUS.get(exc.status_code, ErrorCode.INTERNAL_ERROR).value))
        if detail.get("login_url"):
            extra["login_url"] = detail["login_url"]
    else:
        message = str(detail)
        code = _CODE_BY_STATUS.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(message, code, **extra),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{location}: {first.get('msg', 'Invalid request')}" if location else first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(message, ErrorCode.VALIDATION_ERROR),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("Internal server error", ErrorCode.INTERNAL_ERROR),
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Fellowship Management Backend")

    # CORS: allow the dashboard frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Routers
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(sites_router)
    app.include_router(small_groups_router)
    app.include_router(members_router)
    app.include_router(activity_types_router)
    app.include_router(activities_router)
    app.include_router(reports_router)
    app.include_router(finances_router)
    app.include_router(inventory_router)
    app.include_router(invitations_router)
    app.include_router(audit_logs_router)
    app.include_router(notifications_router)
    app.include_router(analytics_router)

    return app


app = create_app()
