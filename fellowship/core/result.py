"""
Service result envelope. Every public service function returns a ServiceResult:
{success: true, data} on success, {success: false, error: {message, code}} on a handled failure.
"""

import functools
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, ParamSpec, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.exceptions import STATUS_BY_CODE, ErrorCode, ServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")
P = ParamSpec("P")


class ErrorInfo(BaseModel):
    message: str
    code: ErrorCode


class ServiceResult(BaseModel, Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[ErrorInfo] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ServiceResult[Any]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, message: str, code: ErrorCode) -> "ServiceResult[Any]":
        return cls(success=False, error=ErrorInfo(message=message, code=code))


def service_result(fn: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[ServiceResult[T]]]:
    """
    Wrap a service coroutine so ServiceError becomes a failed envelope.
    If the first argument is the request session, it is rolled back before returning the failure,
    so no partial write from the failed operation can be committed later in the request.
    """

    @functools.wraps(fn)
    async def _wrapper(*args: P.args, **kwargs: P.kwargs) -> ServiceResult[T]:
        try:
            return ServiceResult.ok(await fn(*args, **kwargs))
        except ServiceError as e:
            db = args[0] if args and isinstance(args[0], AsyncSession) else None
            if db is not None:
                await db.rollback()
            logger.warning("%s failed: %s (%s)", fn.__name__, e.message, e.code.value)
            return ServiceResult.fail(e.message, e.code)

    return _wrapper


def respond(result: ServiceResult[Any], success_status: int = 200) -> Any:
    """Render a ServiceResult for a router: success passes through, failures get the mapped HTTP status."""
    if result.success:
        if success_status == 200:
            return result
        return JSONResponse(status_code=success_status, content=result.model_dump(mode="json"))
    assert result.error is not None
    return JSONResponse(
        status_code=STATUS_BY_CODE[result.error.code],
        content=result.model_dump(mode="json"),
    )
