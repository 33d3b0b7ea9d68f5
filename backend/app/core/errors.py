"""
Error taxonomy shared by the reservation services and the HTTP layer.

Services raise these; `register_exception_handlers` maps them to responses so routes
stay thin. Anything unexpected is logged once and surfaced as InternalError.
"""

import functools
from typing import Awaitable, Callable, TypeVar

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, Response

from app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class PreconditionFailedError(ServiceError):
    """Both entities exist but the expected relation between them does not."""

    status_code = status.HTTP_412_PRECONDITION_FAILED
    default_detail = "Precondition failed"


class NoContentError(ServiceError):
    """A query legitimately matched nothing. Not a fault."""

    status_code = status.HTTP_204_NO_CONTENT
    default_detail = "No content"


class BadRequestError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request"


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class InternalError(ServiceError):
    pass


def parse_id(value: str, label: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequestError(f"Invalid {label} id")


def service_operation(name: str) -> Callable[
    [Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]
]:
    """
    Wrap a service coroutine: known ServiceErrors pass through untouched,
    any other exception is logged with context and re-raised as InternalError.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except ServiceError:
                raise
            except Exception as exc:
                logger.exception("service_operation_failed", operation=name, error=str(exc))
                raise InternalError() from exc

        return wrapper

    return decorator


async def _service_error_handler(request: Request, exc: ServiceError) -> Response:
    if isinstance(exc, NoContentError):
        return Response(status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error_handler)
