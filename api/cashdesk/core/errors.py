import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CashdeskError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, *, errors: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class ValidationError(CashdeskError):
    """Input rejected before any write happened."""

    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


class NotFoundError(CashdeskError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(CashdeskError):
    status_code = status.HTTP_409_CONFLICT


class PersistenceError(CashdeskError):
    """A write against the store failed; remaining checkout steps were skipped."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class NotificationError(CashdeskError):
    """The bookkeeping mirror rejected or never received a sale.

    Raised inside the notifier only; it never reaches a checkout caller.
    """

    status_code = status.HTTP_502_BAD_GATEWAY


async def cashdesk_error_handler(request: Request, exc: CashdeskError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    content: dict = {"detail": exc.message}
    if exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CashdeskError, cashdesk_error_handler)
