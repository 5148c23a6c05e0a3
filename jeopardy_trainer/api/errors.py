"""
Translate service exceptions into HTTP errors.

Routes catch ``JeopardyTrainerException`` and raise the result of
``to_http_exception``; anything else is logged and becomes a generic 500.
"""

from fastapi import HTTPException, status

from jeopardy_trainer.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    JeopardyTrainerException,
    NotFoundError,
    ValidationError,
)
from jeopardy_trainer.core.services.logging import get_logging_service

STATUS_BY_ERROR = (
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def to_http_exception(
    exc: JeopardyTrainerException, fallback: str = "Internal server error"
) -> HTTPException:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))

    get_logging_service().log_error(
        "unhandled_service_error",
        str(exc),
        exception=type(exc).__name__,
        exc_info=exc,
    )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=fallback
    )
