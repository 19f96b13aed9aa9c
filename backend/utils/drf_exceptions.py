import logging

from django.db.utils import IntegrityError, OperationalError, ProgrammingError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from utils.errors import (
    ConflictError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    PreconditionFailedError,
    ServiceError,
)

LOGGER = logging.getLogger(__name__)

SERVICE_ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidArgumentError: status.HTTP_400_BAD_REQUEST,
    PreconditionFailedError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _describe(context):
    request = context.get("request")
    if request is None:
        return "(no request in context)"
    return f"{request.method} {request.get_full_path()}"


def service_error_response(exc):
    http_status = status.HTTP_400_BAD_REQUEST
    for klass, mapped in SERVICE_ERROR_STATUS.items():
        if isinstance(exc, klass):
            http_status = mapped
            break
    payload = {"detail": exc.detail, "code": exc.code}
    if exc.items:
        payload["items"] = exc.items
    if isinstance(exc, ConflictError):
        payload["retryable"] = True
    return Response(payload, status=http_status)


def custom_exception_handler(exc, context):
    """
    Return JSON for service errors and known infra/runtime errors
    (DB not ready, lock timeout, constraint race) instead of an HTML 500 page.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, ServiceError):
        if isinstance(exc, InternalError):
            LOGGER.error("Internal service error on %s: %s", _describe(context), exc.detail)
        return service_error_response(exc)

    if isinstance(exc, IntegrityError):
        LOGGER.warning("Integrity conflict on %s: %s", _describe(context), exc)
        return Response(
            {
                "detail": "Conflit avec une modification concurrente. Réessaie.",
                "code": "conflict",
                "retryable": True,
            },
            status=status.HTTP_409_CONFLICT,
        )

    if isinstance(exc, (OperationalError, ProgrammingError)):
        LOGGER.exception("Database error on %s", _describe(context))
        return Response(
            {
                "detail": "Service indisponible (base de données). Réessaie dans quelques instants.",
                "code": "db_unavailable",
            },
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return None
