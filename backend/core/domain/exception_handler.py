"""
core.domain.exception_handler: DRF-compatible global exception handler.

Maps domain exceptions from ``core.domain.exceptions`` to proper
DRF ``Response`` objects so that views don't need per-endpoint
try/except boilerplate.

Register in ``settings.py``::

    REST_FRAMEWORK = {
        ...
        'EXCEPTION_HANDLER': 'core.domain.exception_handler.domain_exception_handler',
    }
"""

from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler

from core.domain.exceptions import (
    Conflict,
    DomainError,
    GuardViolation,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    PersistenceError,
    StaleCaseVersion,
    Unauthorized,
)

logger = logging.getLogger(__name__)

# Domain exception → HTTP status code, most specific first
_STATUS_MAP: dict[type, int] = {
    Unauthorized:      401,
    PermissionDenied:  403,
    NotFound:          404,
    InvalidTransition: 409,
    Conflict:          409,
    GuardViolation:    422,
    StaleCaseVersion:  409,
    PersistenceError:  503,
    DomainError:       400,  # catch-all base class last
}


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    DRF exception handler that also handles ``core.domain.exceptions``.

    The default DRF handler is called first.  If it returns ``None``
    (meaning DRF doesn't recognise the exception), we check whether
    it's one of our domain exceptions and return an appropriate response.
    """
    response = drf_default_handler(exc, context)
    if response is not None:
        return response

    for exc_class, status_code in _STATUS_MAP.items():
        if isinstance(exc, exc_class):
            logger.warning(
                "Domain exception [%s] in %s: %s",
                type(exc).__name__,
                context.get("view", "unknown"),
                exc,
            )
            if isinstance(exc, DomainError):
                body = exc.as_dict()
            else:
                body = {"detail": str(exc), "code": exc.code}
            return Response(body, status=status_code)

    # Unknown exception: let Django's 500 handling take over
    return None
