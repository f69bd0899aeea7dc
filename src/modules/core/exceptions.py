"""Standardized API error responses.

Every error leaving the API has the same envelope::

    {"type": "validation_error", "errors": [{"code": ..., "detail": ..., "attr": ...}]}

``type`` tells the storefront whether a retry makes sense: ``stock_conflict``
(change quantities), ``gateway_error`` (resubmit), ``validation_error``
(fix the input), ``client_error`` (auth / not found / throttling).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = structlog.get_logger(__name__)

VALIDATION_ERROR = "validation_error"
STOCK_CONFLICT = "stock_conflict"
GATEWAY_ERROR = "gateway_error"
CLIENT_ERROR = "client_error"
SERVER_ERROR = "server_error"


def error_response(
    error_type: str,
    code: str,
    detail: str,
    http_status: int,
    attr: Optional[str] = None,
    **extra: Any,
) -> Response:
    """Build a single-error response in the standard envelope."""
    body: Dict[str, Any] = {
        "type": error_type,
        "errors": [{"code": code, "detail": detail, "attr": attr}],
    }
    body.update(extra)
    return Response(body, status=http_status)


def _flatten(detail: Any, attr: Optional[str] = None) -> List[Dict[str, Any]]:
    if isinstance(detail, dict):
        errors: List[Dict[str, Any]] = []
        for key, value in detail.items():
            nested = key if attr is None else f"{attr}.{key}"
            if key == "non_field_errors":
                nested = attr
            errors.extend(_flatten(value, nested))
        return errors
    if isinstance(detail, list):
        errors = []
        for index, value in enumerate(detail):
            if isinstance(value, (dict, list)):
                nested = f"{attr}.{index}" if attr else str(index)
                errors.extend(_flatten(value, nested))
            else:
                errors.extend(_flatten(value, attr))
        return errors
    return [
        {
            "code": getattr(detail, "code", "error"),
            "detail": str(detail),
            "attr": attr,
        }
    ]


def api_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """DRF exception handler wrapping DRF errors in the standard envelope."""
    response = exception_handler(exc, context)
    if response is None:
        return None

    if response.status_code == status.HTTP_400_BAD_REQUEST:
        error_type = VALIDATION_ERROR
    elif response.status_code >= 500:
        error_type = SERVER_ERROR
    else:
        error_type = CLIENT_ERROR

    response.data = {"type": error_type, "errors": _flatten(response.data)}
    logger.info(
        "api.error",
        type=error_type,
        status_code=response.status_code,
        exception=exc.__class__.__name__,
    )
    return response
