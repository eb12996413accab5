"""Central API error codes and registration helpers."""

from __future__ import annotations

from typing import Any, Dict

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from adapters.db.base import (
    RecordNotFoundError,
    StoreError,
    StorePermissionError,
    StoreValidationError,
)
from domains.tenancy.exceptions import TenancyError
from logging_lib import get_logger


logger = get_logger("api.errors")


ERRORS: Dict[str, int] = {
    'MISSING_FIELDS': 400,
    'INVALID_ARGUMENT': 400,
    'ASSIGNMENT_ERROR': 400,
    'AUTH_ERROR': 401,
    'INVALID_TOKEN': 401,
    'FORBIDDEN': 403,
    'NOT_FOUND': 404,
    'METHOD_NOT_ALLOWED': 405,
    'ILLEGAL_TRANSITION': 409,
    'PROVISIONING_FAILED': 500,
    'INTERNAL_ERROR': 500,
    'STORE_ERROR': 502,
}


def make_error(message: str, code: str) -> Any:
    """Make an error response."""

    status = ERRORS.get(code, 500)
    payload = {'error': message, 'code': code}

    # include version hint if present
    path = getattr(request, 'path', '') or ''

    if '/api/v1/' in path:
        payload['version'] = 'v1'

    return jsonify(payload), status


def register_error_handlers(app) -> None:
    """Register error handlers."""

    @app.errorhandler(404)
    def _h_404(_e):
        return make_error('Not found', 'NOT_FOUND')

    @app.errorhandler(405)
    def _h_405(_e):
        return make_error('Method not allowed', 'METHOD_NOT_ALLOWED')

    @app.errorhandler(TenancyError)
    def _h_tenancy(e: TenancyError):
        if ERRORS.get(e.code, 500) >= 500:
            logger.error("Request failed", code=e.code, error=e.message)
        return make_error(e.message, e.code)

    @app.errorhandler(StoreError)
    def _h_store(e: StoreError):
        if isinstance(e, StoreValidationError):
            return make_error(str(e), 'INVALID_ARGUMENT')
        if isinstance(e, RecordNotFoundError):
            return make_error('Resource not found', 'NOT_FOUND')
        if isinstance(e, StorePermissionError):
            return make_error('Permission denied', 'FORBIDDEN')
        logger.error("Record store failure", error_code=e.error_code)
        return make_error('Record store error', 'STORE_ERROR')

    @app.errorhandler(Exception)
    def _h_exc(e: Exception):
        """Handle all other errors."""

        if isinstance(e, HTTPException):
            return make_error(e.description or e.name, 'INVALID_ARGUMENT' if (e.code or 500) < 500 else 'INTERNAL_ERROR')
        if isinstance(e, KeyError):
            return make_error('Missing required fields', 'MISSING_FIELDS')
        if isinstance(e, ValueError):
            return make_error(str(e) or 'Invalid argument', 'INVALID_ARGUMENT')

        logger.error("Unhandled exception", error=type(e).__name__)
        return make_error('Internal server error', 'INTERNAL_ERROR')
