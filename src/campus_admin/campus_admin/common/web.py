"""Shared pieces of the JSON controllers: auth guards and error mapping."""

from __future__ import annotations

import logging
from datetime import date
from functools import wraps

from flask import Flask, jsonify, session
from werkzeug.exceptions import HTTPException

from ..core.enums import Role
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    SaveInProgressError,
    StoreError,
    ValidationError,
)
from .datetime_utils import parse_iso_date

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (SaveInProgressError, 409),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (StoreError, 503),
)


def error_response(message: str, status: int):
    return jsonify({"success": False, "message": message}), status


def current_role() -> Role:
    return Role(session["role"])


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return error_response("Please sign in to continue", 401)
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session:
            return error_response("Please sign in to continue", 401)
        if session.get("role") != Role.ADMIN.value:
            return error_response("Admin access required", 403)
        return view(*args, **kwargs)

    return wrapper


def date_arg(value: str) -> date:
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}, expected YYYY-MM-DD")


def register_error_handlers(app: Flask) -> None:
    def handle_domain_error(e):
        for error_type, status in _STATUS_BY_ERROR:
            if isinstance(e, error_type):
                if status >= 500:
                    logger.warning("Store unavailable: %s", e)
                return error_response(str(e), status)
        return error_response(str(e), 400)

    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return error_response(e.description or e.name, e.code or 500)
        logger.exception("Unhandled error")
        if app.config.get("DEBUG"):
            return error_response(f"Server error: {e}", 500)
        return error_response("Server error", 500)

    for error_type, _ in _STATUS_BY_ERROR:
        app.register_error_handler(error_type, handle_domain_error)
    app.register_error_handler(Exception, handle_unexpected)
