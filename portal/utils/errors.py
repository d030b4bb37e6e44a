"""Standardised API error responses.

Usage
-----
    from portal.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Window not found")
    return api_error(E.PREREQUISITE_MISSING, str(exc), details=exc.details)
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants.

    Convention:
     • ERR_ prefix for every application error
     • codes match ``PortalError.code`` on the exception classes
    """

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Workflow – HTTP 422
    PREREQUISITE_MISSING = "ERR_PREREQUISITE_MISSING"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # State conflicts – HTTP 409
    WINDOW_IMMUTABLE = "ERR_WINDOW_IMMUTABLE"
    ALREADY_RELEASED = "ERR_ALREADY_RELEASED"
    WINDOW_NOT_ACTIVE = "ERR_WINDOW_NOT_ACTIVE"

    # Window enforcement – HTTP 423
    WINDOW_CLOSED = "ERR_WINDOW_CLOSED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.PREREQUISITE_MISSING: 422,
    E.NOT_FOUND: 404,
    E.WINDOW_IMMUTABLE: 409,
    E.ALREADY_RELEASED: 409,
    E.WINDOW_NOT_ACTIVE: 409,
    E.WINDOW_CLOSED: 423,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (missing prerequisites, invalid fields).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def portal_error_response(exc):
    """Render any ``PortalError`` through ``api_error``."""
    return api_error(exc.code, exc.message, details=exc.details)
