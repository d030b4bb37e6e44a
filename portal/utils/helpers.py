"""Shared utility functions for timestamps and request provenance.

utcnow:          single source of "now" for services (patched in tests)
as_utc:          normalise aware/naive datetimes to aware UTC
parse_datetime:  ISO-8601 input -> aware UTC, raises ValidationError
current_actor:   X-User-Id header -> created_by body field -> "system"
"""
import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app, has_app_context, request

from portal.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes even for timezone=True columns; those
    were written as UTC, so naive values are tagged UTC rather than shifted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _default_zone():
    name = "UTC"
    if has_app_context():
        name = current_app.config.get("PORTAL_TIMEZONE", "UTC") or "UTC"
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        logger.warning("Unknown PORTAL_TIMEZONE %r, falling back to UTC", name)
        return timezone.utc


def parse_datetime(value, field_name="datetime"):
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Naive input is interpreted in the configured PORTAL_TIMEZONE.
    A trailing ``Z`` is accepted.

    Raises:
        ValidationError: value missing or unparseable; details name the field.
    """
    if value is None or value == "":
        raise ValidationError(f"{field_name} is required", details={field_name: "required"})
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(
                f"Invalid {field_name} '{value}'. Use ISO-8601, e.g. 2026-01-15T09:00:00+05:30",
                details={field_name: "invalid ISO-8601 timestamp"},
            ) from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_default_zone())
    return parsed.astimezone(timezone.utc)


def current_actor(data=None):
    """Resolve who is acting on this request (authentication is upstream)."""
    actor = request.headers.get("X-User-Id", "").strip()
    if not actor and data:
        actor = str(data.get("created_by") or "").strip()
    return actor[:150] or "system"
