"""
Timezone utility functions for the AnalfaBet application

Match dates are stored as naive UTC datetimes. Calendar-day decisions
(default round, "kicks off tomorrow") are made in the configured TIMEZONE.
"""

from datetime import datetime, timezone

import pytz
from flask import current_app


def get_app_timezone():
    """Get the application's configured timezone"""
    try:
        timezone_name = current_app.config.get("TIMEZONE", "UTC")
        return pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        # Fallback to UTC if timezone is invalid
        current_app.logger.warning(
            f"Unknown TIMEZONE {current_app.config.get('TIMEZONE')!r}, using UTC"
        )
        return pytz.UTC


def get_current_time():
    """Get current time in the application's timezone"""
    app_tz = get_app_timezone()
    return datetime.now(app_tz)


def utcnow_naive():
    """Current UTC time as a naive datetime, comparable with stored match dates"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today_in_app_timezone():
    return get_current_time().date()


def to_naive_utc(dt):
    """Normalize an aware datetime to naive UTC for storage"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_api_datetime(value):
    """Parse an ISO 8601 timestamp from football-data.org ("2024-04-13T21:30:00Z")"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    return to_naive_utc(parsed)


def isoformat_utc(dt):
    """Serialize a stored (naive UTC) datetime with an explicit offset"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()
