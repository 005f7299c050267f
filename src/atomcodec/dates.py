from __future__ import annotations

import datetime
import re
from email.utils import parsedate_to_datetime
from functools import lru_cache
from typing import Optional

from dateutil import parser as dateutil_parser

_UTC = datetime.timezone.utc

_RE_WHITESPACE = re.compile(r"\s+")
_RE_ISO_TZ_NO_COLON = re.compile(r"([+-]\d{2})(\d{2})$")
_RE_ISO_TZ_HOUR_ONLY = re.compile(r"([+-]\d{2})$")
_RE_ISO_FRACTION = re.compile(r"\.(\d{7,})(?=(?:[+-]\d{2}:?\d{2}|Z|$))", re.IGNORECASE)

# Offsets for zone abbreviations seen in feeds; dateutil ignores them otherwise.
_custom_tzinfos: dict[str, int] = {
    "UTC": 0,
    "UT": 0,
    "GMT": 0,
    "Z": 0,
    "WET": 0,
    "WEST": 3600,
    "BST": 3600,
    "CET": 3600,
    "CEST": 7200,
    "EET": 7200,
    "EEST": 10800,
    "MSK": 10800,
    "IST": 19800,
    "PST": -28800,
    "PDT": -25200,
    "MST": -25200,
    "MDT": -21600,
    "CST": -21600,
    "CDT": -18000,
    "EST": -18000,
    "EDT": -14400,
    "AKST": -32400,
    "AKDT": -28800,
    "HST": -36000,
    "AEST": 36000,
    "AEDT": 39600,
    "JST": 32400,
    "KST": 32400,
    "SGT": 28800,
}

FixedDateTime = datetime.datetime
"""A timezone-aware datetime; naive values are never produced by this module."""

DEFAULT_DATETIME: FixedDateTime = datetime.datetime(1970, 1, 1, tzinfo=_UTC)


def default_fixed_datetime() -> FixedDateTime:
    return DEFAULT_DATETIME


def _with_offset(dt: datetime.datetime) -> datetime.datetime:
    return dt.replace(tzinfo=_UTC) if dt.tzinfo is None else dt


def _normalize_iso_datetime_string(value: str) -> str:
    """Coerce flexible ISO-8601 inputs into a form datetime.fromisoformat can parse."""
    cleaned = value
    if cleaned[-1] in ("Z", "z"):
        return cleaned[:-1] + "+00:00"

    upper_cleaned = cleaned.upper()
    for suffix in (" UTC", " GMT"):
        if upper_cleaned.endswith(suffix):
            cleaned = cleaned[: -len(suffix)].rstrip() + "+00:00"
            break

    if (
        " " in cleaned
        and "T" not in cleaned[:11]
        and len(cleaned) >= 10
        and cleaned[4] == "-"
    ):
        date_part, rest = cleaned.split(" ", 1)
        if rest and rest[0].isdigit():
            cleaned = f"{date_part}T{rest}"

    match = _RE_ISO_TZ_NO_COLON.search(cleaned)
    if match and len(cleaned) > 10:
        cleaned = cleaned[:-5] + f"{match.group(1)}:{match.group(2)}"
    else:
        match = _RE_ISO_TZ_HOUR_ONLY.search(cleaned)
        if match and "T" in cleaned:
            cleaned = cleaned[:-3] + f"{match.group(1)}:00"

    return _RE_ISO_FRACTION.sub(lambda m: "." + m.group(1)[:6], cleaned, count=1)


def _parse_iso(value: str) -> Optional[datetime.datetime]:
    try:
        return datetime.datetime.fromisoformat(_normalize_iso_datetime_string(value))
    except ValueError:
        return None


def _parse_rfc2822(value: str) -> Optional[datetime.datetime]:
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None


def _slow_dateutil_parse(value: str) -> Optional[datetime.datetime]:
    try:
        return dateutil_parser.parse(value, tzinfos=_custom_tzinfos, ignoretz=False)
    except (ValueError, TypeError, OverflowError):
        return None


@lru_cache(maxsize=1024)
def parse_datetime(date_str: str) -> Optional[FixedDateTime]:
    """Parse a timestamp, keeping the offset it was written with.

    RFC 3339 is tried first, then RFC 2822, then dateutil for everything
    else. Values without an offset are taken to be UTC.

    Returns:
        A timezone-aware datetime, or None when no parser accepts the value
    """
    candidate = date_str.strip()
    if not candidate:
        return None

    if "\n" in candidate or "\r" in candidate or "\t" in candidate or "  " in candidate:
        candidate = _RE_WHITESPACE.sub(" ", candidate)

    dt: Optional[datetime.datetime] = None
    if len(candidate) >= 10 and candidate[4] == "-" and candidate[0:4].isdigit():
        dt = _parse_iso(candidate)
    if dt is None:
        dt = _parse_rfc2822(candidate)
    if dt is None:
        dt = _slow_dateutil_parse(candidate)
    if dt is None:
        return None
    return _with_offset(dt)


def format_datetime(dt: FixedDateTime) -> str:
    """RFC 3339 text for a timestamp, e.g. ``2017-06-03T15:15:44-05:00``."""
    return _with_offset(dt).isoformat()
