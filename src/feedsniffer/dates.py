"""RFC-822 and RFC-3339 date handling for syndication documents.

Every parser returns a timezone-aware datetime normalized to UTC. Values that
carry no offset are read as UTC.
"""

from __future__ import annotations

import datetime
import re
from email.utils import format_datetime
from functools import lru_cache
from typing import Optional

from dateutil import parser as dateutil_parser

from .errors import FeedFormatError, require_text
from .tables import (
    DAY_ABBREVIATIONS,
    MONTH_ABBREVIATIONS,
    RFC3339_PATTERNS,
    RFC822_CONTINENTAL_OFFSETS,
    RFC822_PATTERNS,
    RFC822_ZONE_OFFSETS,
    TWO_DIGIT_YEAR_MAX,
)

_UTC = datetime.timezone.utc

_RE_PATTERN_TOKEN = re.compile(
    r"'[^']*'|yyyy|yy|MMM|MM|ddd|dd|d|HH|mm|ss|f{1,7}|zzz|K|."
)
_RE_WHITESPACE = re.compile(r"\s+")
_RE_OFFSET = re.compile(r"([+-])(\d{1,2})(?::?(\d{2}))?$")

_TOKEN_REGEX = {
    "yyyy": r"(?P<year>\d{4})",
    "yy": r"(?P<short_year>\d{2})",
    "MMM": r"(?P<month_name>[a-z]{3})",
    "MM": r"(?P<month>\d{2})",
    "ddd": r"(?P<day_name>[a-z]{3})",
    "dd": r"(?P<day>\d{2})",
    "d": r"(?P<day>\d{1,2})",
    "HH": r"(?P<hour>\d{2})",
    "mm": r"(?P<minute>\d{2})",
    "ss": r"(?P<second>\d{2})",
    "zzz": r"(?P<offset>[+-]\d{1,2}(?::?\d{2})?)",
    "K": r"(?P<offset>Z|[+-]\d{2}:\d{2})?",
}

# No real zone is more than 14 hours from UTC.
_MAX_OFFSET = datetime.timedelta(hours=14)

_DATEUTIL_TZINFOS: dict[str, int] = {
    suffix.strip(): int(offset[0] + "1") * (int(offset[1:3]) * 3600 + int(offset[4:6]) * 60)
    for suffix, offset in RFC822_ZONE_OFFSETS
    if len(suffix.strip()) > 1
}
_DATEUTIL_TZINFOS.update({"CET": 3600, "CEST": 7200})


def _compile_pattern(pattern: str) -> re.Pattern[str]:
    parts = []
    for token in _RE_PATTERN_TOKEN.findall(pattern):
        if token in _TOKEN_REGEX:
            parts.append(_TOKEN_REGEX[token])
        elif token.startswith("f"):
            parts.append(rf"(?P<fraction>\d{{{len(token)}}})")
        elif token.startswith("'"):
            parts.append(re.escape(token[1:-1]))
        else:
            parts.append(re.escape(token))
    return re.compile("".join(parts), re.IGNORECASE)


_RFC3339_REGEXES = tuple(_compile_pattern(p) for p in RFC3339_PATTERNS)
_RFC822_REGEXES = tuple(_compile_pattern(p) for p in RFC822_PATTERNS)


def _parse_offset(value: Optional[str]) -> Optional[datetime.timezone]:
    if not value or value in ("Z", "z"):
        return _UTC
    match = _RE_OFFSET.match(value)
    if match is None:
        return None
    sign, hours, minutes = match.groups()
    delta = datetime.timedelta(hours=int(hours), minutes=int(minutes or 0))
    if delta > _MAX_OFFSET or int(minutes or 0) > 59:
        return None
    return datetime.timezone(-delta if sign == "-" else delta)


def _ensure_utc(dt: datetime.datetime) -> Optional[datetime.datetime]:
    """Return a timezone-aware datetime normalized to UTC."""
    try:
        return dt.replace(tzinfo=_UTC) if dt.tzinfo is None else dt.astimezone(_UTC)
    except (ValueError, OverflowError):
        return None


def _match_exact(
    value: str, regexes: tuple[re.Pattern[str], ...]
) -> Optional[datetime.datetime]:
    for regex in regexes:
        match = regex.fullmatch(value)
        if match is None:
            continue
        dt = _build_datetime(match.groupdict())
        if dt is not None:
            return dt
    return None


def _build_datetime(fields: dict[str, Optional[str]]) -> Optional[datetime.datetime]:
    if fields.get("year"):
        year = int(fields["year"])
    else:
        short_year = int(fields["short_year"])
        century_floor = TWO_DIGIT_YEAR_MAX - 99
        year = (century_floor // 100) * 100 + short_year
        if year < century_floor:
            year += 100

    if fields.get("month_name"):
        month = MONTH_ABBREVIATIONS.get(fields["month_name"].lower())
        if month is None:
            return None
    else:
        month = int(fields["month"])

    fraction = fields.get("fraction") or ""
    microsecond = int(fraction[:6].ljust(6, "0")) if fraction else 0

    tzinfo = _parse_offset(fields.get("offset"))
    if tzinfo is None:
        return None

    try:
        dt = datetime.datetime(
            year,
            month,
            int(fields["day"]),
            int(fields["hour"]),
            int(fields["minute"]),
            int(fields["second"]),
            microsecond,
            tzinfo=tzinfo,
        )
    except ValueError:
        return None

    day_name = fields.get("day_name")
    if day_name and DAY_ABBREVIATIONS[dt.weekday()] != day_name.lower():
        return None
    return _ensure_utc(dt)


def _replace_rfc822_zone(value: str) -> str:
    """Rewrite a trailing textual zone as a numeric offset."""
    upper_value = value.upper()
    for suffix, offset in RFC822_ZONE_OFFSETS:
        if upper_value.endswith(suffix):
            return value[: -len(suffix) + 1] + offset
        if suffix == " GMT" and suffix in upper_value:
            # "GMT+0200" style: drop the zone name and keep the explicit offset
            index = upper_value.rfind(suffix)
            return value[: index + 1] + value[index + len(suffix):]
    for suffix, offset in RFC822_CONTINENTAL_OFFSETS:
        if upper_value.endswith(suffix):
            return value[: -len(suffix)] + offset
    return value


@lru_cache(maxsize=2048)
def try_parse_rfc3339(value: Optional[str]) -> Optional[datetime.datetime]:
    """Parse an RFC-3339 timestamp, returning None when no pattern matches."""
    if not value:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    return _match_exact(candidate, _RFC3339_REGEXES)


def parse_rfc3339(value: str) -> datetime.datetime:
    require_text(value, "value")
    result = try_parse_rfc3339(value)
    if result is None:
        raise FeedFormatError(f"Not an RFC-3339 date: {value!r}", value)
    return result


@lru_cache(maxsize=2048)
def try_parse_rfc822(value: Optional[str]) -> Optional[datetime.datetime]:
    """Parse an RFC-822 date.

    Textual zones are rewritten to offsets first, then the explicit patterns
    are tried in order. Anything they reject goes through dateutil as a last
    resort.
    """
    if not value:
        return None
    candidate = _RE_WHITESPACE.sub(" ", value.strip())
    if not candidate:
        return None

    dt = _match_exact(_replace_rfc822_zone(candidate), _RFC822_REGEXES)
    if dt is not None:
        return dt

    try:
        parsed = dateutil_parser.parse(candidate, tzinfos=_DATEUTIL_TZINFOS)
    except (ValueError, TypeError, OverflowError):
        return None
    return _ensure_utc(parsed)


def parse_rfc822(value: str) -> datetime.datetime:
    require_text(value, "value")
    result = try_parse_rfc822(value)
    if result is None:
        raise FeedFormatError(f"Not an RFC-822 date: {value!r}", value)
    return result


def to_rfc3339(dt: datetime.datetime) -> str:
    """Format as ``yyyy-MM-ddTHH:mm:ss.ff`` plus ``Z`` or a ``+hh:mm`` offset."""
    stamp = f"{dt:%Y-%m-%dT%H:%M:%S}.{dt.microsecond // 10000:02d}"
    offset = dt.utcoffset()
    if offset is None or not offset:
        return stamp + "Z"
    sign = "-" if offset < datetime.timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{stamp}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def to_rfc822(dt: datetime.datetime) -> str:
    """Format as RFC-1123 in GMT, e.g. ``Sat, 07 Sep 2002 00:00:01 GMT``."""
    utc_dt = dt.replace(tzinfo=_UTC) if dt.tzinfo is None else dt.astimezone(_UTC)
    return format_datetime(utc_dt, usegmt=True)
