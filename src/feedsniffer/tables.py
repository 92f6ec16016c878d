"""Static lookup data shared by the date normalizer.

Date patterns use a small token notation: ``yyyy``/``yy`` year, ``MM``/``MMM``
month number/abbreviation, ``dd``/``d`` day, ``ddd`` day abbreviation,
``HH:mm:ss`` time, ``f`` to ``fffffff`` fractional seconds (exact digit
count), ``zzz`` numeric offset, ``K`` optional ``Z`` or offset, and quoted
literals such as ``'T'``.
"""

from __future__ import annotations

# Trailing zone tokens and the fixed offset each one is rewritten to.
# Daylight-saving is not modelled. The first matching suffix wins.
RFC822_ZONE_OFFSETS: tuple[tuple[str, str], ...] = (
    (" UT", "+00:00"),
    (" GMT", "+00:00"),
    (" EST", "-05:00"),
    (" EDT", "-04:00"),
    (" CST", "-06:00"),
    (" CDT", "-05:00"),
    (" MST", "-07:00"),
    (" MDT", "-06:00"),
    (" PST", "-08:00"),
    (" PDT", "-07:00"),
    (" Z", "+00:00"),
    # Military single-letter zones
    (" A", "-01:00"),
    (" M", "-12:00"),
    (" N", "+01:00"),
    (" Y", "+12:00"),
)

# Zones that may be glued to the time ("00:00:01CET") and carry a short offset.
RFC822_CONTINENTAL_OFFSETS: tuple[tuple[str, str], ...] = (
    ("CEST", "+2:00"),
    ("CET", "+1:00"),
)

# Two-digit years up to this value map to the 2000s, the rest to the 1900s.
TWO_DIGIT_YEAR_MAX = 2029

MONTH_ABBREVIATIONS: dict[str, int] = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}
MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# Monday first, matching datetime.weekday()
DAY_ABBREVIATIONS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

SORTABLE_PATTERN = "yyyy-MM-dd'T'HH:mm:ss"
UNIVERSAL_SORTABLE_PATTERN = "yyyy-MM-dd HH:mm:ss'Z'"
ROUND_TRIP_PATTERN = "yyyy-MM-dd'T'HH:mm:ss.fffffffK"
RFC1123_PATTERN = "ddd, dd MMM yyyy HH:mm:ss 'GMT'"

RFC3339_PATTERNS: tuple[str, ...] = (
    SORTABLE_PATTERN,
    UNIVERSAL_SORTABLE_PATTERN,
    "yyyy-MM-dd'T'HH:mm:ss'Z'",
    "yyyy-MM-dd'T'HH:mm:ss.f'Z'",
    "yyyy-MM-dd'T'HH:mm:ss.ff'Z'",
    "yyyy-MM-dd'T'HH:mm:ss.fff'Z'",
    "yyyy-MM-dd'T'HH:mm:ss.ffff'Z'",
    "yyyy-MM-dd'T'HH:mm:ss.fffff'Z'",
    "yyyy-MM-dd'T'HH:mm:ss.ffffff'Z'",
    "yyyy-MM-dd'T'HH:mm:sszzz",
    "yyyy-MM-dd'T'HH:mm:ss.ffzzz",
    "yyyy-MM-dd'T'HH:mm:ss.fffzzz",
    "yyyy-MM-dd'T'HH:mm:ss.ffffzzz",
    "yyyy-MM-dd'T'HH:mm:ss.fffffzzz",
    "yyyy-MM-dd'T'HH:mm:ss.ffffffzzz",
)

_RFC822_FRACTIONS = ("fffffff", "ffffff", "fffff", "ffff", "fff", "ff", "f", "")

# {2-digit, 1-digit day} x {4-digit, 2-digit year} x {7..1 fraction digits, none}
RFC822_PATTERNS: tuple[str, ...] = tuple(
    f"ddd, {day} MMM {year} HH:mm:ss{'.' + fraction if fraction else ''} zzz"
    for day in ("dd", "d")
    for year in ("yyyy", "yy")
    for fraction in _RFC822_FRACTIONS
) + (
    ROUND_TRIP_PATTERN,
    UNIVERSAL_SORTABLE_PATTERN,
    SORTABLE_PATTERN,
    RFC1123_PATTERN,
)
