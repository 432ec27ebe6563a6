"""Normalization of human-entered event fields.

``derive_slug``, ``normalize_date`` and ``normalize_time`` are pure
functions. ``normalize_event`` is the pre-persistence step that applies them
to whichever of ``title``, ``date`` and ``time`` were modified on a record.
"""

import re
from datetime import timezone
from typing import Dict, Optional

import dateparser

from devevent.exceptions import InvalidDateError, InvalidTimeError
from devevent.models.event import Event


# ASCII word characters only; other letters are dropped, not transliterated.
_NON_SLUG_CHARS = re.compile(r"[^\w\s-]", re.ASCII)
_SEPARATOR_RUNS = re.compile(r"[\s_-]+", re.ASCII)
_EDGE_HYPHENS = re.compile(r"^-+|-+$")

_MERIDIEM = re.compile(r"\s*(AM|PM)\s*", re.IGNORECASE)
_NUMBER = re.compile(r"[0-9]+")

_DATE_SETTINGS = {
    "PREFER_DAY_OF_MONTH": "first",
}


def derive_slug(title: str) -> str:
    """Derive a URL-safe slug from a free-text title.

    May return an empty string for titles without letters or digits; callers
    that need a non-empty slug must check for that themselves.
    """
    slug = title.lower().strip()
    slug = _NON_SLUG_CHARS.sub("", slug)
    slug = _SEPARATOR_RUNS.sub("-", slug)
    return _EDGE_HYPHENS.sub("", slug)


def normalize_date(raw: str) -> str:
    """Canonicalize a free-text date to ``YYYY-MM-DD``.

    Raises:
        InvalidDateError: If the text is not a recognizable date.
    """
    parsed = dateparser.parse(raw, settings=_DATE_SETTINGS) if raw and raw.strip() else None
    if parsed is None:
        raise InvalidDateError(f"Invalid date format: {raw!r}", raw)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)

    return parsed.date().isoformat()


def normalize_time(raw: str) -> str:
    """Canonicalize a 12-hour time string to zero-padded 24-hour ``HH:MM``.

    Strings without an AM/PM marker are taken as 24-hour already and only
    re-padded. The hour range is not checked, so ``13:00 PM`` becomes
    ``25:00``.

    Raises:
        InvalidTimeError: If the hour or minute is missing or not a number.
    """
    match = _MERIDIEM.search(raw)
    meridiem = match.group(1).upper() if match else None

    remainder = _MERIDIEM.sub("", raw, count=1) if match else raw
    parts = remainder.strip().split(":")
    if len(parts) < 2:
        raise InvalidTimeError(f"Invalid time format: {raw!r} (expected HH:MM)", raw)

    hours, minutes = parts[0].strip(), parts[1].strip()
    if not _NUMBER.fullmatch(hours) or not _NUMBER.fullmatch(minutes):
        raise InvalidTimeError(f"Invalid time format: {raw!r} (hour and minute must be numbers)", raw)

    hour = int(hours)
    if meridiem == "PM" and hour != 12:
        hour += 12
    if meridiem == "AM" and hour == 12:
        hour = 0

    return f"{hour:02d}:{minutes.zfill(2)}"


def normalize_event(event: Event) -> Event:
    """Normalize the modified fields of an event in place.

    ``slug`` is re-derived only when ``title`` is dirty, ``date`` and ``time``
    are normalized only when they are dirty. All values are computed before
    any is assigned, so a failure leaves the record unchanged.
    """
    updates: Dict[str, Optional[str]] = {}

    if event.is_modified("title"):
        updates["slug"] = derive_slug(event.title)
    if event.is_modified("date"):
        updates["date"] = normalize_date(event.date)
    if event.is_modified("time"):
        updates["time"] = normalize_time(event.time)

    for field_name, value in updates.items():
        setattr(event, field_name, value)

    return event
