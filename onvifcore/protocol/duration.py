"""
Conversion between ``datetime.timedelta`` and the xs:duration tokens
used by the subscription protocol, i.e. ``PT1H30M`` or ``PT10S``.

Only the time part (hours, minutes, seconds) is supported, which is
all ONVIF peers send for timeouts and termination times.
"""

import re
from datetime import timedelta
from typing import Union

from onvifcore.lib import error

_DURATION_RE = re.compile(
    r"^PT(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?$",
    re.ASCII,
)


def as_timedelta(value: Union[timedelta, int, float, None]) -> timedelta:
    """Numbers are taken as seconds"""
    if value is None or isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


def format_duration(duration: Union[timedelta, int, float]) -> str:
    """
    Formats a duration as ``PT[nH][nM][nS]``.

    Sub-second parts are truncated and zero-valued components are left
    out.  A zero duration gives ``PT0S``.

    Raises:
        ValueError: on negative durations
    """
    duration = as_timedelta(duration)
    seconds = int(duration.total_seconds())
    if seconds < 0:
        raise ValueError("negative duration %r cannot be formatted" % duration)
    if seconds == 0:
        return "PT0S"

    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    token = "PT"
    if hours:
        token += "%dH" % hours
    if minutes:
        token += "%dM" % minutes
    if seconds:
        token += "%dS" % seconds
    return token


def parse_duration(token: str) -> timedelta:
    """
    Parses a ``PT[nH][nM][nS]`` token.

    Raises:
        DurationFormatError: if the token is empty, lacks the PT prefix,
        has no components, has negative or non-numeric components, or is
        too large for a timedelta.
    """
    if not token:
        raise error.DurationFormatError("empty duration")
    match = _DURATION_RE.match(token.strip())
    if match is None:
        raise error.DurationFormatError("invalid duration %r" % token)
    parts = match.groupdict()
    if not any(parts.values()):
        raise error.DurationFormatError("duration %r has no components" % token)
    try:
        return timedelta(
            hours=int(parts["hours"] or 0),
            minutes=int(parts["minutes"] or 0),
            seconds=float(parts["seconds"] or 0),
        )
    except OverflowError as e:
        raise error.DurationFormatError("duration %r is out of range" % token) from e
