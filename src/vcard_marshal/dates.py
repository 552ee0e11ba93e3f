from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, timezone
from enum import Enum

# ── UTC offsets ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UtcOffset:
    """A signed hour/minute offset from UTC, e.g. ``-05:00``.

    ``minute`` is ``None`` when the offset was written as an hour only
    (``+05``); formatting then reproduces the short form.
    """

    positive: bool
    hour: int
    minute: int | None = None

    def __post_init__(self) -> None:
        if self.hour < 0 or self.hour > 23:
            raise ValueError(f"Offset hour out of range: {self.hour}")
        if self.minute is not None and (self.minute < 0 or self.minute > 59):
            raise ValueError(f"Offset minute out of range: {self.minute}")

    @classmethod
    def parse(cls, text: str) -> UtcOffset:
        """Accepts ``+HH``, ``-HHMM``, ``HH:MM`` and friends."""
        s = text.strip()
        positive = True
        if s[:1] in ("+", "-"):
            positive = s[0] == "+"
            s = s[1:]

        if ":" in s:
            hour_str, _, minute_str = s.partition(":")
            minute_str = minute_str or None
        elif len(s) > 2:
            hour_str, minute_str = s[:-2], s[-2:]
        else:
            hour_str, minute_str = s, None

        if not _ASCII_DIGITS.fullmatch(hour_str) or len(hour_str) > 2:
            raise ValueError(f"Invalid UTC offset: {text!r}")
        if minute_str is not None and (not _ASCII_DIGITS.fullmatch(minute_str) or len(minute_str) != 2):
            raise ValueError(f"Invalid UTC offset: {text!r}")

        return cls(positive, int(hour_str), None if minute_str is None else int(minute_str))

    @classmethod
    def from_timedelta(cls, delta: timedelta) -> UtcOffset:
        total = int(delta.total_seconds()) // 60
        positive = total >= 0
        hour, minute = divmod(abs(total), 60)
        return cls(positive, hour, minute)

    def to_timedelta(self) -> timedelta:
        delta = timedelta(hours=self.hour, minutes=self.minute or 0)
        return delta if self.positive else -delta

    def to_timezone(self) -> timezone:
        return timezone(self.to_timedelta())

    def to_string(self, extended: bool = False) -> str:
        sign = "+" if self.positive else "-"
        if self.minute is None:
            return f"{sign}{self.hour:02d}"
        sep = ":" if extended else ""
        return f"{sign}{self.hour:02d}{sep}{self.minute:02d}"

    def __str__(self) -> str:
        return self.to_string(False)


_ASCII_DIGITS = re.compile(r"[0-9]+")


# ── Full date/time profiles ────────────────────────────────────────────────────

_DATE_B = r"(?P<year>\d{4})(?P<month>\d{2})(?P<day>\d{2})"
_DATE_X = r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
_TIME_B = r"(?P<hour>\d{2})(?P<minute>\d{2})(?P<second>\d{2})"
_TIME_X = r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})"


class DateFormat(Enum):
    """ISO-8601 profiles, tried in declaration order by :func:`find_format`."""

    DATE_BASIC = ("date", _DATE_B)
    DATE_EXTENDED = ("date", _DATE_X)
    DATE_TIME_BASIC = ("date-time", _DATE_B + "T" + _TIME_B + r"(?P<offset>[-+]\d{4})")
    DATE_TIME_EXTENDED = ("date-time", _DATE_X + "T" + _TIME_X + r"(?P<offset>[-+]\d{2}:\d{2})")
    UTC_DATE_TIME_BASIC = ("date-time", _DATE_B + "T" + _TIME_B + "Z")
    UTC_DATE_TIME_EXTENDED = ("date-time", _DATE_X + "T" + _TIME_X + "Z")
    HCARD_DATE_TIME = ("date-time", _DATE_X + "T" + _TIME_X + r"(?P<offset>[-+]\d{2}:?\d{2})")
    TIME_BASIC = ("time", "T?" + _TIME_B + r"(?P<offset>Z|[-+]\d{4})?")
    TIME_EXTENDED = ("time", "T?" + _TIME_X + r"(?P<offset>Z|[-+]\d{2}:\d{2})?")

    def __init__(self, kind: str, pattern: str):
        self.kind = kind
        # ASCII digits only, whatever the host locale
        self.regex = re.compile(pattern, re.ASCII)

    @property
    def extended(self) -> bool:
        return self in (
            DateFormat.DATE_EXTENDED,
            DateFormat.DATE_TIME_EXTENDED,
            DateFormat.UTC_DATE_TIME_EXTENDED,
            DateFormat.HCARD_DATE_TIME,
            DateFormat.TIME_EXTENDED,
        )

    @property
    def utc(self) -> bool:
        return self in (DateFormat.UTC_DATE_TIME_BASIC, DateFormat.UTC_DATE_TIME_EXTENDED)

    def matches(self, text: str) -> bool:
        return self.regex.fullmatch(text) is not None

    def format(self, value: date | datetime | time) -> str:
        if self.kind == "date":
            if isinstance(value, time):
                raise ValueError(f"{self.name} needs a date, got a time")
            sep = "-" if self.extended else ""
            return f"{value.year:04d}{sep}{value.month:02d}{sep}{value.day:02d}"

        if self.kind == "time":
            t = value.timetz() if isinstance(value, datetime) else value
            if not isinstance(t, time):
                raise ValueError(f"{self.name} needs a time, got {type(value).__name__}")
            sep = ":" if self.extended else ""
            out = f"{t.hour:02d}{sep}{t.minute:02d}{sep}{t.second:02d}"
            if t.tzinfo is not None:
                offset = t.utcoffset()
                if offset == timedelta(0):
                    out += "Z"
                elif offset is not None:
                    out += UtcOffset.from_timedelta(offset).to_string(self.extended)
            return out

        if not isinstance(value, datetime):
            if isinstance(value, date):
                value = datetime(value.year, value.month, value.day)
            else:
                raise ValueError(f"{self.name} needs a date-time, got a time")
        value = _aware(value)
        if self.utc:
            value = value.astimezone(UTC)

        dsep, tsep = ("-", ":") if self.extended else ("", "")
        out = (
            f"{value.year:04d}{dsep}{value.month:02d}{dsep}{value.day:02d}"
            f"T{value.hour:02d}{tsep}{value.minute:02d}{tsep}{value.second:02d}"
        )
        if self.utc:
            return out + "Z"
        return out + UtcOffset.from_timedelta(value.utcoffset()).to_string(self.extended)


def _aware(value: datetime) -> datetime:
    # naive values are read as UTC so output never depends on the host clock
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def find_format(text: str) -> DateFormat | None:
    for fmt in DateFormat:
        if fmt.matches(text):
            return fmt
    return None


def _tz(offset: str | None) -> timezone | None:
    if offset is None:
        return None
    if offset == "Z":
        return UTC
    return UtcOffset.parse(offset).to_timezone()


def parse_date(text: str) -> date | datetime | time:
    """Parse any of the :class:`DateFormat` profiles.

    Returns a ``date`` for date-only profiles, an aware ``datetime`` for
    date-time profiles and a ``time`` for time-only ones. Raises
    ``ValueError`` if no profile matches.
    """
    text = text.strip()
    fmt = find_format(text)
    if fmt is None:
        raise ValueError(f"Could not parse date: {text!r}")

    m = fmt.regex.fullmatch(text)
    g = m.groupdict()
    if fmt.kind == "date":
        return date(int(g["year"]), int(g["month"]), int(g["day"]))

    tz = UTC if fmt.utc else _tz(g.get("offset"))
    if fmt.kind == "time":
        return time(int(g["hour"]), int(g["minute"]), int(g["second"]), tzinfo=tz)

    return datetime(
        int(g["year"]), int(g["month"]), int(g["day"]),
        int(g["hour"]), int(g["minute"]), int(g["second"]),
        tzinfo=tz,
    )


# ── Partial dates ──────────────────────────────────────────────────────────────

_OFFSET = r"(?:(?P<tzh>[-+]\d{1,2}):?(?P<tzm>\d{2})?)?"

_PARTIAL_DATES = [
    re.compile(r"(?P<year>\d{4})", re.ASCII),
    re.compile(r"(?P<year>\d{4})-(?P<month>\d{2})", re.ASCII),
    re.compile(r"(?P<year>\d{4})-?(?P<month>\d{2})-?(?P<day>\d{2})", re.ASCII),
    re.compile(r"--(?P<month>\d{2})-?(?P<day>\d{2})", re.ASCII),
    re.compile(r"--(?P<month>\d{2})", re.ASCII),
    re.compile(r"---(?P<day>\d{2})", re.ASCII),
]

_PARTIAL_TIMES = [
    re.compile(r"(?P<hour>\d{2})" + _OFFSET, re.ASCII),
    re.compile(r"(?P<hour>\d{2}):?(?P<minute>\d{2})" + _OFFSET, re.ASCII),
    re.compile(r"(?P<hour>\d{2}):?(?P<minute>\d{2}):?(?P<second>\d{2})" + _OFFSET, re.ASCII),
    re.compile(r"-(?P<minute>\d{2}):?(?P<second>\d{2})" + _OFFSET, re.ASCII),
    re.compile(r"-(?P<minute>\d{2})" + _OFFSET, re.ASCII),
    re.compile(r"--(?P<second>\d{2})" + _OFFSET, re.ASCII),
]


def _match_first(patterns: list[re.Pattern[str]], text: str) -> dict[str, str | None] | None:
    for p in patterns:
        m = p.fullmatch(text)
        if m:
            return m.groupdict()
    return None


def _int(value: str | None) -> int | None:
    return None if value is None else int(value)


@dataclass(frozen=True)
class PartialDate:
    """A truncated date and/or time (RFC 6350 section 4.3), e.g. ``--0415``."""

    year: int | None = None
    month: int | None = None
    day: int | None = None
    hour: int | None = None
    minute: int | None = None
    second: int | None = None
    offset: UtcOffset | None = None

    def __post_init__(self) -> None:
        for name, lo, hi in (
            ("month", 1, 12), ("day", 1, 31),
            ("hour", 0, 23), ("minute", 0, 59), ("second", 0, 59),
        ):
            v = getattr(self, name)
            if v is not None and not lo <= v <= hi:
                raise ValueError(f"{name.capitalize()} must be between {lo} and {hi} inclusive.")
        if self.year is not None and self.month is None and self.day is not None:
            raise ValueError("Invalid date component combination: year, date")
        if self.hour is not None and self.minute is None and self.second is not None:
            raise ValueError("Invalid time component combination: hour, second")

    @classmethod
    def parse(cls, text: str) -> PartialDate:
        parts = text.split("T")
        date_part: dict[str, str | None] | None = {}
        time_part: dict[str, str | None] | None = {}
        if len(parts) == 1:
            date_part = _match_first(_PARTIAL_DATES, text)
            if date_part is None:
                date_part = {}
                time_part = _match_first(_PARTIAL_TIMES, text)
        elif len(parts) == 2 and parts[0] == "":
            time_part = _match_first(_PARTIAL_TIMES, parts[1])
        elif len(parts) == 2:
            date_part = _match_first(_PARTIAL_DATES, parts[0])
            time_part = _match_first(_PARTIAL_TIMES, parts[1])
        else:
            date_part = None

        if date_part is None or time_part is None:
            raise ValueError(f"Could not parse date: {text!r}")

        offset = None
        tzh = time_part.get("tzh")
        if tzh is not None:
            offset = UtcOffset(not tzh.startswith("-"), abs(int(tzh)), _int(time_part.get("tzm")))

        return cls(
            year=_int(date_part.get("year")),
            month=_int(date_part.get("month")),
            day=_int(date_part.get("day")),
            hour=_int(time_part.get("hour")),
            minute=_int(time_part.get("minute")),
            second=_int(time_part.get("second")),
            offset=offset,
        )

    @classmethod
    def from_time(cls, value: time) -> PartialDate:
        offset = value.utcoffset()
        return cls(
            hour=value.hour,
            minute=value.minute,
            second=value.second,
            offset=None if offset is None else UtcOffset.from_timedelta(offset),
        )

    @property
    def has_date_component(self) -> bool:
        return self.year is not None or self.month is not None or self.day is not None

    @property
    def has_time_component(self) -> bool:
        return self.hour is not None or self.minute is not None or self.second is not None

    def to_iso8601(self, extended: bool = False) -> str:
        y, mo, d = self.year, self.month, self.day
        dash = "-" if extended else ""
        out = ""
        if y is not None and mo is None and d is None:
            out = f"{y}"
        elif y is None and mo is not None and d is None:
            out = f"--{mo:02d}"
        elif y is None and mo is None and d is not None:
            out = f"---{d:02d}"
        elif y is not None and mo is not None and d is None:
            out = f"{y}-{mo:02d}"
        elif y is None and mo is not None and d is not None:
            out = f"--{mo:02d}{dash}{d:02d}"
        elif y is not None and mo is not None and d is not None:
            out = f"{y}{dash}{mo:02d}{dash}{d:02d}"

        if self.has_time_component:
            h, mi, s = self.hour, self.minute, self.second
            colon = ":" if extended else ""
            out += "T"
            if h is not None and mi is None and s is None:
                out += f"{h:02d}"
            elif h is None and mi is not None and s is None:
                out += f"-{mi:02d}"
            elif h is None and mi is None and s is not None:
                out += f"--{s:02d}"
            elif h is not None and mi is not None and s is None:
                out += f"{h:02d}{colon}{mi:02d}"
            elif h is None and mi is not None and s is not None:
                out += f"-{mi:02d}{colon}{s:02d}"
            elif h is not None and mi is not None and s is not None:
                out += f"{h:02d}{colon}{mi:02d}{colon}{s:02d}"
            if self.offset is not None:
                out += self.offset.to_string(extended)
        return out

    def __str__(self) -> str:
        return self.to_iso8601(True)
