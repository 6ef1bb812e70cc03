from __future__ import annotations

from datetime import datetime, date, time, timezone
from typing import Optional, Union

from acai.config import local_timezone
from acai.errors import ValidationError

# Small float slack for ml arithmetic (equal splits produce fractions).
ML_EPS = 1e-9

TimestampLike = Union[str, date, datetime]


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def to_iso_ts(value: Optional[TimestampLike]) -> str:
    """
    Normalize a date/datetime/ISO string into the single stored shape
    'YYYY-MM-DDTHH:MM:SS+00:00' so range filters can compare strings.
    Bare dates and naive datetimes are wall-clock times at the stand
    (local_timezone()), so a date picked in the UI means local midnight.
    """
    if value is None:
        return iso_now()

    if isinstance(value, str):
        s = value.strip()
        if not s:
            raise ValidationError("Timestamp must not be empty.")
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            if len(s) == 10:
                value = date.fromisoformat(s)
            else:
                value = datetime.fromisoformat(s)
        except ValueError:
            raise ValidationError(f"Invalid date/time: {value!r}.")

    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.combine(value, time.min)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=local_timezone())
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat()


def local_today() -> date:
    return datetime.now(local_timezone()).date()


def local_day(ts: str) -> str:
    """Stored UTC timestamp -> the stand's calendar day (YYYY-MM-DD)."""
    return datetime.fromisoformat(ts).astimezone(local_timezone()).date().isoformat()


def fmt_local_ts(ts: str) -> str:
    return datetime.fromisoformat(ts).astimezone(local_timezone()).strftime("%Y-%m-%d %H:%M")


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0


def liters_to_ml(liters: float) -> float:
    return float(round(float(liters) * 1000))


def fmt_brl(value: Optional[float]) -> str:
    """R$ 1.234,56 (display only)."""
    if value is None:
        return "-"
    s = f"{abs(float(value)):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"-R$ {s}" if float(value) < 0 else f"R$ {s}"
