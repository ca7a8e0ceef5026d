"""
Payload parsing and JSON serialization helpers shared by the module services.

Request bodies arrive as camelCase JSON; values are trimmed, empty strings
become None, and money is carried as Decimal end-to-end.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from app.salon.constants import MAX_DB_ID

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class ValidationError:
    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


def clean_str(value: Any) -> str | None:
    if value is None:
        return None
    v = str(value).strip()
    return v or None


def parse_date(value: Any) -> date | None:
    """Parse YYYY-MM-DD (or a full ISO timestamp, keeping the date part)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    if len(s) > 10:
        return parse_datetime(s).date()  # type: ignore[union-attr]
    return date.fromisoformat(s)


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO date or timestamp. A trailing 'Z' is accepted; timezone info is dropped after conversion to UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        s = str(value).strip()
        if not s:
            return None
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_money(value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("Amount must be a number.")
    s = str(value).strip()
    if not s:
        return None
    try:
        d = Decimal(s)
    except InvalidOperation as e:
        raise ValueError("Amount must be a number.") from e
    if not d.is_finite():
        raise ValueError("Amount must be a number.")
    return d.quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_int(value: Any) -> int | None:
    """Parse an integer that fits a database INTEGER column; anything wider is a ValueError."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("Expected an integer.")
    if isinstance(value, int):
        v = value
    else:
        s = str(value).strip()
        if not s:
            return None
        v = int(s)
    if abs(v) > MAX_DB_ID:
        raise ValueError("Integer out of range.")
    return v


def money_str(value: Decimal | float | int | None) -> str:
    if value is None:
        value = 0
    return str(Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP))


def iso(value: date | datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def check_min_length(errs: list[ValidationError], payload: dict[str, Any], key: str, label: str, n: int) -> None:
    v = clean_str(payload.get(key))
    if not v:
        errs.append(ValidationError(key, f"{label} is required."))
    elif len(v) < n:
        errs.append(ValidationError(key, f"{label} must be at least {n} characters."))
