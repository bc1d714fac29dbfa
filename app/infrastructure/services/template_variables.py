"""Derived template variables: flat client, schedule, date and amount keys.

Message templates written for field service use flat names such as
{{client_first_name}} or {{appointment_date}}. These are computed from the
entity record and the company timezone. Dates render as "Tue, Mar 3, 2026"
and times as "2:05 PM". A key whose source value is missing is left out, so
its placeholder stays literal and is reported as unresolved.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.shared.utils.datetime import parse_iso_utc

_DATE_ONLY_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


def resolve_timezone(name: str) -> ZoneInfo:
    """ZoneInfo for an IANA name. Raises ValueError for unknown names."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Invalid timezone: {name}") from exc


def format_date(value: date) -> str:
    return f"{value:%a, %b} {value.day}, {value.year}"


def format_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def format_amount(value: Any) -> str | None:
    """Currency string with two decimals, or None when value is not a number."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return f"${float(value):.2f}"
    except (TypeError, ValueError):
        return None


def to_local(value: Any, tz: ZoneInfo) -> datetime | date | None:
    """Timestamp converted to tz; a bare YYYY-MM-DD stays a calendar date."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if _DATE_ONLY_RE.fullmatch(text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None
    parsed = parse_iso_utc(text)
    return parsed.astimezone(tz) if parsed else None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _set(variables: dict[str, str], value: str | None, *names: str) -> None:
    if value is None:
        return
    for name in names:
        variables[name] = value


def _set_date(
    variables: dict[str, str], value: Any, tz: ZoneInfo, *names: str
) -> datetime | date | None:
    local = to_local(value, tz)
    if local is not None:
        _set(variables, format_date(local), *names)
    return local


def derive_variables(
    entity_type: str | None,
    record: Mapping[str, Any] | None,
    *,
    client: Mapping[str, Any] | None = None,
    timezone: ZoneInfo,
    now: datetime,
) -> dict[str, str]:
    """Flat variables for one execution context.

    client defaults to record["client"]. now must be timezone-aware.
    """
    local_now = now.astimezone(timezone)
    variables: dict[str, str] = {
        "current_date": format_date(local_now),
        "current_time": format_time(local_now),
        "tomorrow_date": format_date(local_now + timedelta(days=1)),
    }
    record = record if isinstance(record, Mapping) else {}
    if client is None:
        if entity_type == "client":
            client = record
        elif isinstance(record.get("client"), Mapping):
            client = record["client"]
    if isinstance(client, Mapping):
        name = _text(client.get("name"))
        _set(variables, name, "client_name", "customer_name")
        first_name = name.split()[0] if name else None
        _set(variables, first_name, "client_first_name", "customer_first_name")
        _set(variables, _text(client.get("email")), "client_email")
        _set(variables, _text(client.get("phone")), "client_phone")
        _set(variables, _text(client.get("address")), "client_address")

    if entity_type == "job":
        _set(variables, _text(record.get("title")), "job_title")
        _set(variables, _text(record.get("service")), "service_type")
        _set(variables, _text(record.get("job_type") or record.get("service")), "job_type")
        address = _text(record.get("address")) or variables.get("client_address")
        _set(variables, address, "job_address")
        _set(variables, _text(record.get("technician_name")), "technician_name")
        scheduled = _set_date(
            variables,
            record.get("schedule_start"),
            timezone,
            "appointment_date",
            "scheduled_date",
        )
        if isinstance(scheduled, datetime):
            _set(variables, format_time(scheduled), "appointment_time", "scheduled_time")
        _set_date(variables, record.get("date"), timezone, "completion_date")
        _set(variables, format_amount(record.get("revenue")), "amount", "job_amount")
    elif entity_type == "invoice":
        _set(variables, _text(record.get("invoice_number")), "invoice_number")
        _set(variables, format_amount(record.get("total")), "amount", "invoice_amount")
        _set_date(variables, record.get("due_date"), timezone, "due_date")
        _set(variables, format_date(local_now), "payment_date")
    elif entity_type == "estimate":
        _set(variables, _text(record.get("estimate_number")), "estimate_number")
        _set(variables, format_amount(record.get("total")), "amount", "estimate_amount")
    return variables
