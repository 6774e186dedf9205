from __future__ import annotations

"""
Human-readable renditions of comparison values.
"""

from typing import Any, Dict
import json
import re

CURRENCY_FIELDS = {"budget", "cost", "annual_salary", "salary", "cost_per_hour"}
HOURS_FIELDS = {"capacity", "hours", "hours_per_week"}

FIELD_DISPLAY_NAMES: Dict[str, str] = {
    "budget": "Budget",
    "start_date": "Start Date",
    "end_date": "End Date",
    "capacity": "Capacity",
    "team_id": "Team",
    "role_id": "Role",
    "name": "Name",
    "status": "Status",
    "priority": "Priority",
    "description": "Description",
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def snake_case(field_name: str) -> str:
    """`startDate` -> `start_date`; snake_case names pass through."""
    return _CAMEL_BOUNDARY.sub("_", field_name).lower()


def display_name(field_name: str) -> str:
    """`start_date` -> `Start Date` unless a nicer label is registered."""
    field_name = snake_case(field_name)
    if field_name in FIELD_DISPLAY_NAMES:
        return FIELD_DISPLAY_NAMES[field_name]
    return field_name.replace("_", " ").replace("-", " ").strip().title()


def format_currency(value: Any) -> str:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    sign = "-" if number < 0 else ""
    number = abs(number)
    if number.is_integer():
        return f"{sign}${number:,.0f}"
    return f"{sign}${number:,.2f}"


def format_hours(value: Any) -> str:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    return f"{number:g}h"


def format_value(field_name: str, value: Any) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    field_name = snake_case(field_name)
    if field_name in CURRENCY_FIELDS:
        return format_currency(value)
    if field_name in HOURS_FIELDS:
        return format_hours(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)
