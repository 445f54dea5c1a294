"""
Placeholder resolution for job headers and bodies.

Two kinds of placeholder are resolved at dispatch time:

- ``${NAME}`` inside string values, substituted from a variables mapping
  (environment plus JWT_TOKEN and NOW). Unknown names are left untouched.
- ``"weekRange": "current"`` inside a mapping, replaced by ``startDate`` and
  ``endDate`` for Monday and Friday of the current week (YYYY-MM-DD).
"""

import re
from datetime import date, datetime, timedelta
from typing import Any, Mapping
from zoneinfo import ZoneInfo


WEEK_RANGE_KEY = "weekRange"
WEEK_RANGE_CURRENT = "current"
DATE_FORMAT = "%Y-%m-%d"

_VARIABLE_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def current_week_range(now: datetime, tz: ZoneInfo) -> tuple[date, date]:
    """Monday and Friday of the week containing ``now`` in ``tz``."""
    today = now.astimezone(tz).date()
    monday = today - timedelta(days=today.weekday())
    return monday, monday + timedelta(days=4)


def substitute_variables(value: str, variables: Mapping[str, str]) -> str:
    def repl(match: re.Match) -> str:
        return variables.get(match.group(1), match.group(0))

    return _VARIABLE_RE.sub(repl, value)


def resolve_placeholders(
    data: Any,
    now: datetime,
    tz: ZoneInfo,
    variables: Mapping[str, str] = None,
) -> Any:
    """
    Return a resolved copy of ``data``; the input is never modified.

    Args:
        data: Body payload (mappings, lists and scalars, nested freely)
        now: Call time used for date placeholders
        tz: Timezone the week is computed in
        variables: Values for ``${NAME}`` substitution

    Returns:
        The resolved payload
    """
    variables = variables or {}

    if isinstance(data, dict):
        resolved = {}
        week_range = data.get(WEEK_RANGE_KEY)
        for key, value in data.items():
            if key == WEEK_RANGE_KEY and week_range == WEEK_RANGE_CURRENT:
                continue
            resolved[key] = resolve_placeholders(value, now, tz, variables)

        if week_range == WEEK_RANGE_CURRENT:
            start, end = current_week_range(now, tz)
            resolved["startDate"] = start.strftime(DATE_FORMAT)
            resolved["endDate"] = end.strftime(DATE_FORMAT)
        return resolved

    if isinstance(data, list):
        return [resolve_placeholders(item, now, tz, variables) for item in data]

    if isinstance(data, str):
        return substitute_variables(data, variables)

    return data
