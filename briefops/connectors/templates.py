"""
Template resolution for connector definitions.

Placeholders use ``{{scope.field}}`` syntax:

- ``{{credentials.accessToken}}`` - a resolved credential value
- ``{{params.days_back}}`` - an invocation parameter
- ``{{date.today}}``, ``{{date.daysAgo.7}}``, ``{{date.startOfDay}}`` - UTC instants

Resolution is best effort: a placeholder whose field is unknown is left in
the output unchanged, never raised on. Callers that must not send a literal
placeholder over the wire check with ``find_unresolved`` afterwards.
"""
import json
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

DATE_PATTERN = re.compile(r"\{\{date\.([A-Za-z]+)(?:\.(-?\d+))?\}\}")
SCOPED_PATTERN = re.compile(r"\{\{(\w+)\.(\w+)\}\}")
PLACEHOLDER_PATTERN = re.compile(r"\{\{[^{}]*\}\}")


def format_instant(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-03-15T09:30:00.000Z."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _resolve_date(match: re.Match, now: datetime) -> str:
    helper, amount = match.group(1), match.group(2)

    if helper == "today" and amount is None:
        return format_instant(now)
    if helper == "startOfDay" and amount is None:
        return format_instant(now.replace(hour=0, minute=0, second=0, microsecond=0))
    if helper == "daysAgo" and amount is not None:
        return format_instant(now - timedelta(days=int(amount)))

    return match.group(0)


def stringify(value: Any) -> str:
    """Render a parameter value the way it should appear inside a string."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        return json.dumps(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def resolve_template(
    template: str,
    credentials: Mapping[str, str],
    params: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> str:
    """
    Expand placeholders in a single string.

    Date helpers are expanded first, then credential and param lookups.
    Returns the input unchanged for unknown or malformed placeholders.

    Args:
        template: String possibly containing ``{{...}}`` placeholders
        credentials: Resolved credential values for the connector
        params: Invocation parameters
        now: Reference instant for date helpers (defaults to current UTC time)

    Returns:
        The expanded string

    Example:
        >>> resolve_template("Bearer {{credentials.token}}", {"token": "abc"}, {})
        'Bearer abc'
        >>> resolve_template("{{credentials.missing}}", {}, {})
        '{{credentials.missing}}'
    """
    if not isinstance(template, str) or "{{" not in template:
        return template

    moment = now or datetime.now(timezone.utc)
    result = DATE_PATTERN.sub(lambda m: _resolve_date(m, moment), template)

    def replace_scoped(match: re.Match) -> str:
        scope, name = match.group(1), match.group(2)
        if scope == "credentials":
            value = credentials.get(name)
            # Missing credentials resolve to "" upstream; keep the placeholder visible
            return value if value else match.group(0)
        if scope == "params":
            if name in params and params[name] is not None:
                return stringify(params[name])
            return match.group(0)
        return match.group(0)

    return SCOPED_PATTERN.sub(replace_scoped, result)


def resolve_templates(
    value: Any,
    credentials: Mapping[str, str],
    params: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> Any:
    """Recursively resolve every string inside lists, tuples and dicts.

    Non-container, non-string values pass through unchanged.
    """
    moment = now or datetime.now(timezone.utc)

    if isinstance(value, str):
        return resolve_template(value, credentials, params, moment)
    if isinstance(value, dict):
        return {k: resolve_templates(v, credentials, params, moment) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_templates(item, credentials, params, moment) for item in value]
    if isinstance(value, tuple):
        return tuple(resolve_templates(item, credentials, params, moment) for item in value)
    return value


def find_unresolved(value: Any) -> List[str]:
    """Collect leftover ``{{...}}`` placeholders anywhere in a nested value."""
    found: List[str] = []

    def walk(item: Any) -> None:
        if isinstance(item, str):
            found.extend(PLACEHOLDER_PATTERN.findall(item))
        elif isinstance(item, Mapping):
            for key, nested in item.items():
                walk(key)
                walk(nested)
        elif isinstance(item, (list, tuple)):
            for nested in item:
                walk(nested)

    walk(value)
    return list(dict.fromkeys(found))


def has_unresolved(value: Any) -> bool:
    return bool(find_unresolved(value))


def resolve_mapping(
    templates: Mapping[str, str],
    credentials: Mapping[str, str],
    params: Mapping[str, Any],
) -> Dict[str, str]:
    """Resolve every value of a flat string map (headers, env)."""
    return {key: resolve_template(value, credentials, params) for key, value in templates.items()}
