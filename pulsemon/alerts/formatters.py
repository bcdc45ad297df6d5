"""Pure functions that render alert notification and history text."""

from __future__ import annotations

import string

from pulsemon.core.types import Alert, AlertAction, HistoryAction

_FORMATTER = string.Formatter()


def _template_fields(alert: Alert) -> dict[str, str]:
    return {
        "id": alert.id,
        "name": alert.name,
        "description": alert.description,
        "severity": alert.severity.value,
        "tenant_id": alert.tenant_id or "",
    }


def _fill(template: str, fields: dict[str, str]) -> str:
    """Substitute bare ``{field}`` placeholders only.

    Attribute, index, and conversion syntax is rejected with ``KeyError``.
    """
    parts: list[str] = []
    for literal, field, spec, conversion in _FORMATTER.parse(template):
        parts.append(literal)
        if field is None:
            continue
        if field not in fields or conversion:
            raise KeyError(field)
        parts.append(format(fields[field], spec or ""))
    return "".join(parts)


def render_notification(alert: Alert, action: AlertAction) -> str:
    """Render the action's template, or a default one-line message.

    A template referencing an unknown placeholder is returned unrendered.
    """
    if action.template:
        try:
            return _fill(action.template, _template_fields(alert))
        except (KeyError, ValueError):
            return action.template

    text = f"[{alert.severity.value.upper()}] {alert.name}"
    if alert.description:
        text += f": {alert.description}"
    return text


def history_message(alert: Alert, action: HistoryAction) -> str:
    return f"Alert {alert.name} was {action.value}"
