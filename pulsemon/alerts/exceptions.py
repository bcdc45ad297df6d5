"""Alert administration exceptions."""

from __future__ import annotations


class AlertError(Exception):
    """Base exception for alerting errors."""


class AlertNotFoundError(AlertError):
    """No alert definition exists with the given id."""


class AlertStoreError(AlertError):
    """The alert store failed to persist a definition change."""


class InvalidAlertUpdateError(AlertError):
    """An update named fields that cannot be changed."""

    def __init__(self, fields: list[str]) -> None:
        self.fields = fields
        super().__init__(f"fields cannot be updated: {', '.join(fields)}")
