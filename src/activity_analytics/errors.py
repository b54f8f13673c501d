"""Error kinds raised by the classification and aggregation engine."""

from __future__ import annotations


class AnalyticsError(Exception):
    """Base class for errors surfaced to callers as rejected requests."""

    status_code = 500


class ValidationError(AnalyticsError):
    """Missing or invalid required input."""

    status_code = 400


class NotFound(AnalyticsError):
    """A referenced rule does not exist."""

    status_code = 404


class InvalidOperation(AnalyticsError):
    """Attempt to modify or delete a built-in rule."""

    status_code = 400


class StorageError(AnalyticsError):
    """The underlying datastore failed during a read or write."""

    status_code = 500
