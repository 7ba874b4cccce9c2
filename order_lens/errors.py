from __future__ import annotations


class OrderLensError(Exception):
    """Base class for every failure order-lens reports to its caller."""


class StructuralError(OrderLensError, ValueError):
    """The sheet cannot be ingested at all (unreadable, or no data rows)."""


class CoercionError(OrderLensError, ValueError):
    """A cell could not be coerced while strict coercion is enabled."""

    def __init__(self, field: str, value: object, expected: str) -> None:
        super().__init__(f"Column '{field}': cannot read {value!r} as {expected}")
        self.field = field
        self.value = value
        self.expected = expected


class ValidationError(OrderLensError, ValueError):
    """An aggregation request is invalid (bad bucket field, mode or date range)."""


class NoMatchingDataError(OrderLensError, LookupError):
    """Filtering left nothing to aggregate."""


class UploadInProgressError(OrderLensError, RuntimeError):
    """A new upload was started while the previous one is still loading."""
