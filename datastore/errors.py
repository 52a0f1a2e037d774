"""Failure taxonomy raised by the measurement store."""

from __future__ import annotations


class MeasurementStoreError(Exception):
    """Base class for every failure surfaced by the store."""


class InvalidArgument(MeasurementStoreError, ValueError):
    """The caller supplied a malformed value, e.g. an inverted time range."""


class ConstraintViolation(MeasurementStoreError):
    """A required field was missing or a uniqueness rule would be broken."""


class StorageFailure(MeasurementStoreError):
    """The underlying medium could not complete the read or write."""
