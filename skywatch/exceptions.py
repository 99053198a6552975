"""
Custom exceptions for skywatch.

Per-object errors are raised by the core and isolated by the tracking session, so
one bad element set never takes down a refresh cycle.
"""

from typing import Optional


class SkywatchError(Exception):
    """Base exception for all skywatch-specific errors."""

    def __init__(self, message: str, catalog_id: Optional[int] = None):
        super().__init__(message)
        self.catalog_id = catalog_id


class MalformedElementsError(SkywatchError, ValueError):
    """Raised at ingestion when an element set fails consistency checks."""
    pass


class PropagationError(SkywatchError):
    """Raised when SGP4/SDP4 cannot produce a state for the requested time."""

    def __init__(self, message: str, catalog_id: Optional[int] = None, code: int = 0):
        super().__init__(message, catalog_id)
        self.code = code


class InvalidOrbitError(PropagationError):
    """Raised when the propagated mean elements are physically nonsensical."""
    pass


class DecayedError(InvalidOrbitError):
    """Raised when the object has re-entered (decayed or sub-orbital state)."""
    pass


class PredictionHorizonExceeded(SkywatchError):
    """Raised when no rise is found within the pass search horizon."""
    pass


class DataSourceError(SkywatchError):
    """Raised when a satellite data source cannot deliver an entry."""
    pass


class SessionStateError(SkywatchError):
    """Raised on an invalid tracking session state transition."""
    pass
