"""
Error kinds raised by the K-nearest-neighbours classifier.

Both kinds derive from ValueError so callers that already guard against bad
input with ``except ValueError`` keep working.
"""

from typing import Optional


class KNNError(ValueError):
    """Base class for classifier errors."""


class InvalidConfiguration(KNNError):
    """Raised when a classifier, training set or configuration is invalid."""


class DimensionMismatch(KNNError):
    """Raised when a query does not match the training set dimensionality."""

    def __init__(self, expected: int, got: int, message: Optional[str] = None):
        self.expected = expected
        self.got = got
        if message is None:
            message = (
                f"Feature dimension mismatch: query has {got} features, "
                f"but training data has {expected} features"
            )
        super().__init__(message)

    def __reduce__(self):
        return (type(self), (self.expected, self.got, str(self)))
