"""
Errors Module

Domain exceptions for the group expense splitter.

These exceptions represent business rule violations. They are raised by the
calculation and store modules and converted to HTTP responses in main.py.

Classes:
    SplitterError: Base exception for all splitter errors.
    ValidationError: Bad caller input (amounts, split inputs, participants).
    IntegrityError: Inputs violate a structural invariant.
    NotFoundError: A referenced group, member or expense does not exist.
    StoreUnavailableError: Firestore is not configured or cannot be reached.
"""


class SplitterError(Exception):
    """
    Base exception for all splitter errors.

    Attributes:
        message (str): Human-readable description of the failure.
        constraint (str): Short code naming the rule that failed
            (e.g. "sum_mismatch", "unknown_member").
    """

    code = "splitter_error"

    def __init__(self, message: str, constraint: str = None):
        super().__init__(message)
        self.message = message
        self.constraint = constraint or self.code

    def to_dict(self) -> dict:
        """Convert error to dictionary for API responses."""
        return {
            "error": self.code,
            "constraint": self.constraint,
            "message": self.message
        }


class ValidationError(SplitterError):
    """Raised when caller input is invalid."""
    code = "validation_error"


class IntegrityError(SplitterError):
    """Raised when inputs violate a structural invariant."""
    code = "integrity_error"


class NotFoundError(SplitterError):
    """Raised when a referenced group, member or expense is absent."""
    code = "not_found"


class StoreUnavailableError(SplitterError):
    """Raised when the Firestore client cannot be obtained."""
    code = "store_unavailable"
