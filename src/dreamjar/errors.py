"""Error taxonomy for DreamJar core operations.

Every error is surfaced directly to the caller; nothing here is retried.
"""

from typing import Optional


class DreamJarError(Exception):
    """Base class for all DreamJar core errors."""


class ValidationError(DreamJarError):
    """Malformed proof, vote, pledge or proposal input."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class AuthorizationError(DreamJarError):
    """Caller is not allowed to perform the operation (e.g. non-creator proof)."""


class ConflictError(DreamJarError):
    """Duplicate vote, duplicate treasury credit, duplicate proposal ballot."""


class StateError(DreamJarError):
    """Operation is illegal in the current wish or proposal status."""


class NotFoundError(DreamJarError):
    """Unknown wish, proposal or proof."""


class InsufficientFundsError(DreamJarError):
    """Proposal execution exceeds the available treasury balance."""

    def __init__(self, message: str, requested: int = 0, available: int = 0):
        super().__init__(message)
        self.requested = requested
        self.available = available
