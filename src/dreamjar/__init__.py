"""DreamJar - staked wishes, community verification and impact treasury governance."""

__version__ = "0.1.0"

from .config import DreamJarConfig
from .errors import (
    AuthorizationError,
    ConflictError,
    DreamJarError,
    InsufficientFundsError,
    NotFoundError,
    StateError,
    ValidationError,
)
from .service import DreamJarService

__all__ = [
    "__version__",
    "DreamJarConfig",
    "DreamJarService",
    "DreamJarError",
    "ValidationError",
    "AuthorizationError",
    "ConflictError",
    "StateError",
    "NotFoundError",
    "InsufficientFundsError",
]
