from __future__ import annotations

from .logging import configure_logging
from .retry import DEFAULT_MAX_ATTEMPTS, FAILED, is_failed, retry

__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "FAILED",
    "configure_logging",
    "is_failed",
    "retry",
]
