from __future__ import annotations

import logging
import os
from dataclasses import dataclass


def configure_logging() -> None:
    """Configure basic logging once."""
    root = logging.getLogger()
    if root.handlers:
        return

    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


class DeadlockNotifierError(Exception):
    """Base exception for notifier failures."""


class ImageEncodeError(DeadlockNotifierError):
    """Raised when the rendered scoreboard cannot be encoded."""


@dataclass(eq=False)
class DeadlockApiError(DeadlockNotifierError):
    """Raised when the Deadlock API returns an error or an unusable payload."""

    status_code: int
    detail: str

    def __str__(self) -> str:
        return f"Deadlock API error ({self.status_code}): {self.detail}"
