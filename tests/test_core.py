from __future__ import annotations

import logging

import pytest

from app.deadlock_notifier.src import core


def test_configure_logging_is_idempotent(monkeypatch: pytest.MonkeyPatch):
    """Calling configure_logging multiple times does not add duplicate handlers."""
    root = logging.getLogger()
    saved = list(root.handlers)
    try:
        root.handlers.clear()
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        core.configure_logging()
        assert root.handlers

        before = len(root.handlers)
        core.configure_logging()
        assert len(root.handlers) == before
    finally:
        root.handlers[:] = saved


def test_deadlock_api_error_str():
    err = core.DeadlockApiError(status_code=503, detail="unavailable")
    assert str(err) == "Deadlock API error (503): unavailable"


def test_errors_share_a_base_class():
    assert issubclass(core.ImageEncodeError, core.DeadlockNotifierError)
    assert issubclass(core.DeadlockApiError, core.DeadlockNotifierError)
