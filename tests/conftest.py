"""
Global test fixtures to isolate logging side-effects and ensure clean state.
"""

import logging

import pytest


def _drop_handlers(root: logging.Logger) -> None:
    for h in root.handlers:
        try:
            h.close()
        except Exception:
            pass
    root.handlers.clear()


@pytest.fixture(autouse=True)
def disable_logging() -> None:
    """Clear and close all logging handlers before and after each test."""
    root = logging.getLogger()
    _drop_handlers(root)
    root.setLevel(logging.CRITICAL)
    yield
    _drop_handlers(root)
