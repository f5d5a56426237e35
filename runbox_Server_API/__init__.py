"""
Top-level package initializer for runbox_Server_API.

Applies conservative environment defaults in test environments so the
background kill pool stays small and docker is never invoked for real unless
a test explicitly opts in.
"""

from __future__ import annotations

import os
import sys
from loguru import logger


def _under_pytest() -> bool:
    try:
        if "PYTEST_CURRENT_TEST" in os.environ:
            return True
        return any("pytest" in (arg or "") for arg in sys.argv)
    except Exception as e:
        logger.debug(f"__init__._under_pytest check failed: {e}")
        return False


def _env_flag_true(name: str) -> bool:
    val = os.getenv(name, "").strip().lower()
    return val in {"1", "true", "yes", "on"}


if _env_flag_true("TESTING") or _under_pytest():
    # One worker is plenty for kills issued by tests
    os.environ.setdefault("SANDBOX_KILL_WORKERS", "1")
    os.environ.setdefault("SANDBOX_KILL_TIMEOUT_SEC", "1")
