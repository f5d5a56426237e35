"""
Lightweight logging context helpers for propagating execution identifiers.

Usage:

    from runbox_Server_API.app.core.Logging.log_context import log_context

    with log_context(request_id=req.id, sandbox="python", command="run") as log:
        log.info("Starting execution")
        ...

The context manager both contextualizes the base logger (so nested logs inherit
the fields) and returns a bound logger for convenience.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Any, Optional

from loguru import logger


@contextmanager
def log_context(**fields: Any) -> Iterator[Any]:
    """Context manager that sets structured logging fields and yields a bound logger.

    - Adds fields to the logger context (via logger.contextualize) so that any
      logs emitted inside the context inherit them.
    - Yields a logger bound with the same fields for direct use.
    """
    clean = {k: v for k, v in fields.items() if v is not None}
    with logger.contextualize(**clean):
        bound = logger.bind(**clean)
        yield bound


def get_sandbox_logger(
    *,
    request_id: Optional[str] = None,
    sandbox: Optional[str] = None,
    command: Optional[str] = None,
    step: Optional[str] = None,
):
    """Logger bound with the execution fields that are set.

    For logs emitted outside `log_context`, e.g. from background threads.
    """
    fields = {"request_id": request_id, "sandbox": sandbox, "command": command, "step": step}
    return logger.bind(**{k: v for k, v in fields.items() if v is not None})
