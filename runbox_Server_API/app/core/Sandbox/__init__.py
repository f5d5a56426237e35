"""Sandbox core module

Runs untrusted code inside ephemeral docker containers. A command is a
pipeline of steps (optional setup, one or more run steps, optional cleanup);
each step is a single `docker run` or `docker exec` invocation bounded by a
timeout and an output-size cap.

Entry points: `DockerEngine` (one command, one request) and
`SandboxService` (request validation and dispatch by sandbox/command name).
"""

from .exceptions import (
    CodeFailure,
    ERR_TIMEOUT,
    ExecutionError,
    ExecutionTimeout,
    InvalidRequest,
    SandboxError,
    UnknownCommand,
    UnknownSandbox,
    UnsupportedVersion,
)
from .models import ErrorKind, Execution, Files, Request
from .engine import DockerEngine
from .service import SandboxService, get_sandbox_service

__all__ = [
    "CodeFailure",
    "DockerEngine",
    "ERR_TIMEOUT",
    "ErrorKind",
    "Execution",
    "ExecutionError",
    "ExecutionTimeout",
    "Files",
    "InvalidRequest",
    "Request",
    "SandboxError",
    "SandboxService",
    "UnknownCommand",
    "UnknownSandbox",
    "UnsupportedVersion",
    "get_sandbox_service",
]
