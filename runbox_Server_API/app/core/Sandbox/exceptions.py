from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure classes an execution can end with."""

    infrastructure = "infrastructure"
    timeout = "timeout"
    code = "code"
    request = "request"


class SandboxError(Exception):
    """Base class for every error carried by an `Execution`."""

    kind: ErrorKind = ErrorKind.infrastructure


class ExecutionError(SandboxError):
    """The execution machinery failed before or while running the code.

    `stage` names what was being attempted ("create temp dir",
    "copy files to temp dir", "execute code", ...).
    """

    kind = ErrorKind.infrastructure

    def __init__(self, stage: str, cause: BaseException) -> None:
        super().__init__(f"{stage}: {cause}")
        self.stage = stage
        self.cause = cause


class UnsupportedVersion(SandboxError):
    kind = ErrorKind.infrastructure

    def __init__(self, box: str, version: str) -> None:
        super().__init__(f"box {box} does not support version {version}")
        self.box = box
        self.version = version


class ExecutionTimeout(SandboxError):
    kind = ErrorKind.timeout

    def __init__(self) -> None:
        super().__init__("code execution timeout")


# Returned for every timed out step so callers can compare by identity.
ERR_TIMEOUT = ExecutionTimeout()


class CodeFailure(SandboxError):
    """The sandboxed program ran and exited with a nonzero status.

    `output` holds the program's combined stdout and stderr, `detail`
    describes how it exited.
    """

    kind = ErrorKind.code

    def __init__(self, output: str, detail: str, exit_code: Optional[int] = None) -> None:
        message = f"{output} ({detail})" if output else detail
        super().__init__(message)
        self.output = output
        self.detail = detail
        self.exit_code = exit_code


class InvalidRequest(SandboxError):
    kind = ErrorKind.request


class UnknownSandbox(InvalidRequest):
    def __init__(self, sandbox: str) -> None:
        super().__init__(f"unknown sandbox: {sandbox}")
        self.sandbox = sandbox


class UnknownCommand(InvalidRequest):
    def __init__(self, sandbox: str, command: str) -> None:
        super().__init__(f"unknown command: {sandbox}.{command}")
        self.sandbox = sandbox
        self.command = command
