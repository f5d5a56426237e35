from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple
import posixpath

from .exceptions import CodeFailure, ErrorKind, InvalidRequest, SandboxError


class Files(dict):
    """Ordered mapping of file name to text content.

    An empty name stands for the command's entry point file; its real name is
    substituted at write time. Insertion order is the staging order and the
    order contents are concatenated in when files go through stdin.
    """

    @classmethod
    def of(cls, items: Iterable[Tuple[str, str]]) -> "Files":
        files = cls()
        for name, content in items:
            if name in files:
                raise InvalidRequest(f"duplicate file name: {name!r}")
            files[name] = content
        return files

    def validate(self) -> None:
        for name in self:
            if not name:
                continue
            norm = posixpath.normpath(name.replace("\\", "/"))
            if posixpath.isabs(norm) or norm == ".." or norm.startswith("../"):
                raise InvalidRequest(f"invalid file name: {name!r}")


@dataclass
class Request:
    id: str
    sandbox: str = ""
    command: str = ""
    # Empty means the box's default (latest) image.
    version: str = ""
    files: Files = field(default_factory=Files)


@dataclass
class Execution:
    id: str
    ok: bool
    stdout: str = ""
    stderr: str = ""
    error: Optional[SandboxError] = None
    duration_ms: int = 0

    @classmethod
    def fail(cls, id: str, err: SandboxError) -> "Execution":
        # Code-level failures keep the program output in stderr.
        stderr = err.output if isinstance(err, CodeFailure) else ""
        return cls(id=id, ok=False, stderr=stderr, error=err)

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        if self.error is None:
            return None
        return self.error.kind
