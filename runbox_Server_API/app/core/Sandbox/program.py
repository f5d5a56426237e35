from __future__ import annotations

import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import IO, Optional, Sequence, Union

from loguru import logger

_IS_POSIX = os.name == "posix"
_READ_CHUNK = 8192
# How long to wait for pipe readers after the process is gone
_DRAIN_GRACE_SEC = 1.0


class ProgramOutcome(str, Enum):
    ok = "ok"
    timed_out = "timed_out"
    exited = "exited"    # ran to completion with a nonzero exit code
    failed = "failed"    # could not be started or waited on


@dataclass
class ProgramResult:
    outcome: ProgramOutcome
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    error: Optional[BaseException] = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.outcome == ProgramOutcome.ok

    def exit_detail(self) -> str:
        if self.exit_code is not None and self.exit_code < 0:
            try:
                return f"signal: {signal.Signals(-self.exit_code).name.lower()}"
            except ValueError:
                return f"signal: {-self.exit_code}"
        return f"exit status {self.exit_code}"


class _BoundedReader(threading.Thread):
    """Reads a pipe to EOF, keeping at most `limit` bytes.

    The rest is read and discarded so the child never blocks on a full pipe.
    """

    def __init__(self, stream: IO[bytes], limit: int) -> None:
        super().__init__(daemon=True)
        self._stream = stream
        self._limit = max(0, int(limit))
        self._chunks: list[bytes] = []
        self._size = 0
        self.truncated = False

    def run(self) -> None:
        try:
            while True:
                chunk = self._stream.read1(_READ_CHUNK) if hasattr(self._stream, "read1") else self._stream.read(_READ_CHUNK)
                if not chunk:
                    break
                room = self._limit - self._size
                if room > 0:
                    kept = chunk[:room]
                    self._chunks.append(kept)
                    self._size += len(kept)
                if len(chunk) > max(room, 0):
                    self.truncated = True
        except (OSError, ValueError):
            # pipe closed under us after a kill
            pass
        finally:
            try:
                self._stream.close()
            except OSError:
                pass

    def text(self) -> str:
        return b"".join(self._chunks).decode("utf-8", errors="replace")


def _feed_stdin(stream: IO[bytes], data: bytes) -> None:
    try:
        stream.write(data)
    except (BrokenPipeError, OSError, ValueError):
        # the program exited without reading all of its input
        pass
    finally:
        try:
            stream.close()
        except OSError:
            pass


def _kill(proc: subprocess.Popen) -> None:
    try:
        if _IS_POSIX:
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except (ProcessLookupError, PermissionError):
        try:
            proc.kill()
        except OSError:
            pass


class Program:
    """Runs an external program with a wall-clock deadline and bounded output.

    Each of stdout and stderr is capped at `max_output` bytes. A program that
    outlives `timeout` seconds is killed together with its process group.
    """

    def __init__(self, timeout: float, max_output: int) -> None:
        self.timeout = float(timeout)
        self.max_output = int(max_output)

    def run(self, id: str, name: str, *args: str) -> ProgramResult:
        return self._run(None, id, name, args)

    def run_stdin(self, stdin: Union[bytes, str], id: str, name: str, *args: str) -> ProgramResult:
        if isinstance(stdin, str):
            stdin = stdin.encode("utf-8")
        return self._run(stdin, id, name, args)

    def _run(self, stdin: Optional[bytes], id: str, name: str, args: Sequence[str]) -> ProgramResult:
        cmd = [name, *args]
        started = time.monotonic()
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=_IS_POSIX,
            )
        except OSError as e:
            logger.debug(f"{id}: failed to start {name}: {e}")
            return ProgramResult(outcome=ProgramOutcome.failed, error=e)

        out = _BoundedReader(proc.stdout, self.max_output)  # type: ignore[arg-type]
        err = _BoundedReader(proc.stderr, self.max_output)  # type: ignore[arg-type]
        out.start()
        err.start()
        if stdin is not None:
            threading.Thread(target=_feed_stdin, args=(proc.stdin, stdin), daemon=True).start()

        timed_out = False
        try:
            exit_code = proc.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            _kill(proc)
            exit_code = proc.wait()
        out.join(_DRAIN_GRACE_SEC)
        err.join(_DRAIN_GRACE_SEC)
        duration_ms = int((time.monotonic() - started) * 1000)

        result = ProgramResult(
            outcome=ProgramOutcome.ok,
            stdout=out.text(),
            stderr=err.text(),
            exit_code=exit_code,
            duration_ms=duration_ms,
        )
        if timed_out:
            result.outcome = ProgramOutcome.timed_out
        elif exit_code != 0:
            result.outcome = ProgramOutcome.exited
        if out.truncated or err.truncated:
            logger.debug(f"{id}: output truncated to {self.max_output} bytes")
        logger.debug(f"{id}: {name} finished: outcome={result.outcome.value} exit={exit_code} took={duration_ms}ms")
        return result
