from __future__ import annotations

import os
import shutil
import tempfile
from typing import Callable, Optional

from loguru import logger

from .config import BoxConfig, CommandConfig, SandboxConfig, StepAction, StepConfig
from .docker_args import build_args
from .exceptions import (
    CodeFailure,
    ERR_TIMEOUT,
    ExecutionError,
    UnknownCommand,
    UnsupportedVersion,
)
from .fileio import copy_files, write_file
from .models import Execution, Files, Request
from .program import Program, ProgramOutcome, ProgramResult
from .tasks import Spawner, get_default_spawner
from runbox_Server_API.app.core.config import settings as app_settings
from runbox_Server_API.app.core.Logging.log_context import get_sandbox_logger

# Builds a process invoker from (timeout seconds, max output bytes).
ProgramFactory = Callable[[float, int], Program]

# Staged request files are read-only for everyone, the sandboxed code included.
_FILE_MODE = 0o444
# Lets the in-container user traverse the mounted scratch directory.
_DIR_MODE = 0o755
# Output kept from `docker kill`, only ever logged.
_KILL_OUTPUT_BYTES = 1024


class DockerEngine:
    """Executes a specific sandbox command using docker `run` or `exec` steps.

    The engine is stateless between calls: every `exec` gets its own scratch
    directory, removed before `exec` returns.
    """

    def __init__(
        self,
        cfg: SandboxConfig,
        sandbox: str,
        command: str,
        *,
        program_factory: ProgramFactory = Program,
        spawner: Optional[Spawner] = None,
        kill_timeout: Optional[float] = None,
        docker_binary: Optional[str] = None,
        tmp_dir: Optional[str] = None,
    ) -> None:
        cmd = cfg.command(sandbox, command)
        if cmd is None:
            raise UnknownCommand(sandbox, command)
        self.cfg = cfg
        self.cmd: CommandConfig = cmd
        self.sandbox = sandbox
        self.command = command
        self.program_factory = program_factory
        self.spawner = spawner if spawner is not None else get_default_spawner()
        if kill_timeout is None:
            kill_timeout = float(getattr(app_settings, "SANDBOX_KILL_TIMEOUT_SEC", 5.0))
        self.kill_timeout = kill_timeout
        self.docker_binary = docker_binary or getattr(app_settings, "SANDBOX_DOCKER_BINARY", "docker")
        self.tmp_dir = tmp_dir if tmp_dir is not None else getattr(app_settings, "SANDBOX_TMP_DIR", None)

    def exec(self, req: Request) -> Execution:
        """Run the command's steps against the request and return the net outcome."""
        # all steps operate in the same scratch directory
        try:
            work_dir = tempfile.mkdtemp(prefix="runbox-", dir=self.tmp_dir)
            os.chmod(work_dir, _DIR_MODE)
        except OSError as e:
            return Execution.fail(req.id, ExecutionError("create temp dir", e))
        try:
            return self._run_pipeline(req, work_dir)
        finally:
            self._remove_dir(req.id, work_dir)

    def _run_pipeline(self, req: Request, work_dir: str) -> Execution:
        # without an entry point there is nothing to stage on disk
        if self.cmd.entry:
            try:
                self._write_files(work_dir, req.files)
            except (OSError, ValueError) as e:
                return Execution.fail(req.id, ExecutionError("write files to temp dir", e))

        if self.cmd.before is not None:
            out = self._exec_step(self.cmd.before, req, work_dir, None)
            if not out.ok:
                return out

        first, rest = self.cmd.steps[0], self.cmd.steps[1:]
        out = self._exec_step(first, req, work_dir, req.files)
        if out.ok:
            # later steps work on what the previous step produced,
            # not on the request's source files
            for step in rest:
                out = self._exec_step(step, req, work_dir, None)
                if not out.ok:
                    break

        if self.cmd.after is not None:
            after_out = self._exec_step(self.cmd.after, req, work_dir, None)
            if out.ok and not after_out.ok:
                return after_out

        return out

    def _exec_step(self, step: StepConfig, req: Request, work_dir: str, files: Optional[Files]) -> Execution:
        box = self.cfg.box_for(step)
        try:
            self._validate_version(box, step, req)
        except UnsupportedVersion as e:
            return Execution.fail(req.id, e)

        try:
            self._copy_files(box, work_dir)
        except OSError as e:
            return Execution.fail(req.id, ExecutionError("copy files to temp dir", e))

        return self._exec(box, step, req, work_dir, files)

    def _validate_version(self, box: BoxConfig, step: StepConfig, req: Request) -> None:
        # A version pinned by the step wins, an empty request version means
        # latest; otherwise the box must list the requested version.
        if not step.version and req.version and req.version not in box.versions:
            raise UnsupportedVersion(step.box, req.version)

    def _copy_files(self, box: BoxConfig, work_dir: str) -> None:
        for pattern in box.files:
            copy_files(pattern, work_dir)

    def _write_files(self, work_dir: str, files: Files) -> None:
        written: set[str] = set()
        for name, content in files.items():
            if not name:
                name = self.cmd.entry
            path = os.path.normpath(os.path.join(work_dir, name))
            if path in written:
                raise ValueError(f"file {name} is given more than once")
            write_file(path, content, _FILE_MODE, root=work_dir)
            written.add(path)

    def _exec(self, box: BoxConfig, step: StepConfig, req: Request, work_dir: str, files: Optional[Files]) -> Execution:
        prog = self.program_factory(step.timeout, step.noutput)
        args = build_args(box, step, req, work_dir)
        if step.stdin:
            # files go to the container through stdin
            result = prog.run_stdin(_files_input(files), req.id, self.docker_binary, *args)
        else:
            # files go to the container through the mounted scratch directory
            result = prog.run(req.id, self.docker_binary, *args)
        return self._classify(step, req, result)

    def _classify(self, step: StepConfig, req: Request, result: ProgramResult) -> Execution:
        if result.outcome == ProgramOutcome.ok:
            return Execution(id=req.id, ok=True, stdout=result.stdout, stderr=result.stderr)

        if result.outcome == ProgramOutcome.timed_out:
            if step.action == StepAction.run:
                # Killing `docker run` leaves the container's processes running,
                # so the container itself has to be killed.
                self.spawner.spawn(self._docker_kill, req.id)
            return Execution.fail(req.id, ERR_TIMEOUT)

        if result.outcome == ProgramOutcome.exited:
            # The code failed, not the sandbox: report its output as the result.
            combined = result.stdout + result.stderr
            err = CodeFailure(combined, result.exit_detail(), result.exit_code)
            return Execution.fail(req.id, err)

        cause = result.error if result.error is not None else RuntimeError("process failed")
        return Execution.fail(req.id, ExecutionError("execute code", cause))

    def _docker_kill(self, name: str) -> None:
        """Kill the container with the given name. Outcome is logged only."""
        # runs on a spawner thread, outside the request log context
        log = get_sandbox_logger(request_id=name, sandbox=self.sandbox, command=self.command, step="kill")
        prog = self.program_factory(self.kill_timeout, _KILL_OUTPUT_BYTES)
        result = prog.run(name, self.docker_binary, "kill", name)
        if result.ok:
            log.debug(f"{name}: docker kill ok")
        else:
            reason = result.error or result.stderr.strip() or result.outcome.value
            log.warning(f"{name}: docker kill failed: {reason}")

    def _remove_dir(self, id: str, work_dir: str) -> None:
        try:
            shutil.rmtree(work_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"{id}: failed to remove temp dir {work_dir}: {e}")


def _files_input(files: Optional[Files]) -> bytes:
    """Concatenate file contents in order, for programs reading stdin."""
    if not files:
        return b""
    return "".join(files.values()).encode("utf-8")
