"""Fakes and builders shared by the sandbox tests."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from runbox_Server_API.app.core.Sandbox.config import SandboxConfig
from runbox_Server_API.app.core.Sandbox.program import Program, ProgramOutcome, ProgramResult


@dataclass
class ProgramCall:
    timeout: float
    max_output: int
    id: str
    name: str
    args: List[str]
    stdin: Optional[bytes] = None

    @property
    def is_kill(self) -> bool:
        return self.args[:1] == ["kill"]

    @property
    def work_dir(self) -> Optional[str]:
        """Scratch directory mounted into a `docker run`, if any."""
        if "--volume" not in self.args:
            return None
        mount = self.args[self.args.index("--volume") + 1]
        return mount.split(":", 1)[0]


@dataclass
class FakePrograms:
    """Stands in for the process invoker; records every invocation.

    `on_call` decides the result of each call; by default every call succeeds
    with stdout "ok".
    """

    calls: List[ProgramCall] = field(default_factory=list)
    on_call: Optional[Callable[[ProgramCall], ProgramResult]] = None

    def factory(self, timeout: float, max_output: int) -> Program:
        return _FakeProgram(self, timeout, max_output)

    def _respond(self, call: ProgramCall) -> ProgramResult:
        self.calls.append(call)
        if self.on_call is not None:
            return self.on_call(call)
        return ProgramResult(outcome=ProgramOutcome.ok, stdout="ok", exit_code=0)

    @property
    def step_calls(self) -> List[ProgramCall]:
        return [c for c in self.calls if not c.is_kill]

    @property
    def kill_calls(self) -> List[ProgramCall]:
        return [c for c in self.calls if c.is_kill]


class _FakeProgram(Program):
    def __init__(self, owner: FakePrograms, timeout: float, max_output: int) -> None:
        super().__init__(timeout, max_output)
        self._owner = owner

    def run(self, id: str, name: str, *args: str) -> ProgramResult:
        return self._owner._respond(ProgramCall(self.timeout, self.max_output, id, name, list(args)))

    def run_stdin(self, stdin, id: str, name: str, *args: str) -> ProgramResult:
        if isinstance(stdin, str):
            stdin = stdin.encode("utf-8")
        return self._owner._respond(ProgramCall(self.timeout, self.max_output, id, name, list(args), stdin))


def ok(stdout: str = "ok", stderr: str = "") -> ProgramResult:
    return ProgramResult(outcome=ProgramOutcome.ok, stdout=stdout, stderr=stderr, exit_code=0)


def exited(code: int = 1, stdout: str = "", stderr: str = "") -> ProgramResult:
    return ProgramResult(outcome=ProgramOutcome.exited, stdout=stdout, stderr=stderr, exit_code=code)


def timed_out() -> ProgramResult:
    return ProgramResult(outcome=ProgramOutcome.timed_out, exit_code=-9)


def failed(error: BaseException) -> ProgramResult:
    return ProgramResult(outcome=ProgramOutcome.failed, error=error)


def make_config(commands: Dict[str, Any], boxes: Optional[Dict[str, Any]] = None, sandbox: str = "python") -> SandboxConfig:
    if boxes is None:
        boxes = {
            "python": {
                "image": "python",
                "cpu": 1,
                "memory": 64,
                "network": "none",
                "nproc": 64,
                "versions": ["1.0", "2.0"],
            },
        }
    return SandboxConfig.model_validate({"boxes": boxes, "commands": {sandbox: commands}})


def step(command: List[str], **kw: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {"box": "python", "command": command}
    data.update(kw)
    return data


