from __future__ import annotations

import re

import pytest

from runbox_Server_API.app.core.Sandbox.engine import DockerEngine
from runbox_Server_API.app.core.Sandbox.exceptions import (
    ErrorKind,
    InvalidRequest,
    UnknownCommand,
    UnknownSandbox,
)
from runbox_Server_API.app.core.Sandbox.models import Files, Request
from runbox_Server_API.app.core.Sandbox.service import SandboxService

from sandbox_helpers import FakePrograms, exited, make_config, step


@pytest.fixture()
def service(programs: FakePrograms, spawner, tmp_path) -> SandboxService:
    cfg = make_config({
        "run": {"entry": "main.py", "steps": [step(["python", "main.py"])]},
        "test": {"entry": "test_main.py", "steps": [step(["python", "-m", "unittest"])]},
    })

    def _engine(cfg, sandbox, command):
        return DockerEngine(
            cfg, sandbox, command,
            program_factory=programs.factory,
            spawner=spawner,
            kill_timeout=1.0,
            tmp_dir=str(tmp_path),
        )

    return SandboxService(cfg, engine_factory=_engine)


@pytest.mark.unit
def test_unknown_sandbox(service: SandboxService, programs: FakePrograms):
    out = service.exec(Request(id="r1", sandbox="cobol", command="run"))
    assert not out.ok
    assert isinstance(out.error, UnknownSandbox)
    assert out.error_kind == ErrorKind.request
    assert programs.calls == []


@pytest.mark.unit
def test_unknown_command(service: SandboxService, programs: FakePrograms):
    out = service.exec(Request(id="r1", sandbox="python", command="lint"))
    assert isinstance(out.error, UnknownCommand)
    assert str(out.error) == "unknown command: python.lint"
    assert programs.calls == []


@pytest.mark.unit
def test_generated_id_is_used_as_container_name(service: SandboxService, programs: FakePrograms):
    out = service.exec(Request(id="", sandbox="python", command="run", files=Files({"": "print(1)"})))
    assert out.ok
    assert re.fullmatch(r"python_run_[0-9a-f]{8}", out.id)
    args = programs.calls[0].args
    assert args[args.index("--name") + 1] == out.id


@pytest.mark.unit
@pytest.mark.parametrize("bad_id", ["-leading-dash", "has space", "semi;colon", "x" * 200])
def test_invalid_id_is_rejected(service: SandboxService, programs: FakePrograms, bad_id: str):
    out = service.exec(Request(id=bad_id, sandbox="python", command="run"))
    assert isinstance(out.error, InvalidRequest)
    assert programs.calls == []


@pytest.mark.unit
@pytest.mark.parametrize("name", ["/etc/passwd", "../up.py", "a/../../up.py"])
def test_invalid_file_names_are_rejected(service: SandboxService, programs: FakePrograms, name: str):
    out = service.exec(Request(id="r1", sandbox="python", command="run", files=Files({name: "x"})))
    assert out.error_kind == ErrorKind.request
    assert programs.calls == []


@pytest.mark.unit
def test_nested_file_names_are_allowed(service: SandboxService):
    req = service.validate(Request(id="r1", sandbox="python", command="run", files={"pkg/mod.py": "x"}))
    assert isinstance(req.files, Files)
    assert list(req.files) == ["pkg/mod.py"]


@pytest.mark.unit
def test_duplicate_names_rejected_by_files_of():
    with pytest.raises(InvalidRequest):
        Files.of([("a.py", "1"), ("a.py", "2")])
    assert list(Files.of([("b.py", "1"), ("a.py", "2")])) == ["b.py", "a.py"]


@pytest.mark.unit
def test_duration_is_set(service: SandboxService):
    out = service.exec(Request(id="r1", sandbox="python", command="run"))
    assert out.ok
    assert out.duration_ms >= 0


@pytest.mark.unit
def test_engines_are_reused(service: SandboxService):
    service.exec(Request(id="r1", sandbox="python", command="run"))
    service.exec(Request(id="r2", sandbox="python", command="run"))
    service.exec(Request(id="r3", sandbox="python", command="test"))
    assert sorted(service._engines) == [("python", "run"), ("python", "test")]


@pytest.mark.unit
def test_code_failure_passes_through(service: SandboxService, programs: FakePrograms):
    programs.on_call = lambda call: exited(1, stderr="NameError")
    out = service.exec(Request(id="r1", sandbox="python", command="run"))
    assert out.error_kind == ErrorKind.code
    assert out.stderr == "NameError"


@pytest.mark.unit
def test_feature_discovery():
    cfg = make_config(
        {
            "query": {
                "before": step(["setup"], box="db"),
                "steps": [step(["run"], box="python")],
            },
        },
        boxes={
            "python": {"image": "python", "versions": ["3.12", "3.11"]},
            "db": {"image": "postgres", "versions": ["16"]},
        },
        sandbox="postgres",
    )
    info = SandboxService(cfg).feature_discovery()
    assert info == [{
        "name": "postgres",
        "commands": ["query"],
        "boxes": ["db", "python"],
        "versions": ["16", "3.11", "3.12"],
    }]
