from __future__ import annotations

from typing import Any

import pytest

from runbox_Server_API.app.core.Sandbox.config import SandboxConfig
from runbox_Server_API.app.core.Sandbox.engine import DockerEngine
from runbox_Server_API.app.core.Sandbox.tasks import InlineSpawner

from sandbox_helpers import FakePrograms


@pytest.fixture()
def programs() -> FakePrograms:
    return FakePrograms()


@pytest.fixture()
def spawner() -> InlineSpawner:
    return InlineSpawner()


@pytest.fixture()
def make_engine(programs: FakePrograms, spawner: InlineSpawner, tmp_path):
    """Build a DockerEngine for `python.<command>` wired to fakes."""
    scratch_root = tmp_path / "scratch"
    scratch_root.mkdir()

    def _make(cfg: SandboxConfig, command: str = "run", **kw: Any) -> DockerEngine:
        kw.setdefault("program_factory", programs.factory)
        kw.setdefault("spawner", spawner)
        kw.setdefault("kill_timeout", 3.0)
        kw.setdefault("docker_binary", "docker")
        kw.setdefault("tmp_dir", str(scratch_root))
        return DockerEngine(cfg, "python", command, **kw)

    _make.scratch_root = scratch_root  # type: ignore[attr-defined]
    return _make
