from __future__ import annotations

import re
import threading
import time
import uuid
from typing import Callable, Optional

from loguru import logger

from .config import SandboxConfig, load_sandbox_config
from .engine import DockerEngine
from .exceptions import InvalidRequest, SandboxError, UnknownCommand, UnknownSandbox
from .models import Execution, Files, Request
from .tasks import Spawner
from runbox_Server_API.app.core.config import settings as app_settings
from runbox_Server_API.app.core.Logging.log_context import log_context

# Execution ids double as docker container names.
_ID_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]{0,127}$")

EngineFactory = Callable[[SandboxConfig, str, str], DockerEngine]


class SandboxService:
    """High-level facade: validates requests and dispatches them to engines.

    Engines are created per (sandbox, command) on first use and reused; they
    hold no per-request state.
    """

    def __init__(
        self,
        cfg: SandboxConfig,
        engine_factory: Optional[EngineFactory] = None,
        spawner: Optional[Spawner] = None,
    ) -> None:
        self.cfg = cfg
        self._spawner = spawner
        self._engine_factory = engine_factory or self._default_engine
        self._engines: dict[tuple[str, str], DockerEngine] = {}
        self._lock = threading.Lock()

    def _default_engine(self, cfg: SandboxConfig, sandbox: str, command: str) -> DockerEngine:
        return DockerEngine(cfg, sandbox, command, spawner=self._spawner)

    def _engine(self, sandbox: str, command: str) -> DockerEngine:
        key = (sandbox, command)
        with self._lock:
            engine = self._engines.get(key)
            if engine is None:
                engine = self._engine_factory(self.cfg, sandbox, command)
                self._engines[key] = engine
            return engine

    def validate(self, req: Request) -> Request:
        """Check names and files, assigning an id when the request has none."""
        if req.sandbox not in self.cfg.commands:
            raise UnknownSandbox(req.sandbox)
        if self.cfg.command(req.sandbox, req.command) is None:
            raise UnknownCommand(req.sandbox, req.command)
        if not req.id:
            req.id = f"{req.sandbox}_{req.command}_{uuid.uuid4().hex[:8]}"
        elif not _ID_RE.match(req.id):
            raise InvalidRequest(f"invalid id: {req.id!r}")
        if not isinstance(req.files, Files):
            req.files = Files(req.files)
        req.files.validate()
        return req

    def exec(self, req: Request) -> Execution:
        started = time.monotonic()
        try:
            req = self.validate(req)
        except SandboxError as e:
            logger.info(f"Rejected sandbox request {req.sandbox}.{req.command}: {e}")
            return Execution.fail(req.id, e)

        with log_context(request_id=req.id, sandbox=req.sandbox, command=req.command) as log:
            log.info(f"{req.id}: exec {req.sandbox}.{req.command} ({len(req.files)} files)")
            out = self._engine(req.sandbox, req.command).exec(req)
            out.duration_ms = int((time.monotonic() - started) * 1000)
            if out.ok:
                log.info(f"{req.id}: ok, took {out.duration_ms}ms")
            else:
                kind = out.error_kind.value if out.error_kind else "unknown"
                log.info(f"{req.id}: failed ({kind}): {out.error}, took {out.duration_ms}ms")
        return out

    def feature_discovery(self) -> list[dict]:
        result: list[dict] = []
        for sandbox in sorted(self.cfg.commands):
            commands = self.cfg.commands[sandbox]
            boxes = sorted({step.box for cmd in commands.values() for step in cmd.all_steps()})
            versions = sorted({v for box in boxes for v in self.cfg.boxes[box].versions})
            result.append({
                "name": sandbox,
                "commands": sorted(commands),
                "boxes": boxes,
                "versions": versions,
            })
        return result


_service_lock = threading.Lock()
_service: Optional[SandboxService] = None


def get_sandbox_service() -> SandboxService:
    """Process-wide service built from SANDBOX_CONFIG_DIR on first use."""
    global _service
    with _service_lock:
        if _service is None:
            config_dir = getattr(app_settings, "SANDBOX_CONFIG_DIR")
            _service = SandboxService(load_sandbox_config(config_dir))
        return _service


def reset_sandbox_service(service: Optional[SandboxService] = None) -> None:
    """Replace (or drop) the process-wide service; used by tests and reloads."""
    global _service
    with _service_lock:
        _service = service
