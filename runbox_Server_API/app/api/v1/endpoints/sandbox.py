from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from loguru import logger

from runbox_Server_API.app.api.v1.schemas.sandbox_schemas import (
    ExecRequest,
    ExecResponse,
    RuntimesResponse,
)
from runbox_Server_API.app.core.Sandbox.exceptions import ErrorKind
from runbox_Server_API.app.core.Sandbox.models import Execution, Files, Request
from runbox_Server_API.app.core.Sandbox.service import SandboxService, get_sandbox_service


router = APIRouter(prefix="/sandbox", tags=["sandbox"])

# Code-level failures and timeouts are results, not server faults.
_STATUS_BY_KIND = {
    None: 200,
    ErrorKind.code: 200,
    ErrorKind.timeout: 200,
    ErrorKind.request: 400,
    ErrorKind.infrastructure: 500,
}


def _to_response(out: Execution) -> ExecResponse:
    return ExecResponse(
        id=out.id,
        ok=out.ok,
        duration=out.duration_ms,
        stdout=out.stdout,
        stderr=out.stderr,
        error=str(out.error) if out.error is not None else "",
        error_kind=out.error_kind.value if out.error_kind is not None else None,
    )


@router.get("/runtimes", response_model=RuntimesResponse)
def list_runtimes(service: SandboxService = Depends(get_sandbox_service)) -> RuntimesResponse:
    """List configured sandboxes with their commands and supported versions."""
    return RuntimesResponse.model_validate({"runtimes": service.feature_discovery()})


@router.post("/exec", response_model=ExecResponse)
def exec_code(body: ExecRequest, service: SandboxService = Depends(get_sandbox_service)) -> JSONResponse:
    """Run a sandbox command against the submitted files."""
    req = Request(
        id=body.id or "",
        sandbox=body.sandbox,
        command=body.command,
        version=body.version,
        files=Files(body.files),
    )
    out = service.exec(req)
    status = _STATUS_BY_KIND.get(out.error_kind, 500)
    if status == 500:
        logger.error(f"{out.id}: sandbox infrastructure failure: {out.error}")
    return JSONResponse(_to_response(out).model_dump(), status_code=status)
