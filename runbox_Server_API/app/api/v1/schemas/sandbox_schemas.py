from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ExecRequest(BaseModel):
    sandbox: str = Field(..., description="Sandbox name, e.g. 'python'")
    command: str = Field(..., description="Command within the sandbox, e.g. 'run'")
    id: Optional[str] = Field(None, description="Execution id; generated when omitted")
    version: str = Field("", description="Runtime image version; empty means latest")
    # Insertion order is kept: it is the staging and stdin order.
    # The empty name denotes the command's entry point file.
    files: Dict[str, str] = Field(default_factory=dict)


class ExecResponse(BaseModel):
    id: str
    ok: bool
    duration: int = Field(0, description="Wall time in milliseconds")
    stdout: str = ""
    stderr: str = ""
    error: str = ""
    error_kind: Optional[str] = None


class SandboxInfo(BaseModel):
    name: str
    commands: List[str]
    boxes: List[str]
    versions: List[str]


class RuntimesResponse(BaseModel):
    runtimes: List[SandboxInfo]
