"""Builds `docker` command lines from box and step configuration.

Everything here is pure: same inputs, same argument list, no I/O.
"""
from __future__ import annotations

from typing import Callable, Dict, List, Sequence

from loguru import logger

from .config import BoxConfig, StepAction, StepConfig
from .models import Request

# Substituted with the execution id (which is also the container name).
NAME_VAR = ":name"


def docker_run_args(box: BoxConfig, step: StepConfig, req: Request, work_dir: str) -> List[str]:
    """Arguments for `docker run`: a fresh, auto-removed, named container."""
    args = [
        StepAction.run.value, "--rm",
        "--name", req.id,
        "--runtime", box.runtime,
        "--cpus", str(box.cpu),
        "--memory", f"{box.memory}m",
        "--network", box.network,
        "--pids-limit", str(box.nproc),
        "--user", step.user,
    ]
    if not box.writable:
        args.append("--read-only")
    if step.stdin:
        args.append("--interactive")
    if box.storage:
        args.extend(["--storage-opt", f"size={box.storage}"])
    if work_dir:
        args.extend(["--volume", box.volume % work_dir])
    for fs in box.tmpfs:
        args.extend(["--tmpfs", fs])
    for cap in box.cap_add:
        args.extend(["--cap-add", cap])
    for cap in box.cap_drop:
        args.extend(["--cap-drop", cap])
    for lim in box.ulimit:
        args.extend(["--ulimit", lim])
    args.append(image_ref(box, step, req))
    return args


def image_ref(box: BoxConfig, step: StepConfig, req: Request) -> str:
    # step-pinned version > request version > latest
    if step.version:
        return f"{box.image}:{step.version}"
    if req.version:
        return f"{box.image}:{req.version}"
    return box.image


def docker_exec_args(box: BoxConfig, step: StepConfig, req: Request, work_dir: str) -> List[str]:
    """Arguments for `docker exec` into the running container named after the box.

    Resource limits are those of the running container.
    """
    return [
        StepAction.exec.value, "--interactive",
        "--user", step.user,
        step.box,
    ]


_BUILDERS: Dict[StepAction, Callable[[BoxConfig, StepConfig, Request, str], List[str]]] = {
    StepAction.run: docker_run_args,
    StepAction.exec: docker_exec_args,
}


def expand_vars(command: Sequence[str], name: str) -> List[str]:
    """Return a copy of command with the first :name in each token replaced."""
    return [token.replace(NAME_VAR, name, 1) for token in command]


def build_args(box: BoxConfig, step: StepConfig, req: Request, work_dir: str) -> List[str]:
    """Full argument list (without the docker binary) for one step."""
    builder = _BUILDERS.get(step.action)
    if builder is None:
        # unreachable with a validated config; `docker version` is harmless
        logger.warning(f"{req.id}: unknown step action {step.action!r}, running no-op")
        args = ["version"]
    else:
        args = builder(box, step, req, work_dir)
    args.extend(expand_vars(step.command, req.id))
    logger.debug(f"{req.id}: docker {' '.join(args)}")
    return args
