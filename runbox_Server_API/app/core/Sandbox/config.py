# config.py
# Description: Declarative sandbox configuration (boxes, steps, commands) and its loader
#
# Imports
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional
#
# Third-party Imports
import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator, model_validator
#
#######################################################################################################################
#
# Configuration Schema


class StepAction(str, Enum):
    """How a step reaches its container."""

    run = "run"    # start a fresh container
    exec = "exec"  # attach to an already running container named after the box


class BoxConfig(BaseModel):
    """Resource envelope and isolation policy of a sandbox container."""
    image: str
    runtime: str = "runc"
    cpu: int = 1
    memory: int = 64  # megabytes
    network: str = "none"
    writable: bool = False
    # %s is replaced with the scratch directory
    volume: str = "%s:/sandbox:ro"
    tmpfs: List[str] = Field(default_factory=list)
    cap_add: List[str] = Field(default_factory=list)
    cap_drop: List[str] = Field(default_factory=lambda: ["all"])
    ulimit: List[str] = Field(default_factory=lambda: ["nofile=96"])
    nproc: int = 64
    storage: str = ""
    versions: List[str] = Field(default_factory=list)
    # glob patterns copied into every scratch directory
    files: List[str] = Field(default_factory=list)

    @field_validator("volume")
    @classmethod
    def volume_has_placeholder(cls, v: str) -> str:
        if v.count("%s") != 1:
            raise ValueError("volume must contain exactly one %s placeholder")
        return v


class StepConfig(BaseModel):
    """One docker invocation within a command."""
    box: str
    version: str = ""
    user: str = "sandbox"
    action: StepAction = StepAction.run
    stdin: bool = False
    command: List[str]
    timeout: float = 5.0  # seconds
    noutput: int = 4096  # bytes per stream

    @field_validator("command")
    @classmethod
    def command_not_empty(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("step command must not be empty")
        return v

    @field_validator("timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("step timeout must be positive")
        return v


class CommandConfig(BaseModel):
    """A pipeline of steps: optional setup, run steps, optional cleanup."""
    engine: str = "docker"
    # Name of the file an unnamed request file is written as.
    # Empty means request files are not staged on disk.
    entry: str = ""
    before: Optional[StepConfig] = None
    steps: List[StepConfig]
    after: Optional[StepConfig] = None

    @field_validator("steps")
    @classmethod
    def steps_not_empty(cls, v: List[StepConfig]) -> List[StepConfig]:
        if not v:
            raise ValueError("command must define at least one step")
        return v

    def all_steps(self) -> List[StepConfig]:
        steps = list(self.steps)
        if self.before is not None:
            steps.insert(0, self.before)
        if self.after is not None:
            steps.append(self.after)
        return steps


class SandboxConfig(BaseModel):
    boxes: Dict[str, BoxConfig] = Field(default_factory=dict)
    # sandbox name -> command name -> command
    commands: Dict[str, Dict[str, CommandConfig]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def steps_reference_known_boxes(self) -> "SandboxConfig":
        for sandbox, commands in self.commands.items():
            for name, cmd in commands.items():
                for step in cmd.all_steps():
                    if step.box not in self.boxes:
                        raise ValueError(f"command {sandbox}.{name}: unknown box {step.box!r}")
        return self

    def command(self, sandbox: str, name: str) -> Optional[CommandConfig]:
        return self.commands.get(sandbox, {}).get(name)

    def box_for(self, step: StepConfig) -> BoxConfig:
        return self.boxes[step.box]


#######################################################################################################################
#
# Loading

_CONFIG_SUFFIXES = (".yaml", ".yml", ".json")


def _read_mapping(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        # JSON documents are valid YAML
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def _find_boxes_file(config_dir: Path) -> Optional[Path]:
    for suffix in _CONFIG_SUFFIXES:
        candidate = config_dir / f"boxes{suffix}"
        if candidate.exists():
            return candidate
    return None


def load_sandbox_config(config_dir: str | Path) -> SandboxConfig:
    """Load boxes and commands from a configuration directory.

    Layout:
        <config_dir>/boxes.yaml           box name -> box settings
        <config_dir>/commands/<sb>.yaml   command name -> command, for sandbox <sb>
    """
    root = Path(config_dir)
    if not root.is_dir():
        raise FileNotFoundError(f"sandbox config directory not found: {root}")

    boxes: dict = {}
    boxes_file = _find_boxes_file(root)
    if boxes_file is not None:
        boxes = _read_mapping(boxes_file)
    else:
        logger.warning(f"No boxes file in {root}; every command will fail validation")

    commands: dict = {}
    commands_dir = root / "commands"
    if commands_dir.is_dir():
        for path in sorted(commands_dir.iterdir()):
            if path.suffix not in _CONFIG_SUFFIXES or not path.is_file():
                continue
            commands[path.stem] = _read_mapping(path)

    cfg = SandboxConfig.model_validate({"boxes": boxes, "commands": commands})
    logger.info(
        f"Loaded sandbox config from {root}: {len(cfg.boxes)} boxes, "
        f"{sum(len(c) for c in cfg.commands.values())} commands"
    )
    return cfg

#
# End of config.py
#######################################################################################################################
