"""File helpers used to prepare a step's scratch directory."""
from __future__ import annotations

import glob
import os
import shutil
from pathlib import Path
from typing import Optional


def _ensure_within(root: Path, target: Path) -> None:
    root = root.resolve()
    resolved = target.resolve()
    if root != resolved and root not in resolved.parents:
        raise ValueError(f"path escapes directory: {target}")


def write_file(path: str | Path, content: str, perm: int = 0o444, *, root: Optional[str | Path] = None) -> None:
    """Write text content to path and set its permissions.

    When `root` is given, the path must resolve inside it.
    """
    target = Path(path)
    if root is not None:
        _ensure_within(Path(root), target)
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(content)
    os.chmod(target, perm)


def copy_files(pattern: str, dst_dir: str | Path) -> int:
    """Copy regular files matching a glob pattern into dst_dir.

    Files keep their base name. A destination that already exists is left
    untouched, so staged request files and files copied by an earlier step
    are never replaced. Returns the number of files copied; a pattern that
    matches nothing is not an error.
    """
    dst = Path(dst_dir)
    copied = 0
    for match in sorted(glob.glob(pattern)):
        src = Path(match)
        if not src.is_file():
            continue
        target = dst / src.name
        if target.exists():
            continue
        shutil.copy2(src, target)
        copied += 1
    return copied
