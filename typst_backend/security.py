"""Name checks for everything that ends up on disk inside a request workspace.

Uploaded names and the compile target are caller-controlled and are used
verbatim as POSIX paths, so the only rules are the ones that keep a write
inside the workspace directory.
"""
from __future__ import annotations

from pathlib import Path, PurePosixPath


def is_target_name(name: str) -> bool:
    """A compile target is one path segment: no separators, not ``.`` or ``..``."""
    if not isinstance(name, str) or not name:
        return False
    if "/" in name or "\\" in name or "\x00" in name:
        return False
    return name not in (".", "..")


def is_workspace_relative(name: str) -> bool:
    """True for a file name or relative sub-path that cannot leave the workspace.

    ``chapter:1.typ`` and ``images/logo.png`` pass; absolute paths, ``..``
    segments, backslashes and NUL bytes do not.
    """
    if not isinstance(name, str) or not name.strip():
        return False
    if name.startswith("/") or "\\" in name or "\x00" in name:
        return False
    parts = PurePosixPath(name).parts
    if not parts or any(p in ("..", ".") for p in parts):
        return False
    return True


def resolve_in_workspace(workspace_root: Path, name: str) -> Path:
    """Absolute path of name under workspace_root.

    Raises ValueError if the resolved path is the workspace itself or lies
    outside it, e.g. through ``..`` or a symlink.
    """
    root = workspace_root.resolve()
    resolved = (root / name).resolve()
    if root not in resolved.parents:
        raise ValueError(f"{name!r} resolves outside the workspace")
    return resolved
