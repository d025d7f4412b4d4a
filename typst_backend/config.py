from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


DEFAULT_PORT = 8080
DEFAULT_COMPILER_COMMAND = "typst compile"
# Size limit for a non-file multipart field such as the JSON sidecar.
DEFAULT_MAX_FIELD_BYTES = 32 * 1024 * 1024

# Name of the route segment; also rejected as a target name.
ROUTE_SEGMENT = "typst"

# Workspace directory prefix. The stale sweep only touches directories with it.
WORKSPACE_PREFIX = "typst-"

SIDECAR_FIELD = "data"
SIDECAR_FILENAME = "data.json"
MERGED_FILENAME = "merged.pdf"
OUTPUT_FILENAME = "output.pdf"

PRE_PREFIX = "pre_"
POST_PREFIX = "post_"


@dataclass(frozen=True)
class Settings:
    """Startup configuration, read once at boot and handed to the app factory."""

    port: int = DEFAULT_PORT
    host: str = "0.0.0.0"
    compiler_command: tuple[str, ...] = tuple(shlex.split(DEFAULT_COMPILER_COMMAND))
    compile_timeout_seconds: float = 120.0
    max_concurrent_compiles: int = 4
    # None means the OS temp dir. A configured root is also swept at startup.
    workspaces_root: Optional[Path] = None
    stale_workspace_hours: float = 6.0
    max_field_bytes: int = DEFAULT_MAX_FIELD_BYTES
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ

        root_raw = env.get("TYPST_WORKSPACES_ROOT")
        workspaces_root = Path(root_raw).resolve() if root_raw and root_raw.strip() else None

        command = shlex.split(env.get("TYPST_COMMAND") or DEFAULT_COMPILER_COMMAND)
        if not command:
            raise ValueError("TYPST_COMMAND must not be empty")

        return cls(
            port=int(env.get("PORT") or DEFAULT_PORT),
            host=env.get("HOST") or "0.0.0.0",
            compiler_command=tuple(command),
            compile_timeout_seconds=float(env.get("TYPST_COMPILE_TIMEOUT_SECONDS", "120")),
            # At least one compile must be able to run.
            max_concurrent_compiles=max(1, int(env.get("TYPST_MAX_CONCURRENT_COMPILES", "4"))),
            workspaces_root=workspaces_root,
            stale_workspace_hours=float(env.get("TYPST_STALE_WORKSPACE_HOURS", "6")),
            max_field_bytes=int(env.get("TYPST_MAX_FIELD_BYTES") or DEFAULT_MAX_FIELD_BYTES),
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
