from __future__ import annotations

import logging
import shutil
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from .config import SIDECAR_FILENAME, WORKSPACE_PREFIX
from .errors import BadRequest, ResourceError
from .security import resolve_in_workspace

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


@dataclass
class RequestWorkspace:
    root: Path
    created_at: float = field(default_factory=time.time)
    # Names written so far, for overwrite detection.
    written: set[str] = field(default_factory=set)

    @property
    def name(self) -> str:
        return self.root.name

    def path_for(self, name: str) -> Path:
        try:
            return resolve_in_workspace(self.root, name)
        except ValueError as exc:
            raise BadRequest(f"Invalid file name: {name}") from exc


def acquire_workspace(root: Optional[Path] = None) -> RequestWorkspace:
    """Create a uniquely named, empty directory for one request."""
    try:
        if root is not None:
            root.mkdir(parents=True, exist_ok=True)
        path = tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=str(root) if root else None)
    except OSError as exc:
        logger.error("Workspace creation failed: %s", exc)
        raise ResourceError("Failed to create temporary directory") from exc
    ws = RequestWorkspace(root=Path(path).resolve())
    logger.debug("Acquired workspace %s", ws.name)
    return ws


def release_workspace(ws: RequestWorkspace) -> None:
    # Runs on every exit path; the response is already decided, so only log.
    try:
        shutil.rmtree(ws.root)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove workspace %s: %s", ws.name, exc)
    else:
        logger.debug("Released workspace %s", ws.name)


@contextmanager
def request_workspace(root: Optional[Path] = None) -> Iterator[RequestWorkspace]:
    ws = acquire_workspace(root)
    try:
        yield ws
    finally:
        release_workspace(ws)


def write_upload(ws: RequestWorkspace, name: str, source: BinaryIO) -> Path:
    """Copy one uploaded file into the workspace under its declared name.

    A second upload with the same name replaces the first.
    """
    dest = ws.path_for(name)
    if name in ws.written:
        logger.warning("Upload %r overwrites an earlier file with the same name", name)
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        with dest.open("wb") as buffer:
            while chunk := source.read(_CHUNK_SIZE):
                buffer.write(chunk)
    except OSError as exc:
        logger.error("Saving upload %r failed: %s", name, exc)
        raise ResourceError("Failed to save file") from exc
    ws.written.add(name)
    return dest


def write_sidecar(ws: RequestWorkspace, payload: str) -> Path:
    dest = ws.path_for(SIDECAR_FILENAME)
    if SIDECAR_FILENAME in ws.written:
        logger.warning("Sidecar field replaces uploaded %s", SIDECAR_FILENAME)
    try:
        dest.write_bytes(payload.encode("utf-8"))
    except OSError as exc:
        logger.error("Saving sidecar failed: %s", exc)
        raise ResourceError("Failed to save JSON data") from exc
    ws.written.add(SIDECAR_FILENAME)
    return dest


def sweep_stale_workspaces(root: Path, max_age_seconds: float, now: Optional[float] = None) -> int:
    """Delete workspace directories left behind under root by a previous process.

    Only directories named with the workspace prefix and older than
    max_age_seconds (by mtime) are removed. Returns the number deleted.
    """
    if not root.exists():
        return 0

    now = time.time() if now is None else now
    deleted = 0
    for child in root.iterdir():
        if not child.is_dir() or not child.name.startswith(WORKSPACE_PREFIX):
            continue
        try:
            age = now - child.stat().st_mtime
        except OSError:
            continue
        if age > max(0.0, max_age_seconds):
            shutil.rmtree(child, ignore_errors=True)
            deleted += 1
    if deleted:
        logger.info("Removed %d stale workspace(s) under %s", deleted, root)
    return deleted
