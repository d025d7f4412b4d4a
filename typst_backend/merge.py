from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from pypdf import PdfWriter
from starlette.concurrency import run_in_threadpool

from .config import MERGED_FILENAME
from .errors import MergeError, ResourceError

logger = logging.getLogger(__name__)


def build_merge_plan(
    workspace_root: Path,
    artifact: Path,
    pre: Sequence[str],
    post: Sequence[str],
) -> list[Path]:
    """Pre fragments, then the compiled artifact, then post fragments."""
    return [
        *(workspace_root / name for name in pre),
        artifact,
        *(workspace_root / name for name in post),
    ]


def merge_pdfs(paths: Sequence[Path], output: Path) -> Path:
    """Concatenate paths, in order, into output."""
    writer = PdfWriter()
    try:
        for path in paths:
            writer.append(str(path))
        writer.write(str(output))
    except Exception as exc:  # any engine failure fails the merge
        raise MergeError(exc) from exc
    finally:
        writer.close()
    return output


def _read_pdf(path: Path, failure: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        logger.error("%s (%s): %s", failure, path.name, exc)
        raise ResourceError(failure) from exc


async def assemble(
    workspace_root: Path,
    artifact: Path,
    pre: Sequence[str],
    post: Sequence[str],
) -> bytes:
    """Return the final PDF bytes for the request.

    Without fragments the compiled artifact is returned as is and the merge
    engine is never touched.
    """
    if not pre and not post:
        return _read_pdf(artifact, "Failed to read generated PDF")

    plan = build_merge_plan(workspace_root, artifact, pre, post)
    output = workspace_root / MERGED_FILENAME
    logger.info(
        "Merging %d pre + compiled + %d post PDF(s) in %s",
        len(pre), len(post), workspace_root.name,
    )
    try:
        await run_in_threadpool(merge_pdfs, plan, output)
    except MergeError as exc:
        logger.error("Merge failed in %s: %s", workspace_root.name, exc.cause)
        raise
    return _read_pdf(output, "Failed to read merged PDF")
