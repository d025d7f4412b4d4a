"""Classify the multipart inputs of one request.

Decides the compile target, validates the JSON sidecar and picks the ``pre_``
and ``post_`` fragment sets out of the uploaded file names. Every upload is
still written to the workspace; classification only affects merge order.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import BinaryIO, Iterable, Optional, Sequence

from .config import POST_PREFIX, PRE_PREFIX, ROUTE_SEGMENT
from .errors import BadRequest
from .security import is_target_name, is_workspace_relative


@dataclass(frozen=True)
class UploadedFile:
    name: str
    content: BinaryIO


@dataclass(frozen=True)
class ClassifiedInputs:
    target: str
    uploads: tuple[UploadedFile, ...] = ()
    sidecar: Optional[str] = None
    pre: list[str] = field(default_factory=list)
    post: list[str] = field(default_factory=list)

    @property
    def has_fragments(self) -> bool:
        return bool(self.pre or self.post)


def resolve_target_name(path_value: str) -> str:
    """Return the final segment of the request path as the compile target.

    Raises BadRequest for an empty name or the bare route segment.
    """
    name = PurePosixPath(path_value or "").name
    if not name or name == ROUTE_SEGMENT or not is_target_name(name):
        raise BadRequest("Invalid filename")
    return name


def parse_sidecar(raw: Optional[str]) -> Optional[str]:
    """Validate the ``data`` form field.

    The text must be a JSON object; it is returned unchanged so it can be
    stored verbatim. An absent or empty field means no sidecar.
    """
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise BadRequest("Invalid JSON data") from exc
    if not isinstance(parsed, dict):
        raise BadRequest("Invalid JSON data")
    return raw


def collect_fragments(names: Iterable[str], prefix: str) -> list[str]:
    # Plain string order: "pre_10.pdf" sorts before "pre_2.pdf".
    return sorted(
        name for name in set(names)
        if name.startswith(prefix) and name.lower().endswith(".pdf")
    )


def classify(target: str, uploads: Sequence[UploadedFile], raw_sidecar: Optional[str]) -> ClassifiedInputs:
    for upload in uploads:
        if not is_workspace_relative(upload.name):
            raise BadRequest(f"Invalid file name: {upload.name}")

    sidecar = parse_sidecar(raw_sidecar)
    names = [upload.name for upload in uploads]
    return ClassifiedInputs(
        target=target,
        uploads=tuple(uploads),
        sidecar=sidecar,
        pre=collect_fragments(names, PRE_PREFIX),
        post=collect_fragments(names, POST_PREFIX),
    )
