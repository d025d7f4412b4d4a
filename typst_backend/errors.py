"""Error kinds raised by the pipeline stages.

Each error carries the HTTP status it maps to; the server turns any
``PipelineError`` into a plain-text response with that status.
"""
from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequest(PipelineError):
    """Malformed filename, unparseable form or invalid sidecar."""

    status_code = 400


class ResourceError(PipelineError):
    """Workspace creation or file read/write failure."""


class CompileError(PipelineError):
    """The compiler exited non-zero; ``diagnostics`` holds its stderr verbatim."""

    def __init__(self, cause: str, diagnostics: str = "") -> None:
        self.cause = cause
        self.diagnostics = diagnostics
        super().__init__(
            f"Failed to compile typst document: {cause}\n\nTypst Error Output:\n{diagnostics}"
        )


class MergeError(PipelineError):
    def __init__(self, cause: Optional[BaseException]) -> None:
        self.cause = cause
        super().__init__(f"Failed to merge PDFs: {cause}")
