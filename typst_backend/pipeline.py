"""Request-scoped document pipeline.

One call to ``DocumentPipeline.run`` walks a request through

    Idle -> WorkspaceAcquired -> InputsClassified -> Compiled -> Assembled -> Sent -> Released

Sent means the finished response, with the whole PDF held in memory, has been
handed back to the server; streaming it to the client happens afterwards and
needs nothing from the workspace, which is why Released can follow at once.

Any stage failure raises a ``PipelineError`` and jumps straight to Released;
the workspace is removed on every path. Nothing is retried.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Sequence

from fastapi.responses import Response

from .compiler import Compiler
from .config import Settings
from .errors import PipelineError
from .inputs import UploadedFile, classify, resolve_target_name
from .merge import assemble
from .response import accepts_gzip, send_pdf
from .workspace import RequestWorkspace, request_workspace, write_sidecar, write_upload

logger = logging.getLogger(__name__)


class RequestState(str, enum.Enum):
    IDLE = "idle"
    WORKSPACE_ACQUIRED = "workspace_acquired"
    INPUTS_CLASSIFIED = "inputs_classified"
    COMPILED = "compiled"
    ASSEMBLED = "assembled"
    # Response built from in-memory bytes; not yet streamed.
    SENT = "sent"
    RELEASED = "released"


@dataclass
class FormInputs:
    uploads: Sequence[UploadedFile]
    sidecar: Optional[str] = None


# Reads the multipart body. Called only after the workspace exists; raises
# BadRequest if the body cannot be parsed.
FormReader = Callable[[], Awaitable[FormInputs]]


@dataclass
class RequestTrace:
    target: str
    state: RequestState = RequestState.IDLE
    workspace: Optional[str] = None
    history: list[RequestState] = field(default_factory=lambda: [RequestState.IDLE])

    def advance(self, state: RequestState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug("[%s] %s -> %s", self.workspace or "-", self.target, state.value)


class DocumentPipeline:
    def __init__(self, settings: Settings, compiler: Compiler) -> None:
        self.settings = settings
        self.compiler = compiler

    async def run(
        self,
        path_value: str,
        read_form: FormReader,
        accept_encoding: Optional[str],
        trace: Optional[RequestTrace] = None,
    ) -> Response:
        # Rejected before a workspace exists.
        target = resolve_target_name(path_value)
        trace = trace or RequestTrace(target=target)
        trace.target = target

        try:
            with request_workspace(self.settings.workspaces_root) as ws:
                trace.workspace = ws.name
                trace.advance(RequestState.WORKSPACE_ACQUIRED)
                return await self._process(ws, target, read_form, accept_encoding, trace)
        except PipelineError as exc:
            logger.warning(
                "Request for %s failed in state %s: %s (%d)",
                target, trace.state.value, type(exc).__name__, exc.status_code,
            )
            raise
        finally:
            if trace.state is not RequestState.IDLE:
                trace.advance(RequestState.RELEASED)

    async def _process(
        self,
        ws: RequestWorkspace,
        target: str,
        read_form: FormReader,
        accept_encoding: Optional[str],
        trace: RequestTrace,
    ) -> Response:
        form = await read_form()
        inputs = classify(target, form.uploads, form.sidecar)
        for upload in inputs.uploads:
            write_upload(ws, upload.name, upload.content)
        if inputs.sidecar is not None:
            write_sidecar(ws, inputs.sidecar)
        trace.advance(RequestState.INPUTS_CLASSIFIED)

        artifact = await self.compiler.compile(ws.root, target)
        trace.advance(RequestState.COMPILED)

        pdf_bytes = await assemble(ws.root, artifact, inputs.pre, inputs.post)
        trace.advance(RequestState.ASSEMBLED)

        response = send_pdf(pdf_bytes, accepts_gzip(accept_encoding))
        trace.advance(RequestState.SENT)
        logger.info(
            "Assembled %s (%d bytes, %d pre, %d post)",
            target, len(pdf_bytes), len(inputs.pre), len(inputs.post),
        )
        return response
