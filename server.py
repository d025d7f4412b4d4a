from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from typst_backend.compiler import Compiler, TypstCompiler
from typst_backend.config import SIDECAR_FIELD, Settings
from typst_backend.errors import BadRequest, PipelineError
from typst_backend.inputs import UploadedFile
from typst_backend.pipeline import DocumentPipeline, FormInputs
from typst_backend.workspace import sweep_stale_workspaces

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    status: str = "ok"
    compiler_available: bool


class MultipartBody:
    """Lazily parsed multipart body of one request; close() releases spooled files."""

    def __init__(self, request: Request, max_field_bytes: int) -> None:
        self._request = request
        self._max_field_bytes = max_field_bytes
        self._form: Optional[FormData] = None

    async def read(self) -> FormInputs:
        content_type = self._request.headers.get("content-type", "")
        if not content_type.lower().startswith("multipart/form-data"):
            raise BadRequest("Failed to parse form")
        try:
            self._form = await self._request.form(max_part_size=self._max_field_bytes)
        except (MultiPartException, StarletteHTTPException, KeyError, ValueError) as exc:
            raise BadRequest("Failed to parse form") from exc

        uploads: list[UploadedFile] = []
        sidecar: Optional[str] = None
        for key, value in self._form.multi_items():
            if isinstance(value, UploadFile):
                # A part without a file name is a plain field, not an upload.
                if value.filename:
                    uploads.append(UploadedFile(name=value.filename, content=value.file))
            elif key == SIDECAR_FIELD and sidecar is None:
                sidecar = value
        return FormInputs(uploads=uploads, sidecar=sidecar)

    async def close(self) -> None:
        if self._form is not None:
            await self._form.close()


def create_app(settings: Settings, compiler: Optional[Compiler] = None) -> FastAPI:
    compiler = compiler or TypstCompiler(
        command=settings.compiler_command,
        timeout_seconds=settings.compile_timeout_seconds,
        max_concurrent=settings.max_concurrent_compiles,
    )
    pipeline = DocumentPipeline(settings, compiler)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Only a dedicated root is swept; the shared system temp dir is left alone.
        if settings.workspaces_root is not None:
            sweep_stale_workspaces(settings.workspaces_root, settings.stale_workspace_hours * 3600.0)
        logger.info(
            "Serving typst compiles with %r (timeout %ss, max %d concurrent)",
            " ".join(settings.compiler_command),
            settings.compile_timeout_seconds,
            settings.max_concurrent_compiles,
        )
        yield

    app = FastAPI(title="Typst PDF Service", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.pipeline = pipeline

    @app.exception_handler(PipelineError)
    async def _pipeline_error(request: Request, exc: PipelineError) -> PlainTextResponse:
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.get("/healthz", response_model=HealthResponse)
    async def healthcheck() -> HealthResponse:
        is_available = getattr(compiler, "is_available", None)
        return HealthResponse(compiler_available=bool(is_available()) if is_available else True)

    @app.post("/typst", include_in_schema=False)
    async def compile_without_filename() -> Response:
        raise BadRequest("Invalid filename")

    @app.post("/typst/{filename:path}")
    async def compile_typst(filename: str, request: Request) -> Response:
        """Compile the uploaded document named by the path and return the PDF.

        Multipart file parts are written to a fresh workspace under their own
        names; ``pre_*.pdf`` and ``post_*.pdf`` parts are merged around the
        compiled document in name order. An optional ``data`` field holding a
        JSON object is stored as ``data.json``.
        """
        body = MultipartBody(request, settings.max_field_bytes)
        try:
            return await pipeline.run(filename, body.read, request.headers.get("accept-encoding"))
        finally:
            await body.close()

    return app


settings = Settings.from_env()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = create_app(settings)


if __name__ == "__main__":
    # Convenience: python server.py
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, reload=False)
