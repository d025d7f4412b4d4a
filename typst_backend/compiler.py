"""Compile the primary document with the external Typst CLI.

The rest of the pipeline only relies on the ``Compiler`` protocol: given the
workspace and the target name, return the path of the produced PDF or raise
``CompileError`` with the compiler's diagnostics.
"""
from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Protocol, Sequence

from .errors import CompileError

logger = logging.getLogger(__name__)


def artifact_name(target: str) -> str:
    """``main.typ`` -> ``main.pdf``; a name without extension gets ``.pdf`` appended."""
    return Path(target).with_suffix(".pdf").name


def artifact_path(workspace_root: Path, target: str) -> Path:
    return workspace_root / artifact_name(target)


class Compiler(Protocol):
    async def compile(self, workspace_root: Path, target: str) -> Path:
        ...


class TypstCompiler:
    def __init__(
        self,
        command: Sequence[str] = ("typst", "compile"),
        timeout_seconds: float = 120.0,
        max_concurrent: int = 4,
    ) -> None:
        if not command:
            raise ValueError("Compiler command must not be empty")
        self.command = tuple(command)
        self.timeout_seconds = timeout_seconds
        self.max_concurrent = max_concurrent
        self._slots = asyncio.Semaphore(max_concurrent)

    @property
    def executable(self) -> str:
        return self.command[0]

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    async def compile(self, workspace_root: Path, target: str) -> Path:
        """Run the compiler in workspace_root and return the derived PDF path.

        The path is not checked for existence. Raises CompileError on a
        non-zero exit, a missing executable or a timeout.
        """
        argv = [*self.command, target]
        async with self._slots:
            logger.info("Compiling %s in %s", target, workspace_root.name)
            try:
                proc = await asyncio.create_subprocess_exec(
                    *argv,
                    cwd=str(workspace_root),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as exc:
                logger.error("Compiler executable %r not found", self.executable)
                raise CompileError(f"executable not found: {self.executable}", str(exc)) from exc
            except OSError as exc:
                logger.error("Could not start compiler: %s", exc)
                raise CompileError(str(exc)) from exc

            try:
                _stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
                logger.error("Compiling %s timed out after %ss", target, self.timeout_seconds)
                raise CompileError(f"timed out after {self.timeout_seconds:g} seconds")
            except asyncio.CancelledError:
                # Client went away or the server is shutting down.
                proc.kill()
                await proc.wait()
                raise

        diagnostics = stderr.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            logger.error("Compiling %s failed (exit status %s):\n%s", target, proc.returncode, diagnostics)
            raise CompileError(f"exit status {proc.returncode}", diagnostics)

        return artifact_path(workspace_root, target)
