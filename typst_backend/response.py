from __future__ import annotations

import logging
import zlib
from typing import Iterator, Optional

from fastapi.responses import Response, StreamingResponse

from .config import OUTPUT_FILENAME

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024

PDF_HEADERS = {
    "Content-Disposition": f"attachment; filename={OUTPUT_FILENAME}",
    "Vary": "Accept-Encoding",
}


def accepts_gzip(accept_encoding: Optional[str]) -> bool:
    """True if the Accept-Encoding header lists gzip with a non-zero quality."""
    for item in (accept_encoding or "").split(","):
        coding, _, params = item.partition(";")
        if coding.strip().lower() not in ("gzip", "x-gzip"):
            continue
        quality = 1.0
        for param in params.split(";"):
            key, _, value = param.partition("=")
            if key.strip().lower() == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 0.0
        if quality > 0:
            return True
    return False


def gzip_chunks(data: bytes, chunk_size: int = _CHUNK_SIZE) -> Iterator[bytes]:
    # wbits=31 selects the gzip container.
    encoder = zlib.compressobj(6, zlib.DEFLATED, 31)
    for start in range(0, len(data), chunk_size):
        block = encoder.compress(data[start:start + chunk_size])
        if block:
            yield block
    yield encoder.flush()


def _stream_gzip(data: bytes) -> Iterator[bytes]:
    sent = 0
    try:
        for block in gzip_chunks(data):
            sent += len(block)
            yield block
    except GeneratorExit:
        # Headers and part of the body are already out; the status cannot change.
        logger.warning("Client stopped reading the PDF after %d compressed bytes", sent)
        raise


def send_pdf(data: bytes, use_gzip: bool) -> Response:
    if use_gzip:
        headers = {**PDF_HEADERS, "Content-Encoding": "gzip"}
        return StreamingResponse(_stream_gzip(data), media_type="application/pdf", headers=headers)
    return Response(content=data, media_type="application/pdf", headers=dict(PDF_HEADERS))
