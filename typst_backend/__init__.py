"""Request-scoped Typst compile-and-merge pipeline.

This package keeps the FastAPI route handler in server.py thin:
- per-request workspace lifecycle (always removed when the request ends)
- classification of uploads into the compile target and pre/post fragments
- the Typst compiler adapter and the pypdf merge step
- gzip negotiation for the PDF response

Uploaded file names are written verbatim into the workspace, so every name is
checked to stay inside it before anything touches the disk.
"""
