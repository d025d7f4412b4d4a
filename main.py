"""
Container entrypoint.
Imports the FastAPI app from server.py so uvicorn can find it as main:app,
and runs it on $PORT when executed directly.
"""

from server import app, settings

__all__ = ["app", "run"]


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
