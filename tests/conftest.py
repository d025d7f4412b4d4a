"""
Pytest configuration and fixtures for the Typst PDF service tests.

The compiler is replaced by tests/fake_typst.py, run through the real
subprocess adapter, so no Typst binary is needed.
"""

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from fake_typst import build_pdf
from server import create_app
from typst_backend.config import Settings

FAKE_TYPST = Path(__file__).resolve().parent / "fake_typst.py"


@pytest.fixture
def fake_typst_command():
    return (sys.executable, str(FAKE_TYPST), "compile")


@pytest.fixture
def workspaces_root(tmp_path):
    # Not created up front: the first acquired workspace creates it.
    return tmp_path / "workspaces"


@pytest.fixture
def settings(fake_typst_command, workspaces_root):
    return Settings(
        compiler_command=fake_typst_command,
        compile_timeout_seconds=30,
        max_concurrent_compiles=2,
        workspaces_root=workspaces_root,
    )


@pytest.fixture
def client(settings):
    """Test client for an app wired to the fake compiler."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def make_pdf():
    return build_pdf
