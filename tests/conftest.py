"""
Pytest configuration.

The project uses a ``src/`` layout (package code lives in ``src/doc_sorter``).
Normally, developers run tests after installing the package (e.g.
``pip install -e .[test]``). When the package cannot be imported that way
(for example a hidden ``.pth`` file in a dot-prefixed virtualenv), ``src/`` is
added to ``sys.path`` so the tests still run from a plain checkout.
"""

from __future__ import annotations

import sys
from pathlib import Path


def _ensure_src_on_path() -> None:
    try:
        import doc_sorter  # noqa: F401
        return
    except ModuleNotFoundError:
        pass

    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    sys.path.insert(0, str(src_dir))


_ensure_src_on_path()

import os
from io import BytesIO

import pytest
from PIL import Image

from doc_sorter.config import Settings
from doc_sorter.models import FileKind, SourceFile


@pytest.fixture
def settings(mocker):
    """Settings loaded from a clean environment."""
    mocker.patch.dict(os.environ, {"MAX_RETRIES": "2"}, clear=True)
    return Settings()


def png_bytes(color: str = "black", size: tuple[int, int] = (40, 40)) -> bytes:
    """Encode a solid-colour PNG."""
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def image_source():
    def factory(name: str = "scan.png", color: str = "black") -> SourceFile:
        return SourceFile(name=name, data=png_bytes(color), kind=FileKind.IMAGE)

    return factory


@pytest.fixture
def pdf_source():
    def factory(name: str = "doc.pdf", text: str = "") -> SourceFile:
        data = b"%PDF-1.4\n" + text.encode("utf-8") + b"\n%%EOF"
        return SourceFile(name=name, data=data, kind=FileKind.PDF)

    return factory
