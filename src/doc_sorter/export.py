"""
Category Archive Export
=======================

Groups a finished batch by category and packs the original files into a zip
archive with one top-level folder per category.

Within a category, a document whose name is already taken gets its id
appended before the extension (``scan.png`` -> ``scan_doc_3.png``). Archive
construction is all-or-nothing: any failure raises `ExportError` and no
partial archive is returned or left on disk.
"""

from __future__ import annotations

import os
import tempfile
import zipfile
from io import BytesIO
from pathlib import Path, PurePosixPath
from typing import Mapping, Sequence

import structlog

from .errors import ExportError
from .models import DocumentStatus, ProcessedDocument

log = structlog.get_logger(__name__)

ERRORS_CATEGORY = "Errors"

# Fixed entry timestamp so identical input yields identical archives.
_ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)

Grouping = Mapping[str, Sequence[ProcessedDocument]]


def group_by_category(
    documents: Sequence[ProcessedDocument], include_errors: bool = False
) -> dict[str, list[ProcessedDocument]]:
    """
    Group documents by category, keeping first-appearance and batch order.

    Only completed documents are grouped. Errored documents go to an
    ``Errors`` folder when ``include_errors`` is set; skipped documents are
    never exported.
    """
    grouped: dict[str, list[ProcessedDocument]] = {}
    for document in documents:
        if document.status is DocumentStatus.COMPLETED:
            key = document.category
        elif include_errors and document.status is DocumentStatus.ERROR:
            key = ERRORS_CATEGORY
        else:
            continue
        grouped.setdefault(key, []).append(document)
    return grouped


def _entry_name(name: str) -> str:
    """Strip any directory components so entries stay inside their folder."""
    base = PurePosixPath(name.replace("\\", "/")).name
    if base in ("", ".", ".."):
        raise ExportError(f"Invalid document name {name!r}")
    return base


def _folder_name(category: str) -> str:
    if not category or category in (".", "..") or "/" in category or "\\" in category:
        raise ExportError(f"Invalid category name {category!r}")
    return category


def _dedupe(name: str, document: ProcessedDocument, taken: set[str]) -> str:
    if name not in taken:
        return name
    path = PurePosixPath(name)
    candidate = f"{path.stem}_{document.id}{path.suffix}"
    counter = 2
    while candidate in taken:
        candidate = f"{path.stem}_{document.id}_{counter}{path.suffix}"
        counter += 1
    return candidate


class ArchiveExporter:
    """Builds the category-organised zip archive."""

    def __init__(self, compression: int = zipfile.ZIP_DEFLATED):
        self.compression = compression

    def export(self, grouping: Grouping) -> bytes:
        """Return the archive bytes for a category -> documents grouping."""
        buffer = BytesIO()
        entries = 0
        try:
            with zipfile.ZipFile(buffer, "w", compression=self.compression) as archive:
                for category, documents in grouping.items():
                    folder = _folder_name(category)
                    taken: set[str] = set()
                    for document in documents:
                        name = _dedupe(_entry_name(document.original_name), document, taken)
                        taken.add(name)
                        info = zipfile.ZipInfo(f"{folder}/{name}", date_time=_ENTRY_DATE_TIME)
                        info.compress_type = self.compression
                        info.external_attr = 0o644 << 16
                        archive.writestr(info, document.source.data)
                        entries += 1
        except ExportError:
            raise
        except Exception as e:
            raise ExportError(f"Failed to build archive: {e}") from e

        log.info("Built archive", categories=len(grouping), entries=entries)
        return buffer.getvalue()

    def write(self, grouping: Grouping, path: str | Path) -> Path:
        """
        Write the archive to ``path`` atomically.

        The archive goes to a temporary file next to ``path`` first and is
        renamed into place only once complete.
        """
        path = Path(path)
        content = self.export(grouping)
        directory = path.parent
        try:
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=directory
            )
        except OSError as e:
            raise ExportError(f"Unable to create archive in {directory}: {e}") from e

        try:
            with os.fdopen(fd, "wb") as temp_file:
                temp_file.write(content)
            os.replace(temp_name, path)
        except OSError as e:
            try:
                os.unlink(temp_name)
            except FileNotFoundError:
                pass
            raise ExportError(f"Unable to write archive {path}: {e}") from e

        log.info("Wrote archive", path=str(path), size=len(content))
        return path
