"""
Batch data model: the input file handle and the per-document record the
pipeline fills in.
"""

from __future__ import annotations

import dataclasses
import enum
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path

from .errors import InputValidationError, InvalidTransitionError
from .taxonomy import UNCLASSIFIED

# Extensions the stdlib mimetypes table may not know about.
_EXTRA_IMAGE_SUFFIXES = {".jfif", ".webp", ".heic"}


class FileKind(str, enum.Enum):
    PDF = "pdf"
    IMAGE = "image"

    @classmethod
    def from_mime_type(cls, mime_type: str | None) -> FileKind:
        mime_type = (mime_type or "").lower()
        if mime_type == "application/pdf":
            return cls.PDF
        if mime_type.startswith("image/"):
            return cls.IMAGE
        raise InputValidationError(
            f"Unsupported file type {mime_type or '<unknown>'!r}; "
            "only PDFs and images are accepted"
        )

    @classmethod
    def from_name(cls, name: str) -> FileKind:
        suffix = Path(name).suffix.lower()
        if suffix in _EXTRA_IMAGE_SUFFIXES:
            return cls.IMAGE
        mime_type, _ = mimetypes.guess_type(name)
        try:
            return cls.from_mime_type(mime_type)
        except InputValidationError:
            raise InputValidationError(
                f"Unsupported file {name!r}; only PDFs and images are accepted"
            ) from None


@dataclass(frozen=True)
class SourceFile:
    """The original file: display name, raw bytes and kind. Never mutated."""

    name: str
    data: bytes = field(repr=False)
    kind: FileKind

    @property
    def byte_length(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path) -> SourceFile:
        path = Path(path)
        kind = FileKind.from_name(path.name)
        return cls(name=path.name, data=path.read_bytes(), kind=kind)


class DocumentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (
            DocumentStatus.COMPLETED,
            DocumentStatus.ERROR,
            DocumentStatus.SKIPPED,
        )


# Set once by __init__; later assignment raises FrozenInstanceError.
_IDENTITY_FIELDS = frozenset({"id", "source", "original_name"})


@dataclass
class ProcessedDocument:
    """
    One document of a batch.

    ``id``, ``source`` and ``original_name`` are fixed at creation. The other
    fields change only through the ``mark_*`` methods, which enforce the
    status order PENDING -> PROCESSING -> COMPLETED | ERROR (or PENDING ->
    SKIPPED when a batch is cancelled).
    """

    id: str
    source: SourceFile = field(repr=False)
    original_name: str
    category: str = UNCLASSIFIED
    confidence: float = 0.0
    extracted_text: str = field(default="", repr=False)
    status: DocumentStatus = DocumentStatus.PENDING
    error: str = ""

    def __setattr__(self, name, value):
        if name in _IDENTITY_FIELDS and name in self.__dict__:
            raise dataclasses.FrozenInstanceError(f"cannot assign to field {name!r}")
        super().__setattr__(name, value)

    @classmethod
    def create(cls, index: int, source: SourceFile) -> ProcessedDocument:
        return cls(id=f"doc_{index}", source=source, original_name=source.name)

    def _require(self, expected: DocumentStatus, target: DocumentStatus) -> None:
        if self.status is not expected:
            raise InvalidTransitionError(
                f"{self.id}: cannot move from {self.status.value} to {target.value}"
            )

    def mark_processing(self) -> None:
        self._require(DocumentStatus.PENDING, DocumentStatus.PROCESSING)
        self.status = DocumentStatus.PROCESSING

    def mark_completed(self, text: str, category: str, confidence: float) -> None:
        self._require(DocumentStatus.PROCESSING, DocumentStatus.COMPLETED)
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"confidence out of range: {confidence}")
        self.extracted_text = text
        self.category = category
        self.confidence = confidence
        self.status = DocumentStatus.COMPLETED

    def mark_failed(self, reason: str) -> None:
        self._require(DocumentStatus.PROCESSING, DocumentStatus.ERROR)
        self.error = reason
        self.status = DocumentStatus.ERROR

    def mark_skipped(self) -> None:
        self._require(DocumentStatus.PENDING, DocumentStatus.SKIPPED)
        self.status = DocumentStatus.SKIPPED

    def snapshot(self) -> ProcessedDocument:
        """Return an independent copy (the source bytes are shared, read-only)."""
        return dataclasses.replace(self)
