"""
Batch Processing Pipeline
=========================

This module defines the `ProcessingPipeline` class, which runs a batch of
input files through text extraction and classification and produces one
`ProcessedDocument` per file.

Files are processed strictly one after another, in input order: the OCR
engine is a blocking external call that is not safe to share between
concurrent invocations. A failing file is recorded with status ERROR and the
batch moves on to the next file; a file is never dropped from the result.

Observers register an ``on_update`` callback. Every update carries a full,
independent snapshot of the batch, so a renderer can simply redraw from the
latest update it received.
"""

from __future__ import annotations

import datetime as dt
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

import structlog

from .classifier import KeywordClassifier
from .errors import DocSorterError, ExtractionError
from .extractor import TextExtractor
from .models import DocumentStatus, ProcessedDocument, SourceFile

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BatchUpdate:
    """A snapshot of the batch, emitted after every status change."""

    documents: tuple[ProcessedDocument, ...]
    current_index: int | None
    progress: float
    complete: bool = False


@dataclass(frozen=True)
class BatchSummary:
    total: int
    successful: int
    failed: int
    skipped: int
    categories: tuple[str, ...]


UpdateCallback = Callable[[BatchUpdate], None]


class ProcessingPipeline:
    """
    Orchestrates extraction and classification for a batch of files.
    """

    def __init__(self, extractor: TextExtractor, classifier: KeywordClassifier):
        self.extractor = extractor
        self.classifier = classifier

    def process(
        self,
        files: Sequence[SourceFile],
        on_update: UpdateCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> list[ProcessedDocument]:
        """
        Process every file in order and return the final batch.

        If ``cancel`` is set, the file currently being processed still runs to
        completion; every file after it is marked SKIPPED.
        """
        documents = [ProcessedDocument.create(i, source) for i, source in enumerate(files)]
        log.info("Processing batch", file_count=len(documents))
        start_time = dt.datetime.now()
        self._emit(on_update, documents, None)

        for index, document in enumerate(documents):
            if cancel is not None and cancel.is_set():
                self._skip_remaining(documents[index:])
                self._emit(on_update, documents, index)
                break

            document.mark_processing()
            self._emit(on_update, documents, index)
            self._process_document(document)
            self._emit(on_update, documents, index)

        summary = summarize(documents)
        elapsed_time = (dt.datetime.now() - start_time).total_seconds()
        log.info(
            "Finished processing batch",
            total=summary.total,
            successful=summary.successful,
            failed=summary.failed,
            skipped=summary.skipped,
            elapsed_time=f"{elapsed_time:.2f}s",
        )
        self._emit(on_update, documents, None, complete=True)
        return documents

    def _process_document(self, document: ProcessedDocument) -> None:
        """Extract and classify one document, recording any failure on it."""
        log.info("Processing document", doc_id=document.id, name=document.original_name)
        start_time = dt.datetime.now()
        try:
            text = self.extractor.extract(document.source)
            if not isinstance(text, str):
                raise ExtractionError(
                    f"Extractor returned {type(text).__name__} instead of text"
                )
            result = self.classifier.classify(text)
        except DocSorterError as e:
            log.error(
                "Failed to process document",
                doc_id=document.id,
                name=document.original_name,
                error=str(e),
            )
            document.mark_failed(str(e) or type(e).__name__)
            return
        except Exception as e:
            log.exception(
                "Unexpected error processing document",
                doc_id=document.id,
                name=document.original_name,
            )
            document.mark_failed(str(e) or type(e).__name__)
            return

        document.mark_completed(text, result.category, result.confidence)
        elapsed_time = (dt.datetime.now() - start_time).total_seconds()
        log.info(
            "Classified document",
            doc_id=document.id,
            category=result.category,
            confidence=round(result.confidence, 3),
            chars=len(text),
            elapsed_time=f"{elapsed_time:.2f}s",
        )

    @staticmethod
    def _skip_remaining(documents: Iterable[ProcessedDocument]) -> None:
        skipped = 0
        for document in documents:
            document.mark_skipped()
            skipped += 1
        log.warning("Batch cancelled; skipping remaining documents", skipped=skipped)

    @staticmethod
    def _emit(
        on_update: UpdateCallback | None,
        documents: list[ProcessedDocument],
        current_index: int | None,
        complete: bool = False,
    ) -> None:
        if on_update is None:
            return
        update = BatchUpdate(
            documents=tuple(document.snapshot() for document in documents),
            current_index=current_index,
            progress=_progress(documents),
            complete=complete,
        )
        try:
            on_update(update)
        except Exception:
            # Observers are fire-and-forget; a broken renderer must not stop the batch.
            log.exception("Update callback failed", current_index=current_index)


def _progress(documents: Sequence[ProcessedDocument]) -> float:
    """Percentage of documents that reached a terminal status."""
    if not documents:
        return 100.0
    done = sum(1 for document in documents if document.status.is_terminal)
    return done / len(documents) * 100


def summarize(documents: Sequence[ProcessedDocument]) -> BatchSummary:
    """Count outcomes and list the categories found among completed documents."""
    categories = dict.fromkeys(
        document.category
        for document in documents
        if document.status is DocumentStatus.COMPLETED
    )
    return BatchSummary(
        total=len(documents),
        successful=sum(1 for d in documents if d.status is DocumentStatus.COMPLETED),
        failed=sum(1 for d in documents if d.status is DocumentStatus.ERROR),
        skipped=sum(1 for d in documents if d.status is DocumentStatus.SKIPPED),
        categories=tuple(categories),
    )
