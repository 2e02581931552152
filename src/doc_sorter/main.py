"""
doc-sorter
==========

Command-line entry point. Reads a batch of scanned documents (PDFs and
images), extracts their text, classifies each one by keyword heuristics and
writes a zip archive with one folder per category.

Engine and classification options come from environment variables (see
`doc_sorter.config.Settings`); the command line only names the input files
and the output archive.
"""

from __future__ import annotations

from pathlib import Path

import click
import structlog

from .classifier import KeywordClassifier
from .config import Settings, setup_libraries
from .errors import ExportError, InputValidationError
from .export import ArchiveExporter, group_by_category
from .extractor import OcrProvider, build_extractor, build_ocr_provider
from .logging_config import configure_logging
from .models import SourceFile
from .pipeline import BatchUpdate, ProcessingPipeline, summarize
from .taxonomy import Taxonomy

log = structlog.get_logger(__name__)


def load_sources(paths: list[Path]) -> list[SourceFile]:
    """Read the input files, skipping anything that is not a PDF or image."""
    sources = []
    for path in paths:
        try:
            sources.append(SourceFile.from_path(path))
        except InputValidationError as e:
            log.warning("Skipping unsupported file", path=str(path), reason=str(e))
    return sources


def build_pipeline(
    settings: Settings, provider: OcrProvider | None = None
) -> ProcessingPipeline:
    if settings.TAXONOMY_FILE:
        taxonomy = Taxonomy.from_json(settings.TAXONOMY_FILE)
    else:
        taxonomy = Taxonomy.default()
    classifier = KeywordClassifier(taxonomy, threshold=settings.CONFIDENCE_THRESHOLD)
    return ProcessingPipeline(build_extractor(settings, provider), classifier)


def _log_progress(update: BatchUpdate) -> None:
    if update.current_index is None or update.complete:
        return
    document = update.documents[update.current_index]
    log.info(
        "Progress",
        file=f"{update.current_index + 1}/{len(update.documents)}",
        name=document.original_name,
        status=document.status.value,
        progress=f"{update.progress:.0f}%",
    )


def _log_ocr_stats(provider: OcrProvider) -> None:
    """Log OCR model stats if the provider exposes them."""
    if not hasattr(provider, "get_stats"):
        return
    stats = provider.get_stats()
    if not stats or not stats.get("attempts"):
        return
    log.info("OCR stats", **stats)


@click.command()
@click.argument(
    "paths",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Archive to write (default: $ARCHIVE_NAME or sorted_documents.zip).",
)
@click.option(
    "--include-errors",
    is_flag=True,
    help="Put documents that failed to process in an 'Errors' folder.",
)
@click.option("--no-export", is_flag=True, help="Classify only; do not write an archive.")
def main(
    paths: tuple[Path, ...],
    output: Path | None,
    include_errors: bool,
    no_export: bool,
) -> None:
    """Sort scanned documents in PATHS into category folders."""
    try:
        settings = Settings()
        configure_logging(settings)
        setup_libraries(settings)
        provider = build_ocr_provider(settings)
        pipeline = build_pipeline(settings, provider)
    except ValueError as e:
        log.error("Configuration error", error=str(e))
        raise SystemExit(1)

    sources = load_sources(list(paths))
    if not sources:
        log.error("No PDF or image files to process")
        raise SystemExit(1)

    log.info(
        "Starting doc-sorter",
        files=len(sources),
        ocr_engine=settings.OCR_ENGINE,
        ocr_languages=settings.OCR_LANGUAGES,
        threshold=settings.CONFIDENCE_THRESHOLD,
    )

    documents = pipeline.process(sources, on_update=_log_progress)
    _log_ocr_stats(provider)
    summary = summarize(documents)
    log.info(
        "Processing complete",
        total=summary.total,
        successful=summary.successful,
        failed=summary.failed,
        categories=len(summary.categories),
    )

    grouping = group_by_category(documents, include_errors=include_errors)
    for category, grouped in grouping.items():
        click.echo(f"{category}: {len(grouped)}")
    for document in documents:
        if document.error:
            click.echo(f"error: {document.original_name}: {document.error}", err=True)

    if no_export:
        return
    if not grouping:
        log.warning("Nothing to export")
        return

    try:
        path = ArchiveExporter().write(grouping, output or Path(settings.ARCHIVE_NAME))
    except ExportError as e:
        log.error("Export failed", error=str(e))
        raise SystemExit(1)
    click.echo(f"Wrote {path}")


if __name__ == "__main__":
    main()
