"""
doc-sorter: OCR, keyword classification and category archiving for batches
of scanned documents.

- `taxonomy`: the category -> trigger phrase configuration
- `classifier`: keyword scoring with confidence
- `extractor`: image OCR and best-effort raw PDF text extraction
- `pipeline`: sequential batch processing with progress updates
- `export`: category grouping and zip archive export
"""

from .classifier import ClassificationResult, KeywordClassifier
from .errors import (
    ClassificationError,
    DocSorterError,
    ExportError,
    ExtractionError,
    InputValidationError,
    InvalidTransitionError,
    TaxonomyError,
)
from .export import ArchiveExporter, group_by_category
from .extractor import (
    ImageTextExtractor,
    KindDispatchExtractor,
    OcrProvider,
    OpenAIProvider,
    RawPdfTextExtractor,
    TesseractProvider,
    TextExtractor,
)
from .models import DocumentStatus, FileKind, ProcessedDocument, SourceFile
from .pipeline import BatchSummary, BatchUpdate, ProcessingPipeline, summarize
from .taxonomy import UNCLASSIFIED, Taxonomy

__all__ = [
    "ArchiveExporter",
    "BatchSummary",
    "BatchUpdate",
    "ClassificationError",
    "ClassificationResult",
    "DocSorterError",
    "DocumentStatus",
    "ExportError",
    "ExtractionError",
    "FileKind",
    "ImageTextExtractor",
    "InputValidationError",
    "InvalidTransitionError",
    "KeywordClassifier",
    "KindDispatchExtractor",
    "OcrProvider",
    "OpenAIProvider",
    "ProcessedDocument",
    "ProcessingPipeline",
    "RawPdfTextExtractor",
    "SourceFile",
    "TaxonomyError",
    "TesseractProvider",
    "TextExtractor",
    "UNCLASSIFIED",
    "Taxonomy",
    "group_by_category",
    "summarize",
]
