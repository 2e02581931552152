"""
Error taxonomy for the document sorting pipeline.

Per-file problems (``ExtractionError``, ``ClassificationError``) are captured
by the pipeline and recorded on the affected document. ``ExportError`` is
raised to the caller of the export. ``InputValidationError`` is raised before
a file ever enters a batch.
"""


class DocSorterError(Exception):
    """Base exception for all doc-sorter errors."""


class InputValidationError(DocSorterError):
    """Raised when a file is neither a PDF nor an image."""


class ExtractionError(DocSorterError):
    """Raised when text cannot be extracted from a single file."""


class ClassificationError(DocSorterError):
    """Raised when extracted text cannot be classified."""


class ExportError(DocSorterError):
    """Raised when the category archive cannot be built or written."""


class InvalidTransitionError(DocSorterError):
    """Raised when a document status would move backwards or skip a step."""


class TaxonomyError(DocSorterError, ValueError):
    """Raised when a keyword taxonomy is malformed."""
