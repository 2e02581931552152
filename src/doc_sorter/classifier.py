"""
Document Classification Module
==============================

Keyword-based classification of extracted document text. Every category is
scored by the fraction of its trigger phrases found in the text; the best
category wins if it clears the confidence threshold, otherwise the document
is ``Unclassified``.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ClassificationError
from .taxonomy import UNCLASSIFIED, Taxonomy

DEFAULT_CONFIDENCE_THRESHOLD = 0.1


@dataclass(frozen=True)
class ClassificationResult:
    category: str
    confidence: float


UNCLASSIFIED_RESULT = ClassificationResult(UNCLASSIFIED, 0.0)


class KeywordClassifier:
    """
    Scores text against a `Taxonomy` and picks the winning category.

    The classifier holds no mutable state; `classify` is deterministic for a
    given taxonomy and text.
    """

    def __init__(
        self,
        taxonomy: Taxonomy | None = None,
        threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    ):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be between 0 and 1")
        self.taxonomy = taxonomy or Taxonomy.default()
        self.threshold = threshold

    def scores(self, text: str) -> dict[str, float]:
        """Return each category's confidence, in taxonomy order."""
        if not isinstance(text, str):
            raise ClassificationError(
                f"Expected text to classify, got {type(text).__name__}"
            )
        haystack = text.lower()
        result = {}
        for category, phrases in self.taxonomy:
            matches = sum(1 for phrase in phrases if phrase in haystack)
            result[category] = matches / len(phrases)
        return result

    def classify(self, text: str) -> ClassificationResult:
        best = UNCLASSIFIED_RESULT
        for category, confidence in self.scores(text).items():
            # Strictly greater: ties keep the earlier category.
            if confidence > best.confidence:
                best = ClassificationResult(category, confidence)

        if best.confidence < self.threshold:
            return UNCLASSIFIED_RESULT
        return best
