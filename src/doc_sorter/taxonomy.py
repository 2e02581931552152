"""
Keyword Taxonomy
================

The taxonomy maps each category to the trigger phrases that identify it.
It is an explicit ordered sequence of ``(category, phrases)`` pairs: the
order is the classifier's tie-break order, so the earlier category wins
when two categories score the same confidence.

Phrases are matched as case-insensitive substrings, never as tokens, and may
be written in any script (the stock taxonomy mixes English and Hindi).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Iterator

from .errors import TaxonomyError

UNCLASSIFIED = "Unclassified"

# Stock categories, in tie-break order.
DEFAULT_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Aadhar", ("aadhar", "uidai", "govt of india", "government of india", "आधार")),
    (
        "10th",
        ("10th", "class 10", "class x", "ssc", "high school", "हाई स्कूल", "दसवीं"),
    ),
    (
        "12th",
        (
            "12th",
            "class 12",
            "class xii",
            "hsc",
            "senior secondary",
            "इंटरमीडिएट",
            "बारहवीं",
        ),
    ),
    (
        "Semester Marksheets",
        (
            "semester",
            "1st sem",
            "2nd sem",
            "3rd sem",
            "sgpa",
            "cgpa",
            "marks obtained",
        ),
    ),
    (
        "NPTEL",
        ("nptel", "motivated learners", "online certification", "discipline stars"),
    ),
    (
        "Certificates",
        ("certificate", "completion", "recommendation", "achievement", "letter"),
    ),
)


class Taxonomy:
    """An immutable, ordered category -> trigger phrases mapping."""

    def __init__(self, entries: Iterable[tuple[str, Iterable[str]]]):
        categories: list[tuple[str, tuple[str, ...]]] = []
        seen: set[str] = set()
        for category, phrases in entries:
            if not isinstance(category, str) or not category.strip():
                raise TaxonomyError("Category names must be non-empty strings")
            if category == UNCLASSIFIED:
                raise TaxonomyError(f"'{UNCLASSIFIED}' is reserved")
            if category in seen:
                raise TaxonomyError(f"Duplicate category '{category}'")
            if isinstance(phrases, str):
                raise TaxonomyError(
                    f"Phrases for '{category}' must be a list, not a string"
                )
            normalized: list[str] = []
            for phrase in phrases:
                phrase = str(phrase).strip().lower()
                if phrase and phrase not in normalized:
                    normalized.append(phrase)
            if not normalized:
                raise TaxonomyError(f"Category '{category}' has no phrases")
            seen.add(category)
            categories.append((category, tuple(normalized)))

        if not categories:
            raise TaxonomyError("Taxonomy must define at least one category")
        self._categories = tuple(categories)

    @classmethod
    def default(cls) -> Taxonomy:
        return cls(DEFAULT_CATEGORIES)

    @classmethod
    def from_json(cls, path: str | Path) -> Taxonomy:
        """
        Load a taxonomy from a JSON file.

        Two shapes are accepted; both keep the file's order as tie-break order:

        - an object: ``{"Category": ["phrase", ...], ...}``
        - a list: ``[{"category": "Category", "phrases": ["phrase", ...]}, ...]``
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise TaxonomyError(f"Unable to read taxonomy file {path}: {e}") from e

        if isinstance(data, dict):
            return cls(data.items())
        if isinstance(data, list):
            entries = []
            for item in data:
                if not isinstance(item, dict) or "category" not in item:
                    raise TaxonomyError(
                        "Taxonomy list entries need 'category' and 'phrases' keys"
                    )
                entries.append((item["category"], item.get("phrases", [])))
            return cls(entries)
        raise TaxonomyError("Taxonomy file must contain a JSON object or list")

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(category for category, _ in self._categories)

    def phrases(self, category: str) -> tuple[str, ...]:
        for name, phrases in self._categories:
            if name == category:
                return phrases
        raise KeyError(category)

    def __iter__(self) -> Iterator[tuple[str, tuple[str, ...]]]:
        return iter(self._categories)

    def __len__(self) -> int:
        return len(self._categories)

    def __contains__(self, category: object) -> bool:
        return any(name == category for name, _ in self._categories)

    def __repr__(self) -> str:
        return f"Taxonomy({list(self.categories)!r})"
