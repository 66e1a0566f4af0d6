"""Composition du prompt à partir des résultats de recherche.

Fonction pure: mêmes entrées, même prompt, octet pour octet.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from scholarqa.core.constants import MAX_PROMPT_ENTRIES
from scholarqa.domain.records import SearchResult

PREAMBLE = (
    "You are an academic assistant. Answer concisely and cite the relevant conferences "
    "and journals by name."
)
NOT_AVAILABLE = "not available"
NO_CONFERENCES = "No matching conferences found."
NO_JOURNALS = "No matching journals found."
LANGUAGE_INSTRUCTION = "Answer in the same language as the question."

CONFERENCE_FIELDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Title", ("name", "title")),
    ("Acronym", ("acronym",)),
    ("Location", ("location",)),
    ("Start date", ("start_date",)),
    ("Deadline", ("deadline",)),
    ("Topics", ("topics",)),
)
JOURNAL_FIELDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Title", ("title",)),
    ("Publisher", ("publisher",)),
    ("Categories", ("categories",)),
    ("Areas", ("areas",)),
)


def _value(record: dict[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        val = record.get(key)
        if isinstance(val, list | tuple):
            val = ", ".join(str(v) for v in val if v not in (None, ""))
        if val not in (None, ""):
            return str(val)
    return NOT_AVAILABLE


def _entry(index: int, record: dict[str, Any], fields) -> str:
    parts = [f"{label}: {_value(record, keys)}" for label, keys in fields]
    return f"{index}. " + "; ".join(parts)


def _section(heading: str, results: Sequence[SearchResult], fields, empty: str) -> str:
    if not results:
        return empty
    lines = [heading]
    for i, res in enumerate(results[:MAX_PROMPT_ENTRIES], start=1):
        lines.append(_entry(i, res.record, fields))
    return "\n".join(lines)


def compose(
    question: str,
    conference_results: Sequence[SearchResult],
    journal_results: Sequence[SearchResult],
) -> str:
    """Construit le prompt: préambule, conférences, journaux, question, consigne de langue.

    Args:
        question: Question de l'utilisateur (placée en dernier).
        conference_results: Résultats conférences (au plus 10 rendus).
        journal_results: Résultats journaux (au plus 10 rendus).

    Returns:
        str: Prompt déterministe.
    """
    blocks = [
        PREAMBLE,
        _section("Conferences:", conference_results, CONFERENCE_FIELDS, NO_CONFERENCES),
        _section("Journals:", journal_results, JOURNAL_FIELDS, NO_JOURNALS),
        f"User question: {question.strip()}",
        LANGUAGE_INSTRUCTION,
    ]
    return "\n\n".join(blocks)
