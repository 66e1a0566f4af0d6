"""Tests pour la composition du prompt."""

from __future__ import annotations

from scholarqa.domain.prompt_composer import (
    LANGUAGE_INSTRUCTION,
    NO_CONFERENCES,
    NO_JOURNALS,
    NOT_AVAILABLE,
    PREAMBLE,
    compose,
)
from scholarqa.domain.records import SearchResult

QUESTION = "Which venues cover graph learning?"
MAX_ENTRIES = 10


def _conf(name: str, **fields) -> SearchResult:
    return SearchResult(record={"name": name, **fields}, score=0.5)


def _journal(title: str, **fields) -> SearchResult:
    return SearchResult(record={"title": title, **fields}, score=0.5)


def test_compose_is_deterministic() -> None:
    """Teste que deux appels identiques produisent le même prompt."""
    confs = [_conf("Graph Learning", acronym="GL", topics=["graphs", "ml"])]
    journals = [_journal("Journal of ML", publisher="JMLR")]
    assert compose(QUESTION, confs, journals) == compose(QUESTION, confs, journals)


def test_empty_sections_use_sentinels() -> None:
    """Teste les phrases sentinelles quand une liste est vide."""
    prompt = compose(QUESTION, [], [])
    assert NO_CONFERENCES in prompt
    assert NO_JOURNALS in prompt
    assert prompt.startswith(PREAMBLE)


def test_missing_fields_render_placeholder() -> None:
    """Teste le placeholder pour un champ absent et la jointure des listes."""
    prompt = compose(QUESTION, [_conf("Graph Learning", topics=["graphs", "ml"])], [])
    assert f"Acronym: {NOT_AVAILABLE}" in prompt
    assert "Topics: graphs, ml" in prompt
    assert "1. Title: Graph Learning" in prompt


def test_sections_are_capped() -> None:
    """Teste qu'au plus 10 entrées sont rendues par section."""
    journals = [_journal(f"Journal {i}") for i in range(15)]
    prompt = compose(QUESTION, [], journals)
    assert f"{MAX_ENTRIES}. Title: Journal 9" in prompt
    assert "Journal 10" not in prompt


def test_question_then_language_instruction_close_the_prompt() -> None:
    """Teste que la question vient en dernier, suivie de la consigne de langue."""
    prompt = compose(f"  {QUESTION}  ", [_conf("A")], [_journal("B")])
    assert prompt.endswith(f"User question: {QUESTION}\n\n{LANGUAGE_INSTRUCTION}")
    assert prompt.index("Conferences:") < prompt.index("Journals:") < prompt.index("User question")
