"""Heuristic matching against the curated Q&A reference table.

Matches are search guidance only: they steer which terms the document
search uses and are never shown to the user as an answer.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path

from merchant_copilot.models.evidence import EvidenceMetadata, EvidenceOrigin, EvidenceRecord
from merchant_copilot.services.vocabulary import (
    GUIDANCE_PROVIDERS,
    GUIDANCE_SERVICES,
    INTEGRATION_TERMS,
    POS_TERMS,
    PROCESSORS,
    RESTAURANT_TERMS,
    query_tokens,
)

logger = logging.getLogger(__name__)

KNOWLEDGE_BASE_SOURCE_ID = "knowledge-base-qa"
KNOWLEDGE_BASE_NAME = "Knowledge Base - Q&A Reference"
MAX_MATCHES = 3


@dataclass(frozen=True)
class QAEntry:
    """One question/answer row of the reference table."""

    question: str
    answer: str


# Process-wide parse cache, keyed by resolved path. Failed loads are not cached.
_TABLE_CACHE: dict[str, tuple[QAEntry, ...]] = {}


def _parse_line(line: str) -> QAEntry | None:
    try:
        columns = next(csv.reader([line]))
    except (csv.Error, StopIteration):
        return None
    if len(columns) < 2:
        return None
    question = columns[0].replace('"', "").strip()
    answer = columns[1].replace('"', "").strip()
    if not question or not answer:
        return None
    return QAEntry(question=question, answer=answer)


def load_reference_table(path: str | Path) -> tuple[QAEntry, ...]:
    """Load and cache the Q&A table at ``path``.

    The first line is a header. Malformed rows are skipped. A missing or
    unreadable file yields an empty table.
    """
    key = str(Path(path).resolve())
    cached = _TABLE_CACHE.get(key)
    if cached is not None:
        return cached

    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        logger.warning("Knowledge base reference table unavailable: %s", path, exc_info=True)
        return ()

    entries: list[QAEntry] = []
    skipped = 0
    for line in text.splitlines()[1:]:
        if not line.strip():
            continue
        entry = _parse_line(line)
        if entry is None:
            skipped += 1
            continue
        entries.append(entry)

    if skipped:
        logger.info("Skipped %d malformed knowledge base rows", skipped)

    table = tuple(entries)
    _TABLE_CACHE[key] = table
    return table


def clear_reference_cache() -> None:
    """Forget every cached reference table."""
    _TABLE_CACHE.clear()


def _mentions_same(terms: tuple[str, ...], query: str, question: str) -> bool:
    return any(term in query and term in question for term in terms)


def keyword_relevant(query: str, question: str) -> bool:
    return any(word in question for word in query_tokens(query))


def processor_match(query: str, question: str) -> bool:
    return _mentions_same(PROCESSORS, query, question)


def pos_match(query: str, question: str) -> bool:
    if _mentions_same(POS_TERMS, query, question):
        return True
    return (
        any(term in query for term in RESTAURANT_TERMS)
        and "restaurant" in question
        and "pos" in question
    )


def integration_match(query: str, question: str) -> bool:
    return _mentions_same(INTEGRATION_TERMS, query, question)


def relevance(query: str, question: str) -> float:
    """Share of qualifying query tokens found inside some question token."""
    tokens = query_tokens(query)
    if not tokens:
        return 0.0
    question_words = question.lower().split(" ")
    matches = sum(1 for token in tokens if any(token in word for word in question_words))
    return matches / len(tokens)


class KnowledgeHeuristicMatcher:
    """Rank reference Q&A entries against a query with keyword heuristics."""

    def __init__(self, table_path: str | Path) -> None:
        self._table_path = table_path

    def match(self, query: str) -> list[EvidenceRecord]:
        """Return up to three guidance records, best first.

        Never raises: an unreadable table yields no matches.
        """
        try:
            table = load_reference_table(self._table_path)
        except Exception:
            logger.warning("Knowledge base lookup failed", exc_info=True)
            return []

        query_lower = query.lower()
        candidates: list[tuple[float, QAEntry]] = []
        for entry in table:
            question_lower = entry.question.lower()
            if (
                query_lower in question_lower
                or keyword_relevant(query_lower, question_lower)
                or processor_match(query_lower, question_lower)
                or pos_match(query_lower, question_lower)
                or integration_match(query_lower, question_lower)
            ):
                candidates.append((relevance(query_lower, question_lower), entry))

        # sorted() is stable, so ties keep table order
        ranked = sorted(candidates, key=lambda item: item[0], reverse=True)[:MAX_MATCHES]
        return [self._to_evidence(index, score, entry) for index, (score, entry) in enumerate(ranked)]

    def _to_evidence(self, index: int, score: float, entry: QAEntry) -> EvidenceRecord:
        base = f"/api/documents/{KNOWLEDGE_BASE_SOURCE_ID}"
        return EvidenceRecord(
            id=f"kb-{index}",
            score=score,
            source_id=KNOWLEDGE_BASE_SOURCE_ID,
            content=f"Q: {entry.question}\nA: {entry.answer}",
            origin=EvidenceOrigin.KNOWLEDGE_BASE,
            metadata=EvidenceMetadata(
                document_name=KNOWLEDGE_BASE_NAME,
                web_view_link=f"{base}/view",
                download_link=f"{base}/download",
                preview_link=f"{base}/preview",
                chunk_index=index,
                mime_type="text/csv",
            ),
        )


def guidance_terms(guidance: list[EvidenceRecord], original_query: str) -> list[str]:
    """Turn matched Q&A entries into document search terms.

    The original query always comes first, followed by provider names and
    service phrases mentioned in the matched entries.
    """
    terms = [original_query]
    for record in guidance:
        content = record.content.lower()
        for phrase in (*GUIDANCE_PROVIDERS, *GUIDANCE_SERVICES):
            if phrase in content and phrase not in terms:
                terms.append(phrase)
    return terms
