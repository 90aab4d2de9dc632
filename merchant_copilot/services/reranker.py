"""Rerank vector matches with tag, confidence and content-quality signals."""

from __future__ import annotations

import re

from merchant_copilot.config import PipelineConfig
from merchant_copilot.models.evidence import EvidenceRecord
from merchant_copilot.services.vocabulary import (
    CONTENT_KEYWORDS,
    INTEGRATION_TERMS,
    POS_TERMS,
    PROCESSORS,
)

_TAG_VOCABULARY: tuple[str, ...] = tuple(
    dict.fromkeys((*PROCESSORS, *POS_TERMS, *INTEGRATION_TERMS, *CONTENT_KEYWORDS))
)
_TAG_PATTERNS = {tag: re.compile(rf"\b{re.escape(tag)}\b") for tag in _TAG_VOCABULARY}

MIN_QUALITY = 0.8


def extract_semantic_tags(content: str) -> list[str]:
    """Domain vocabulary terms that occur as whole words in ``content``."""
    lowered = content.lower()
    return [tag for tag, pattern in _TAG_PATTERNS.items() if pattern.search(lowered)]


class Reranker:
    """Adjust raw similarity scores and order the survivors.

    Matches at or below the similarity threshold are dropped outright.
    Each remaining score is multiplied by a compounded tag boost, the
    record's stored confidence and a length-based quality factor.
    """

    def __init__(self, config: PipelineConfig) -> None:
        self._config = config

    def tag_factor(self, record: EvidenceRecord, query_lower: str) -> float:
        hits = sum(1 for tag in record.metadata.semantic_tags if tag.lower() in query_lower)
        return (1.0 + self._config.tag_boost) ** hits

    def quality_factor(self, record: EvidenceRecord) -> float:
        cap = self._config.quality_length_cap
        return MIN_QUALITY + (1.0 - MIN_QUALITY) * min(len(record.content), cap) / cap

    def rerank(
        self, query: str, records: list[EvidenceRecord], top_k: int
    ) -> list[EvidenceRecord]:
        query_lower = query.lower()
        survivors = [r for r in records if r.score > self._config.similarity_threshold]

        adjusted: list[EvidenceRecord] = []
        for record in survivors:
            confidence = record.metadata.confidence
            score = (
                record.score
                * self.tag_factor(record, query_lower)
                * (1.0 if confidence is None else confidence)
                * self.quality_factor(record)
            )
            adjusted.append(record.model_copy(update={"score": min(score, 1.0)}))

        adjusted.sort(key=lambda r: r.score, reverse=True)
        return adjusted[:top_k]
