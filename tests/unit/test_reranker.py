"""Unit tests for vector match reranking."""

from __future__ import annotations

import pytest

from merchant_copilot.config import PipelineConfig
from merchant_copilot.models.evidence import EvidenceMetadata, EvidenceOrigin, EvidenceRecord
from merchant_copilot.services.reranker import Reranker, extract_semantic_tags


def _record(
    record_id: str,
    score: float,
    content: str = "x" * 1000,
    tags: list[str] | None = None,
    confidence: float | None = None,
) -> EvidenceRecord:
    return EvidenceRecord(
        id=record_id,
        score=score,
        source_id=f"doc-{record_id}",
        content=content,
        origin=EvidenceOrigin.VECTOR,
        metadata=EvidenceMetadata(semantic_tags=tags or [], confidence=confidence),
    )


@pytest.fixture
def reranker() -> Reranker:
    return Reranker(PipelineConfig())


class TestReranker:
    def test_drops_scores_at_or_below_threshold(self, reranker: Reranker) -> None:
        results = reranker.rerank("query", [_record("a", 0.7), _record("b", 0.71)], top_k=10)
        assert [r.id for r in results] == ["b"]

    def test_tag_boost_compounds_per_matching_tag(self, reranker: Reranker) -> None:
        record = _record("a", 0.8, tags=["tsys", "rates"])
        assert reranker.tag_factor(record, "tsys rates") == pytest.approx(1.21)
        assert reranker.tag_factor(record, "tsys") == pytest.approx(1.1)
        assert reranker.tag_factor(record, "clover") == 1.0

    def test_quality_factor_scales_with_length(self, reranker: Reranker) -> None:
        assert reranker.quality_factor(_record("a", 0.8, content="")) == pytest.approx(0.8)
        assert reranker.quality_factor(_record("b", 0.8, content="x" * 500)) == pytest.approx(0.9)
        assert reranker.quality_factor(_record("c", 0.8, content="x" * 5000)) == pytest.approx(1.0)

    def test_adjusted_score_combines_factors(self, reranker: Reranker) -> None:
        record = _record("a", 0.8, content="x" * 500, tags=["tsys"], confidence=0.5)
        [result] = reranker.rerank("tsys rates", [record], top_k=1)
        assert result.score == pytest.approx(0.8 * 1.1 * 0.5 * 0.9)

    def test_adjusted_score_capped_at_one(self, reranker: Reranker) -> None:
        record = _record("a", 0.99, tags=["tsys", "clearent", "rates"])
        [result] = reranker.rerank("tsys clearent rates", [record], top_k=1)
        assert result.score == 1.0

    def test_sorted_descending_and_truncated(self, reranker: Reranker) -> None:
        records = [_record("low", 0.75), _record("high", 0.95), _record("mid", 0.85)]
        results = reranker.rerank("query", records, top_k=2)
        assert [r.id for r in results] == ["high", "mid"]

    def test_tag_boost_can_reorder(self, reranker: Reranker) -> None:
        records = [_record("plain", 0.85), _record("tagged", 0.8, tags=["clearent"])]
        results = reranker.rerank("clearent pricing", records, top_k=2)
        assert results[0].id == "tagged"

    def test_empty_input(self, reranker: Reranker) -> None:
        assert reranker.rerank("query", [], top_k=5) == []


class TestExtractSemanticTags:
    def test_whole_words_only(self) -> None:
        tags = extract_semantic_tags("TSYS processing rates for POS terminals")
        assert "tsys" in tags
        assert "processing" in tags
        assert "pos" in tags
        assert "rates" in tags

    def test_substring_does_not_count(self) -> None:
        assert "pos" not in extract_semantic_tags("Please post the deposit")
