"""Unit tests for the retrieval cascade."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from merchant_copilot.config import PipelineConfig
from merchant_copilot.models.evidence import (
    EvidenceMetadata,
    EvidenceOrigin,
    EvidenceRecord,
    SearchStage,
    truncate_snippet,
)
from merchant_copilot.services.audit import WebSearchLogEntry
from merchant_copilot.services.orchestrator import WEB_SOURCE_ID, SearchOrchestrator
from merchant_copilot.services.web_search import (
    Escalation,
    ExternalSearchFallback,
    WebSearchResult,
)


def _doc(record_id: str, source_id: str = "doc-1", chunk_index: int = 0) -> EvidenceRecord:
    return EvidenceRecord(
        id=record_id,
        score=0.9,
        source_id=source_id,
        content="TSYS support details",
        origin=EvidenceOrigin.DOCUMENT,
        metadata=EvidenceMetadata(chunk_index=chunk_index),
    )


class _RecordingSink:
    def __init__(self) -> None:
        self.entries: list[WebSearchLogEntry] = []

    async def record(self, entry: WebSearchLogEntry) -> None:
        self.entries.append(entry)


def _build(
    *,
    content: list[list[EvidenceRecord]] | None = None,
    vector: list[EvidenceRecord] | None = None,
    alternatives: list[str] | None = None,
    web: WebSearchResult | None = None,
    policy: str = "auto_web_search",
):
    matcher = MagicMock()
    matcher.match = MagicMock(return_value=[])

    searcher = MagicMock()
    searcher.search = AsyncMock(side_effect=content or [[] for _ in range(10)])

    expander = MagicMock()
    expander.expand = MagicMock(return_value=alternatives or [])

    retriever = MagicMock()
    retriever.retrieve = AsyncMock(return_value=vector or [])

    backend = MagicMock()
    if web is None:
        backend.search_web = AsyncMock(side_effect=RuntimeError("no web"))
    else:
        backend.search_web = AsyncMock(return_value=web)
    sink = _RecordingSink()

    orchestrator = SearchOrchestrator(
        config=PipelineConfig(empty_evidence_policy=policy),  # type: ignore[arg-type]
        matcher=matcher,
        searcher=searcher,
        expander=expander,
        retriever=retriever,
        fallback=ExternalSearchFallback(backend, sink),
    )
    return orchestrator, searcher, retriever, backend, sink


class TestSearchOrchestrator:
    @pytest.mark.asyncio
    async def test_content_hit_stops_cascade(self) -> None:
        orchestrator, searcher, retriever, backend, _ = _build(content=[[_doc("c1")]])

        result = await orchestrator.run("tsys support", "user-1")

        assert result.final_stage is SearchStage.CONTENT_SEARCH
        assert [r.id for r in result.evidence] == ["c1"]
        assert result.visited == [
            SearchStage.HEURISTIC_LOOKUP,
            SearchStage.CONTENT_SEARCH,
            SearchStage.DONE,
        ]
        searcher.search.assert_awaited_once_with(["tsys support"], "user-1")
        retriever.retrieve.assert_not_awaited()
        backend.search_web.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_guidance_terms_feed_content_search(self) -> None:
        orchestrator, searcher, *_ = _build(content=[[_doc("c1")]])
        orchestrator._matcher.match.return_value = [
            EvidenceRecord(
                id="kb-0",
                score=1.0,
                source_id="knowledge-base-qa",
                content="Q: Restaurant POS?\nA: Try SkyTab.",
                origin=EvidenceOrigin.KNOWLEDGE_BASE,
            )
        ]

        result = await orchestrator.run("restaurant pos")

        terms = searcher.search.call_args.args[0]
        assert terms[0] == "restaurant pos"
        assert "skytab" in terms
        assert all(r.origin is not EvidenceOrigin.KNOWLEDGE_BASE for r in result.evidence)

    @pytest.mark.asyncio
    async def test_alternative_retry_tries_until_hit(self) -> None:
        orchestrator, searcher, retriever, *_ = _build(
            content=[[], [], [_doc("alt")]],
            alternatives=["customer support", "help desk", "payment processing"],
        )

        result = await orchestrator.run("tsys support")

        assert result.final_stage is SearchStage.ALTERNATIVE_QUERY_RETRY
        assert [r.id for r in result.evidence] == ["alt"]
        assert searcher.search.await_count == 3
        assert searcher.search.call_args.args[0] == ["help desk"]
        retriever.retrieve.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_vector_fallback_after_internal_misses(self) -> None:
        vector_hit = _doc("v1", source_id="doc-v").model_copy(
            update={"origin": EvidenceOrigin.VECTOR}
        )
        orchestrator, _, retriever, backend, _ = _build(vector=[vector_hit])

        result = await orchestrator.run("tsys support")

        assert result.final_stage is SearchStage.VECTOR_FALLBACK
        assert result.evidence == [vector_hit]
        retriever.retrieve.assert_awaited_once_with("tsys support", 10, ["default"])
        backend.search_web.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_web_fallback_logs_exactly_once(self) -> None:
        web = WebSearchResult(content="Web answer", citations=["https://example.com"])
        orchestrator, _, _, backend, sink = _build(web=web)

        result = await orchestrator.run("ACH fees", "user-9")

        assert result.final_stage is SearchStage.WEB_FALLBACK
        assert len(sink.entries) == 1
        assert sink.entries[0].user_id == "user-9"
        [record] = result.evidence
        assert record.source_id == WEB_SOURCE_ID
        assert record.origin is EvidenceOrigin.WEB
        assert record.metadata.web_view_link == "https://example.com"
        assert result.needs_external_search_permission is False

    @pytest.mark.asyncio
    async def test_web_evidence_truncated_to_snippet_length(self) -> None:
        web = WebSearchResult(content="Interchange detail. " * 60, citations=[])
        orchestrator, _, _, _, _ = _build(web=web)

        result = await orchestrator.run("ACH fees", "user-9")

        [record] = result.evidence
        assert record.content == truncate_snippet(web.content, PipelineConfig().snippet_length)
        assert len(record.content) < len(web.content)

    @pytest.mark.asyncio
    async def test_everything_empty_is_done_empty(self) -> None:
        orchestrator, _, _, backend, sink = _build()

        result = await orchestrator.run("ACH fees")

        assert not result.outcome.is_found
        assert result.final_stage is SearchStage.DONE_EMPTY
        assert result.visited[-2:] == [SearchStage.WEB_FALLBACK, SearchStage.DONE_EMPTY]
        assert isinstance(result.escalation, Escalation)
        assert sink.entries == []
        backend.search_web.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ask_permission_policy_skips_web(self) -> None:
        web = WebSearchResult(content="Web answer")
        orchestrator, _, _, backend, sink = _build(web=web, policy="ask_permission")

        result = await orchestrator.run("ACH fees")

        assert result.final_stage is SearchStage.DONE_EMPTY
        assert result.needs_external_search_permission is True
        assert SearchStage.WEB_FALLBACK not in result.visited
        backend.search_web.assert_not_awaited()
        assert sink.entries == []

    @pytest.mark.asyncio
    async def test_stage_exception_treated_as_empty(self) -> None:
        vector_hit = _doc("v1").model_copy(update={"origin": EvidenceOrigin.VECTOR})
        orchestrator, searcher, *_ = _build(vector=[vector_hit])
        searcher.search.side_effect = RuntimeError("cosmos exploded")

        result = await orchestrator.run("tsys support")

        assert result.final_stage is SearchStage.VECTOR_FALLBACK

    @pytest.mark.asyncio
    async def test_evidence_deduplicated_by_source_and_chunk(self) -> None:
        orchestrator, *_ = _build(
            content=[[_doc("a", chunk_index=1), _doc("b", chunk_index=1), _doc("c", chunk_index=2)]]
        )

        result = await orchestrator.run("tsys support")

        assert [r.id for r in result.evidence] == ["a", "c"]
