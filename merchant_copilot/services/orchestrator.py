"""Retrieval cascade: ordered fallback across evidence tiers with early exit."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, Field

from merchant_copilot.config import PipelineConfig
from merchant_copilot.models.evidence import (
    EvidenceMetadata,
    EvidenceOrigin,
    EvidenceRecord,
    SearchOutcome,
    SearchStage,
    dedupe_evidence,
    truncate_snippet,
)
from merchant_copilot.services.document_search import DocumentContentSearcher
from merchant_copilot.services.knowledge_base import KnowledgeHeuristicMatcher, guidance_terms
from merchant_copilot.services.query_expander import QueryExpansionStrategy
from merchant_copilot.services.search import VectorRetriever
from merchant_copilot.services.web_search import (
    Escalation,
    ExternalSearchFallback,
    WebSearchResult,
)

logger = logging.getLogger(__name__)

WEB_SOURCE_ID = "web-search"


class CascadeResult(BaseModel):
    """Evidence found by the cascade and how it got there."""

    outcome: SearchOutcome
    final_stage: SearchStage
    visited: list[SearchStage] = Field(default_factory=list)
    escalation: Escalation | None = None
    needs_external_search_permission: bool = False

    @property
    def evidence(self) -> list[EvidenceRecord]:
        return list(self.outcome.evidence)


def web_result_to_evidence(result: WebSearchResult, snippet_length: int) -> EvidenceRecord:
    """Wrap a web search answer as a single evidence record."""
    return EvidenceRecord(
        id="web-0",
        score=0.5,
        source_id=WEB_SOURCE_ID,
        content=truncate_snippet(result.content, snippet_length),
        origin=EvidenceOrigin.WEB,
        metadata=EvidenceMetadata(
            document_name="Web Search Results",
            web_view_link=result.citations[0] if result.citations else "",
            mime_type="text/html",
        ),
    )


class SearchOrchestrator:
    """Run the retrieval tiers in order, stopping at the first that finds evidence.

    HeuristicLookup -> ContentSearch -> AlternativeQueryRetry ->
    VectorFallback -> WebFallback -> Done | Done-empty.

    The heuristic lookup only supplies guidance terms for the content
    search; its Q&A text is never returned as evidence. Any exception from
    a tier is logged and treated as that tier finding nothing.
    """

    def __init__(
        self,
        config: PipelineConfig,
        matcher: KnowledgeHeuristicMatcher,
        searcher: DocumentContentSearcher,
        expander: QueryExpansionStrategy,
        retriever: VectorRetriever,
        fallback: ExternalSearchFallback,
    ) -> None:
        self._config = config
        self._matcher = matcher
        self._searcher = searcher
        self._expander = expander
        self._retriever = retriever
        self._fallback = fallback

    async def run(self, query: str, user_id: str = "") -> CascadeResult:
        """Find grounding evidence for ``query``.

        Args:
            query: The user's latest question.
            user_id: Caller ID, used for document listing and audit.

        Returns:
            CascadeResult with deduplicated evidence (possibly empty).
        """
        visited: list[SearchStage] = [SearchStage.HEURISTIC_LOOKUP]
        terms = self._guidance_terms(query)

        stages: list[tuple[SearchStage, Callable[[], Awaitable[SearchOutcome]]]] = [
            (SearchStage.CONTENT_SEARCH, lambda: self._content_search(terms, user_id)),
            (SearchStage.ALTERNATIVE_QUERY_RETRY, lambda: self._alternative_retry(query, user_id)),
            (SearchStage.VECTOR_FALLBACK, lambda: self._vector_fallback(query)),
        ]

        for stage, run_stage in stages:
            visited.append(stage)
            outcome = await self._guarded(stage, run_stage)
            if outcome.is_found:
                return self._done(stage, outcome, visited)

        if self._config.empty_evidence_policy == "ask_permission":
            logger.info("No internal evidence, asking permission for web search")
            visited.append(SearchStage.DONE_EMPTY)
            return CascadeResult(
                outcome=SearchOutcome.empty(),
                final_stage=SearchStage.DONE_EMPTY,
                visited=visited,
                needs_external_search_permission=True,
            )

        visited.append(SearchStage.WEB_FALLBACK)
        escalation = await self._web_fallback(query, user_id)
        if escalation.result is not None:
            outcome = SearchOutcome.found(
                [web_result_to_evidence(escalation.result, self._config.snippet_length)]
            )
            return self._done(SearchStage.WEB_FALLBACK, outcome, visited, escalation)

        visited.append(SearchStage.DONE_EMPTY)
        logger.info("No evidence found in any tier", extra={"stage": SearchStage.DONE_EMPTY.value})
        return CascadeResult(
            outcome=SearchOutcome.empty(),
            final_stage=SearchStage.DONE_EMPTY,
            visited=visited,
            escalation=escalation,
        )

    def _done(
        self,
        stage: SearchStage,
        outcome: SearchOutcome,
        visited: list[SearchStage],
        escalation: Escalation | None = None,
    ) -> CascadeResult:
        evidence = dedupe_evidence(list(outcome.evidence))
        visited.append(SearchStage.DONE)
        logger.info(
            "Evidence found",
            extra={"stage": stage.value, "result_count": len(evidence)},
        )
        return CascadeResult(
            outcome=SearchOutcome.found(evidence),
            final_stage=stage,
            visited=visited,
            escalation=escalation,
        )

    async def _guarded(
        self, stage: SearchStage, run_stage: Callable[[], Awaitable[SearchOutcome]]
    ) -> SearchOutcome:
        logger.info("Entering search stage", extra={"stage": stage.value})
        try:
            return await run_stage()
        except Exception:
            logger.warning("Search stage failed", exc_info=True, extra={"stage": stage.value})
            return SearchOutcome.empty()

    def _guidance_terms(self, query: str) -> list[str]:
        try:
            guidance = self._matcher.match(query)
        except Exception:
            logger.warning("Heuristic lookup failed", exc_info=True)
            guidance = []
        terms = guidance_terms(guidance, query)
        logger.info(
            "Heuristic lookup completed",
            extra={"stage": SearchStage.HEURISTIC_LOOKUP.value, "result_count": len(guidance)},
        )
        return terms

    async def _content_search(self, terms: list[str], user_id: str) -> SearchOutcome:
        return SearchOutcome.found(await self._searcher.search(terms, user_id))

    async def _alternative_retry(self, query: str, user_id: str) -> SearchOutcome:
        for alternative in self._expander.expand(query):
            try:
                evidence = await self._searcher.search([alternative], user_id)
            except Exception:
                logger.warning("Alternative query failed", exc_info=True)
                continue
            if evidence:
                logger.info("Alternative query matched", extra={"result_count": len(evidence)})
                return SearchOutcome.found(evidence)
        return SearchOutcome.empty()

    async def _vector_fallback(self, query: str) -> SearchOutcome:
        evidence = await self._retriever.retrieve(
            query, self._config.vector_top_k, list(self._config.namespaces)
        )
        return SearchOutcome.found(evidence)

    async def _web_fallback(self, query: str, user_id: str) -> Escalation:
        logger.info("Escalating to web search", extra={"stage": SearchStage.WEB_FALLBACK.value})
        try:
            return await self._fallback.escalate(query, user_id or None)
        except Exception:
            logger.warning("Web fallback failed", exc_info=True)
            return Escalation(attempted=True, reason="Web search failed")
