"""Retrieval, extraction and escalation services for the sales assistant."""

from merchant_copilot.services.audit import (
    AuditSink,
    CosmosAuditSink,
    WebSearchLogEntry,
    log_web_search,
)
from merchant_copilot.services.auth import AuthService
from merchant_copilot.services.document_search import (
    CosmosDocumentCorpus,
    DocumentContentSearcher,
    DocumentCorpus,
)
from merchant_copilot.services.extraction import ExtractionStrategy, RegexExtractionStrategy
from merchant_copilot.services.knowledge_base import KnowledgeHeuristicMatcher
from merchant_copilot.services.orchestrator import CascadeResult, SearchOrchestrator
from merchant_copilot.services.query_expander import QueryExpander, QueryExpansionStrategy
from merchant_copilot.services.reranker import Reranker
from merchant_copilot.services.search import VectorRetriever
from merchant_copilot.services.web_search import (
    Escalation,
    ExternalSearchFallback,
    WebSearchClient,
    WebSearchError,
    WebSearchResult,
)

__all__ = [
    "AuditSink",
    "AuthService",
    "CascadeResult",
    "CosmosAuditSink",
    "CosmosDocumentCorpus",
    "DocumentContentSearcher",
    "DocumentCorpus",
    "Escalation",
    "ExternalSearchFallback",
    "ExtractionStrategy",
    "KnowledgeHeuristicMatcher",
    "QueryExpander",
    "QueryExpansionStrategy",
    "RegexExtractionStrategy",
    "Reranker",
    "SearchOrchestrator",
    "VectorRetriever",
    "WebSearchClient",
    "WebSearchError",
    "WebSearchLogEntry",
    "WebSearchResult",
    "log_web_search",
]
