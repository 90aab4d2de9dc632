"""Azure AI Search vector retrieval over document chunks."""

from __future__ import annotations

import logging
from typing import Any

from azure.search.documents import SearchClient
from azure.search.documents.models import VectorizedQuery

from merchant_copilot.config import PipelineConfig
from merchant_copilot.models.evidence import (
    EvidenceMetadata,
    EvidenceOrigin,
    EvidenceRecord,
    truncate_snippet,
)
from merchant_copilot.services.reranker import Reranker, extract_semantic_tags

logger = logging.getLogger(__name__)


class VectorRetriever:
    """Fetch semantically similar chunks from an Azure AI Search vector index.

    One query per namespace, filtered on the index's ``namespace`` field.
    Results are merged, cut at the similarity threshold and reranked.
    A retriever with no endpoint or embedding client is treated as not
    provisioned and always returns no results.
    """

    def __init__(
        self,
        config: PipelineConfig,
        endpoint: str = "",
        index_name: str = "",
        credential: Any | None = None,
        embedding_client: Any | None = None,
        embedding_deployment: str = "text-embedding-3-small",
        reranker: Reranker | None = None,
    ) -> None:
        self._config = config
        self._client: SearchClient | None = None
        if endpoint and credential is not None:
            self._client = SearchClient(
                endpoint=endpoint,
                index_name=index_name,
                credential=credential,
            )
        self._embedding_client = embedding_client
        self._embedding_deployment = embedding_deployment
        self._reranker = reranker or Reranker(config)

    @property
    def is_provisioned(self) -> bool:
        return self._client is not None and self._embedding_client is not None

    async def retrieve(
        self,
        query: str,
        top_k: int | None = None,
        namespaces: list[str] | None = None,
    ) -> list[EvidenceRecord]:
        """Return reranked matches for ``query``; never raises.

        Args:
            query: Natural language query.
            top_k: Maximum results after reranking (defaults to config).
            namespaces: Index namespaces to search (defaults to config).

        Returns:
            Evidence sorted by adjusted score, at most ``top_k`` long.
        """
        top_k = top_k or self._config.vector_top_k
        namespaces = namespaces or list(self._config.namespaces)

        if not self.is_provisioned:
            logger.info("Vector index not provisioned, skipping vector search")
            return []

        try:
            embedding = await self._get_embedding(query)
        except Exception:
            logger.warning("Failed to generate embedding, skipping vector search", exc_info=True)
            return []

        candidates: list[EvidenceRecord] = []
        for namespace in namespaces:
            try:
                candidates.extend(self._search_namespace(embedding, top_k, namespace))
            except Exception:
                logger.warning(
                    "Vector search failed for namespace",
                    exc_info=True,
                    extra={"namespace": namespace},
                )

        reranked = self._reranker.rerank(query, candidates, top_k)
        logger.info(
            "Vector search completed",
            extra={"result_count": len(reranked), "query_length": len(query)},
        )
        return reranked

    def _search_namespace(
        self, embedding: list[float], top_k: int, namespace: str
    ) -> list[EvidenceRecord]:
        assert self._client is not None
        vector_query = VectorizedQuery(
            vector=embedding,
            k_nearest_neighbors=top_k,
            fields="content_vector",
        )
        results = self._client.search(
            search_text=None,
            vector_queries=[vector_query],
            filter=f"namespace eq '{namespace}'",
            top=top_k,
        )

        records: list[EvidenceRecord] = []
        for result in results:
            try:
                records.append(self._to_evidence(result))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed vector match: %s", e)
                continue
        return records

    def _to_evidence(self, result: Any) -> EvidenceRecord:
        content = result["content"] or ""
        document_id = result["document_id"]
        tags = result.get("semantic_tags") or extract_semantic_tags(content)
        confidence = result.get("confidence")
        score = float(result.get("@search.score", 0.0))
        return EvidenceRecord(
            id=result["id"],
            score=max(0.0, min(score, 1.0)),
            source_id=document_id,
            # Kept up to the quality cap so length still informs reranking
            content=truncate_snippet(content, self._config.quality_length_cap),
            origin=EvidenceOrigin.VECTOR,
            metadata=EvidenceMetadata(
                document_name=result.get("document_name") or "Document",
                web_view_link=result.get("web_view_link") or f"/documents/{document_id}",
                download_link=f"/api/documents/{document_id}/download",
                chunk_index=int(result.get("chunk_index") or 0),
                mime_type=result.get("mime_type") or "application/octet-stream",
                semantic_tags=list(tags),
                confidence=float(confidence) if confidence is not None else None,
            ),
        )

    async def _get_embedding(self, text: str) -> list[float]:
        """Generate an embedding vector for the given text."""
        response = await self._embedding_client.embeddings.create(
            input=text,
            model=self._embedding_deployment,
        )
        return response.data[0].embedding
