"""Keyword search over the indexed document corpus stored in Cosmos DB."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from merchant_copilot.config import PipelineConfig
from merchant_copilot.models.document import Document, DocumentChunk
from merchant_copilot.models.evidence import (
    EvidenceMetadata,
    EvidenceOrigin,
    EvidenceRecord,
    truncate_snippet,
)
from merchant_copilot.services.vocabulary import CONTENT_KEYWORDS, query_tokens

logger = logging.getLogger(__name__)

# (word in document text, words in the search term that pair with it)
_PROCESSOR_PAIRS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("clearent", ("clearent", "pricing")),
    ("tsys", ("tsys", "support")),
    ("voyager", ("voyager",)),
    ("shift", ("shift", "shift4")),
    ("genesis", ("genesis", "merchant")),
    ("first", ("first",)),
    ("global", ("global",)),
)

_SERVICE_PAIRS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("pricing", ("pricing", "rates")),
    ("equipment", ("equipment", "terminal")),
    ("support", ("support",)),
    ("merchant", ("merchant",)),
    ("statement", ("statement",)),
    ("processing", ("processing",)),
)


@runtime_checkable
class DocumentCorpus(Protocol):
    """Read-only access to a user's documents and their indexed chunks."""

    async def list_documents(self, user_id: str) -> list[Document]: ...

    async def search_chunks(
        self, term: str, keywords: tuple[str, ...], limit: int
    ) -> list[DocumentChunk]: ...


class CosmosDocumentCorpus:
    """Document corpus backed by two Cosmos DB containers.

    ``documents`` is partitioned by user_id; ``document_chunks`` holds the
    extracted text of each document split into ordered chunks.
    """

    def __init__(
        self,
        client: Any,
        database: str,
        documents_container: str,
        chunks_container: str,
    ) -> None:
        db = client.get_database_client(database)
        self._documents = db.get_container_client(documents_container)
        self._chunks = db.get_container_client(chunks_container)

    async def list_documents(self, user_id: str) -> list[Document]:
        """List every document owned by ``user_id``."""
        results: list[Document] = []
        async for item in self._documents.query_items(
            query="SELECT * FROM c WHERE c.user_id = @user_id",
            parameters=[{"name": "@user_id", "value": user_id}],
            partition_key=user_id,
        ):
            try:
                results.append(Document.from_cosmos_dict(item))
            except (KeyError, ValueError) as e:
                logger.warning("Skipping malformed document record: %s", e)
        return results

    async def search_chunks(
        self, term: str, keywords: tuple[str, ...], limit: int
    ) -> list[DocumentChunk]:
        """Find chunks containing the term or any keyword, case-insensitively."""
        needles = [term, *keywords]
        clauses = " OR ".join(f"CONTAINS(c.content, @p{i}, true)" for i in range(len(needles)))
        parameters: list[dict[str, Any]] = [
            {"name": f"@p{i}", "value": needle} for i, needle in enumerate(needles)
        ]
        parameters.append({"name": "@limit", "value": limit})

        results: list[DocumentChunk] = []
        async for item in self._chunks.query_items(
            query=f"SELECT TOP @limit * FROM c WHERE {clauses}",
            parameters=parameters,
        ):
            try:
                results.append(DocumentChunk.from_cosmos_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed chunk record: %s", e)
        return results


def _pair_matches(
    pairs: tuple[tuple[str, tuple[str, ...]], ...], search_text: str, term: str
) -> bool:
    return any(
        doc_word in search_text and any(word in term for word in term_words)
        for doc_word, term_words in pairs
    )


def metadata_matches(document: Document, term: str) -> bool:
    """Whether a document's name/filename/description matches a search term."""
    search_text = document.search_text
    term_lower = term.lower()
    if _pair_matches(_PROCESSOR_PAIRS, search_text, term_lower):
        return True
    if _pair_matches(_SERVICE_PAIRS, search_text, term_lower):
        return True
    if term_lower in search_text:
        return True
    return any(word in search_text for word in query_tokens(term_lower))


class DocumentContentSearcher:
    """Match search terms against chunk content, then document metadata."""

    def __init__(
        self,
        corpus: DocumentCorpus,
        config: PipelineConfig,
        keywords: tuple[str, ...] = CONTENT_KEYWORDS,
    ) -> None:
        self._corpus = corpus
        self._config = config
        self._keywords = keywords

    async def search(self, terms: list[str], user_id: str = "") -> list[EvidenceRecord]:
        """Search the corpus for the given terms.

        The first term with any chunk match returns immediately. Otherwise
        metadata matches are accumulated across all terms and deduplicated
        by document.
        """
        documents: list[Document] | None = None
        matched: dict[str, Document] = {}

        for term in terms:
            chunks = await self._search_chunks(term)
            if chunks:
                logger.info(
                    "Content matches found",
                    extra={"result_count": len(chunks), "query_length": len(term)},
                )
                return [self._chunk_to_evidence(chunk) for chunk in chunks]

            if documents is None:
                documents = await self._list_documents(user_id)
            for document in documents:
                if document.id not in matched and metadata_matches(document, term):
                    matched[document.id] = document

        return [self._document_to_evidence(document) for document in matched.values()]

    async def _search_chunks(self, term: str) -> list[DocumentChunk]:
        try:
            return await self._corpus.search_chunks(
                term, self._keywords, self._config.max_chunk_matches
            )
        except Exception:
            logger.warning("Chunk search failed, trying document metadata", exc_info=True)
            return []

    async def _list_documents(self, user_id: str) -> list[Document]:
        try:
            return await self._corpus.list_documents(user_id)
        except Exception:
            logger.warning("Document listing failed", exc_info=True, extra={"user_id": user_id})
            return []

    def _chunk_to_evidence(self, chunk: DocumentChunk) -> EvidenceRecord:
        return EvidenceRecord(
            id=chunk.id,
            score=self._config.internal_document_score,
            source_id=chunk.document_id,
            content=truncate_snippet(chunk.content, self._config.snippet_length),
            origin=EvidenceOrigin.DOCUMENT,
            metadata=EvidenceMetadata(
                document_name=chunk.document_name,
                web_view_link=f"/documents/{chunk.document_id}",
                download_link=f"/api/documents/{chunk.document_id}/download",
                chunk_index=chunk.chunk_index,
                mime_type=chunk.mime_type,
            ),
        )

    def _document_to_evidence(self, document: Document) -> EvidenceRecord:
        base = f"/api/documents/{document.id}"
        return EvidenceRecord(
            id=document.id,
            score=self._config.internal_document_score,
            source_id=document.id,
            content=(
                f"Found document: {document.display_name} - "
                "This document contains information relevant to your query."
            ),
            origin=EvidenceOrigin.DOCUMENT,
            metadata=EvidenceMetadata(
                document_name=document.display_name,
                web_view_link=f"{base}/view",
                download_link=f"{base}/download",
                preview_link=f"{base}/preview",
                chunk_index=0,
                mime_type=document.mime_type,
            ),
        )
