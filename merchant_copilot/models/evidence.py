"""Evidence records and stage outcomes produced by the retrieval cascade."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

ELLIPSIS = "..."


def truncate_snippet(text: str, limit: int) -> str:
    """Cut text to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


class EvidenceOrigin(str, Enum):
    """Which retrieval tier produced a record."""

    KNOWLEDGE_BASE = "knowledge_base"
    DOCUMENT = "document"
    VECTOR = "vector"
    WEB = "web"


class EvidenceMetadata(BaseModel):
    """Display and citation data attached to a piece of evidence."""

    document_name: str = Field("Document", description="Display name of the source")
    web_view_link: str = Field("", description="Link for viewing the source")
    download_link: str | None = None
    preview_link: str | None = None
    mime_type: str = "application/octet-stream"
    chunk_index: int = 0
    semantic_tags: list[str] = Field(
        default_factory=list, description="Domain terms found in the content"
    )
    confidence: float | None = Field(
        None, ge=0.0, le=1.0, description="Content-quality estimate"
    )

    def links(self) -> list[str]:
        """All non-empty links for this source, view link first."""
        return [
            link
            for link in (self.web_view_link, self.download_link, self.preview_link)
            if link
        ]


class EvidenceRecord(BaseModel):
    """A normalized candidate piece of grounding evidence.

    Transient: created fresh per search invocation, never persisted.
    """

    id: str
    score: float = Field(..., ge=0.0, le=1.0)
    source_id: str = Field(..., description="Originating document or entry")
    content: str
    origin: EvidenceOrigin
    metadata: EvidenceMetadata = Field(default_factory=EvidenceMetadata)

    @property
    def identity(self) -> tuple[str, int]:
        """Deduplication key: source plus chunk index."""
        return (self.source_id, self.metadata.chunk_index)


def dedupe_evidence(records: list[EvidenceRecord]) -> list[EvidenceRecord]:
    """Drop records sharing a (source_id, chunk_index) pair, keeping the first."""
    seen: set[tuple[str, int]] = set()
    unique: list[EvidenceRecord] = []
    for record in records:
        if record.identity in seen:
            continue
        seen.add(record.identity)
        unique.append(record)
    return unique


class SearchStage(str, Enum):
    """States of the retrieval cascade."""

    HEURISTIC_LOOKUP = "heuristic_lookup"
    CONTENT_SEARCH = "content_search"
    ALTERNATIVE_QUERY_RETRY = "alternative_query_retry"
    VECTOR_FALLBACK = "vector_fallback"
    WEB_FALLBACK = "web_fallback"
    DONE = "done"
    DONE_EMPTY = "done_empty"


class SearchOutcome(BaseModel):
    """Result of one cascade stage: either evidence was found or it was not."""

    model_config = {"frozen": True}

    kind: Literal["found", "empty"]
    evidence: tuple[EvidenceRecord, ...] = ()

    @classmethod
    def found(cls, evidence: list[EvidenceRecord]) -> SearchOutcome:
        """Wrap evidence; an empty list collapses to ``empty()``."""
        if not evidence:
            return cls.empty()
        return cls(kind="found", evidence=tuple(evidence))

    @classmethod
    def empty(cls) -> SearchOutcome:
        return cls(kind="empty")

    @property
    def is_found(self) -> bool:
        return self.kind == "found"
