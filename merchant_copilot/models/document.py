"""Document corpus records and the user-facing answer shape."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Outgoing answer models serialize with camelCase keys for the chat UI
_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Document(BaseModel):
    """An uploaded document as listed by the corpus accessor.

    Read-only; upload and storage belong to the document subsystem.
    """

    id: str
    name: str
    original_name: str = ""
    description: str = ""
    mime_type: str = "application/octet-stream"

    @property
    def display_name(self) -> str:
        return self.original_name or self.name

    @property
    def search_text(self) -> str:
        """Lowercased name + original filename + description."""
        return f"{self.name} {self.original_name} {self.description}".lower()

    @classmethod
    def from_cosmos_dict(cls, data: dict[str, Any]) -> Document:
        """Deserialize from a Cosmos DB document."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            original_name=data.get("original_name", ""),
            description=data.get("description") or "",
            mime_type=data.get("mime_type", "application/octet-stream"),
        )


class DocumentChunk(BaseModel):
    """An indexed text chunk of a document."""

    id: str
    document_id: str
    content: str
    chunk_index: int = 0
    document_name: str = "Document"
    mime_type: str = "application/pdf"

    @classmethod
    def from_cosmos_dict(cls, data: dict[str, Any]) -> DocumentChunk:
        """Deserialize from a Cosmos DB document."""
        metadata = data.get("metadata") or {}
        return cls(
            id=data["id"],
            document_id=data["document_id"],
            content=data.get("content") or "",
            chunk_index=int(data.get("chunk_index") or 0),
            document_name=metadata.get("document_name", "Document"),
            mime_type=metadata.get("mime_type", "application/pdf"),
        )


class DocumentSource(BaseModel):
    """Citation linking an answer to the evidence it was grounded on."""

    model_config = _CAMEL

    source_id: str = Field(..., description="Originating document or entry")
    name: str = Field(..., description="Display name of the source")
    url: str = Field(..., description="Link to the source")
    relevance_score: float = Field(..., ge=0.0, le=1.0)
    snippet: str = ""
    type: str = "Document"


class ActionItem(BaseModel):
    """A task extracted from generated text."""

    model_config = _CAMEL

    task: str
    priority: Literal["high", "medium", "low"] = "medium"
    assignee: str | None = None
    due_date: str | None = None
    category: Literal[
        "Client Communication",
        "Documentation",
        "Internal Process",
        "Scheduling",
        "General",
    ] = "General"


class FollowupTask(BaseModel):
    """A follow-up extracted from generated text."""

    model_config = _CAMEL

    task: str
    timeframe: str = "Not specified"
    type: Literal["call", "email", "meeting", "document", "other"] = "other"


class AssistantResponse(BaseModel):
    """Final answer plus structured metadata returned to the caller."""

    model_config = _CAMEL

    message: str
    sources: list[DocumentSource] | None = None
    reasoning: str | None = None
    action_items: list[ActionItem] | None = None
    followup_tasks: list[FollowupTask] | None = None
    suggestions: list[str] | None = None
    needs_external_search_permission: bool | None = None
