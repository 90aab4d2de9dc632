"""Pydantic data models for the merchant services sales assistant."""

from merchant_copilot.models.conversation import ConversationMessage
from merchant_copilot.models.document import (
    ActionItem,
    AssistantResponse,
    Document,
    DocumentChunk,
    DocumentSource,
    FollowupTask,
)
from merchant_copilot.models.errors import ErrorCode, ErrorResponse, SynthesisError
from merchant_copilot.models.evidence import (
    EvidenceMetadata,
    EvidenceOrigin,
    EvidenceRecord,
    SearchOutcome,
    SearchStage,
)
from merchant_copilot.models.user import User

__all__ = [
    "ActionItem",
    "AssistantResponse",
    "ConversationMessage",
    "Document",
    "DocumentChunk",
    "DocumentSource",
    "ErrorCode",
    "ErrorResponse",
    "EvidenceMetadata",
    "EvidenceOrigin",
    "EvidenceRecord",
    "FollowupTask",
    "SearchOutcome",
    "SearchStage",
    "SynthesisError",
    "User",
]
