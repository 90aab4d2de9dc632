"""Audit trail for web search escalations."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class WebSearchLogEntry(BaseModel):
    """Durable record of one escalation to external web search.

    Flagged for admin review so the finding can be promoted into the
    internal knowledge base.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str | None = Field(None, description="Caller that triggered the escalation")
    user_query: str = Field(..., description="Query sent to web search")
    web_response: str = Field(..., description="Raw web search answer text")
    reason: str = Field(..., description="Why the pipeline escalated")
    review_needed: bool = Field(default=True)
    admin_reviewed: bool = Field(default=False)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))

    def to_cosmos_dict(self) -> dict[str, Any]:
        """Serialize for Cosmos DB insert."""
        data = self.model_dump()
        data["timestamp"] = self.timestamp.isoformat()
        return data


@runtime_checkable
class AuditSink(Protocol):
    """Append-only store for web search log entries."""

    async def record(self, entry: WebSearchLogEntry) -> None: ...


class CosmosAuditSink:
    """Insert web search log entries into a Cosmos DB container."""

    def __init__(self, client: Any, database: str, container: str) -> None:
        db = client.get_database_client(database)
        self._container = db.get_container_client(container)

    async def record(self, entry: WebSearchLogEntry) -> None:
        await self._container.create_item(entry.to_cosmos_dict())


async def log_web_search(sink: AuditSink, entry: WebSearchLogEntry) -> bool:
    """Persist an escalation record without ever raising.

    Args:
        sink: Destination store.
        entry: The log entry to write.

    Returns:
        True if the write succeeded.
    """
    try:
        await sink.record(entry)
    except Exception:
        logger.error(
            "Failed to log web search usage",
            exc_info=True,
            extra={"user_id": entry.user_id},
        )
        return False

    logger.info(
        "Web search logged: %s",
        entry.reason,
        extra={"user_id": entry.user_id, "query_length": len(entry.user_query)},
    )
    return True
