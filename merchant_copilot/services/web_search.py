"""External web search, used only when every internal tier comes back empty."""

from __future__ import annotations

import logging
import re
from typing import Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, Field

from merchant_copilot.services.audit import AuditSink, WebSearchLogEntry, log_web_search
from merchant_copilot.services.vocabulary import BUSINESS_KEYWORDS, RESTRICTED_KEYWORDS

logger = logging.getLogger(__name__)

ESCALATION_REASON = (
    "No internal documents found with original query or alternative search terms"
)
OUT_OF_SCOPE_REASON = "Query outside business scope - external search restricted"

_SYSTEM_PROMPT = (
    "Be precise and concise. Focus on merchant services, payment processing, "
    "and business solutions."
)

_BUSINESS_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"what.*rate",
        r"how.*process",
        r"business.*help",
        r"merchant.*need",
        r"payment.*work",
        r"cost.*fee",
        r"setup.*account",
        r"integration.*api",
        r"compare.*processor",
        r"best.*solution",
        r"industry.*standard",
    )
)


class WebSearchError(RuntimeError):
    """Raised when the web search service cannot be reached or answers badly."""


class WebSearchResult(BaseModel):
    """Answer text and citation URLs from the web search service."""

    content: str
    citations: list[str] = Field(default_factory=list)


class Escalation(BaseModel):
    """Outcome of an attempted escalation to web search."""

    attempted: bool
    reason: str
    result: WebSearchResult | None = None


@runtime_checkable
class WebSearchBackend(Protocol):
    async def search_web(self, query: str) -> WebSearchResult: ...


def is_business_appropriate(query: str) -> bool:
    """Whether a query may be sent to an outside search service."""
    query_lower = query.lower()
    if any(re.search(rf"\b{re.escape(k)}\b", query_lower) for k in RESTRICTED_KEYWORDS):
        return False
    if any(keyword in query_lower for keyword in BUSINESS_KEYWORDS):
        return True
    if any(pattern.search(query) for pattern in _BUSINESS_PATTERNS):
        return True
    logger.info("Query scope uncertain, allowing web search", extra={"query_length": len(query)})
    return True


class WebSearchClient:
    """Call an OpenAI-compatible online search completion endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.perplexity.ai",
        model: str = "sonar",
        timeout_s: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._model = model
        self._timeout_s = timeout_s

    async def search_web(self, query: str) -> WebSearchResult:
        """Search the web for ``query``.

        Raises:
            WebSearchError: On transport failure, non-2xx status or a
                response without answer text.
        """
        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": query},
            ],
            "max_tokens": 500,
            "temperature": 0.2,
            "top_p": 0.9,
            "return_images": False,
            "return_related_questions": False,
            "search_recency_filter": "month",
            "stream": False,
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                response = await client.post(self._url, json=body, headers=headers)
                if response.status_code >= 400:
                    logger.error(
                        "Web search request failed",
                        extra={"status": response.status_code, "body": response.text[:500]},
                    )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise WebSearchError(f"Web search temporarily unavailable: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise WebSearchError("Web search response missing answer text") from e

        citations = data.get("citations") or []
        return WebSearchResult(content=content or "", citations=[str(c) for c in citations])


class ExternalSearchFallback:
    """Escalate to web search and record the escalation for admin review."""

    def __init__(self, backend: WebSearchBackend | None, audit_sink: AuditSink) -> None:
        self._backend = backend
        self._audit_sink = audit_sink

    async def escalate(self, query: str, user_id: str | None = None) -> Escalation:
        """Run a web search for ``query``; never raises.

        Exactly one log entry is written when the search succeeds.
        """
        if not is_business_appropriate(query):
            logger.info("Query blocked from external search", extra={"user_id": user_id})
            return Escalation(attempted=False, reason=OUT_OF_SCOPE_REASON)

        if self._backend is None:
            logger.info("Web search not configured, skipping escalation")
            return Escalation(attempted=False, reason="Web search is not configured")

        try:
            result = await self._backend.search_web(query)
        except Exception:
            logger.warning("Web search failed, proceeding without web results", exc_info=True)
            return Escalation(attempted=True, reason=ESCALATION_REASON)

        await log_web_search(
            self._audit_sink,
            WebSearchLogEntry(
                user_id=user_id,
                user_query=query,
                web_response=result.content,
                reason=ESCALATION_REASON,
            ),
        )
        return Escalation(attempted=True, reason=ESCALATION_REASON, result=result)
