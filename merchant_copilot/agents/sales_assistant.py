"""Merchant services sales assistant using Microsoft Agent Framework (autogen-agentchat)."""

from __future__ import annotations

import logging
import re
from typing import Any

from autogen_agentchat.agents import AssistantAgent
from autogen_agentchat.messages import TextMessage
from autogen_core import CancellationToken
from autogen_ext.models.openai import AzureOpenAIChatCompletionClient

from merchant_copilot.config import PipelineConfig, Settings
from merchant_copilot.models.conversation import ConversationMessage, last_user_message
from merchant_copilot.models.document import AssistantResponse, DocumentSource
from merchant_copilot.models.errors import SynthesisError
from merchant_copilot.models.evidence import EvidenceOrigin, EvidenceRecord, truncate_snippet
from merchant_copilot.services.extraction import ExtractionStrategy, RegexExtractionStrategy
from merchant_copilot.services.orchestrator import CascadeResult, SearchOrchestrator
from merchant_copilot.services.web_search import Escalation

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a knowledgeable assistant for merchant services sales agents.

RESPONSE FORMAT:
[One sentence direct answer]

**Key Points:**
**• [Main point 1]**
**• [Main point 2]**
**• [Main point 3]** (maximum 3 points)

[One brief paragraph of explanation if needed]

RULES:
1. Start every response with a direct one-sentence answer.
2. Use at most 3 bullet points for key information.
3. Keep the total response under 150 words and never repeat information.
4. Prioritize the provided document content over general knowledge. NEVER make up \
rates, fees or processor details that are not in the context.
5. Document links are added automatically - do not include them in your response.
6. When the conversation implies next steps, state them plainly as tasks \
(who should do what, and by when).
"""

NARROW_DOWN_INSTRUCTION = (
    "Many documents match this question. Do NOT summarize them all. Briefly list "
    "the document titles below and ask the user which product, processor or topic "
    "they want to focus on so the search can be narrowed down."
)

PERMISSION_MESSAGE = (
    "I searched our internal document database but didn't find specific information "
    "about your query. Would you like me to search external sources for additional "
    "information?"
)

NO_EVIDENCE_MESSAGE = (
    "I searched our internal documents but couldn't find information about your query, "
    "and no external results were available. Try a different search term or upload "
    "relevant documents."
)

RELATED_DOCUMENTS_HEADER = "**Related Documents:**"

_CITATION_RE = re.compile(r"^Source ID: (?P<source>.+)\nLink: (?P<link>.*)$", re.MULTILINE)


def build_model_client(
    settings: Settings, config: PipelineConfig, **auth: Any
) -> AzureOpenAIChatCompletionClient:
    """Create the completion client with the pipeline's fixed sampling settings.

    Args:
        settings: Service endpoints and deployment names.
        config: Pipeline configuration (temperature, max tokens).
        **auth: ``api_key`` or ``azure_ad_token_provider``.
    """
    return AzureOpenAIChatCompletionClient(
        azure_deployment=settings.azure_openai_deployment,
        azure_endpoint=settings.azure_openai_endpoint,
        api_version=settings.azure_openai_api_version,
        model=settings.azure_openai_deployment,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        **auth,
    )


def document_type(record: EvidenceRecord) -> str:
    """Human-readable source type derived from origin and mime type."""
    if record.origin is EvidenceOrigin.WEB:
        return "Web"
    mime_type = record.metadata.mime_type
    if "google-apps.document" in mime_type:
        return "Google Doc"
    if "google-apps.spreadsheet" in mime_type:
        return "Google Sheet"
    if "pdf" in mime_type:
        return "PDF"
    if "spreadsheet" in mime_type:
        return "Spreadsheet"
    if "document" in mime_type:
        return "Word Document"
    if "csv" in mime_type:
        return "CSV"
    return "Document"


def citations_from_grounding(block: str) -> dict[str, str]:
    """Read the source ID to link mapping back out of a grounding block."""
    return {m.group("source"): m.group("link") for m in _CITATION_RE.finditer(block)}


def extract_suggestions(content: str) -> list[str]:
    suggestions = [
        "Tell me about TSYS processing rates",
        "Show me the Clearent application process",
        "Compare processor fees",
        "Find hardware options",
        "Help with merchant applications",
    ]
    lowered = content.lower()
    if "terminal" in lowered:
        suggestions.insert(0, "Browse terminal options")
    if "application" in lowered:
        suggestions.insert(0, "Get application links")
    if "rate" in lowered:
        suggestions.insert(0, "Compare competitive rates")
    return suggestions[:5]


class ResponseSynthesizer:
    """Generate a grounded answer from evidence and conversation history."""

    def __init__(
        self,
        model_client: AzureOpenAIChatCompletionClient,
        config: PipelineConfig,
        extractor: ExtractionStrategy | None = None,
    ) -> None:
        self._model_client = model_client
        self._config = config
        self._extractor = extractor or RegexExtractionStrategy()

    def _create_agent(self, system_message: str) -> AssistantAgent:
        """Create an AssistantAgent with the grounding block in its system prompt."""
        return AssistantAgent(
            name="sales_assistant",
            model_client=self._model_client,
            system_message=system_message,
        )

    def build_grounding_block(
        self, evidence: list[EvidenceRecord], escalation: Escalation | None = None
    ) -> str:
        """Format evidence as prompt context with inline citation links."""
        if not evidence:
            return "No relevant documents found in the knowledge base."

        limit = self._config.max_grounding_records
        too_many = len(evidence) > limit

        parts: list[str] = []
        for i, record in enumerate(evidence, 1):
            header = (
                f"[Document {i}]\n"
                f"Title: {record.metadata.document_name}\n"
                f"Source ID: {record.source_id}\n"
                f"Link: {record.metadata.web_view_link}"
            )
            if too_many:
                parts.append(header)
            else:
                parts.append(f"{header}\nContent:\n{record.content}\n")

        body = "\n---\n".join(parts)
        if too_many:
            body = f"{NARROW_DOWN_INSTRUCTION}\n\n{body}"
        if escalation is not None and escalation.result is not None:
            citations = escalation.result.citations
            if citations:
                body += f"\n\nWeb sources: {', '.join(citations)}"
        return body

    async def synthesize(
        self,
        messages: list[ConversationMessage],
        evidence: list[EvidenceRecord],
        escalation: Escalation | None = None,
    ) -> AssistantResponse:
        """Answer the latest user message using the supplied evidence.

        Args:
            messages: Conversation history, ending with the user's question.
            evidence: Deduplicated evidence from the search cascade.
            escalation: Web escalation details when evidence came from the web.

        Returns:
            AssistantResponse with sources, reasoning and extracted tasks.

        Raises:
            SynthesisError: If the completion service fails or returns nothing.
        """
        grounding = self.build_grounding_block(evidence, escalation)
        system_message = (
            f"{SYSTEM_PROMPT}\n"
            f"DOCUMENT CONTEXT:\n{grounding}\n\n"
            "Use the above context to answer the user's question."
        )
        agent = self._create_agent(system_message)

        chat = [TextMessage(content=m.content, source=m.role) for m in messages]

        try:
            response = await agent.on_messages(chat, cancellation_token=CancellationToken())
            content = response.chat_message.content if response.chat_message else ""
            if not isinstance(content, str):
                content = str(content)
        except Exception as e:
            logger.exception("Agent failed to generate response")
            raise SynthesisError() from e

        if not content.strip():
            logger.error("Agent returned an empty response")
            raise SynthesisError()

        # Tasks come from the model text only, never from the document footer
        action_items = self._extractor.extract_action_items(content, self._config.max_action_items)
        followups = self._extractor.extract_followup_tasks(content, self._config.max_followup_tasks)
        content = self._append_related_documents(content, evidence)
        sources = self._build_sources(evidence)

        return AssistantResponse(
            message=content,
            sources=sources or None,
            reasoning=self._reasoning(evidence),
            action_items=action_items or None,
            followup_tasks=followups or None,
            suggestions=extract_suggestions(content),
        )

    def no_evidence_response(self, cascade: CascadeResult) -> AssistantResponse:
        """Answer without calling the model when no tier found evidence."""
        if cascade.needs_external_search_permission:
            return AssistantResponse(
                message=PERMISSION_MESSAGE,
                sources=[],
                reasoning="No relevant documents found in internal database",
                suggestions=[
                    "Search external sources",
                    "Try a different search term",
                    "Upload relevant documents",
                ],
                needs_external_search_permission=True,
            )

        reason = cascade.escalation.reason if cascade.escalation else "No evidence found"
        return AssistantResponse(
            message=NO_EVIDENCE_MESSAGE,
            sources=[],
            reasoning=f"No relevant documents found in internal database. {reason}",
            suggestions=["Try a different search term", "Upload relevant documents"],
            needs_external_search_permission=False,
        )

    def _append_related_documents(self, content: str, evidence: list[EvidenceRecord]) -> str:
        internal = [r for r in evidence if r.origin is not EvidenceOrigin.WEB]
        if not internal or RELATED_DOCUMENTS_HEADER in content:
            return content

        lines: list[str] = []
        for record in internal[: self._config.max_grounding_records]:
            links = f"[View Document]({record.metadata.web_view_link})"
            if record.metadata.download_link:
                links += f" | [Download]({record.metadata.download_link})"
            lines.append(f"- **{record.metadata.document_name}** - {links}")
        return f"{content}\n\n{RELATED_DOCUMENTS_HEADER}\n" + "\n".join(lines)

    def _build_sources(self, evidence: list[EvidenceRecord]) -> list[DocumentSource]:
        return [
            DocumentSource(
                source_id=record.source_id,
                name=record.metadata.document_name,
                url=record.metadata.web_view_link,
                relevance_score=record.score,
                snippet=truncate_snippet(record.content, 200),
                type=document_type(record),
            )
            for record in evidence
        ]

    def _reasoning(self, evidence: list[EvidenceRecord]) -> str:
        top_score = max(record.score for record in evidence)
        if all(record.origin is EvidenceOrigin.WEB for record in evidence):
            return (
                "No internal documents matched, so this answer uses external web search "
                "results that have been logged for admin review."
            )
        return (
            f"Found {len(evidence)} relevant documents in your knowledge base; "
            f"top relevance score {top_score:.0%}."
        )


class SalesAssistant:
    """Answer questions by running the search cascade and then synthesizing."""

    def __init__(
        self,
        orchestrator: SearchOrchestrator,
        synthesizer: ResponseSynthesizer,
    ) -> None:
        self._orchestrator = orchestrator
        self._synthesizer = synthesizer

    async def answer(
        self,
        messages: list[ConversationMessage],
        user_id: str = "",
    ) -> AssistantResponse:
        """Answer the latest user message in ``messages``.

        Raises:
            ValueError: If the conversation has no user message.
            SynthesisError: If the completion service fails.
        """
        question = last_user_message(messages)
        if question is None:
            raise ValueError("No user message found in conversation")

        cascade = await self._orchestrator.run(question.content, user_id)
        logger.info(
            "Search cascade finished",
            extra={
                "user_id": user_id or None,
                "stage": cascade.final_stage.value,
                "result_count": len(cascade.evidence),
            },
        )

        if not cascade.outcome.is_found:
            return self._synthesizer.no_evidence_response(cascade)

        return await self._synthesizer.synthesize(
            messages, cascade.evidence, escalation=cascade.escalation
        )
