"""FastAPI application entry point for the merchant services sales assistant."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from merchant_copilot.agents.sales_assistant import (
    ResponseSynthesizer,
    SalesAssistant,
    build_model_client,
)
from merchant_copilot.config import Settings, get_settings
from merchant_copilot.logging_config import setup_logging
from merchant_copilot.models.conversation import ConversationMessage
from merchant_copilot.models.document import AssistantResponse
from merchant_copilot.models.errors import ErrorCode, ErrorResponse, SynthesisError
from merchant_copilot.models.user import User
from merchant_copilot.services.audit import CosmosAuditSink
from merchant_copilot.services.auth import AuthService
from merchant_copilot.services.document_search import (
    CosmosDocumentCorpus,
    DocumentContentSearcher,
)
from merchant_copilot.services.knowledge_base import KnowledgeHeuristicMatcher
from merchant_copilot.services.orchestrator import SearchOrchestrator
from merchant_copilot.services.query_expander import QueryExpander
from merchant_copilot.services.search import VectorRetriever
from merchant_copilot.services.web_search import ExternalSearchFallback, WebSearchClient

logger = logging.getLogger(__name__)

VERSION = "0.1.0"
_COGNITIVE_SCOPE = "https://cognitiveservices.azure.com/.default"


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    timestamp: str


class ChatRequest(BaseModel):
    """Request body for POST /chat."""

    message: str = Field(..., description="User's question text")
    history: list[ConversationMessage] = Field(
        default_factory=list, description="Earlier turns of the conversation"
    )


def build_assistant(settings: Settings) -> SalesAssistant:
    """Wire the search cascade and synthesizer to their Azure and web clients."""
    from azure.core.credentials import AzureKeyCredential
    from azure.cosmos.aio import CosmosClient
    from azure.identity import DefaultAzureCredential
    from azure.identity.aio import DefaultAzureCredential as AsyncCredential
    from openai import AsyncAzureOpenAI

    config = settings.pipeline_config()
    credential = DefaultAzureCredential()

    openai_auth: dict[str, Any] = (
        {"api_key": settings.azure_openai_api_key}
        if settings.azure_openai_api_key
        else {
            "azure_ad_token_provider": lambda: credential.get_token(_COGNITIVE_SCOPE).token
        }
    )

    embedding_client = AsyncAzureOpenAI(
        azure_endpoint=settings.azure_openai_endpoint,
        api_version=settings.azure_openai_api_version,
        **openai_auth,
    )
    search_credential: Any = (
        AzureKeyCredential(settings.azure_search_api_key)
        if settings.azure_search_api_key
        else credential
    )
    retriever = VectorRetriever(
        config,
        endpoint=settings.azure_search_endpoint,
        index_name=settings.azure_search_index_name,
        credential=search_credential,
        embedding_client=embedding_client,
        embedding_deployment=settings.azure_openai_embedding_deployment,
    )

    cosmos_client = CosmosClient(settings.cosmos_endpoint, credential=AsyncCredential())
    corpus = CosmosDocumentCorpus(
        client=cosmos_client,
        database=settings.cosmos_database,
        documents_container=settings.cosmos_documents_container,
        chunks_container=settings.cosmos_chunks_container,
    )
    audit_sink = CosmosAuditSink(
        client=cosmos_client,
        database=settings.cosmos_database,
        container=settings.cosmos_web_search_logs_container,
    )

    web_backend = (
        WebSearchClient(
            api_key=settings.web_search_api_key,
            base_url=settings.web_search_base_url,
            model=settings.web_search_model,
        )
        if settings.web_search_api_key
        else None
    )

    orchestrator = SearchOrchestrator(
        config=config,
        matcher=KnowledgeHeuristicMatcher(settings.knowledge_base_path),
        searcher=DocumentContentSearcher(corpus, config),
        expander=QueryExpander(),
        retriever=retriever,
        fallback=ExternalSearchFallback(web_backend, audit_sink),
    )
    synthesizer = ResponseSynthesizer(
        model_client=build_model_client(settings, config, **openai_auth),
        config=config,
    )
    return SalesAssistant(orchestrator=orchestrator, synthesizer=synthesizer)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Merchant sales assistant starting up")

    app.state.settings = settings

    yield

    logger.info("Merchant sales assistant shutting down")


def _app_settings(request: Request) -> Settings:
    """Settings stored by the lifespan handler, loaded on demand when it has not run."""
    settings: Settings | None = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = get_settings()
        request.app.state.settings = settings
    return settings


async def get_current_user(request: Request) -> User:
    """FastAPI dependency: extract and validate the Bearer token.

    Returns a User from token claims. Raises 401 if the token is missing or invalid.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer ") or not auth_header.removeprefix("Bearer ").strip():
        raise HTTPException(
            status_code=401,
            detail=ErrorResponse(
                error=ErrorCode.UNAUTHORIZED,
                message="Missing or invalid Authorization header. Bearer token required.",
            ).model_dump(),
        )

    settings = _app_settings(request)
    try:
        return await AuthService(audience=settings.auth_audience).validate_token(auth_header)
    except ValueError as e:
        raise HTTPException(
            status_code=401,
            detail=ErrorResponse(
                error=ErrorCode.UNAUTHORIZED,
                message=str(e),
            ).model_dump(),
        ) from None


async def get_assistant(request: Request) -> SalesAssistant:
    """FastAPI dependency: the process-wide assistant, built on first use."""
    assistant: SalesAssistant | None = getattr(request.app.state, "assistant", None)
    if assistant is None:
        assistant = build_assistant(_app_settings(request))
        request.app.state.assistant = assistant
    return assistant


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="Merchant Services Sales Assistant API",
        version=VERSION,
        description="Grounded answers for merchant services sales agents",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.get("/")
    async def root() -> dict:
        """Root endpoint with API info."""
        return {
            "name": "Merchant Services Sales Assistant",
            "version": VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    @application.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint used by container probes."""
        return HealthResponse(
            status="healthy",
            version=VERSION,
            timestamp=datetime.now(tz=UTC).isoformat(),
        )

    @application.post(
        "/chat",
        response_model=AssistantResponse,
        response_model_exclude_none=True,
    )
    async def send_message(
        body: ChatRequest,
        request: Request,
        current_user: User = Depends(get_current_user),
    ) -> AssistantResponse:
        """Answer a question grounded in internal documents.

        Runs the search cascade, generates an answer and returns it with
        sources, reasoning and extracted tasks.
        """
        start_time = time.monotonic()
        settings = _app_settings(request)

        if len(body.message) > settings.max_input_length:
            return JSONResponse(  # type: ignore[return-value]
                status_code=400,
                content=ErrorResponse(
                    error=ErrorCode.INPUT_TOO_LONG,
                    message=f"Message exceeds maximum length of {settings.max_input_length} characters.",
                ).model_dump(),
            )

        if not body.message.strip():
            return JSONResponse(  # type: ignore[return-value]
                status_code=400,
                content=ErrorResponse(
                    error=ErrorCode.INVALID_REQUEST,
                    message="Message cannot be empty.",
                ).model_dump(),
            )

        messages = [*body.history, ConversationMessage(role="user", content=body.message)]

        try:
            assistant = await get_assistant(request)
            result = await assistant.answer(messages, user_id=current_user.user_id)
        except SynthesisError as e:
            logger.error("Answer synthesis failed", extra={"user_id": current_user.user_id})
            return JSONResponse(  # type: ignore[return-value]
                status_code=503,
                content=ErrorResponse(
                    error=ErrorCode.SYNTHESIS_FAILED,
                    message=e.user_message,
                ).model_dump(),
            )
        except Exception:
            logger.exception("Chat endpoint error")
            return JSONResponse(  # type: ignore[return-value]
                status_code=503,
                content=ErrorResponse(
                    error=ErrorCode.SERVICE_UNAVAILABLE,
                    message="The service is temporarily unavailable. Please try again later.",
                ).model_dump(),
            )

        latency_ms = int((time.monotonic() - start_time) * 1000)
        if latency_ms > 5000:
            logger.warning(
                "Response exceeded 5s target",
                extra={"latency_ms": latency_ms, "user_id": current_user.user_id},
            )
        else:
            logger.info(
                "Chat response completed",
                extra={"latency_ms": latency_ms, "user_id": current_user.user_id},
            )

        return result

    return application


app = create_app()
