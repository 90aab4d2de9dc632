"""Environment-based configuration loader using pydantic BaseSettings."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

EmptyEvidencePolicy = Literal["auto_web_search", "ask_permission"]


class PipelineConfig(BaseModel):
    """Tunable thresholds for the retrieval cascade and synthesis.

    Passed explicitly to every pipeline component at construction time so
    that behaviour is fixed for the lifetime of a pipeline instance.
    """

    model_config = {"frozen": True}

    # Vector retrieval + reranking
    similarity_threshold: float = Field(0.7, ge=0.0, le=1.0)
    vector_top_k: int = Field(10, ge=1)
    namespaces: tuple[str, ...] = ("default",)
    tag_boost: float = Field(0.10, ge=0.0)
    quality_length_cap: int = Field(1000, ge=1)

    # Document content search
    internal_document_score: float = Field(0.9, ge=0.0, le=1.0)
    snippet_length: int = Field(500, ge=1)
    max_chunk_matches: int = Field(20, ge=1)

    # Synthesis
    max_grounding_records: int = Field(3, ge=1)
    max_action_items: int = Field(5, ge=0)
    max_followup_tasks: int = Field(3, ge=0)
    temperature: float = Field(0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(300, ge=1)

    # What to do when every internal stage comes back empty
    empty_evidence_policy: EmptyEvidencePolicy = "auto_web_search"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Service endpoints and credentials are loaded from environment
    variables (or a .env file) and validated at startup.
    """

    # Azure OpenAI (completion + embeddings)
    azure_openai_endpoint: str
    azure_openai_deployment: str = "gpt-4o"
    azure_openai_embedding_deployment: str = "text-embedding-3-small"
    azure_openai_api_version: str = "2024-06-01"
    azure_openai_api_key: str = ""  # Optional, uses DefaultAzureCredential when empty

    # Azure AI Search vector index (empty endpoint = not provisioned)
    azure_search_endpoint: str = ""
    azure_search_index_name: str = "merchant-docs"
    azure_search_api_key: str = ""

    # Azure Cosmos DB (document corpus + web search audit log)
    cosmos_endpoint: str
    cosmos_database: str = "merchant-copilot"
    cosmos_documents_container: str = "documents"
    cosmos_chunks_container: str = "document_chunks"
    cosmos_web_search_logs_container: str = "web_search_logs"

    # External web search (empty key = web fallback disabled)
    web_search_api_key: str = ""
    web_search_base_url: str = "https://api.perplexity.ai"
    web_search_model: str = "sonar"

    # Heuristic Q&A reference table
    knowledge_base_path: str = "uploads/knowledge-base.csv"

    # Pipeline tuning
    similarity_threshold: float = 0.7
    vector_top_k: int = 10
    vector_namespaces: str = "default"  # comma-separated
    empty_evidence_policy: EmptyEvidencePolicy = "auto_web_search"
    completion_temperature: float = 0.3
    completion_max_tokens: int = 300

    # Application
    auth_audience: str = ""  # Empty = accept any audience
    log_level: str = "INFO"
    max_input_length: int = 4000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def pipeline_config(self) -> PipelineConfig:
        """Build the pipeline configuration value object from these settings."""
        namespaces = tuple(ns.strip() for ns in self.vector_namespaces.split(",") if ns.strip())
        return PipelineConfig(
            similarity_threshold=self.similarity_threshold,
            vector_top_k=self.vector_top_k,
            namespaces=namespaces or ("default",),
            empty_evidence_policy=self.empty_evidence_policy,
            temperature=self.completion_temperature,
            max_tokens=self.completion_max_tokens,
        )


def get_settings() -> Settings:
    """Create and return a validated Settings instance."""
    return Settings()  # type: ignore[call-arg]
