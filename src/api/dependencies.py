"""FastAPI dependencies: caller identity and the process-wide QAService."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from anthropic import Anthropic
from fastapi import Header
from openai import OpenAI
from qdrant_client import QdrantClient

from src.config import Settings, get_settings
from src.ingestion.embeddings import EmbeddingClient
from src.ingestion.pipeline import Indexer
from src.ingestion.storage import (
    SupabaseFolderStore,
    SupabaseTranscriptStore,
    TranscriptStore,
    get_supabase_client,
)
from src.ingestion.vector_store import VectorStore
from src.pipeline_config import ChunkingConfig
from src.retrieval.generation import AnswerSynthesizer, LanguageModelClient
from src.retrieval.router import QueryRouter
from src.retrieval.service import QAService


def get_user_id(x_user_id: Annotated[str, Header(min_length=1)]) -> str:
    """The authenticated caller, as forwarded by the auth gateway."""
    return x_user_id


def build_vector_store(settings: Settings) -> VectorStore:
    client = (
        QdrantClient(url=settings.qdrant_url, api_key=settings.qdrant_api_key or None)
        if settings.qdrant_url
        else None
    )
    return VectorStore(
        client,
        collection_name=settings.qdrant_collection,
        vector_size=settings.embedding_dimensions,
        max_attempts=settings.provider_max_attempts,
    )


def build_embedding_client(settings: Settings) -> EmbeddingClient:
    return EmbeddingClient(
        OpenAI(api_key=settings.openai_api_key),
        model=settings.embedding_model,
        dimensions=settings.embedding_dimensions,
        max_attempts=settings.provider_max_attempts,
    )


def build_indexer(
    settings: Settings,
    transcripts: TranscriptStore,
    embeddings: EmbeddingClient,
    vector_store: VectorStore,
) -> Indexer:
    return Indexer(
        transcripts,
        embeddings,
        vector_store,
        ChunkingConfig(
            max_tokens=settings.chunk_max_tokens,
            overlap_tokens=settings.chunk_overlap_tokens,
            min_chunk_size=settings.chunk_min_size,
        ),
    )


def build_qa_service(settings: Settings) -> QAService:
    """Wire every component from settings."""
    supabase = get_supabase_client(settings)
    transcripts = SupabaseTranscriptStore(supabase)
    folders = SupabaseFolderStore(supabase)

    embeddings = build_embedding_client(settings)
    vector_store = build_vector_store(settings)
    indexer = build_indexer(settings, transcripts, embeddings, vector_store)
    router = QueryRouter(
        indexer,
        embeddings,
        vector_store,
        transcripts,
        folders,
        score_threshold=settings.search_score_threshold,
    )
    llm = LanguageModelClient(
        Anthropic(api_key=settings.anthropic_api_key),
        model=settings.llm_model,
        temperature=settings.qa_temperature,
        max_tokens=settings.qa_max_tokens,
        max_attempts=settings.provider_max_attempts,
    )
    return QAService(router, AnswerSynthesizer(llm), indexer, vector_store, transcripts, folders)


@lru_cache(maxsize=1)
def get_qa_service() -> QAService:
    return build_qa_service(get_settings())
