from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Service configuration, read from the environment and an optional .env file.

    Every provider is optional at load time: a missing Qdrant URL disables
    vector search (see ``VectorStore``) rather than failing startup.
    """

    # Provider credentials
    anthropic_api_key: str = ""
    openai_api_key: str = ""

    # Transcript and folder records
    supabase_url: str = ""
    supabase_key: str = ""

    # Vector index (empty URL = vector search disabled)
    qdrant_url: str = ""
    qdrant_api_key: str = ""
    qdrant_collection: str = "transcript_chunks"

    # HTTP server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    # Embeddings; dimensions must match the collection's vector size
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536

    # Answer synthesis
    llm_model: str = "claude-sonnet-4-20250514"
    qa_temperature: float = 0.3
    qa_max_tokens: int = 1000

    # Chunking, in estimated tokens (4 characters each)
    chunk_max_tokens: int = 500
    chunk_overlap_tokens: int = 50
    chunk_min_size: int = 20

    # Hits scoring below this cosine similarity are dropped
    search_score_threshold: float = 0.3

    # Attempts per provider call (OpenAI, Anthropic, Qdrant), first try included
    provider_max_attempts: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process.

    Falls back to environment variables and defaults when the .env file is
    absent or unreadable (CI, containers).
    """
    try:
        return Settings()
    except Exception:
        return Settings(_env_file=None)  # type: ignore[call-arg]
