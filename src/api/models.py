"""Pydantic request/response schemas for the Conversation Q&A API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from src.pipeline_config import SearchScope
from src.retrieval.models import QAHistoryItem


class HistoryItem(BaseModel):
    """A prior question/answer exchange from the current Q&A session."""

    question: str
    answer: str

    def to_domain(self) -> QAHistoryItem:
        return QAHistoryItem(question=self.question, answer=self.answer)


class AskRequest(BaseModel):
    """Request body for conversation and folder asks."""

    question: str = Field(min_length=1, max_length=2000)
    max_results: int | None = Field(default=None, ge=1, le=50)
    history: list[HistoryItem] | None = Field(default=None, max_length=20)

    def history_items(self) -> list[QAHistoryItem] | None:
        if not self.history:
            return None
        return [h.to_domain() for h in self.history]


class GlobalAskRequest(BaseModel):
    """Request body for /api/ask (all of the caller's conversations)."""

    question: str = Field(min_length=1, max_length=2000)
    max_results: int | None = Field(default=None, ge=1, le=50)


class FindRequest(BaseModel):
    """Request body for /api/find."""

    query: str = Field(min_length=1, max_length=2000)
    folder_id: str | None = None
    max_results: int | None = Field(default=None, ge=1, le=50)


class CitationModel(BaseModel):
    transcription_id: str
    conversation_title: str
    speaker: str
    timestamp: str
    timestamp_seconds: float
    text: str
    relevance_score: float


class DebugInfoModel(BaseModel):
    summary_tokens: int
    chunks_tokens: int
    history_tokens: int
    question_tokens: int
    system_prompt_tokens: int
    total_input_tokens: int
    output_tokens: int
    history_count: int
    chunks_count: int
    estimated_cost_usd: float
    model: str


class AskResponseModel(BaseModel):
    answer: str
    citations: list[CitationModel]
    search_scope: SearchScope
    processing_time_ms: int
    indexed: bool | None = None
    debug: DebugInfoModel | None = None


class MatchedSnippetModel(BaseModel):
    text: str
    speaker: str
    timestamp: str
    timestamp_seconds: float
    relevance_score: float


class ConversationMatchModel(BaseModel):
    transcription_id: str
    title: str
    created_at: datetime | None = None
    folder_id: str | None = None
    folder_name: str | None = None
    matched_snippets: list[MatchedSnippetModel] = []
    total_matches: int = 0
    max_score: float = 0.0


class FindResponseModel(BaseModel):
    conversations: list[ConversationMatchModel]
    total_conversations: int
    search_scope: SearchScope
    processing_time_ms: int


class IndexingStatusModel(BaseModel):
    indexed: bool
    chunk_count: int
    indexed_at: datetime | None = None


class ReindexResponse(BaseModel):
    transcription_id: str
    chunks_indexed: int


class VectorHealthResponse(BaseModel):
    available: bool
    reachable: bool
