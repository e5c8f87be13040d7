"""Result models for question answering and conversation discovery."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from src.pipeline_config import SearchScope


@dataclass(frozen=True)
class QAHistoryItem:
    """One prior question/answer exchange supplied by the caller."""

    question: str
    answer: str


@dataclass
class Citation:
    transcription_id: str
    conversation_title: str
    speaker: str
    timestamp: str
    timestamp_seconds: float
    text: str
    relevance_score: float


@dataclass
class QADebugInfo:
    """Token/cost accounting for one synthesis call (chars / 4 estimates)."""

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


@dataclass
class AskResponse:
    answer: str
    citations: list[Citation]
    search_scope: SearchScope
    processing_time_ms: int
    indexed: bool | None = None
    debug: QADebugInfo | None = None


@dataclass
class MatchedSnippet:
    text: str
    speaker: str
    timestamp: str
    timestamp_seconds: float
    relevance_score: float


@dataclass
class ConversationMatch:
    transcription_id: str
    title: str
    created_at: datetime | None
    folder_id: str | None
    folder_name: str | None
    matched_snippets: list[MatchedSnippet] = field(default_factory=list)
    total_matches: int = 0
    max_score: float = 0.0


@dataclass
class FindResponse:
    conversations: list[ConversationMatch]
    total_conversations: int
    search_scope: SearchScope
    processing_time_ms: int


@dataclass
class IndexingStatus:
    indexed: bool
    chunk_count: int
    indexed_at: datetime | None = None
