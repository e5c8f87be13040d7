"""Data models for transcript indexing."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.pipeline_config import ChunkType


@dataclass(frozen=True)
class SpeakerSegment:
    """One speaker-attributed span of a transcript, produced upstream by transcription."""

    speaker: str
    start_time: float
    end_time: float
    text: str


@dataclass
class Chunk:
    """A bounded span of segment text ready for embedding."""

    segment_index: int
    chunk_index: int
    total_chunks: int
    speaker: str
    start_time: float
    end_time: float
    text: str


@dataclass(frozen=True)
class KeyPoint:
    topic: str
    description: str = ""


@dataclass(frozen=True)
class DetailedSection:
    topic: str
    content: str


@dataclass
class StructuredSummary:
    """Structured (v2) conversation summary written by the analysis pipeline."""

    title: str | None = None
    intro: str | None = None
    key_points: list[KeyPoint] = field(default_factory=list)
    detailed_sections: list[DetailedSection] = field(default_factory=list)
    decisions: list[str] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StructuredSummary:
        return cls(
            title=data.get("title"),
            intro=data.get("intro"),
            key_points=[
                KeyPoint(topic=kp.get("topic", ""), description=kp.get("description", ""))
                for kp in data.get("keyPoints") or data.get("key_points") or []
            ],
            detailed_sections=[
                DetailedSection(topic=s.get("topic", ""), content=s.get("content", ""))
                for s in data.get("detailedSections") or data.get("detailed_sections") or []
            ],
            decisions=list(data.get("decisions") or []),
            next_steps=list(data.get("nextSteps") or data.get("next_steps") or []),
        )


@dataclass
class IndexingState:
    """Vector-index bookkeeping stored on the transcript record."""

    vector_indexed_at: datetime | None = None
    vector_chunk_count: int | None = None
    vector_index_version: int | None = None


@dataclass
class TranscriptRecord:
    """The slice of a stored transcript the Q&A core reads."""

    id: str
    user_id: str
    created_at: datetime
    title: str | None = None
    file_name: str | None = None
    segments: list[SpeakerSegment] = field(default_factory=list)
    summary: str | None = None
    summary_v2: StructuredSummary | None = None
    folder_id: str | None = None
    indexing: IndexingState = field(default_factory=IndexingState)

    @property
    def display_title(self) -> str:
        return self.title or self.file_name or "Untitled"


@dataclass(frozen=True)
class FolderRecord:
    id: str
    name: str


@dataclass
class ChunkPayload:
    """Payload stored alongside every vector point.

    Serialised with camelCase keys; ``userId``, ``transcriptionId`` and
    ``folderId`` carry keyword indexes in the collection.
    """

    user_id: str
    transcription_id: str
    folder_id: str | None
    chunk_type: ChunkType
    segment_index: int
    speaker: str
    start_time: float
    end_time: float
    text: str
    chunk_index: int
    total_chunks: int
    conversation_title: str
    conversation_date: str
    indexed_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "transcriptionId": self.transcription_id,
            "folderId": self.folder_id,
            "chunkType": self.chunk_type.value,
            "segmentIndex": self.segment_index,
            "speaker": self.speaker,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "text": self.text,
            "chunkIndex": self.chunk_index,
            "totalChunks": self.total_chunks,
            "conversationTitle": self.conversation_title,
            "conversationDate": self.conversation_date,
            "indexedAt": self.indexed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChunkPayload:
        """Parse a stored payload.  Points written before chunk types existed read as content."""
        try:
            chunk_type = ChunkType(data.get("chunkType") or ChunkType.CONTENT.value)
        except ValueError:
            chunk_type = ChunkType.CONTENT
        return cls(
            user_id=data["userId"],
            transcription_id=data["transcriptionId"],
            folder_id=data.get("folderId"),
            chunk_type=chunk_type,
            segment_index=int(data.get("segmentIndex", 0)),
            speaker=data.get("speaker") or "",
            start_time=float(data.get("startTime") or 0.0),
            end_time=float(data.get("endTime") or 0.0),
            text=data.get("text") or "",
            chunk_index=int(data.get("chunkIndex", 0)),
            total_chunks=int(data.get("totalChunks", 1)),
            conversation_title=data.get("conversationTitle") or "Untitled",
            conversation_date=data.get("conversationDate") or "",
            indexed_at=data.get("indexedAt") or "",
        )


@dataclass
class Point:
    """One vector-database record."""

    id: str
    vector: list[float]
    payload: ChunkPayload


@dataclass
class ScoredChunk:
    """A search hit: stored payload plus similarity score."""

    id: str
    score: float
    payload: ChunkPayload
