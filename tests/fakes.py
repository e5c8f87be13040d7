"""In-memory stand-ins for the transcript/folder stores, embeddings and Qdrant.

They follow the same contracts as the real components (user-scoped reads,
filtered search) so tests can exercise indexing and retrieval end to end
without network access.
"""

from __future__ import annotations

from datetime import datetime, timezone

from src.ingestion.models import (
    ChunkPayload,
    FolderRecord,
    IndexingState,
    Point,
    ScoredChunk,
    SpeakerSegment,
    StructuredSummary,
    TranscriptRecord,
)
from src.pipeline_config import ChunkType

CREATED_AT = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)


def make_segments() -> list[SpeakerSegment]:
    return [
        SpeakerSegment("Alice", 0.0, 12.0, "Welcome everyone. Let's review the Q3 budget."),
        SpeakerSegment("Bob", 12.0, 30.0, "Marketing spend is up twenty percent this quarter."),
        SpeakerSegment("Alice", 30.0, 45.0, "We agreed to hire two engineers in October."),
    ]


def make_transcript(
    transcription_id: str = "t1",
    user_id: str = "user-1",
    title: str | None = "Weekly sync",
    segments: list[SpeakerSegment] | None = None,
    folder_id: str | None = None,
    summary: str | None = None,
    summary_v2: StructuredSummary | None = None,
    indexing: IndexingState | None = None,
) -> TranscriptRecord:
    return TranscriptRecord(
        id=transcription_id,
        user_id=user_id,
        created_at=CREATED_AT,
        title=title,
        segments=make_segments() if segments is None else segments,
        summary=summary,
        summary_v2=summary_v2,
        folder_id=folder_id,
        indexing=indexing or IndexingState(),
    )


def scored_chunk(
    transcription_id: str = "t1",
    text: str = "Marketing spend is up twenty percent this quarter.",
    score: float = 0.8,
    speaker: str = "Bob",
    start_time: float = 65.0,
    chunk_type: ChunkType = ChunkType.CONTENT,
    title: str = "Weekly sync",
    folder_id: str | None = None,
    user_id: str = "user-1",
) -> ScoredChunk:
    payload = ChunkPayload(
        user_id=user_id,
        transcription_id=transcription_id,
        folder_id=folder_id,
        chunk_type=chunk_type,
        segment_index=-1 if chunk_type is ChunkType.METADATA else 1,
        speaker="" if chunk_type is ChunkType.METADATA else speaker,
        start_time=0.0 if chunk_type is ChunkType.METADATA else start_time,
        end_time=0.0 if chunk_type is ChunkType.METADATA else start_time + 10.0,
        text=text,
        chunk_index=0,
        total_chunks=1,
        conversation_title=title,
        conversation_date=CREATED_AT.isoformat(),
        indexed_at=CREATED_AT.isoformat(),
    )
    return ScoredChunk(id=f"{transcription_id}-{start_time}", score=score, payload=payload)


class FakeTranscriptStore:
    def __init__(self, *transcripts: TranscriptRecord) -> None:
        self.records = {t.id: t for t in transcripts}
        self.state_updates: list[tuple[str, IndexingState]] = []

    def get_transcript(self, user_id: str, transcription_id: str) -> TranscriptRecord | None:
        record = self.records.get(transcription_id)
        if record is None or record.user_id != user_id:
            return None
        return record

    def update_indexing_state(self, transcription_id: str, state: IndexingState) -> None:
        self.state_updates.append((transcription_id, state))
        self.records[transcription_id].indexing = state

    def list_transcripts_in_folder(self, user_id: str, folder_id: str) -> list[TranscriptRecord]:
        return [
            t for t in self.records.values() if t.user_id == user_id and t.folder_id == folder_id
        ]

    def list_transcripts(self, user_id: str | None = None) -> list[TranscriptRecord]:
        return [t for t in self.records.values() if user_id is None or t.user_id == user_id]


class FakeFolderStore:
    def __init__(self) -> None:
        self._folders: dict[str, tuple[str, FolderRecord]] = {}

    def add(self, user_id: str, folder_id: str, name: str) -> None:
        self._folders[folder_id] = (user_id, FolderRecord(id=folder_id, name=name))

    def get_folder(self, user_id: str, folder_id: str) -> FolderRecord | None:
        entry = self._folders.get(folder_id)
        if entry is None or entry[0] != user_id:
            return None
        return entry[1]


class FakeEmbeddings:
    """Deterministic 4-d vectors; records every request."""

    model = "fake-embedding"
    dimensions = 4

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append([text])
        return self._vector(text)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(t) for t in texts]

    @staticmethod
    def _vector(text: str) -> list[float]:
        return [float(len(text)), 1.0, 0.0, 0.0]


class InMemoryVectorStore:
    """Vector store double that applies the same payload filters as Qdrant.

    Every stored point scores ``score``; hits below the threshold are dropped.
    """

    def __init__(self, score: float = 0.9) -> None:
        self.points: dict[str, Point] = {}
        self.score = score
        self.searches: list[dict[str, object]] = []
        self._next_id = 0

    def is_configured(self) -> bool:
        return True

    def health_check(self) -> bool:
        return True

    def generate_point_id(self) -> str:
        self._next_id += 1
        return f"point-{self._next_id}"

    def upsert(self, points: list[Point]) -> None:
        for point in points:
            self.points[point.id] = point

    def search(
        self,
        vector: list[float],
        user_id: str,
        transcription_id: str | None = None,
        folder_id: str | None = None,
        limit: int = 10,
        score_threshold: float = 0.3,
    ) -> list[ScoredChunk]:
        self.searches.append(
            {
                "user_id": user_id,
                "transcription_id": transcription_id,
                "folder_id": folder_id,
                "limit": limit,
            }
        )
        if self.score < score_threshold:
            return []
        hits = [
            ScoredChunk(id=p.id, score=self.score, payload=p.payload)
            for p in self.points.values()
            if p.payload.user_id == user_id
            and (transcription_id is None or p.payload.transcription_id == transcription_id)
            and (folder_id is None or p.payload.folder_id == folder_id)
        ]
        return hits[:limit]

    def delete_by_transcription_id(self, transcription_id: str, user_id: str | None = None) -> int:
        doomed = [
            pid
            for pid, p in self.points.items()
            if p.payload.transcription_id == transcription_id
            and (user_id is None or p.payload.user_id == user_id)
        ]
        for pid in doomed:
            del self.points[pid]
        return len(doomed)

    def delete_by_user_id(self, user_id: str) -> int:
        doomed = [pid for pid, p in self.points.items() if p.payload.user_id == user_id]
        for pid in doomed:
            del self.points[pid]
        return len(doomed)

    def count_by_transcription_id(self, transcription_id: str) -> int:
        return len(self.points_for(transcription_id))

    def points_for(self, transcription_id: str) -> list[Point]:
        return [p for p in self.points.values() if p.payload.transcription_id == transcription_id]
