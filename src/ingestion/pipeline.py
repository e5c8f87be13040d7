"""On-demand indexing pipeline: fetch -> chunk -> embed -> upsert."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from src.exceptions import NotFoundError
from src.ingestion.chunking import chunk_segments
from src.ingestion.embeddings import EmbeddingClient
from src.ingestion.models import (
    Chunk,
    ChunkPayload,
    IndexingState,
    Point,
    TranscriptRecord,
)
from src.ingestion.storage import TranscriptStore
from src.ingestion.vector_store import VectorStore
from src.pipeline_config import VECTOR_INDEX_VERSION, ChunkingConfig, ChunkType

logger = logging.getLogger(__name__)


def build_metadata_text(transcript: TranscriptRecord) -> str:
    """Synthesize the overview text for a transcript's metadata point.

    Title, summary intro and key-point topics, skipping whatever is absent.
    This point exists for broad questions that no single excerpt matches.
    """
    parts = [transcript.display_title]
    summary = transcript.summary_v2
    if summary and summary.intro:
        parts.append(summary.intro)
    if summary and summary.key_points:
        topics = ", ".join(kp.topic for kp in summary.key_points)
        parts.append(f"Topics: {topics}")
    return ". ".join(parts)


def needs_reindex(transcript: TranscriptRecord) -> bool:
    """True when never indexed or indexed by an older index version."""
    state = transcript.indexing
    if state.vector_indexed_at is None:
        return True
    return (state.vector_index_version or 0) < VECTOR_INDEX_VERSION


class Indexer:
    """Materializes transcripts into the vector store.

    Re-indexing deletes a transcript's points before the new ones are
    upserted, so a query running in between sees the transcript as not
    indexed rather than half-indexed.  :meth:`ensure_indexed` is
    check-then-act: concurrent callers may both index the same transcript.
    That costs a duplicate embedding pass; the last writer's points win.
    """

    def __init__(
        self,
        transcripts: TranscriptStore,
        embeddings: EmbeddingClient,
        vector_store: VectorStore,
        chunking_config: ChunkingConfig | None = None,
    ) -> None:
        self._transcripts = transcripts
        self._embeddings = embeddings
        self._vector_store = vector_store
        self._chunking_config = chunking_config or ChunkingConfig()

    def index_transcription(self, user_id: str, transcription_id: str) -> int:
        """Index (or re-index) one transcript.

        Returns:
            Number of points written (content chunks + 1 metadata point),
            or 0 when the transcript has nothing to index.

        Raises:
            NotFoundError: The transcript does not exist for this user.
        """
        start = time.perf_counter()

        transcript = self._transcripts.get_transcript(user_id, transcription_id)
        if transcript is None:
            raise NotFoundError("Transcription", transcription_id)

        if not transcript.segments:
            logger.warning("Transcription %s has no speaker segments", transcription_id)
            return 0

        self._vector_store.delete_by_transcription_id(transcription_id, user_id=user_id)

        chunks = chunk_segments(transcript.segments, self._chunking_config)
        if not chunks:
            logger.warning("No chunks generated for transcription %s", transcription_id)
            return 0

        metadata_text = build_metadata_text(transcript)
        vectors = self._embeddings.embed_batch([c.text for c in chunks] + [metadata_text])

        indexed_at = datetime.now(timezone.utc)
        points = [
            self._point(user_id, transcript, chunk, ChunkType.CONTENT, vector, indexed_at)
            for chunk, vector in zip(chunks, vectors[:-1], strict=True)
        ]
        metadata_chunk = Chunk(
            segment_index=-1,
            chunk_index=0,
            total_chunks=1,
            speaker="",
            start_time=0.0,
            end_time=0.0,
            text=metadata_text,
        )
        points.append(
            self._point(
                user_id, transcript, metadata_chunk, ChunkType.METADATA, vectors[-1], indexed_at
            )
        )

        self._vector_store.upsert(points)
        self._transcripts.update_indexing_state(
            transcription_id,
            IndexingState(
                vector_indexed_at=indexed_at,
                vector_chunk_count=len(points),
                vector_index_version=VECTOR_INDEX_VERSION,
            ),
        )

        logger.info(
            "Indexed transcription %s: %d chunks (%d content + 1 metadata) in %.0fms",
            transcription_id,
            len(points),
            len(chunks),
            (time.perf_counter() - start) * 1000,
        )
        return len(points)

    def _point(
        self,
        user_id: str,
        transcript: TranscriptRecord,
        chunk: Chunk,
        chunk_type: ChunkType,
        vector: list[float],
        indexed_at: datetime,
    ) -> Point:
        payload = ChunkPayload(
            user_id=user_id,
            transcription_id=transcript.id,
            folder_id=transcript.folder_id or None,
            chunk_type=chunk_type,
            segment_index=chunk.segment_index,
            speaker=chunk.speaker,
            start_time=chunk.start_time,
            end_time=chunk.end_time,
            text=chunk.text,
            chunk_index=chunk.chunk_index,
            total_chunks=chunk.total_chunks,
            conversation_title=transcript.display_title,
            conversation_date=transcript.created_at.isoformat(),
            indexed_at=indexed_at.isoformat(),
        )
        return Point(id=self._vector_store.generate_point_id(), vector=vector, payload=payload)

    def is_indexed(self, transcription_id: str) -> bool:
        return self._vector_store.count_by_transcription_id(transcription_id) > 0

    def ensure_indexed(self, user_id: str, transcription_id: str) -> None:
        """Index the transcript only if it has no points yet."""
        if not self.is_indexed(transcription_id):
            self.index_transcription(user_id, transcription_id)

    def delete_vectors(self, user_id: str, transcription_id: str) -> int:
        return self._vector_store.delete_by_transcription_id(transcription_id, user_id=user_id)
