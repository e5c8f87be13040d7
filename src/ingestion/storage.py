"""Transcript and folder stores.

The Q&A core only needs a narrow read view of transcripts and folders plus
one write (indexing state).  ``TranscriptStore`` / ``FolderStore`` describe
that contract; the Supabase classes implement it against the ``transcriptions``
and ``folders`` tables.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol, cast

from supabase import Client, create_client

from src.config import Settings, get_settings
from src.ingestion.models import (
    FolderRecord,
    IndexingState,
    SpeakerSegment,
    StructuredSummary,
    TranscriptRecord,
)


class TranscriptStore(Protocol):
    def get_transcript(self, user_id: str, transcription_id: str) -> TranscriptRecord | None: ...

    def update_indexing_state(self, transcription_id: str, state: IndexingState) -> None: ...

    def list_transcripts_in_folder(self, user_id: str, folder_id: str) -> list[TranscriptRecord]: ...

    def list_transcripts(self, user_id: str | None = None) -> list[TranscriptRecord]: ...


class FolderStore(Protocol):
    def get_folder(self, user_id: str, folder_id: str) -> FolderRecord | None: ...


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Create and return a Supabase client from application settings."""
    settings = settings or get_settings()
    return create_client(settings.supabase_url, settings.supabase_key)


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    # Postgres timestamptz comes back as ISO-8601, sometimes with a trailing Z
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _segment_from_row(row: dict[str, Any]) -> SpeakerSegment:
    return SpeakerSegment(
        speaker=row.get("speaker") or row.get("speakerTag") or "Unknown",
        start_time=float(row.get("start_time", row.get("startTime", 0.0)) or 0.0),
        end_time=float(row.get("end_time", row.get("endTime", 0.0)) or 0.0),
        text=row.get("text") or "",
    )


def transcript_from_row(row: dict[str, Any]) -> TranscriptRecord:
    """Map a ``transcriptions`` row onto :class:`TranscriptRecord`."""
    summary_v2 = row.get("summary_v2")
    return TranscriptRecord(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        created_at=_parse_datetime(row.get("created_at")) or datetime.now(timezone.utc),
        title=row.get("title"),
        file_name=row.get("file_name"),
        segments=[_segment_from_row(s) for s in row.get("speaker_segments") or []],
        summary=row.get("summary"),
        summary_v2=StructuredSummary.from_dict(summary_v2) if summary_v2 else None,
        folder_id=row.get("folder_id"),
        indexing=IndexingState(
            vector_indexed_at=_parse_datetime(row.get("vector_indexed_at")),
            vector_chunk_count=row.get("vector_chunk_count"),
            vector_index_version=row.get("vector_index_version"),
        ),
    )


class SupabaseTranscriptStore:
    """Transcript store backed by the Supabase ``transcriptions`` table."""

    # Listing columns: enough to decide whether a transcript needs indexing.
    _LIST_COLUMNS = (
        "id,user_id,title,file_name,folder_id,created_at,"
        "vector_indexed_at,vector_chunk_count,vector_index_version"
    )

    def __init__(self, client: Client) -> None:
        self._client = client

    def get_transcript(self, user_id: str, transcription_id: str) -> TranscriptRecord | None:
        result = (
            self._client.table("transcriptions")
            .select("*")
            .eq("id", transcription_id)
            .eq("user_id", user_id)
            .execute()
        )
        rows = cast(list[dict[str, Any]], result.data)
        if not rows:
            return None
        return transcript_from_row(rows[0])

    def update_indexing_state(self, transcription_id: str, state: IndexingState) -> None:
        self._client.table("transcriptions").update(
            {
                "vector_indexed_at": (
                    state.vector_indexed_at.isoformat() if state.vector_indexed_at else None
                ),
                "vector_chunk_count": state.vector_chunk_count,
                "vector_index_version": state.vector_index_version,
            }
        ).eq("id", transcription_id).execute()

    def list_transcripts_in_folder(self, user_id: str, folder_id: str) -> list[TranscriptRecord]:
        result = (
            self._client.table("transcriptions")
            .select(self._LIST_COLUMNS)
            .eq("user_id", user_id)
            .eq("folder_id", folder_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [transcript_from_row(r) for r in cast(list[dict[str, Any]], result.data)]

    def list_transcripts(self, user_id: str | None = None) -> list[TranscriptRecord]:
        query = self._client.table("transcriptions").select(self._LIST_COLUMNS)
        if user_id:
            query = query.eq("user_id", user_id)
        result = query.order("created_at").execute()
        return [transcript_from_row(r) for r in cast(list[dict[str, Any]], result.data)]


class SupabaseFolderStore:
    """Folder store backed by the Supabase ``folders`` table."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def get_folder(self, user_id: str, folder_id: str) -> FolderRecord | None:
        result = (
            self._client.table("folders")
            .select("id,name")
            .eq("id", folder_id)
            .eq("user_id", user_id)
            .execute()
        )
        rows = cast(list[dict[str, Any]], result.data)
        if not rows:
            return None
        return FolderRecord(id=str(rows[0]["id"]), name=rows[0]["name"])
