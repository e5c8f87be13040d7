"""Grouping and ranking of raw search hits into conversation matches."""

from __future__ import annotations

import logging
from datetime import datetime

from src.ingestion.chunking import format_timestamp, truncate_text
from src.ingestion.models import ScoredChunk
from src.ingestion.storage import FolderStore
from src.pipeline_config import ChunkType
from src.retrieval.models import ConversationMatch, MatchedSnippet

logger = logging.getLogger(__name__)

MAX_SNIPPETS_PER_CONVERSATION = 3
SNIPPET_LENGTH = 150


def group_by_transcription(results: list[ScoredChunk]) -> dict[str, list[ScoredChunk]]:
    """Group hits by transcript, keeping first-seen order and original rank within groups."""
    groups: dict[str, list[ScoredChunk]] = {}
    for result in results:
        groups.setdefault(result.payload.transcription_id, []).append(result)
    return groups


def to_snippet(chunk: ScoredChunk) -> MatchedSnippet:
    return MatchedSnippet(
        text=truncate_text(chunk.payload.text, SNIPPET_LENGTH),
        speaker=chunk.payload.speaker,
        timestamp=format_timestamp(chunk.payload.start_time),
        timestamp_seconds=chunk.payload.start_time,
        relevance_score=chunk.score,
    )


def resolve_folder_names(
    user_id: str,
    results: list[ScoredChunk],
    folders: FolderStore,
) -> dict[str, str]:
    """Look up display names for the folders referenced by *results*.

    Folders that no longer exist, or whose lookup fails, are left out.
    """
    names: dict[str, str] = {}
    folder_ids = {r.payload.folder_id for r in results if r.payload.folder_id}
    for folder_id in folder_ids:
        try:
            folder = folders.get_folder(user_id, folder_id)
        except Exception as exc:
            logger.warning("Folder lookup failed for %s: %s", folder_id, exc)
            continue
        if folder is not None:
            names[folder_id] = folder.name
    return names


def _parse_date(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def build_conversation_matches(
    results: list[ScoredChunk],
    folder_names: dict[str, str] | None = None,
) -> list[ConversationMatch]:
    """Turn raw hits into conversation matches sorted by best score.

    Snippets come only from content chunks (top 3 by rank); the sort key is
    the best score over every chunk of the conversation, metadata included.
    """
    folder_names = folder_names or {}
    matches: list[ConversationMatch] = []

    for transcription_id, chunks in group_by_transcription(results).items():
        first = chunks[0].payload
        snippets: list[MatchedSnippet] = []
        for chunk in chunks:
            match chunk.payload.chunk_type:
                case ChunkType.CONTENT:
                    if len(snippets) < MAX_SNIPPETS_PER_CONVERSATION:
                        snippets.append(to_snippet(chunk))
                case ChunkType.METADATA:
                    pass

        matches.append(
            ConversationMatch(
                transcription_id=transcription_id,
                title=first.conversation_title,
                created_at=_parse_date(first.conversation_date),
                folder_id=first.folder_id,
                folder_name=folder_names.get(first.folder_id) if first.folder_id else None,
                matched_snippets=snippets,
                total_matches=len(chunks),
                max_score=max(c.score for c in chunks),
            )
        )

    matches.sort(key=lambda m: m.max_score, reverse=True)
    return matches
