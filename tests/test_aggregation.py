"""Tests for grouping raw hits into ranked conversation matches."""

from __future__ import annotations

from unittest.mock import MagicMock

from src.ingestion.models import FolderRecord
from src.pipeline_config import ChunkType
from src.retrieval.aggregation import (
    build_conversation_matches,
    group_by_transcription,
    resolve_folder_names,
    to_snippet,
)
from tests.fakes import scored_chunk


class TestGroupByTranscription:
    def test_keeps_rank_within_groups(self) -> None:
        results = [
            scored_chunk("t1", text="a", score=0.9),
            scored_chunk("t2", text="b", score=0.8),
            scored_chunk("t1", text="c", score=0.7),
        ]
        groups = group_by_transcription(results)

        assert list(groups) == ["t1", "t2"]
        assert [r.payload.text for r in groups["t1"]] == ["a", "c"]


class TestBuildConversationMatches:
    def test_sorted_by_best_score(self) -> None:
        results = [
            scored_chunk("t1", score=0.6),
            scored_chunk("t2", score=0.5),
            scored_chunk("t2", score=0.95, chunk_type=ChunkType.METADATA, text="Overview"),
        ]
        matches = build_conversation_matches(results)

        assert [m.transcription_id for m in matches] == ["t2", "t1"]
        # The metadata hit counts toward the score but not toward snippets
        assert matches[0].max_score == 0.95
        assert matches[0].total_matches == 2
        assert len(matches[0].matched_snippets) == 1

    def test_at_most_three_content_snippets(self) -> None:
        results = [scored_chunk("t1", text=f"chunk {i}", score=0.9 - i / 100) for i in range(5)]
        [match] = build_conversation_matches(results)

        assert [s.text for s in match.matched_snippets] == ["chunk 0", "chunk 1", "chunk 2"]
        assert match.total_matches == 5

    def test_metadata_only_conversation_has_no_snippets(self) -> None:
        results = [scored_chunk("t1", chunk_type=ChunkType.METADATA, text="Weekly sync")]
        [match] = build_conversation_matches(results)

        assert match.matched_snippets == []
        assert match.total_matches == 1

    def test_carries_title_date_and_folder(self) -> None:
        results = [scored_chunk("t1", folder_id="f1", title="Board meeting")]
        [match] = build_conversation_matches(results, {"f1": "Board"})

        assert match.title == "Board meeting"
        assert match.folder_id == "f1"
        assert match.folder_name == "Board"
        assert match.created_at is not None
        assert match.created_at.year == 2026

    def test_unknown_folder_has_no_name(self) -> None:
        [match] = build_conversation_matches([scored_chunk("t1", folder_id="gone")])
        assert match.folder_name is None

    def test_empty(self) -> None:
        assert build_conversation_matches([]) == []


class TestToSnippet:
    def test_truncated_with_timestamp(self) -> None:
        snippet = to_snippet(scored_chunk(text="z" * 200, start_time=3725.0, score=0.66))

        assert len(snippet.text) == 150
        assert snippet.text.endswith("...")
        assert snippet.timestamp == "1:02:05"
        assert snippet.timestamp_seconds == 3725.0
        assert snippet.relevance_score == 0.66


class TestResolveFolderNames:
    def test_looks_up_each_folder_once(self) -> None:
        folders = MagicMock()
        folders.get_folder.return_value = FolderRecord(id="f1", name="Board")
        results = [scored_chunk("t1", folder_id="f1"), scored_chunk("t2", folder_id="f1")]

        names = resolve_folder_names("user-1", results, folders)

        assert names == {"f1": "Board"}
        folders.get_folder.assert_called_once_with("user-1", "f1")

    def test_lookup_failure_skipped(self) -> None:
        folders = MagicMock()
        folders.get_folder.side_effect = RuntimeError("supabase down")

        names = resolve_folder_names("user-1", [scored_chunk("t1", folder_id="f1")], folders)

        assert names == {}

    def test_missing_folder_skipped(self) -> None:
        folders = MagicMock()
        folders.get_folder.return_value = None
        assert resolve_folder_names("user-1", [scored_chunk("t1", folder_id="f1")], folders) == {}

    def test_no_folders_no_lookups(self) -> None:
        folders = MagicMock()
        assert resolve_folder_names("user-1", [scored_chunk("t1")], folders) == {}
        folders.get_folder.assert_not_called()
