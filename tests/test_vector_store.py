"""Tests for the Qdrant vector store wrapper, using a mocked QdrantClient."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from qdrant_client.http.exceptions import ResponseHandlingException

from src.exceptions import VectorStoreNotConfiguredError
from src.ingestion.models import ChunkPayload, Point
from src.ingestion.vector_store import VectorStore, build_search_filter
from src.pipeline_config import ChunkType
from tests.fakes import scored_chunk


def _store(client: MagicMock | None = None) -> VectorStore:
    return VectorStore(client, collection_name="test_chunks", vector_size=4, retry_wait=0)


def _point(index: int) -> Point:
    payload = scored_chunk(transcription_id="t1", start_time=float(index)).payload
    return Point(id=f"p{index}", vector=[0.1, 0.2, 0.3, 0.4], payload=payload)


def _stored_payload() -> dict[str, object]:
    return scored_chunk(transcription_id="t1", folder_id="f1").payload.to_dict()


class TestBuildSearchFilter:
    def test_user_id_always_first(self) -> None:
        query_filter = build_search_filter("user-1", transcription_id="t1", folder_id="f1")
        keys = [c.key for c in query_filter.must]
        assert keys == ["userId", "transcriptionId", "folderId"]
        assert query_filter.must[0].match.value == "user-1"

    def test_global_scope_only_filters_user(self) -> None:
        query_filter = build_search_filter("user-1")
        assert [c.key for c in query_filter.must] == ["userId"]


class TestSearch:
    def test_applies_user_filter_and_threshold(self) -> None:
        client = MagicMock()
        client.query_points.return_value = SimpleNamespace(
            points=[SimpleNamespace(id="abc", score=0.82, payload=_stored_payload())]
        )
        store = _store(client)

        results = store.search([0.1] * 4, user_id="user-1", transcription_id="t1", limit=5)

        kwargs = client.query_points.call_args.kwargs
        assert kwargs["collection_name"] == "test_chunks"
        assert kwargs["limit"] == 5
        assert kwargs["score_threshold"] == 0.3
        assert kwargs["with_payload"] is True
        assert kwargs["query_filter"].must[0].key == "userId"
        assert kwargs["query_filter"].must[0].match.value == "user-1"

        assert len(results) == 1
        assert results[0].id == "abc"
        assert results[0].score == 0.82
        assert results[0].payload.transcription_id == "t1"
        assert results[0].payload.folder_id == "f1"

    def test_user_id_required(self) -> None:
        with pytest.raises(ValueError):
            _store(MagicMock()).search([0.1] * 4, user_id="")

    def test_transient_error_retried(self) -> None:
        client = MagicMock()
        client.query_points.side_effect = [
            ResponseHandlingException(ConnectionError("reset")),
            SimpleNamespace(points=[]),
        ]
        assert _store(client).search([0.1] * 4, user_id="user-1") == []
        assert client.query_points.call_count == 2


class TestUpsert:
    def test_batches_of_one_hundred(self) -> None:
        client = MagicMock()
        store = _store(client)

        store.upsert([_point(i) for i in range(250)])

        sizes = [len(c.kwargs["points"]) for c in client.upsert.call_args_list]
        assert sizes == [100, 100, 50]
        assert all(c.kwargs["wait"] is True for c in client.upsert.call_args_list)

    def test_payload_written_with_camel_case_keys(self) -> None:
        client = MagicMock()
        _store(client).upsert([_point(1)])

        payload = client.upsert.call_args.kwargs["points"][0].payload
        assert payload["userId"] == "user-1"
        assert payload["transcriptionId"] == "t1"
        assert payload["chunkType"] == "content"
        assert payload["startTime"] == 1.0

    def test_empty_is_noop(self) -> None:
        client = MagicMock()
        _store(client).upsert([])
        client.upsert.assert_not_called()


class TestDelete:
    def test_by_transcription_scoped_to_user(self) -> None:
        client = MagicMock()
        _store(client).delete_by_transcription_id("t1", user_id="user-1")

        selector = client.delete.call_args.kwargs["points_selector"]
        conditions = {(c.key, c.match.value) for c in selector.filter.must}
        assert conditions == {("transcriptionId", "t1"), ("userId", "user-1")}

    def test_by_user(self) -> None:
        client = MagicMock()
        _store(client).delete_by_user_id("user-9")

        selector = client.delete.call_args.kwargs["points_selector"]
        assert [(c.key, c.match.value) for c in selector.filter.must] == [("userId", "user-9")]

    def test_returns_reported_count(self) -> None:
        client = MagicMock()
        client.delete.return_value = SimpleNamespace(deleted_count=5)
        store = _store(client)

        assert store.delete_by_transcription_id("t1", user_id="user-1") == 5
        assert store.delete_by_user_id("user-1") == 5

    def test_status_without_count_reads_as_zero(self) -> None:
        client = MagicMock()
        client.delete.return_value = SimpleNamespace(operation_id=3, status="completed")
        store = _store(client)

        assert store.delete_by_transcription_id("t1") == 0
        assert store.delete_by_user_id("user-1") == 0


class TestHealthCheck:
    def test_reachable(self) -> None:
        client = MagicMock()
        client.get_collections.return_value = SimpleNamespace(collections=[])
        assert _store(client).health_check() is True

    def test_error_reads_as_unhealthy(self) -> None:
        client = MagicMock()
        client.get_collections.side_effect = ConnectionError("qdrant down")
        assert _store(client).health_check() is False


class TestCount:
    def test_exact_count(self) -> None:
        client = MagicMock()
        client.count.return_value = SimpleNamespace(count=7)
        assert _store(client).count_by_transcription_id("t1") == 7
        assert client.count.call_args.kwargs["exact"] is True

    def test_error_reads_as_zero(self) -> None:
        client = MagicMock()
        client.count.side_effect = RuntimeError("down")
        assert _store(client).count_by_transcription_id("t1") == 0


class TestEnsureCollection:
    def test_existing_collection_untouched(self) -> None:
        client = MagicMock()
        client.get_collections.return_value = SimpleNamespace(
            collections=[SimpleNamespace(name="test_chunks")]
        )
        _store(client).ensure_collection()
        client.create_collection.assert_not_called()

    def test_creates_collection_and_keyword_indexes(self) -> None:
        client = MagicMock()
        client.get_collections.return_value = SimpleNamespace(collections=[])

        _store(client).ensure_collection()

        kwargs = client.create_collection.call_args.kwargs
        assert kwargs["collection_name"] == "test_chunks"
        assert kwargs["vectors_config"].size == 4
        indexed = [c.kwargs["field_name"] for c in client.create_payload_index.call_args_list]
        assert indexed == ["userId", "transcriptionId", "folderId"]

    def test_never_raises(self) -> None:
        client = MagicMock()
        client.get_collections.side_effect = ConnectionError("qdrant down")
        _store(client).ensure_collection()


class TestUnconfigured:
    def test_mutations_and_search_raise(self) -> None:
        store = _store(None)
        assert store.is_configured() is False
        with pytest.raises(VectorStoreNotConfiguredError):
            store.search([0.1] * 4, user_id="user-1")
        with pytest.raises(VectorStoreNotConfiguredError):
            store.upsert([])
        with pytest.raises(VectorStoreNotConfiguredError):
            store.delete_by_transcription_id("t1")
        with pytest.raises(VectorStoreNotConfiguredError):
            store.delete_by_user_id("user-1")

    def test_reads_degrade(self) -> None:
        store = _store(None)
        assert store.count_by_transcription_id("t1") == 0
        assert store.health_check() is False
        store.ensure_collection()


class TestChunkPayload:
    def test_missing_chunk_type_reads_as_content(self) -> None:
        data = _stored_payload()
        del data["chunkType"]
        assert ChunkPayload.from_dict(data).chunk_type is ChunkType.CONTENT

    def test_unknown_chunk_type_reads_as_content(self) -> None:
        data = _stored_payload()
        data["chunkType"] = "summary"
        assert ChunkPayload.from_dict(data).chunk_type is ChunkType.CONTENT

    def test_metadata_chunk_type(self) -> None:
        data = _stored_payload()
        data["chunkType"] = "metadata"
        assert ChunkPayload.from_dict(data).chunk_type is ChunkType.METADATA


def test_point_ids_are_unique_uuids() -> None:
    ids = {VectorStore.generate_point_id() for _ in range(10)}
    assert len(ids) == 10
    assert all(len(i) == 36 for i in ids)
