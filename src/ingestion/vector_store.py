"""Qdrant-backed vector store for transcript chunks.

One collection holds every user's points.  Tenant isolation comes from the
``userId`` payload filter, which :meth:`VectorStore.search` always applies.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from qdrant_client import QdrantClient, models
from qdrant_client.http.exceptions import ResponseHandlingException

from src.exceptions import VectorStoreNotConfiguredError
from src.ingestion.models import ChunkPayload, Point, ScoredChunk
from src.retry import provider_retry

logger = logging.getLogger(__name__)

COLLECTION_NAME = "transcript_chunks"
VECTOR_SIZE = 1536  # text-embedding-3-small dimensions
UPSERT_BATCH_SIZE = 100
INDEXED_PAYLOAD_FIELDS = ("userId", "transcriptionId", "folderId")

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (ResponseHandlingException,)


def _match(key: str, value: str) -> models.FieldCondition:
    return models.FieldCondition(key=key, match=models.MatchValue(value=value))


def build_search_filter(
    user_id: str,
    transcription_id: str | None = None,
    folder_id: str | None = None,
) -> models.Filter:
    """Build the AND filter for a search.  ``userId`` is always the first term."""
    must: list[models.Condition] = [_match("userId", user_id)]
    if transcription_id:
        must.append(_match("transcriptionId", transcription_id))
    if folder_id:
        must.append(_match("folderId", folder_id))
    return models.Filter(must=must)


class VectorStore:
    """Idempotent wrapper around a single Qdrant collection.

    A store built without a client is *unconfigured*: mutating operations and
    search raise :class:`VectorStoreNotConfiguredError`, while
    :meth:`count_by_transcription_id` and :meth:`health_check` degrade to
    ``0`` / ``False``.

    Args:
        client: Qdrant client, or ``None`` when no Qdrant URL is configured.
        collection_name: Collection holding all transcript points.
        vector_size: Vector width; must equal the embedding dimensions.
        max_attempts: Attempts per call on transient transport errors.
        retry_wait: Initial backoff in seconds between attempts.
    """

    def __init__(
        self,
        client: QdrantClient | None,
        collection_name: str = COLLECTION_NAME,
        vector_size: int = VECTOR_SIZE,
        max_attempts: int = 3,
        retry_wait: float = 1.0,
    ) -> None:
        if client is None:
            logger.warning("QDRANT_URL not configured - vector search will be disabled")
        self._client = client
        self.collection_name = collection_name
        self.vector_size = vector_size
        self._max_attempts = max_attempts
        self._retry_wait = retry_wait

    def is_configured(self) -> bool:
        return self._client is not None

    def _require_client(self) -> QdrantClient:
        if self._client is None:
            raise VectorStoreNotConfiguredError()
        return self._client

    def _call(self, operation: str, fn: Any, **kwargs: Any) -> Any:
        retrying = provider_retry(
            TRANSIENT_ERRORS, self._max_attempts, f"qdrant.{operation}", self._retry_wait
        )
        return retrying(fn, **kwargs)

    def ensure_collection(self) -> None:
        """Create the collection and its payload indexes if missing.

        Never raises: startup must survive an unreachable Qdrant.
        """
        if self._client is None:
            logger.warning("Qdrant not configured, skipping collection check")
            return

        try:
            existing = self._client.get_collections().collections
            if any(c.name == self.collection_name for c in existing):
                logger.info("Collection %s already exists", self.collection_name)
                return

            logger.info("Creating collection: %s", self.collection_name)
            self._client.create_collection(
                collection_name=self.collection_name,
                vectors_config=models.VectorParams(
                    size=self.vector_size,
                    distance=models.Distance.COSINE,
                ),
                on_disk_payload=True,
                optimizers_config=models.OptimizersConfigDiff(indexing_threshold=10000),
            )
            self._create_payload_indexes()
            logger.info("Collection %s created successfully", self.collection_name)
        except Exception as exc:
            logger.error("Failed to ensure collection exists: %s", exc)

    def _create_payload_indexes(self) -> None:
        client = self._require_client()
        for field_name in INDEXED_PAYLOAD_FIELDS:
            try:
                client.create_payload_index(
                    collection_name=self.collection_name,
                    field_name=field_name,
                    field_schema=models.PayloadSchemaType.KEYWORD,
                )
                logger.debug("Created index on %s", field_name)
            except Exception as exc:
                logger.debug("Index on %s may already exist: %s", field_name, exc)

    def upsert(self, points: list[Point]) -> None:
        """Upsert points in batches of 100."""
        client = self._require_client()
        if not points:
            return

        for offset in range(0, len(points), UPSERT_BATCH_SIZE):
            batch = points[offset : offset + UPSERT_BATCH_SIZE]
            self._call(
                "upsert",
                client.upsert,
                collection_name=self.collection_name,
                points=[
                    models.PointStruct(id=p.id, vector=p.vector, payload=p.payload.to_dict())
                    for p in batch
                ],
                wait=True,
            )
            logger.debug(
                "Upserted batch %d (%d points)", offset // UPSERT_BATCH_SIZE + 1, len(batch)
            )

        logger.info("Upserted %d points to %s", len(points), self.collection_name)

    def search(
        self,
        vector: list[float],
        user_id: str,
        transcription_id: str | None = None,
        folder_id: str | None = None,
        limit: int = 10,
        score_threshold: float = 0.3,
    ) -> list[ScoredChunk]:
        """Nearest-neighbour search scoped to one user.

        ``user_id`` is mandatory; the optional ids narrow the scope further.
        """
        client = self._require_client()
        if not user_id:
            raise ValueError("user_id is required for vector search")

        response = self._call(
            "query_points",
            client.query_points,
            collection_name=self.collection_name,
            query=vector,
            query_filter=build_search_filter(user_id, transcription_id, folder_id),
            limit=limit,
            with_payload=True,
            score_threshold=score_threshold,
        )
        return [
            ScoredChunk(
                id=str(point.id),
                score=point.score,
                payload=ChunkPayload.from_dict(point.payload or {}),
            )
            for point in response.points
        ]

    def _delete_matching(self, conditions: list[models.Condition]) -> int:
        client = self._require_client()
        result = self._call(
            "delete",
            client.delete,
            collection_name=self.collection_name,
            points_selector=models.FilterSelector(filter=models.Filter(must=conditions)),
            wait=True,
        )
        # Qdrant reports an operation status, not a count, on most versions
        deleted = getattr(result, "deleted_count", None)
        return deleted if isinstance(deleted, int) else 0

    def delete_by_transcription_id(
        self,
        transcription_id: str,
        user_id: str | None = None,
    ) -> int:
        """Delete every point of one transcript (re-index or transcript deletion).

        Passing ``user_id`` restricts the delete to that user's points.
        """
        conditions: list[models.Condition] = [_match("transcriptionId", transcription_id)]
        if user_id:
            conditions.append(_match("userId", user_id))
        deleted = self._delete_matching(conditions)
        logger.info("Deleted points for transcription %s", transcription_id)
        return deleted

    def delete_by_user_id(self, user_id: str) -> int:
        """Delete every point of one user (account deletion)."""
        deleted = self._delete_matching([_match("userId", user_id)])
        logger.info("Deleted all points for user %s", user_id)
        return deleted

    def count_by_transcription_id(self, transcription_id: str) -> int:
        """Exact point count for a transcript; 0 when unconfigured or on error."""
        if self._client is None:
            return 0

        try:
            result = self._client.count(
                collection_name=self.collection_name,
                count_filter=models.Filter(must=[_match("transcriptionId", transcription_id)]),
                exact=True,
            )
            return result.count
        except Exception as exc:
            logger.error("Failed to count points: %s", exc)
            return 0

    def health_check(self) -> bool:
        if self._client is None:
            return False
        try:
            self._client.get_collections()
            return True
        except Exception:
            return False

    @staticmethod
    def generate_point_id() -> str:
        return str(uuid.uuid4())
