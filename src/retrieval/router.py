"""Query router: resolve a question's scope, make sure it is indexed, and search."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.exceptions import NotFoundError
from src.ingestion.embeddings import EmbeddingClient
from src.ingestion.models import ScoredChunk
from src.ingestion.pipeline import Indexer
from src.ingestion.storage import FolderStore, TranscriptStore
from src.ingestion.vector_store import VectorStore
from src.pipeline_config import SearchScope

logger = logging.getLogger(__name__)

DEFAULT_LIMITS: dict[SearchScope, int] = {
    SearchScope.CONVERSATION: 10,
    SearchScope.FOLDER: 15,
    SearchScope.GLOBAL: 20,
}


@dataclass
class RoutedSearch:
    """Raw results of a scoped search."""

    scope: SearchScope
    results: list[ScoredChunk] = field(default_factory=list)


class QueryRouter:
    """Runs vector searches at conversation, folder, or global scope.

    Every search is filtered by ``user_id``.  Conversation and folder scopes
    index their transcripts on demand before searching.
    """

    def __init__(
        self,
        indexer: Indexer,
        embeddings: EmbeddingClient,
        vector_store: VectorStore,
        transcripts: TranscriptStore,
        folders: FolderStore,
        score_threshold: float = 0.3,
    ) -> None:
        self._indexer = indexer
        self._embeddings = embeddings
        self._vector_store = vector_store
        self._transcripts = transcripts
        self._folders = folders
        self._score_threshold = score_threshold

    def _search(
        self,
        question: str,
        user_id: str,
        limit: int,
        transcription_id: str | None = None,
        folder_id: str | None = None,
    ) -> list[ScoredChunk]:
        vector = self._embeddings.embed(question)
        results = self._vector_store.search(
            vector,
            user_id=user_id,
            transcription_id=transcription_id,
            folder_id=folder_id,
            limit=limit,
            score_threshold=self._score_threshold,
        )
        logger.debug(
            "Search for %r returned %d chunks%s",
            question[:50],
            len(results),
            f" (top score: {results[0].score:.3f})" if results else "",
        )
        return results

    def search_conversation(
        self,
        user_id: str,
        transcription_id: str,
        question: str,
        limit: int | None = None,
    ) -> RoutedSearch:
        self._indexer.ensure_indexed(user_id, transcription_id)
        results = self._search(
            question,
            user_id,
            limit or DEFAULT_LIMITS[SearchScope.CONVERSATION],
            transcription_id=transcription_id,
        )
        return RoutedSearch(SearchScope.CONVERSATION, results)

    def search_folder(
        self,
        user_id: str,
        folder_id: str,
        question: str,
        limit: int | None = None,
    ) -> RoutedSearch:
        """Search one folder, first indexing any of its transcripts never indexed.

        Indexing runs one transcript at a time to stay inside the embedding
        provider's rate limits.

        Raises:
            NotFoundError: The folder does not exist for this user.
        """
        if self._folders.get_folder(user_id, folder_id) is None:
            raise NotFoundError("Folder", folder_id)

        for transcript in self._transcripts.list_transcripts_in_folder(user_id, folder_id):
            if transcript.indexing.vector_indexed_at is None:
                self._indexer.index_transcription(user_id, transcript.id)

        results = self._search(
            question,
            user_id,
            limit or DEFAULT_LIMITS[SearchScope.FOLDER],
            folder_id=folder_id,
        )
        return RoutedSearch(SearchScope.FOLDER, results)

    def search_global(
        self,
        user_id: str,
        question: str,
        limit: int | None = None,
    ) -> RoutedSearch:
        results = self._search(question, user_id, limit or DEFAULT_LIMITS[SearchScope.GLOBAL])
        return RoutedSearch(SearchScope.GLOBAL, results)

    def search_for_discovery(
        self,
        user_id: str,
        query: str,
        max_results: int,
        folder_id: str | None = None,
    ) -> RoutedSearch:
        """Over-fetch (3x) raw chunks so grouping by conversation has enough to work with."""
        results = self._search(query, user_id, max_results * 3, folder_id=folder_id)
        scope = SearchScope.FOLDER if folder_id else SearchScope.GLOBAL
        return RoutedSearch(scope, results)
