"""Conversation Q&A service: the operations exposed to callers."""

from __future__ import annotations

import logging
import time

from src.exceptions import NotFoundError
from src.ingestion.pipeline import Indexer
from src.ingestion.storage import FolderStore, TranscriptStore
from src.ingestion.vector_store import VectorStore
from src.pipeline_config import SearchScope
from src.retrieval.aggregation import build_conversation_matches, resolve_folder_names
from src.retrieval.generation import AnswerSynthesizer, format_summary_for_context
from src.retrieval.models import (
    AskResponse,
    FindResponse,
    IndexingStatus,
    QAHistoryItem,
)
from src.retrieval.router import QueryRouter

logger = logging.getLogger(__name__)

NOT_FOUND_ANSWERS: dict[SearchScope, str] = {
    SearchScope.CONVERSATION: "I couldn't find relevant information about that in this conversation.",
    SearchScope.FOLDER: "I couldn't find relevant information about that in this folder's conversations.",
    SearchScope.GLOBAL: "I couldn't find relevant information about that in your conversations.",
}


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class QAService:
    """Asks, discovery search, and index maintenance for one user's transcripts.

    Zero search hits at any scope return a canned "not found" answer without
    calling the language model.
    """

    def __init__(
        self,
        router: QueryRouter,
        synthesizer: AnswerSynthesizer,
        indexer: Indexer,
        vector_store: VectorStore,
        transcripts: TranscriptStore,
        folders: FolderStore,
    ) -> None:
        self._router = router
        self._synthesizer = synthesizer
        self._indexer = indexer
        self._vector_store = vector_store
        self._transcripts = transcripts
        self._folders = folders

    def is_available(self) -> bool:
        return self._vector_store.is_configured()

    def is_reachable(self) -> bool:
        """Whether Qdrant answers a round trip right now."""
        return self._vector_store.health_check()

    def ask_conversation(
        self,
        user_id: str,
        transcription_id: str,
        question: str,
        max_results: int | None = None,
        history: list[QAHistoryItem] | None = None,
    ) -> AskResponse:
        start = time.perf_counter()

        transcript = self._transcripts.get_transcript(user_id, transcription_id)
        if transcript is None:
            raise NotFoundError("Transcription", transcription_id)

        search = self._router.search_conversation(user_id, transcription_id, question, max_results)
        if not search.results:
            return AskResponse(
                answer=NOT_FOUND_ANSWERS[SearchScope.CONVERSATION],
                citations=[],
                search_scope=SearchScope.CONVERSATION,
                processing_time_ms=_elapsed_ms(start),
                indexed=True,
            )

        summary = format_summary_for_context(transcript.summary_v2, transcript.summary)
        synthesized = self._synthesizer.synthesize(question, search.results, history, summary)
        return AskResponse(
            answer=synthesized.answer,
            citations=synthesized.citations,
            search_scope=SearchScope.CONVERSATION,
            processing_time_ms=_elapsed_ms(start),
            indexed=True,
            debug=synthesized.debug,
        )

    def ask_folder(
        self,
        user_id: str,
        folder_id: str,
        question: str,
        max_results: int | None = None,
        history: list[QAHistoryItem] | None = None,
    ) -> AskResponse:
        start = time.perf_counter()
        search = self._router.search_folder(user_id, folder_id, question, max_results)
        if not search.results:
            return AskResponse(
                answer=NOT_FOUND_ANSWERS[SearchScope.FOLDER],
                citations=[],
                search_scope=SearchScope.FOLDER,
                processing_time_ms=_elapsed_ms(start),
            )

        synthesized = self._synthesizer.synthesize(question, search.results, history)
        return AskResponse(
            answer=synthesized.answer,
            citations=synthesized.citations,
            search_scope=SearchScope.FOLDER,
            processing_time_ms=_elapsed_ms(start),
            debug=synthesized.debug,
        )

    def ask_global(
        self,
        user_id: str,
        question: str,
        max_results: int | None = None,
    ) -> AskResponse:
        start = time.perf_counter()
        search = self._router.search_global(user_id, question, max_results)
        if not search.results:
            return AskResponse(
                answer=NOT_FOUND_ANSWERS[SearchScope.GLOBAL],
                citations=[],
                search_scope=SearchScope.GLOBAL,
                processing_time_ms=_elapsed_ms(start),
            )

        synthesized = self._synthesizer.synthesize(question, search.results)
        return AskResponse(
            answer=synthesized.answer,
            citations=synthesized.citations,
            search_scope=SearchScope.GLOBAL,
            processing_time_ms=_elapsed_ms(start),
            debug=synthesized.debug,
        )

    def find_conversations(
        self,
        user_id: str,
        query: str,
        folder_id: str | None = None,
        max_results: int | None = None,
    ) -> FindResponse:
        """Rank conversations matching *query*, with up to three snippets each."""
        start = time.perf_counter()
        max_results = max_results or 10

        search = self._router.search_for_discovery(user_id, query, max_results, folder_id)
        folder_names = resolve_folder_names(user_id, search.results, self._folders)
        conversations = build_conversation_matches(search.results, folder_names)

        return FindResponse(
            conversations=conversations[:max_results],
            total_conversations=len(conversations),
            search_scope=search.scope,
            processing_time_ms=_elapsed_ms(start),
        )

    def get_indexing_status(self, user_id: str, transcription_id: str) -> IndexingStatus:
        transcript = self._transcripts.get_transcript(user_id, transcription_id)
        if transcript is None:
            raise NotFoundError("Transcription", transcription_id)

        chunk_count = self._vector_store.count_by_transcription_id(transcription_id)
        return IndexingStatus(
            indexed=chunk_count > 0,
            chunk_count=chunk_count,
            indexed_at=transcript.indexing.vector_indexed_at,
        )

    def reindex(self, user_id: str, transcription_id: str) -> int:
        """Rebuild a transcript's points, e.g. after transcript corrections."""
        return self._indexer.index_transcription(user_id, transcription_id)

    def delete_vectors(self, user_id: str, transcription_id: str) -> int:
        """Drop a transcript's points.

        Scoped to the caller's points, so it also works after the transcript
        record itself has been deleted.
        """
        return self._indexer.delete_vectors(user_id, transcription_id)

    def delete_user_vectors(self, user_id: str) -> int:
        """Drop every point belonging to a user (account deletion)."""
        deleted = self._vector_store.delete_by_user_id(user_id)
        logger.info("Removed vector index for user %s", user_id)
        return deleted
