"""Vector index endpoints: status, re-index, delete, and availability."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from src.api.dependencies import get_qa_service, get_user_id
from src.api.models import IndexingStatusModel, ReindexResponse, VectorHealthResponse
from src.retrieval.models import IndexingStatus
from src.retrieval.service import QAService

router = APIRouter()

UserId = Annotated[str, Depends(get_user_id)]
Service = Annotated[QAService, Depends(get_qa_service)]


@router.get(
    "/api/conversations/{transcription_id}/index-status",
    response_model=IndexingStatusModel,
)
def get_indexing_status(transcription_id: str, user_id: UserId, service: Service) -> IndexingStatus:
    """Whether the conversation has points in the vector index, and how many."""
    return service.get_indexing_status(user_id, transcription_id)


@router.post("/api/conversations/{transcription_id}/reindex", response_model=ReindexResponse)
def reindex(transcription_id: str, user_id: UserId, service: Service) -> ReindexResponse:
    """Rebuild the conversation's vector points (e.g. after transcript corrections)."""
    chunks = service.reindex(user_id, transcription_id)
    return ReindexResponse(transcription_id=transcription_id, chunks_indexed=chunks)


@router.delete("/api/conversations/{transcription_id}/vectors", status_code=204)
def delete_vectors(transcription_id: str, user_id: UserId, service: Service) -> Response:
    """Remove the conversation's vector points (called when it is deleted)."""
    service.delete_vectors(user_id, transcription_id)
    return Response(status_code=204)


@router.get("/api/vector/health", response_model=VectorHealthResponse)
def vector_health(service: Service) -> VectorHealthResponse:
    return VectorHealthResponse(
        available=service.is_available(), reachable=service.is_reachable()
    )
