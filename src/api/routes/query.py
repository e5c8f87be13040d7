"""Ask and find endpoints: scoped RAG answers and conversation discovery."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from src.api.dependencies import get_qa_service, get_user_id
from src.api.models import (
    AskRequest,
    AskResponseModel,
    FindRequest,
    FindResponseModel,
    GlobalAskRequest,
)
from src.retrieval.models import AskResponse, FindResponse
from src.retrieval.service import QAService

router = APIRouter()

UserId = Annotated[str, Depends(get_user_id)]
Service = Annotated[QAService, Depends(get_qa_service)]


@router.post("/api/conversations/{transcription_id}/ask", response_model=AskResponseModel)
def ask_conversation(
    transcription_id: str,
    request: AskRequest,
    user_id: UserId,
    service: Service,
) -> AskResponse:
    """Answer a question about one conversation, indexing it first if needed."""
    return service.ask_conversation(
        user_id,
        transcription_id,
        request.question,
        max_results=request.max_results,
        history=request.history_items(),
    )


@router.post("/api/folders/{folder_id}/ask", response_model=AskResponseModel)
def ask_folder(
    folder_id: str,
    request: AskRequest,
    user_id: UserId,
    service: Service,
) -> AskResponse:
    """Answer a question across every conversation in a folder."""
    return service.ask_folder(
        user_id,
        folder_id,
        request.question,
        max_results=request.max_results,
        history=request.history_items(),
    )


@router.post("/api/ask", response_model=AskResponseModel)
def ask_global(request: GlobalAskRequest, user_id: UserId, service: Service) -> AskResponse:
    """Answer a question across all of the caller's conversations."""
    return service.ask_global(user_id, request.question, max_results=request.max_results)


@router.post("/api/find", response_model=FindResponseModel)
def find_conversations(request: FindRequest, user_id: UserId, service: Service) -> FindResponse:
    """Find the conversations that best match a query, with preview snippets."""
    return service.find_conversations(
        user_id,
        request.query,
        folder_id=request.folder_id,
        max_results=request.max_results,
    )
