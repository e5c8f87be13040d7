"""FastAPI application: routers, CORS, lifespan and error mapping."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from anthropic import APIStatusError
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.dependencies import build_vector_store
from src.api.routes.conversations import router as conversations_router
from src.api.routes.query import router as query_router
from src.config import get_settings
from src.exceptions import NotFoundError, VectorStoreNotConfiguredError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Never raises: the API starts even when Qdrant is down or unconfigured.
    build_vector_store(settings).ensure_collection()
    yield


app = FastAPI(
    title="Conversation Q&A API",
    description="Cited answers over recorded-conversation transcripts",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
    ],
    allow_origin_regex=r"http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(query_router)
app.include_router(conversations_router)


@app.exception_handler(NotFoundError)
async def not_found_handler(_: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(VectorStoreNotConfiguredError)
async def vector_store_unavailable_handler(
    _: Request, exc: VectorStoreNotConfiguredError
) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": exc.message})


@app.exception_handler(APIStatusError)
async def llm_unavailable_handler(_: Request, exc: APIStatusError) -> JSONResponse:
    # Claude overloaded (529) or another upstream error: a JSON 503 keeps the
    # CORS headers that an unhandled 500 would lose.
    logger.error("Claude API error: %s", exc.message)
    return JSONResponse(status_code=503, content={"detail": f"LLM unavailable: {exc.message}"})


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}
