"""Pipeline configuration: scope/chunk-type enums and the ChunkingConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ChunkType(str, Enum):
    """Kind of point stored in the vector collection."""

    CONTENT = "content"
    METADATA = "metadata"


class SearchScope(str, Enum):
    """Breadth of a question: one conversation, one folder, or everything."""

    CONVERSATION = "conversation"
    FOLDER = "folder"
    GLOBAL = "global"


# Bumped to 2 when the per-transcript metadata point was introduced.
VECTOR_INDEX_VERSION = 2


@dataclass(frozen=True)
class ChunkingConfig:
    """Immutable sizing for transcript chunking.

    Sizes are in estimated tokens (characters / 4).  ``min_chunk_size`` is
    kept for compatibility with existing indexes and does not move chunk
    boundaries.
    """

    max_tokens: int = 500
    overlap_tokens: int = 50
    min_chunk_size: int = 20
