"""Claude-powered answer synthesis with citations drawn from retrieved chunks."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from anthropic import (
    Anthropic,
    APIConnectionError,
    APITimeoutError,
    InternalServerError,
    RateLimitError,
)
from anthropic.types import TextBlock

from src.ingestion.chunking import format_timestamp, truncate_text
from src.ingestion.models import ScoredChunk, StructuredSummary
from src.pipeline_config import ChunkType
from src.retrieval.models import Citation, QADebugInfo, QAHistoryItem
from src.retry import provider_retry

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You answer questions about recorded conversations. Be concise and direct. "
    "Use short sentences and active voice. Never use filler phrases, hedging "
    "language, or AI self-reference."
)

QA_SYNTHESIS_PROMPT = """Answer questions about a recorded conversation.

CONVERSATION SUMMARY:
{summary}
{chunks}
{history}
USER QUESTION: {question}

VOICE & STYLE:
- Be concise. Short sentences, active voice.
- Direct and confident. No hedging or apologizing.
- Professional but human. Not academic or chatty.
- Never use emojis, exclamation marks, or AI self-reference ("I think", "I believe").

INSTRUCTIONS:
1. Use the summary for general questions. Use transcript excerpts for specific details.
2. Include citations [MM:SS, Speaker Name] when referencing transcript excerpts.
3. Answer what was asked. Skip preamble like "Based on the conversation..." or "The speaker discusses...".
4. If information is partial, state what's available without over-explaining gaps.
5. For follow-ups, use conversation history for context.

ANSWER:"""

NO_SUMMARY = "No summary available."
FALLBACK_ANSWER = "Unable to generate answer."

# First exchange (topic anchor) + last five; the caller picks which six.
MAX_HISTORY_ITEMS = 6
HISTORY_ANSWER_LENGTH = 500
CITATION_TEXT_LENGTH = 200

# USD per million tokens (input, output).  Unknown models report zero cost.
MODEL_PRICING: dict[str, tuple[float, float]] = {
    "claude-sonnet-4-20250514": (3.0, 15.0),
    "claude-3-5-haiku-latest": (0.8, 4.0),
}

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
    InternalServerError,
)


def estimate_tokens(text: str) -> int:
    """Approximate token count (~4 chars per token)."""
    return math.ceil(len(text) / 4)


class LanguageModelClient:
    """Thin wrapper over the Anthropic Messages API: ``complete(system, user) -> text``."""

    def __init__(
        self,
        client: Anthropic,
        model: str,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        max_attempts: int = 3,
        retry_wait: float = 1.0,
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._max_attempts = max_attempts
        self._retry_wait = retry_wait

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        retrying = provider_retry(
            TRANSIENT_ERRORS, self._max_attempts, "messages.create", self._retry_wait
        )
        response = retrying(
            self._client.messages.create,
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
        )
        if not response.content:
            return ""
        # We always request plain text so the first block should be TextBlock.
        block = response.content[0]
        if not isinstance(block, TextBlock):
            raise ValueError(f"Expected TextBlock from Claude, got {type(block).__name__}")
        return block.text


def format_summary_for_context(
    summary_v2: StructuredSummary | None,
    legacy_summary: str | None = None,
) -> str:
    """Render a transcript summary for the prompt.

    Prefers the structured summary; falls back to the legacy free-text one.
    """
    if summary_v2:
        parts: list[str] = []
        if summary_v2.title:
            parts.append(f"Title: {summary_v2.title}")
        if summary_v2.intro:
            parts.append(f"Overview: {summary_v2.intro}")
        if summary_v2.key_points:
            lines = "\n".join(f"- {kp.topic}: {kp.description}" for kp in summary_v2.key_points)
            parts.append(f"Key Points:\n{lines}")
        if summary_v2.detailed_sections:
            sections = "\n\n".join(f"{s.topic}:\n{s.content}" for s in summary_v2.detailed_sections)
            parts.append(f"Details:\n{sections}")
        if summary_v2.decisions:
            parts.append(f"Decisions: {', '.join(summary_v2.decisions)}")
        if summary_v2.next_steps:
            parts.append(f"Next Steps: {', '.join(summary_v2.next_steps)}")
        if parts:
            return "\n\n".join(parts)

    if legacy_summary:
        return legacy_summary

    return NO_SUMMARY


def format_excerpt(result: ScoredChunk) -> str:
    payload = result.payload
    match payload.chunk_type:
        case ChunkType.CONTENT:
            label = f"{format_timestamp(payload.start_time)}, {payload.speaker}"
        case ChunkType.METADATA:
            label = "Overview"
    return f'[{label}]: "{payload.text}"'


def format_chunks_section(results: list[ScoredChunk]) -> str:
    if not results:
        return ""
    excerpts = "\n\n".join(format_excerpt(r) for r in results)
    return (
        '\nRELEVANT TRANSCRIPT EXCERPTS (format: [timestamp, speaker]: "quote"):\n'
        f"{excerpts}"
    )


def format_history_for_prompt(history: list[QAHistoryItem] | None) -> str:
    """Format prior exchanges, keeping questions whole and truncating answers."""
    if not history:
        return ""

    exchanges = "\n\n".join(
        f"Q{i}: {item.question}\nA{i}: {truncate_text(item.answer, HISTORY_ANSWER_LENGTH)}"
        for i, item in enumerate(history[:MAX_HISTORY_ITEMS], start=1)
    )
    return f"\nPREVIOUS Q&A IN THIS SESSION:\n{exchanges}\n"


def build_prompt(
    question: str,
    results: list[ScoredChunk],
    history: list[QAHistoryItem] | None = None,
    summary: str | None = None,
) -> str:
    return QA_SYNTHESIS_PROMPT.format(
        summary=summary or NO_SUMMARY,
        chunks=format_chunks_section(results),
        history=format_history_for_prompt(history),
        question=question,
    )


def build_citations(results: list[ScoredChunk]) -> list[Citation]:
    """One citation per retrieved chunk; never derived from the model's text."""
    return [
        Citation(
            transcription_id=r.payload.transcription_id,
            conversation_title=r.payload.conversation_title,
            speaker=r.payload.speaker,
            timestamp=format_timestamp(r.payload.start_time),
            timestamp_seconds=r.payload.start_time,
            text=truncate_text(r.payload.text, CITATION_TEXT_LENGTH),
            relevance_score=r.score,
        )
        for r in results
    ]


@dataclass
class SynthesizedAnswer:
    answer: str
    citations: list[Citation]
    debug: QADebugInfo


class AnswerSynthesizer:
    """Builds the Q&A prompt, calls the model, and attaches citations."""

    def __init__(self, llm: LanguageModelClient) -> None:
        self._llm = llm

    def synthesize(
        self,
        question: str,
        results: list[ScoredChunk],
        history: list[QAHistoryItem] | None = None,
        summary: str | None = None,
    ) -> SynthesizedAnswer:
        """Answer *question* from the summary and retrieved excerpts.

        Args:
            question: The user's question.
            results: Retrieved chunks; citations are built from exactly these.
            history: Prior exchanges, already selected by the caller.
            summary: Rendered transcript summary (conversation scope only).

        Returns:
            The answer text, its citations, and token/cost accounting.
        """
        summary_text = summary or NO_SUMMARY
        prompt = build_prompt(question, results, history, summary_text)

        answer = self._llm.complete(SYSTEM_PROMPT, prompt) or FALLBACK_ANSWER

        debug = self._debug_info(question, results, history, summary_text, prompt, answer)
        logger.info(
            "Synthesized answer from %d chunks (~%d input / ~%d output tokens)",
            len(results),
            debug.total_input_tokens,
            debug.output_tokens,
        )
        return SynthesizedAnswer(answer=answer, citations=build_citations(results), debug=debug)

    def _debug_info(
        self,
        question: str,
        results: list[ScoredChunk],
        history: list[QAHistoryItem] | None,
        summary_text: str,
        prompt: str,
        answer: str,
    ) -> QADebugInfo:
        total_input = estimate_tokens(SYSTEM_PROMPT) + estimate_tokens(prompt)
        output = estimate_tokens(answer)
        input_price, output_price = MODEL_PRICING.get(self._llm.model, (0.0, 0.0))
        return QADebugInfo(
            summary_tokens=estimate_tokens(summary_text),
            chunks_tokens=estimate_tokens(format_chunks_section(results)),
            history_tokens=estimate_tokens(format_history_for_prompt(history)),
            question_tokens=estimate_tokens(question),
            system_prompt_tokens=estimate_tokens(SYSTEM_PROMPT),
            total_input_tokens=total_input,
            output_tokens=output,
            history_count=len(history or []),
            chunks_count=len(results),
            estimated_cost_usd=(total_input * input_price + output * output_price) / 1_000_000,
            model=self._llm.model,
        )
