# docchat/workflow/document_qa.py

"""
Retrieval-augmented question answering.

Per query:
    retrieve (embed → search → filter) → [compress] → compose prompt → complete

Retrieval failures degrade to general chat and compression failures degrade
to raw context. Completion failures propagate as ProviderError since there
is no other source for an answer.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional

from docchat.config import (
    HISTORY_WINDOW,
    LLM_MAX_TOKENS,
    LLM_TEMPERATURE,
    MAX_SUMMARY_TOKENS,
    SIMILARITY_THRESHOLD,
    TOP_K,
)
from docchat.memory.retriever import filter_results
from docchat.models import (
    ChatMessage,
    ChatResult,
    ContextItem,
    SearchResult,
    StreamEvent,
    TokenUsage,
)
from docchat.prompts.prompt_builder import (
    build_context_block,
    build_messages,
    build_rag_prompt,
)

logger = logging.getLogger(__name__)


@dataclass
class PreparedQuery:
    """Everything settled before generation starts."""
    messages: List[Dict[str, str]]
    selected: List[SearchResult] = field(default_factory=list)

    @property
    def use_context(self) -> bool:
        return bool(self.selected)

    @property
    def context(self) -> Optional[List[ContextItem]]:

        if not self.selected:
            return None

        return [ContextItem.from_search_result(r) for r in self.selected]


class RAGOrchestrator:

    def __init__(
        self,
        embedder,
        vector_store,
        llm_client,
        compressor,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
        history_window: int = HISTORY_WINDOW,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = LLM_MAX_TOKENS,
    ):

        self._embedder = embedder
        self._vector_store = vector_store
        self._llm = llm_client
        self._compressor = compressor

        self._threshold = similarity_threshold
        self._history_window = history_window
        self._temperature = temperature
        self._max_tokens = max_tokens

    # ============================================================
    # RETRIEVAL
    # ============================================================

    async def _retrieve(self, message: str, top_k: int) -> List[SearchResult]:
        """
        Embed, search and filter. Any failure is logged and treated as
        "no context" so the question is still answered.
        """

        try:

            query_vector = await self._embedder.embed(message)

            results = await self._vector_store.search(query_vector, top_k)

        except Exception as e:

            logger.warning(
                "Retrieval failed, falling back to general chat",
                extra={
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "error_kind": getattr(getattr(e, "kind", None), "value", None),
                },
            )

            return []

        decision = filter_results(results, self._threshold)

        logger.info(
            "Retrieval complete",
            extra={
                "top_k": top_k,
                "results": len(results),
                "selected": len(decision.selected),
                "low_confidence": decision.low_confidence,
            },
        )

        if not decision.use_context:
            return []

        return decision.selected

    # ============================================================
    # PROMPT PREPARATION (shared by both modes)
    # ============================================================

    async def _prepare(
        self,
        message: str,
        top_k: int,
        use_rag: bool,
        compress_prompt: bool,
        max_summary_tokens: int,
        history: Optional[List[ChatMessage]],
    ) -> PreparedQuery:

        selected: List[SearchResult] = []

        if use_rag:
            selected = await self._retrieve(message, top_k)

        if selected:

            context_text = build_context_block(selected)

            if compress_prompt:
                context_text = await self._compressor.compress(
                    context_text,
                    message,
                    max_summary_tokens,
                )

            user_prompt = build_rag_prompt(message, context_text)

        else:

            user_prompt = message

        messages = build_messages(
            user_prompt,
            use_context=bool(selected),
            history=history,
            history_window=self._history_window,
        )

        return PreparedQuery(messages=messages, selected=selected)

    # ============================================================
    # WHOLE RESPONSE
    # ============================================================

    async def query(
        self,
        message: str,
        top_k: int = TOP_K,
        use_rag: bool = True,
        compress_prompt: bool = True,
        max_summary_tokens: int = MAX_SUMMARY_TOKENS,
        history: Optional[List[ChatMessage]] = None,
    ) -> ChatResult:

        start_time = time.time()

        prepared = await self._prepare(
            message,
            top_k,
            use_rag,
            compress_prompt,
            max_summary_tokens,
            history,
        )

        completion = await self._llm.complete(
            prepared.messages,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        logger.info(
            "Query answered",
            extra={
                "mode": "rag" if prepared.use_context else "general",
                "context_items": len(prepared.selected),
                "total_tokens": completion.usage.total,
                "latency_seconds": round(time.time() - start_time, 3),
            },
        )

        return ChatResult(
            answer=completion.text,
            context=prepared.context,
            tokens_used=completion.usage,
        )

    # ============================================================
    # STREAMING
    # ============================================================

    async def query_stream(
        self,
        message: str,
        top_k: int = TOP_K,
        use_rag: bool = True,
        compress_prompt: bool = True,
        max_summary_tokens: int = MAX_SUMMARY_TOKENS,
        history: Optional[List[ChatMessage]] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Yield one `context` event, a `chunk` event per text fragment,
        then one `done` event carrying the full answer.
        """

        start_time = time.time()

        prepared = await self._prepare(
            message,
            top_k,
            use_rag,
            compress_prompt,
            max_summary_tokens,
            history,
        )

        context = prepared.context

        yield StreamEvent(type="context", context=context)

        parts: List[str] = []
        usage = TokenUsage()

        async for delta in self._llm.stream(
            prepared.messages,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        ):

            if delta.usage is not None:
                usage = delta.usage

            if delta.text:
                parts.append(delta.text)
                yield StreamEvent(type="chunk", text=delta.text)

        answer = "".join(parts)

        logger.info(
            "Streamed query answered",
            extra={
                "mode": "rag" if prepared.use_context else "general",
                "context_items": len(prepared.selected),
                "fragments": len(parts),
                "total_tokens": usage.total,
                "latency_seconds": round(time.time() - start_time, 3),
            },
        )

        yield StreamEvent(
            type="done",
            answer=answer,
            context=context,
            tokens_used=usage,
        )
