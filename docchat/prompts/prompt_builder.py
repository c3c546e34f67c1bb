# docchat/prompts/prompt_builder.py

from typing import Dict, List, Optional

from docchat.models import ChatMessage, SearchResult
from docchat.prompts.system_prompts import (
    COMPRESSION_SYSTEM_PROMPT,
    GENERAL_SYSTEM_PROMPT,
    RAG_SYSTEM_PROMPT,
)

CONTEXT_SEPARATOR = "\n\n---\n\n"


def build_context_block(results: List[SearchResult]) -> str:
    """
    Render search results in their original order:

    [Context 1] (Source: report.pdf, Relevance: 0.912)
    <chunk text>
    """

    return CONTEXT_SEPARATOR.join(
        f"[Context {i}] (Source: {result.metadata.filename or 'Unknown'}, "
        f"Relevance: {result.score:.3f})\n{result.metadata.text}"
        for i, result in enumerate(results, 1)
    )


def build_rag_prompt(question: str, context: str) -> str:

    return f"""Based on the following context from uploaded documents, please answer the user's question.

Context from documents:
{context}

User's question: {question}

Please provide a comprehensive answer based on the context above. If the context doesn't contain enough information, please say so."""


def build_compression_prompt(
    context: str,
    question: str,
    max_summary_tokens: int,
) -> str:

    return f"""USER QUESTION:
{question}

DOCUMENT CONTEXT:
----------------
{context}
----------------

Summarize the document context above in about {max_summary_tokens} tokens.
Preserve everything relevant to the user question, including facts, numbers and dates,
and keep the source of each fact (for example "(Source: report.pdf)").

SUMMARY:"""


def build_compression_messages(
    context: str,
    question: str,
    max_summary_tokens: int,
) -> List[Dict[str, str]]:

    return [
        {"role": "system", "content": COMPRESSION_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": build_compression_prompt(context, question, max_summary_tokens),
        },
    ]


def build_messages(
    user_prompt: str,
    use_context: bool,
    history: Optional[List[ChatMessage]] = None,
    history_window: int = 10,
) -> List[Dict[str, str]]:
    """
    System message, then up to `history_window` most recent turns
    (oldest first), then the current user turn.
    """

    system_prompt = RAG_SYSTEM_PROMPT if use_context else GENERAL_SYSTEM_PROMPT

    messages = [{"role": "system", "content": system_prompt}]

    if history and history_window > 0:

        for turn in history[-history_window:]:
            messages.append({"role": turn.role, "content": turn.content})

    messages.append({"role": "user", "content": user_prompt})

    return messages
