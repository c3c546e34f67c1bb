# docchat/memory/retriever.py
from dataclasses import dataclass, field
from typing import List

from docchat.config import SIMILARITY_THRESHOLD
from docchat.models import SearchResult


@dataclass
class RetrievalDecision:
    use_context: bool
    selected: List[SearchResult] = field(default_factory=list)
    low_confidence: bool = False


def filter_results(
    results: List[SearchResult],
    threshold: float = SIMILARITY_THRESHOLD,
) -> RetrievalDecision:
    """
    Apply the relevance threshold to search results.

    Order of rules:
    1. Results scoring >= threshold exist: keep exactly those.
    2. Only sub-threshold results exist: keep all of them (low-confidence
       fallback, partial context beats none for small corpora).
    3. No results: no context.

    Original result order is preserved in every case.
    """

    if not results:
        return RetrievalDecision(use_context=False)

    above = [r for r in results if r.score >= threshold]

    if above:
        return RetrievalDecision(use_context=True, selected=above)

    return RetrievalDecision(
        use_context=True,
        selected=list(results),
        low_confidence=True,
    )
