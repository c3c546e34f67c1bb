# tests/test_retriever.py
from docchat.memory.retriever import filter_results

from tests.factories import make_result


class TestRetrievalFilter:

    def test_keeps_only_results_above_threshold(self):
        high = make_result(0.9, index=0)
        low = make_result(0.3, index=1)

        decision = filter_results([high, low], threshold=0.5)

        assert decision.use_context is True
        assert decision.selected == [high]
        assert decision.low_confidence is False

    def test_threshold_is_inclusive(self):
        exact = make_result(0.5)

        decision = filter_results([exact], threshold=0.5)

        assert decision.selected == [exact]
        assert decision.low_confidence is False

    def test_low_confidence_fallback_keeps_everything(self):
        """Nothing clears the bar: partial context is still used."""
        results = [make_result(0.2, index=0), make_result(0.1, index=1)]

        decision = filter_results(results, threshold=0.5)

        assert decision.use_context is True
        assert decision.selected == results
        assert decision.low_confidence is True

    def test_no_results_means_no_context(self):
        decision = filter_results([], threshold=0.5)

        assert decision.use_context is False
        assert decision.selected == []

    def test_original_order_is_preserved(self):
        results = [
            make_result(0.6, index=0),
            make_result(0.2, index=1),
            make_result(0.95, index=2),
            make_result(0.7, index=3),
        ]

        decision = filter_results(results, threshold=0.5)

        assert [r.metadata.index for r in decision.selected] == [0, 2, 3]
