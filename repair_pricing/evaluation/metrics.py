"""Matching quality metrics for the pricing engine.

Implements:
- Retrieval metrics (Precision@K, Recall@K, reciprocal rank)
- Exact-model leak rate (off-target models served as if exact)
- Approximation flag accuracy
"""
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

from repair_pricing.catalog.models import MatchResult
from repair_pricing.rag.refine import normalize_device_model


class MatchingEvaluationMetrics:
    """Scores result lists against labelled queries."""

    def precision_at_k(
        self,
        results: Sequence[MatchResult],
        expected_device_model: str,
        k: int = 5
    ) -> float:
        """
        Calculate Precision@K.

        Measures what fraction of the top-K results are for the expected device.

        Args:
            results: Ranked results
            expected_device_model: Device label every result should carry
            k: Number of top results to consider

        Returns:
            Precision@K score (0 to 1)
        """
        top_k = list(results)[:k]
        if not top_k:
            return 0.0
        target = normalize_device_model(expected_device_model)
        return sum(1 for r in top_k if r.item.device_model == target) / len(top_k)

    def recall_at_k(
        self,
        results: Sequence[MatchResult],
        relevant_item_ids: Sequence[str],
        k: int = 5
    ) -> float:
        """
        Calculate Recall@K.

        Measures what fraction of the relevant items appear in the top-K results.
        """
        if not relevant_item_ids:
            return 0.0
        top_ids = {r.item.id for r in list(results)[:k]}
        return sum(1 for i in relevant_item_ids if i in top_ids) / len(relevant_item_ids)

    def reciprocal_rank(self, results: Sequence[MatchResult], expected_device_model: str) -> float:
        """1 / rank of the first result for the expected device, 0 if absent."""
        target = normalize_device_model(expected_device_model)
        for rank, r in enumerate(results, 1):
            if r.item.device_model == target:
                return 1.0 / rank
        return 0.0

    def exact_model_leak_rate(self, results: Sequence[MatchResult], requested_model: Optional[str]) -> float:
        """
        Fraction of non-approximate results whose device differs from the requested one.

        Any value above 0 means a customer asking for one model was quoted
        another model's price without warning.
        """
        if not requested_model:
            return 0.0
        exact = [r for r in results if not r.is_approximate]
        if not exact:
            return 0.0
        target = normalize_device_model(requested_model)
        return sum(1 for r in exact if r.item.device_model != target) / len(exact)

    def approximation_accuracy(self, results: Sequence[MatchResult], expect_approximate: bool) -> float:
        if not results:
            return 0.0
        return sum(1 for r in results if r.is_approximate == expect_approximate) / len(results)

    def evaluate_case(self, results: Sequence[MatchResult], test_case: Dict[str, Any], k: int = 5) -> Dict[str, float]:
        expected = test_case.get("expected_device_model")
        scores = {
            "exact_model_leak_rate": self.exact_model_leak_rate(results, test_case.get("requested_model", expected)),
            "approximation_accuracy": self.approximation_accuracy(results, test_case.get("expect_approximate", False)),
            "result_count": float(len(results)),
        }
        if expected and not test_case.get("expect_approximate", False):
            scores[f"precision_at_{k}"] = self.precision_at_k(results, expected, k)
            scores["reciprocal_rank"] = self.reciprocal_rank(results, expected)
        return scores

    def aggregate(self, case_scores: List[Dict[str, float]]) -> Dict[str, float]:
        """Mean of every metric over the cases that report it."""
        keys = sorted({key for scores in case_scores for key in scores})
        return {
            key: float(np.mean([scores[key] for scores in case_scores if key in scores]))
            for key in keys
        }

    def evaluate(
        self,
        search: Callable[[str], Sequence[MatchResult]],
        test_cases: List[Dict[str, Any]],
        k: int = 5
    ) -> Dict[str, float]:
        """
        Run every test case through ``search`` and average the scores.

        Args:
            search: Maps a query to ranked results, e.g. ``engine.search_products``
            test_cases: Labelled queries
            k: Cut-off for Precision@K

        Returns:
            Mean of each metric over the cases that report it
        """
        return self.aggregate([self.evaluate_case(search(case["query"]), case, k) for case in test_cases])
