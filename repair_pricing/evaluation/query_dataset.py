"""Labelled customer queries for matching evaluation.

Each case names the device model the answer must be about, so the same
queries can be scored against any price list that stocks those models.
"""
from typing import Any, Dict, List


class MatchingQueryDataset:
    """Built-in queries in the shapes customers actually write."""

    @staticmethod
    def get_test_cases() -> List[Dict[str, Any]]:
        """
        Get labelled queries.

        Returns:
            List of test case dictionaries with:
            - query: Customer message
            - expected_device_model: Device label every exact result must carry
            - expected_service_type: Service the customer asked about
            - expect_approximate: True when the model is not expected in stock
            - category: base_model, variant, bilingual, approximate
        """
        return [
            # ===== Base model vs. variants =====
            {"query": "Cuánto sale la pantalla del iPhone 14?", "expected_device_model": "iphone 14",
             "expected_service_type": "pantalla", "expect_approximate": False, "category": "base_model"},
            {"query": "pantalla iphone 14 pro", "expected_device_model": "iphone 14 pro",
             "expected_service_type": "pantalla", "expect_approximate": False, "category": "variant"},
            {"query": "iPhone 14 Pro Max pantalla rota", "expected_device_model": "iphone 14 pro max",
             "expected_service_type": "pantalla", "expect_approximate": False, "category": "variant"},
            {"query": "precio bateria iphone 13", "expected_device_model": "iphone 13",
             "expected_service_type": "bateria", "expect_approximate": False, "category": "base_model"},
            {"query": "bateria iphone 13 mini", "expected_device_model": "iphone 13 mini",
             "expected_service_type": "bateria", "expect_approximate": False, "category": "variant"},
            {"query": "samsung s23 ultra display", "expected_device_model": "samsung s23 ultra",
             "expected_service_type": "pantalla", "expect_approximate": False, "category": "variant"},
            {"query": "cambio de pantalla galaxy s23", "expected_device_model": "samsung s23",
             "expected_service_type": "pantalla", "expect_approximate": False, "category": "base_model"},

            # ===== Bilingual =====
            {"query": "iphone 11 screen replacement", "expected_device_model": "iphone 11",
             "expected_service_type": "pantalla", "expect_approximate": False, "category": "bilingual"},
            {"query": "battery for iPhone 12", "expected_device_model": "iphone 12",
             "expected_service_type": "bateria", "expect_approximate": False, "category": "bilingual"},

            # ===== Models not in stock =====
            {"query": "iPhone 99 pantalla", "expected_device_model": "iphone 99", "requested_model": "iphone 99",
             "expected_service_type": "pantalla", "expect_approximate": True, "category": "approximate"},
        ]

    @staticmethod
    def get_categories() -> List[str]:
        return sorted({case["category"] for case in MatchingQueryDataset.get_test_cases()})
