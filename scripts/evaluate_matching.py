"""Matching evaluation script for the repair pricing engine.

Runs the labelled query set against a price list and reports:
- Precision@5 and reciprocal rank for the requested model
- Exact-model leak rate
- Approximation flag accuracy
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import json
from datetime import datetime
from typing import Any, Dict, List
from loguru import logger
from tqdm import tqdm

from repair_pricing.config import config
from repair_pricing.engine import PricingEngine
from repair_pricing.evaluation import MatchingEvaluationMetrics, MatchingQueryDataset

logger.remove()
logger.add(sys.stderr, level=config.log_level)


class MatchingEvaluator:
    """Runs labelled queries through an engine and scores the answers."""

    def __init__(self, engine: PricingEngine, output_dir: str = "./evaluation_results", k: int = 5):
        self.engine = engine
        self.metrics_calculator = MatchingEvaluationMetrics()
        self.k = k
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            self.output_dir / "evaluation.log",
            rotation="10 MB",
            level="INFO"
        )

    def evaluate_single_query(self, test_case: Dict[str, Any]) -> Dict[str, Any]:
        query = test_case["query"]
        results = self.engine.search_products(query, limit=self.engine.settings.matching.default_limit)
        return {
            "query": query,
            "category": test_case.get("category"),
            "top_results": [
                {"name": r.item.raw_name, "device_model": r.item.device_model,
                 "score": r.score, "strategy": r.strategy, "is_approximate": r.is_approximate}
                for r in results[:self.k]
            ],
            "metrics": self.metrics_calculator.evaluate_case(results, test_case, self.k),
        }

    def run_evaluation(self) -> Dict[str, Any]:
        test_cases = MatchingQueryDataset.get_test_cases()
        logger.info(f"Evaluating {len(test_cases)} test cases...")

        results: List[Dict[str, Any]] = []
        for test_case in tqdm(test_cases, desc="Evaluating"):
            results.append(self.evaluate_single_query(test_case))

        summary = {
            "total_queries": len(results),
            "index": self.engine.get_index_info(),
            "metrics": self.metrics_calculator.aggregate([r["metrics"] for r in results]),
        }

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        report_path = self.output_dir / f"matching_eval_{timestamp}.json"
        with open(report_path, "w", encoding="utf-8") as f:
            json.dump({"summary": summary, "results": results}, f, indent=2, ensure_ascii=False)

        logger.info(f"Evaluation complete! Report saved to {report_path}")
        print("\n" + "=" * 60)
        print("MATCHING EVALUATION SUMMARY")
        print("=" * 60)
        for metric_name, value in sorted(summary["metrics"].items()):
            print(f"{metric_name.replace('_', ' ').title():.<40} {value:.3f}")
        print("=" * 60 + "\n")
        return {"summary": summary, "report_path": str(report_path)}


def main():
    """Main evaluation entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Evaluate product matching quality")
    parser.add_argument(
        "--catalog",
        type=Path,
        default=None,
        help="Price list CSV file (defaults to the configured one)"
    )
    parser.add_argument(
        "--output-dir",
        default="./evaluation_results",
        help="Output directory for evaluation results"
    )

    args = parser.parse_args()

    engine = PricingEngine.from_config()
    engine.load_file(args.catalog)
    MatchingEvaluator(engine, output_dir=args.output_dir).run_evaluation()


if __name__ == "__main__":
    main()
