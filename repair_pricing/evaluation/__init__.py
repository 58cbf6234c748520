"""Matching evaluation module."""
from .metrics import MatchingEvaluationMetrics
from .query_dataset import MatchingQueryDataset

__all__ = ['MatchingEvaluationMetrics', 'MatchingQueryDataset']
