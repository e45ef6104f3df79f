"""
Core services for the health dashboard.

This package contains the scoring pipeline (normalization, classifiers,
sub-models, derivation, composite scoring) and chart-data preparation.
"""

from .assessment import HealthAssessmentService
from .derivation import DerivationEngine
from .normalization import normalize_reading
from .scoring import CompositeScorer

__all__ = [
    "CompositeScorer",
    "DerivationEngine",
    "HealthAssessmentService",
    "normalize_reading",
]
