"""
Module 'coupons': évaluation d'éligibilité (spéculative) et administration des codes.
"""

from .models import Coupon, EligibilityResult, RedemptionOutcome
from .service import evaluate, compute_discount, normalize_code

__all__ = [
    "Coupon",
    "EligibilityResult",
    "RedemptionOutcome",
    "evaluate",
    "compute_discount",
    "normalize_code",
]
