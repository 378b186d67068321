"""Feature gating utilities coordinating entitlement enforcement."""
from .context import EntitlementContext
from .exceptions import FeatureGateError
from .quota import UNLIMITED, UsageLimitEvaluation, assert_usage_limit, evaluate_usage_limit

__all__ = [
    "EntitlementContext",
    "FeatureGateError",
    "UNLIMITED",
    "UsageLimitEvaluation",
    "assert_usage_limit",
    "evaluate_usage_limit",
]
