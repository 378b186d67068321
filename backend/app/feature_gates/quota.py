"""Usage limit evaluation for tier-bound resources."""
from __future__ import annotations

from dataclasses import dataclass

from .exceptions import FeatureGateError

UNLIMITED = -1


@dataclass(frozen=True)
class UsageLimitEvaluation:
    """Represents the outcome of a usage limit check."""

    resource: str
    limit: int
    current_usage: int
    requested: int
    projected_usage: int
    allowed: bool

    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED

    def to_dict(self) -> dict[str, int | bool | str]:
        """Serialize the evaluation for logging or telemetry."""

        return {
            "resource": self.resource,
            "limit": self.limit,
            "current_usage": self.current_usage,
            "requested": self.requested,
            "projected_usage": self.projected_usage,
            "allowed": self.allowed,
        }


def evaluate_usage_limit(
    *,
    resource: str,
    usage: int,
    limit: int,
    requested: int = 1,
) -> UsageLimitEvaluation:
    """Determine whether creating ``requested`` more units stays within ``limit``."""

    requested = max(requested, 0)
    projected = usage + requested
    allowed = limit == UNLIMITED or projected <= limit

    return UsageLimitEvaluation(
        resource=resource,
        limit=limit,
        current_usage=usage,
        requested=requested,
        projected_usage=projected,
        allowed=allowed,
    )


def assert_usage_limit(
    *,
    resource: str,
    usage: int,
    limit: int,
    requested: int = 1,
    error_code: str = "usage_limit_reached",
) -> UsageLimitEvaluation:
    """Raise when an operation would exceed the tier's limit."""

    evaluation = evaluate_usage_limit(resource=resource, usage=usage, limit=limit, requested=requested)

    if not evaluation.allowed:
        raise FeatureGateError(
            code=error_code,
            message=f"Your plan allows {limit} {resource}.",
            detail={
                "resource": resource,
                "limit": limit,
                "usage": usage,
                "requested": evaluation.requested,
            },
        )

    return evaluation
