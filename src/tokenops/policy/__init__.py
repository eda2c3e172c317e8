"""Readiness, RequireAuth and regulatory requirement evaluation."""

from .kernel import PolicyKernel
from .models import (
    EnforcementPlan,
    PolicyEvaluationResult,
    PolicyFacts,
    ReadinessBlocker,
    ReadinessResult,
    RequireAuthCheckResult,
    RequirementMatch,
)
from .readiness import ReadinessEvaluator, compute_asset_readiness, evaluate_readiness
from .require_auth import RequireAuthChecker, require_auth_error_message

__all__ = [
    "EnforcementPlan",
    "PolicyEvaluationResult",
    "PolicyFacts",
    "PolicyKernel",
    "ReadinessBlocker",
    "ReadinessEvaluator",
    "ReadinessResult",
    "RequireAuthCheckResult",
    "RequireAuthChecker",
    "RequirementMatch",
    "compute_asset_readiness",
    "evaluate_readiness",
    "require_auth_error_message",
]
