"""Task-to-model routing and retry policy."""

from fishcap.routing.classifier import RetryAction, RetryDecision, classify_error
from fishcap.routing.models import ModelPolicy, RouteResult, Task
from fishcap.routing.policy import DEFAULT_POLICY, validate_policy_table
from fishcap.routing.router import ATTEMPTS_PER_MODEL, ModelRouter

__all__ = [
    "ATTEMPTS_PER_MODEL",
    "DEFAULT_POLICY",
    "ModelPolicy",
    "ModelRouter",
    "RetryAction",
    "RetryDecision",
    "RouteResult",
    "Task",
    "classify_error",
    "validate_policy_table",
]
