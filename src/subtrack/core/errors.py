"""Domain exceptions for subscription tracking.

Every failure in the core is per-operation and deterministic: callers either
fix the payload and resubmit, or they don't. Nothing here is retried.
"""

from __future__ import annotations

from collections.abc import Mapping

ILLEGAL_TRANSITION_MESSAGE = (
    "A cancelled subscription cannot be moved back to Free Trial. Set it to Active first."
)


class SubscriptionError(Exception):
    """Base class for subscription domain errors."""


class SubscriptionValidationError(SubscriptionError, ValueError):
    """Raised when a payload violates one or more field rules.

    ``errors`` maps each failing field to a single human-readable message so
    a form can highlight the exact inputs in one round-trip.
    """

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors: dict[str, str] = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Invalid subscription payload: {fields}")


class IllegalTransitionError(SubscriptionValidationError):
    """Raised when a status change is not permitted by the status machine."""

    def __init__(self, from_status: str, to_status: str) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__({"status": ILLEGAL_TRANSITION_MESSAGE})


class SubscriptionNotFoundError(SubscriptionError, LookupError):
    """Raised when an identifier does not resolve to a stored subscription."""

    def __init__(self, subscription_id: object) -> None:
        self.subscription_id = subscription_id
        super().__init__(f"Subscription not found: {subscription_id}")
