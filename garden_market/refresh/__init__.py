"""Refresh package: coordinator for catalog re-fetches."""
from .coordinator import RefreshCoordinator, SubscriptionState

__all__ = [
    "RefreshCoordinator",
    "SubscriptionState",
]
