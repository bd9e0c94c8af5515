"""Notification subscriptions: storage, threshold evaluation and delivery."""

from .store import Condition, NotificationStore, NotificationSubscription, SubscriptionCreate
from .engine import NotificationSweep, SweepReport, SweepResult, evaluate

__all__ = [
    "Condition",
    "NotificationStore",
    "NotificationSubscription",
    "SubscriptionCreate",
    "NotificationSweep",
    "SweepReport",
    "SweepResult",
    "evaluate",
]
