"""Domain layer: eligibility and message content rules."""

from .eligibility import applicable_sub_events, eligible_items, is_eligible
from .message import build_notification

__all__ = [
    "applicable_sub_events",
    "build_notification",
    "eligible_items",
    "is_eligible",
]
