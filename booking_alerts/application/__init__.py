"""Application layer: dispatch orchestration and the run driver."""

from .dispatch import dispatch_notifications
from .run import format_report, run_for_booking, run_once

__all__ = [
    "dispatch_notifications",
    "format_report",
    "run_for_booking",
    "run_once",
]
