"""
Background Jobs Module

Handles scheduled tasks for:
- Retrying checkout fulfillment after a failed payment webhook
"""

from commerce.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
]
