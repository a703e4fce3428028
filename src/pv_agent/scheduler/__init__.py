"""
Scheduler module for periodic adverse event processing.

Schedules:
- Every 5 minutes: workflow runs for cases still NEW after the staleness threshold
- Daily at 02:00: cross-case pattern detection over all cases
"""

from .scheduler import PharmacovigilanceScheduler

__all__ = ["PharmacovigilanceScheduler"]
