"""
Workflow agent for automated adverse event processing.
"""

from .workflow import PharmacovigilanceAgent, determine_follow_up_actions, next_status

__all__ = ["PharmacovigilanceAgent", "determine_follow_up_actions", "next_status"]
