"""Pharmacovigilance agent: adverse event extraction, classification and follow-up workflow."""

__version__ = "0.1.0"
