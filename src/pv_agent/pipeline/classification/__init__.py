"""
Classification module: causality assessment, risk analysis and pattern detection.
"""

from .classifier import AdverseEventClassifier
from .insights import extract_insights, extract_recommendations, parse_highlights
from .prompts import build_causality_prompt, build_pattern_prompt, build_risk_prompt

__all__ = [
    'AdverseEventClassifier',
    'extract_insights',
    'extract_recommendations',
    'parse_highlights',
    'build_causality_prompt',
    'build_pattern_prompt',
    'build_risk_prompt',
]
