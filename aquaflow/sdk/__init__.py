"""
SDK for AquaFlow.

Provides access to the AI insight and meter OCR provider.
"""

from .insights_client import FALLBACK_INSIGHT, InsightResult, WaterInsightsClient

__all__ = ["FALLBACK_INSIGHT", "InsightResult", "WaterInsightsClient"]
