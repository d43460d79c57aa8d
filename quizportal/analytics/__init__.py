"""
Analytics Aggregator

Completion and performance statistics derived from stored assignments and
results.
"""

from quizportal.analytics.service import AnalyticsAggregator

__all__ = ['AnalyticsAggregator']
