"""
Quiz Portal Backend

Learning-assessment portal: administrators author multiple-choice tests and
assign them to students; students submit attempts that are graded into
immutable results and aggregated into completion and performance analytics.

Components:
1. Test Definition Store (quizportal.catalog)
2. Assignment Manager (quizportal.assignments)
3. Attempt/Scoring Engine (quizportal.attempts)
4. Analytics Aggregator (quizportal.analytics)
"""

__version__ = "0.1.0"
