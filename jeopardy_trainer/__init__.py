"""
Jeopardy Trainer - trivia practice service with mastery tracking, Coryat
scoring and AI study recommendations.
"""

__version__ = "1.0.0"
