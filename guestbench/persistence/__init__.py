"""
Result data structures, aggregation and persistence.
"""

from .record import Comment, RunSummary, Stats

__all__ = ['Comment', 'Stats', 'RunSummary']
