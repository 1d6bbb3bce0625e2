"""
Common utilities for the guestbook load test.
"""

from .backoff import BackoffRequester, RequestResult
from .worker_pool import Worker

__all__ = ['BackoffRequester', 'RequestResult', 'Worker']
