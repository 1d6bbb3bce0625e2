"""
HTTP clients for the systems under test.
"""

from .base import GuestbookSystem

__all__ = ['GuestbookSystem']
