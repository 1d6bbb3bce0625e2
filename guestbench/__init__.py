"""
Guestbook service and its concurrent load-test harness.
"""

__version__ = "0.1.0"
