"""
Guestbook web service.
"""

from .app import create_app, serve
from .store import InMemoryListStore, ListStore, RedisListStore, StoreError

__all__ = ['create_app', 'serve', 'ListStore', 'InMemoryListStore', 'RedisListStore', 'StoreError']
