"""
Persistence collaborator interface and the in-memory implementation.
"""

from member_sync.store.base import MemberStore
from member_sync.store.memory import InMemoryStore

__all__ = [
    "InMemoryStore",
    "MemberStore",
]
