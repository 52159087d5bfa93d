"""
Storage Backends

Remote Supabase store and the local offline cache.
"""

from .local_cache import LocalCache
from .remote import RemoteConfig, RemoteResult, RemoteStore, RemoteStoreError

__all__ = [
    "LocalCache",
    "RemoteConfig",
    "RemoteResult",
    "RemoteStore",
    "RemoteStoreError",
]
