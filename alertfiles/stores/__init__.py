"""Remote file stores."""

from alertfiles.stores.base import BaseStore, ConflictError, NotFoundError, RemoteStoreError
from alertfiles.stores.github import GitHubStore

__all__ = [
    "BaseStore",
    "ConflictError",
    "NotFoundError",
    "RemoteStoreError",
    "GitHubStore",
]
