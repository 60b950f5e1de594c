"""Base interface for remote file stores."""

from abc import ABC, abstractmethod
from typing import Optional

from alertfiles.models.remote import CommitMetadata, RemoteFile


class RemoteStoreError(Exception):
    """A remote store operation failed (network, timeout, server error)."""


class NotFoundError(RemoteStoreError):
    """The requested file does not exist in the store."""


class ConflictError(RemoteStoreError):
    """A write was rejected because the file changed since it was read.

    Raised for stale version tokens and for creates of a file that already exists.
    """


class BaseStore(ABC):
    """File read/create/update operations against a version-controlled repository."""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def get(self, path: str) -> RemoteFile:
        """Fetch a file with its version token.

        Raises NotFoundError if the file does not exist.
        """

    @abstractmethod
    async def create_or_update(
        self,
        path: str,
        content: bytes,
        version: Optional[str],
        metadata: CommitMetadata,
    ) -> Optional[str]:
        """Write a file and return its new version token.

        With ``version=None`` the file is created and the write must fail with
        ConflictError if it already exists. Otherwise ``version`` must match the
        stored revision or ConflictError is raised.
        """

    async def close(self) -> None:
        return None
