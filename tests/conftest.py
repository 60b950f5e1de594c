"""Shared fixtures: alert factory and an in-memory remote store."""

import itertools
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import pytest

from alertfiles.models.alert import Alert
from alertfiles.models.remote import CommitMetadata, RemoteFile
from alertfiles.stores.base import BaseStore, ConflictError, NotFoundError


class MemoryStore(BaseStore):
    """Store double that enforces version tokens like the real store."""

    def __init__(self) -> None:
        self.files: dict[str, tuple[bytes, str]] = {}
        self.gets: list[str] = []
        self.writes: list[dict[str, Any]] = []
        self._versions = itertools.count(1)

    @property
    def name(self) -> str:
        return "memory"

    def put(self, path: str, text: str) -> str:
        """Seed or overwrite a file directly, as another writer would."""
        version = f"v{next(self._versions)}"
        self.files[path] = (text.encode("utf-8"), version)
        return version

    def text(self, path: str) -> str:
        return self.files[path][0].decode("utf-8")

    async def get(self, path: str) -> RemoteFile:
        self.gets.append(path)
        if path not in self.files:
            raise NotFoundError(path)
        content, version = self.files[path]
        return RemoteFile(path=path, content=content, version=version)

    async def create_or_update(
        self,
        path: str,
        content: bytes,
        version: Optional[str],
        metadata: CommitMetadata,
    ) -> Optional[str]:
        existing = self.files.get(path)
        if version is None and existing is not None:
            raise ConflictError(f"{path} already exists")
        if version is not None and (existing is None or existing[1] != version):
            raise ConflictError(f"stale version {version} for {path}")

        new_version = f"v{next(self._versions)}"
        self.files[path] = (content, new_version)
        self.writes.append({"path": path, "version": version, "metadata": metadata})
        return new_version


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def make_alert() -> Callable[..., Alert]:
    """Factory for alerts with the receiver's enabled label set."""

    def _make(
        status: str = "firing",
        alertname: str = "disk-full",
        starts_at: datetime = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc),
        ends_at: Optional[datetime] = None,
        annotations: Optional[dict[str, str]] = None,
        **labels: str,
    ) -> Alert:
        all_labels = {"alertname": alertname, "githubfilesenabled": "true", **labels}
        data: dict[str, Any] = {
            "status": status,
            "labels": all_labels,
            "annotations": annotations or {},
            "startsAt": starts_at.isoformat(),
        }
        if ends_at is not None:
            data["endsAt"] = ends_at.isoformat()
        return Alert.model_validate(data)

    return _make
