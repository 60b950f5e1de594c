"""Tests for the content reconciler against the in-memory store."""

from datetime import datetime, timezone

import pytest

from alertfiles.config import DEFAULT_INCIDENT_ENTRY, DEFAULT_INCIDENT_HEADER
from alertfiles.models.alert import QueuedAlert, WebhookMessage
from alertfiles.models.remote import CommitMetadata, RemoteFile, Repo
from alertfiles.services.reconciler import ContentReconciler
from alertfiles.services.template import TemplateRenderError
from alertfiles.stores.base import ConflictError, RemoteStoreError
from alertfiles.strategies.incident import IncidentStrategy, MalformedDocumentError, parse_document
from alertfiles.strategies.passthrough import PassThroughStrategy

from conftest import MemoryStore

PATH_TEMPLATE = "content/issues/{{ alert.labels.alertname }}.md"
PATH = "content/issues/disk-full.md"
START = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
END = datetime(2024, 1, 1, 1, 0, 0, tzinfo=timezone.utc)
METADATA = CommitMetadata(message="update incident", branch="main", author_name="bot", author_email="bot@example.com")


def queued(alert, message=None) -> QueuedAlert:
    return QueuedAlert(key=alert.key, alert=alert, fire_at=datetime.now(timezone.utc), message=message)


def make_reconciler(store, strategy=None, **kwargs) -> ContentReconciler:
    return ContentReconciler(
        store,
        strategy or IncidentStrategy(DEFAULT_INCIDENT_HEADER, DEFAULT_INCIDENT_ENTRY),
        Repo(owner="acme", name="status", dir=kwargs.pop("dir", "")),
        kwargs.pop("filename", PATH_TEMPLATE),
        METADATA,
        **kwargs,
    )


class FailingGetStore(MemoryStore):
    async def get(self, path: str) -> RemoteFile:
        self.gets.append(path)
        raise RemoteStoreError("502 Bad Gateway")


class RacingStore(MemoryStore):
    """Another writer changes the file right after every read."""

    async def get(self, path: str) -> RemoteFile:
        try:
            return await super().get(path)
        finally:
            self.put(path, "---\nstate: Investigating\n---\nwritten by someone else\n")


class TestTargetPath:
    """Tests for filename rendering."""

    async def test_path_from_labels(self, store, make_alert):
        reconciler = make_reconciler(store)
        result = await reconciler.reconcile(queued(make_alert(alertname="disk-full")))
        assert result.path == PATH

    async def test_path_joined_onto_dir(self, store, make_alert):
        reconciler = make_reconciler(store, dir="content/issues", filename="  {{ alert.labels.alertname }}.md\n")
        result = await reconciler.reconcile(queued(make_alert()))
        assert result.path == PATH

    async def test_path_from_group_labels(self, store, make_alert):
        reconciler = make_reconciler(
            store, dir="content", filename="{{ message.group_labels.service }}/{{ alert.labels.alertname }}.md"
        )
        message = WebhookMessage(group_labels={"service": "storage"})
        result = await reconciler.reconcile(queued(make_alert(), message))

        assert result.path == "content/storage/disk-full.md"
        assert "content/storage/disk-full.md" in store.files

    async def test_template_error_aborts_before_remote_io(self, store, make_alert):
        reconciler = make_reconciler(store, filename="{{ alert.labels.alertname ")
        with pytest.raises(TemplateRenderError):
            await reconciler.reconcile(queued(make_alert()))
        assert store.gets == []
        assert store.writes == []

    async def test_empty_filename_aborts(self, store, make_alert):
        reconciler = make_reconciler(store, filename="{{ alert.labels.missing }}")
        with pytest.raises(TemplateRenderError):
            await reconciler.reconcile(queued(make_alert()))
        assert store.gets == []


class TestReconcile:
    """Tests for the fetch-merge-write cycle."""

    async def test_creates_absent_file(self, store, make_alert):
        reconciler = make_reconciler(store)
        result = await reconciler.reconcile(queued(make_alert(status="firing", starts_at=START)))

        assert result.created
        assert result.written
        assert store.writes == [{"path": PATH, "version": None, "metadata": METADATA}]
        header = parse_document(store.text(PATH)).header
        assert header["state"] == "Investigating"
        assert header["startsAt"] == "2024-01-01 00:00:00"

    async def test_updates_with_read_version(self, store, make_alert):
        reconciler = make_reconciler(store)
        await reconciler.reconcile(queued(make_alert(status="firing", starts_at=START)))
        version_after_create = store.files[PATH][1]

        result = await reconciler.reconcile(queued(make_alert(status="resolved", starts_at=START, ends_at=END)))

        assert not result.created
        assert store.writes[-1]["version"] == version_after_create
        doc = parse_document(store.text(PATH))
        assert doc.header["state"] == "Resolved"
        assert doc.header["endsAt"] == "2024-01-01 01:00:00"
        assert doc.header["startsAt"] == "2024-01-01 00:00:00"
        entries = [line for line in doc.timeline.splitlines() if line]
        assert entries == [
            "**Resolved** - 2024-01-01 01:00:00",
            "**Investigating** - 2024-01-01 00:00:00",
        ]

    async def test_other_get_errors_propagate(self, make_alert):
        store = FailingGetStore()
        reconciler = make_reconciler(store)
        with pytest.raises(RemoteStoreError):
            await reconciler.reconcile(queued(make_alert()))
        assert store.writes == []

    async def test_stale_version_is_conflict(self, make_alert):
        store = RacingStore()
        store.put(PATH, "---\nstate: Investigating\nstartsAt: \"2024-01-01 00:00:00\"\n---\n")
        reconciler = make_reconciler(store)

        with pytest.raises(ConflictError):
            await reconciler.reconcile(queued(make_alert(status="resolved", ends_at=END)))

        assert store.writes == []
        assert store.text(PATH).endswith("written by someone else\n")

    async def test_concurrent_create_is_conflict(self, make_alert):
        store = RacingStore()
        reconciler = make_reconciler(store)

        with pytest.raises(ConflictError):
            await reconciler.reconcile(queued(make_alert()))

        assert store.writes == []
        assert store.text(PATH).endswith("written by someone else\n")

    async def test_malformed_document_is_not_overwritten(self, store, make_alert):
        store.put(PATH, "free form notes without a header\n")
        reconciler = make_reconciler(store)

        with pytest.raises(MalformedDocumentError):
            await reconciler.reconcile(queued(make_alert()))

        assert store.writes == []
        assert store.text(PATH) == "free form notes without a header\n"

    async def test_passthrough_strategy(self, store, make_alert):
        reconciler = make_reconciler(
            store,
            strategy=PassThroughStrategy("{{ alert.status }} {{ alert.labels.alertname }}\n{{ current }}"),
        )
        store.put(PATH, "previous")

        result = await reconciler.reconcile(queued(make_alert(status="firing")))

        assert result.content == "firing disk-full\nprevious"
        assert store.text(PATH) == "firing disk-full\nprevious"


class TestDryRun:
    """Tests for dry-run mode."""

    async def test_dry_run_never_writes(self, store, make_alert):
        reconciler = make_reconciler(store, dry_run=True)
        result = await reconciler.reconcile(queued(make_alert(status="firing", starts_at=START)))

        assert reconciler.dry_run
        assert result.dry_run
        assert not result.written
        assert result.path == PATH
        assert result.created
        assert store.gets == [PATH]
        assert store.writes == []
        assert parse_document(result.content).header["state"] == "Investigating"

    async def test_dry_run_on_existing_file(self, store, make_alert):
        store.put(PATH, "---\nstate: Investigating\nstartsAt: \"2024-01-01 00:00:00\"\n---\n")
        reconciler = make_reconciler(store, dry_run=True)

        result = await reconciler.reconcile(queued(make_alert(status="resolved", ends_at=END)))

        assert not result.created
        assert store.writes == []
        assert parse_document(result.content).header["state"] == "Resolved"


class TestCreateOnResolve:
    """Tests for resolved alerts without an existing document."""

    async def test_creates_resolved_document_by_default(self, store, make_alert):
        reconciler = make_reconciler(store)
        result = await reconciler.reconcile(queued(make_alert(status="resolved", ends_at=END)))

        assert result.written
        assert parse_document(store.text(PATH)).header["state"] == "Resolved"

    async def test_skip_when_disabled(self, store, make_alert):
        reconciler = make_reconciler(store, create_on_resolve=False)
        result = await reconciler.reconcile(queued(make_alert(status="resolved", ends_at=END)))

        assert result.skipped
        assert not result.written
        assert store.writes == []

    async def test_existing_document_still_updated_when_disabled(self, store, make_alert):
        store.put(PATH, "---\nstate: Investigating\nstartsAt: \"2024-01-01 00:00:00\"\n---\n")
        reconciler = make_reconciler(store, create_on_resolve=False)

        result = await reconciler.reconcile(queued(make_alert(status="resolved", ends_at=END)))

        assert result.written
        assert parse_document(store.text(PATH)).header["state"] == "Resolved"
