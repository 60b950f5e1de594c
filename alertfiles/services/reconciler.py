"""Content reconciler - converges a remote file to the merged content for an alert."""

import logging
import posixpath
from dataclasses import dataclass
from typing import Optional

from alertfiles.models.alert import QueuedAlert
from alertfiles.models.remote import CommitMetadata, RemoteFile, Repo
from alertfiles.services.template import Templater, TemplateRenderError
from alertfiles.stores.base import BaseStore, NotFoundError
from alertfiles.strategies.base import BaseStrategy

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation."""

    path: str
    created: bool = False
    written: bool = False
    dry_run: bool = False
    skipped: bool = False
    content: str = ""
    version: Optional[str] = None


class ContentReconciler:
    """Fetch, merge and write the file for a fired alert.

    Each call performs at most one remote write. Template and merge failures
    abort before any write; store errors other than "not found" propagate.
    """

    def __init__(
        self,
        store: BaseStore,
        strategy: BaseStrategy,
        repo: Repo,
        filename_template: str,
        metadata: CommitMetadata,
        *,
        dry_run: bool = False,
        create_on_resolve: bool = True,
    ) -> None:
        self._store = store
        self._strategy = strategy
        self._repo = repo
        self._filename_template = filename_template
        self._metadata = metadata
        self._dry_run = dry_run
        self._create_on_resolve = create_on_resolve

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def target_path(self, templater: Templater) -> str:
        """Render the filename template and join it onto the repository base dir."""
        filename = templater.render(self._filename_template).strip()
        if not filename:
            raise TemplateRenderError("Filename template rendered to an empty string")
        return posixpath.join(self._repo.dir, filename.lstrip("/"))

    async def _fetch(self, path: str) -> RemoteFile:
        try:
            return await self._store.get(path)
        except NotFoundError:
            logger.debug(f"File {path} does not exist yet, will create it")
            return RemoteFile(path=path)

    async def reconcile(self, queued: QueuedAlert) -> ReconcileResult:
        alert = queued.alert
        templater = Templater(self._repo, alert, queued.message)

        path = self.target_path(templater)
        logger.info(f"Reconciling alert {alert.name} ({alert.status}) into {path}")

        current = await self._fetch(path)
        result = ReconcileResult(path=path, created=not current.exists, dry_run=self._dry_run)

        if not current.exists and alert.is_resolved and not self._create_on_resolve:
            logger.info(f"Skipping {path}: alert {alert.name} is resolved and has no document")
            result.skipped = True
            return result

        result.content = self._strategy.render(templater, current.text)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Content for {path}:\n{result.content}")

        if self._dry_run:
            mode = "create" if result.created else "update"
            logger.info(f"Dry run: would {mode} {path} ({len(result.content)} bytes)")
            return result

        result.version = await self._store.create_or_update(
            path,
            result.content.encode("utf-8"),
            current.version,
            self._metadata,
        )
        result.written = True
        logger.info(f"{'Created' if result.created else 'Updated'} {path} in {self._store.name}")
        return result
