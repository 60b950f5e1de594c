"""Debounce queue - coalesces alert bursts and fires each alert key once per quiet period."""

import asyncio
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from alertfiles.models.alert import Alert, QueuedAlert, WebhookMessage
from alertfiles.stores.base import ConflictError

logger = logging.getLogger(__name__)

Handler = Callable[[QueuedAlert], Awaitable[Any]]


class DebounceQueue:
    """In-memory debounce queue keyed by alert key.

    The first arrival of a key schedules a one-shot job at ``now + quiet_period``;
    later arrivals only replace the payload (the window stays anchored to the
    first arrival). The scheduler wakes up at the nearest due job, pops the
    entry and hands it to ``handler`` in its own task.

    All access to the entry map goes through one lock, so ``enqueue`` may be
    called from any thread or coroutine.
    """

    def __init__(
        self,
        handler: Handler,
        quiet_period: float,
        *,
        handle_timeout: float = 15.0,
        shutdown_grace: float = 10.0,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        self._handler = handler
        self._quiet_period = timedelta(seconds=quiet_period)
        self._handle_timeout = handle_timeout
        self._shutdown_grace = shutdown_grace
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)

        self._lock = threading.Lock()
        self._entries: dict[str, QueuedAlert] = {}
        # Keys whose reconciliation is currently running
        self._running: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._running)

    def pending(self) -> list[dict[str, Any]]:
        """Snapshot of queued entries."""
        with self._lock:
            return [entry.to_dict() for entry in self._entries.values()]

    def start(self) -> None:
        """Start the scheduler. Must be called from the running event loop."""
        if self._scheduler.running:
            return
        self._scheduler.start()
        logger.info(f"Debounce queue started (quiet period: {self._quiet_period.total_seconds()}s)")

    def enqueue(self, alert: Alert, message: Optional[WebhookMessage] = None) -> Optional[QueuedAlert]:
        """Queue an alert, coalescing it with a pending entry of the same key.

        ``message`` is the webhook message the alert arrived in; the latest one
        is handed to the handler together with the alert.

        Returns the queued entry, or None if the queue is shut down.
        """
        key = alert.key
        with self._lock:
            if self._closed:
                logger.warning(f"Debounce queue is shut down, dropping alert {alert.name}")
                return None

            entry = self._entries.get(key)
            if entry is not None:
                entry.replace(alert, message)
                logger.debug(
                    f"Coalesced alert {alert.name} ({key[:12]}), "
                    f"{entry.arrivals} arrivals, fires at {entry.fire_at.isoformat()}"
                )
                return entry

            fire_at = datetime.now(timezone.utc) + self._quiet_period
            entry = QueuedAlert(key=key, alert=alert, fire_at=fire_at, message=message)
            self._entries[key] = entry
            self._schedule(entry, fire_at)

        logger.info(f"Queued alert {alert.name} ({key[:12]}), fires at {fire_at.isoformat()}")
        return entry

    def _schedule(self, entry: QueuedAlert, run_date: datetime) -> None:
        # Caller holds the lock
        self._scheduler.add_job(
            self._fire,
            "date",
            run_date=run_date,
            args=[entry.key],
            id=f"debounce-{entry.key}",
            name=f"Fire alert {entry.alert.name}",
            replace_existing=True,
            misfire_grace_time=None,
            coalesce=True,
        )

    async def _fire(self, key: str) -> None:
        """Pop a due entry and dispatch it."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                if self._closed:
                    return
                raise RuntimeError(f"Debounce job fired for unknown key {key}")
            if key in self._running:
                # Fired again as soon as the running reconciliation finishes
                entry.deferred = True
                logger.debug(f"Alert {entry.alert.name} ({key[:12]}) is still being handled, deferring")
                return
            del self._entries[key]
            self._running.add(key)

        task = asyncio.create_task(self._handle(entry), name=f"reconcile-{key[:12]}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle(self, entry: QueuedAlert) -> None:
        name = entry.alert.name
        try:
            await asyncio.wait_for(self._handler(entry), timeout=self._handle_timeout)
        except ConflictError as e:
            logger.warning(f"Conflict while handling alert {name} ({entry.key[:12]}), dropping: {e}")
        except asyncio.TimeoutError:
            logger.error(
                f"Handling alert {name} ({entry.key[:12]}) timed out after {self._handle_timeout}s, dropping"
            )
        except asyncio.CancelledError:
            logger.warning(f"Handling alert {name} ({entry.key[:12]}) was cancelled")
            raise
        except Exception:
            logger.exception(f"Error while handling alert {name} ({entry.key[:12]}), dropping")
        finally:
            self._finish(entry.key)

    def _finish(self, key: str) -> None:
        with self._lock:
            self._running.discard(key)
            entry = self._entries.get(key)
            if entry is not None and entry.deferred and not self._closed:
                entry.deferred = False
                self._schedule(entry, datetime.now(timezone.utc))

    async def shutdown(self) -> None:
        """Stop firing, then wait for in-flight handling up to the grace period."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            dropped = len(self._entries)
            self._entries.clear()

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            # The scheduler stops on the next loop iteration
            await asyncio.sleep(0)
        if dropped:
            logger.warning(f"Discarded {dropped} pending alert(s) on shutdown")

        tasks = set(self._tasks)
        if tasks:
            logger.info(f"Waiting for {len(tasks)} in-flight reconciliation(s)")
            _, still_running = await asyncio.wait(tasks, timeout=self._shutdown_grace)
            for task in still_running:
                task.cancel()
            if still_running:
                await asyncio.gather(*still_running, return_exceptions=True)
                logger.warning(f"Cancelled {len(still_running)} reconciliation(s) on shutdown")

        logger.info("Debounce queue stopped")
