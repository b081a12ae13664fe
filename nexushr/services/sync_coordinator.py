"""
Sync Coordinator

Local-first reads and writes that keep working while the backend is
unreachable, plus the machinery that reconciles later.

- Reads try the backend first; when it answers, its set replaces the local
  table (the backend is authoritative when reachable), otherwise the local
  table is returned as is.
- Writes land in the local store immediately (synced=False) and are queued
  in the outbox; one push is attempted right away and, on failure, the entry
  waits for the retry worker or a manual flush.
- Network and backend failures never reach the caller. The only visible
  symptom is the pending count pushed to subscribers.

Every record carries a version number incremented on each local save. It is
sent with each upsert so a backend that tracks versions can refuse stale
writes (409); such entries are parked as conflicts instead of being retried.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional
import enum
import logging
import threading

from tenacity import Retrying, stop_after_attempt, wait_exponential, retry_if_exception

from nexushr.core.config import SyncSettings
from nexushr.core.dates import utc_now
from nexushr.core.exceptions import AppException, RemoteConflictError, RemoteUnavailableError
from nexushr.core.logging import correlation_scope
from nexushr.models.outbox import OutboxOperation
from nexushr.schemas.base import CamelModel, Versioned
from nexushr.schemas.entities import EntityType
from nexushr.services.local_store import LocalStore
from nexushr.services.outbox import CONFLICT, Outbox, OutboxItem
from nexushr.services.remote_client import RemoteApiClient

logger = logging.getLogger(__name__)

PendingListener = Callable[[int], None]


class SyncMode(str, enum.Enum):
    CLOUD = "CLOUD"
    LOCAL = "LOCAL"


class PushOutcome(str, enum.Enum):
    SYNCED = "synced"
    QUEUED = "queued"
    CONFLICT = "conflict"


@dataclass
class FlushResult:
    attempted: int = 0
    synced: int = 0
    failed: int = 0
    conflicts: int = 0
    skipped: bool = False


def _is_transient(exc: BaseException) -> bool:
    # Network errors and 5xx are worth an immediate retry; 4xx are not
    return isinstance(exc, RemoteUnavailableError) and exc.status_code >= 500


class SyncCoordinator:
    def __init__(
        self,
        store: LocalStore,
        outbox: Outbox,
        remote: Optional[RemoteApiClient],
        settings: SyncSettings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.outbox = outbox
        self.remote = remote
        self.settings = settings
        self._clock = clock
        self._online = False
        self._listeners: List[PendingListener] = []
        self._listeners_lock = threading.Lock()
        self._flush_lock = threading.Lock()

    # --- Status ---

    @property
    def mode(self) -> SyncMode:
        return SyncMode.CLOUD if self._online else SyncMode.LOCAL

    def pending_count(self) -> int:
        return self.outbox.count_pending()

    def subscribe(self, callback: PendingListener) -> Callable[[], None]:
        """
        Register a pending-count listener. It is called right away with the
        current count and again after every save, delete and flush.
        Returns a function that unregisters it.
        """
        with self._listeners_lock:
            self._listeners.append(callback)
        self._notify(callback, self.pending_count())

        def unsubscribe():
            with self._listeners_lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)
        return unsubscribe

    def _notify(self, callback: PendingListener, count: int):
        try:
            callback(count)
        except Exception:
            logger.exception("Pending-count listener raised")

    def _broadcast(self):
        count = self.pending_count()
        with self._listeners_lock:
            listeners = list(self._listeners)
        for callback in listeners:
            self._notify(callback, count)

    def _set_online(self, online: bool):
        if online != self._online:
            logger.info(f"Sync mode changed to {SyncMode.CLOUD.value if online else SyncMode.LOCAL.value}")
        self._online = online

    # --- Reads ---

    def get_local(self, entity_type: EntityType) -> List[CamelModel]:
        return [envelope.data for envelope in self.store.get_all(entity_type)]

    def get_all(self, entity_type: EntityType) -> List[CamelModel]:
        if self.remote is None:
            return self.get_local(entity_type)
        try:
            result = self.remote.get_all(entity_type)
        except AppException as e:
            logger.warning(f"Fetching {entity_type.value} failed, serving local copy: {e.message}")
            self._set_online(e.status_code < 500)
            return self.get_local(entity_type)

        self._set_online(True)
        self.store.replace_all(entity_type, result.records, result.versions)
        return result.records

    def refresh_all(self) -> Dict[EntityType, List[CamelModel]]:
        """Fetch every collection concurrently; no ordering between entity types."""
        with ThreadPoolExecutor(max_workers=len(EntityType)) as pool:
            futures = {entity_type: pool.submit(self.get_all, entity_type) for entity_type in EntityType}
            return {entity_type: future.result() for entity_type, future in futures.items()}

    # --- Writes ---

    def save(self, entity_type: EntityType, record: CamelModel) -> Versioned:
        # A queued delete keeps the tombstone version after the local row is gone
        queued = self.outbox.get(entity_type, record.id)
        envelope = self.store.put(
            entity_type,
            record,
            synced=False,
            min_version=queued.version if queued is not None else 0
        )
        item = self.outbox.enqueue(
            entity_type,
            record.id,
            OutboxOperation.UPSERT,
            version=envelope.version,
            payload=record.to_wire()
        )
        if self.remote is not None:
            self._push(item)
        self._broadcast()
        return self.store.get(entity_type, record.id) or envelope

    def delete(self, entity_type: EntityType, record_id: str) -> bool:
        """Local removal wins: it is never rolled back, whatever the backend says."""
        previous = self.store.get(entity_type, record_id)
        existed = self.store.delete(entity_type, record_id)
        item = self.outbox.enqueue(
            entity_type,
            record_id,
            OutboxOperation.DELETE,
            version=(previous.version + 1) if previous else 0
        )
        if self.remote is not None:
            self._push(item)
        self._broadcast()
        return existed

    # --- Replay ---

    def _backoff(self, attempts: int) -> timedelta:
        seconds = self.settings.retry_base_seconds * (2 ** max(attempts - 1, 0))
        return timedelta(seconds=min(seconds, self.settings.retry_max_seconds))

    def _send(self, item: OutboxItem):
        retrying = Retrying(
            stop=stop_after_attempt(max(self.settings.push_attempts, 1)),
            wait=wait_exponential(multiplier=self.settings.push_wait_seconds, max=10),
            retry=retry_if_exception(_is_transient),
            reraise=True
        )
        for attempt in retrying:
            with attempt:
                if item.operation == OutboxOperation.UPSERT:
                    self.remote.upsert(item.entity_type, item.payload or {}, item.version)
                else:
                    self.remote.delete(item.entity_type, item.record_id)

    def _push(self, item: OutboxItem) -> PushOutcome:
        try:
            self._send(item)
        except RemoteConflictError as e:
            logger.warning(
                f"Conflict pushing {item.entity_type.value}/{item.record_id} v{item.version}: {e.message}"
            )
            self._set_online(True)
            self.outbox.record_failure(item, CONFLICT, e.message, give_up=True)
            return PushOutcome.CONFLICT
        except AppException as e:
            attempts = item.attempts + 1
            give_up = attempts >= self.settings.max_attempts
            logger.info(
                f"Queued {item.operation.value} of {item.entity_type.value}/{item.record_id} "
                f"(attempt {attempts}): {e.message}"
            )
            self._set_online(e.status_code < 500)
            self.outbox.record_failure(
                item,
                e.error_code,
                e.message,
                next_attempt_at=self._clock() + self._backoff(attempts),
                give_up=give_up
            )
            return PushOutcome.QUEUED

        self._set_online(True)
        self.outbox.mark_synced(item)
        if item.operation == OutboxOperation.UPSERT:
            self.store.mark_synced(item.entity_type, item.record_id, item.version)
        return PushOutcome.SYNCED

    def _replay(self, items: List[OutboxItem]) -> FlushResult:
        result = FlushResult()
        for item in items:
            result.attempted += 1
            try:
                outcome = self._push(item)
            except Exception:
                # One broken entry must not stop the rest of the batch
                logger.exception(f"Unexpected error replaying {item.entity_type.value}/{item.record_id}")
                result.failed += 1
                continue
            if outcome == PushOutcome.SYNCED:
                result.synced += 1
            elif outcome == PushOutcome.CONFLICT:
                result.conflicts += 1
            else:
                result.failed += 1
        return result

    def _run_replay(self, label: str, select: Callable[[], List[OutboxItem]]) -> FlushResult:
        if self.remote is None:
            logger.debug(f"{label}: no backend configured")
            return FlushResult(skipped=True)
        if not self._flush_lock.acquire(blocking=False):
            logger.info(f"{label}: another replay is running")
            return FlushResult(skipped=True)
        try:
            with correlation_scope():
                items = select()
                result = self._replay(items)
                if result.attempted:
                    logger.info(
                        f"{label}: {result.synced} synced, {result.failed} still queued, "
                        f"{result.conflicts} conflicts"
                    )
        finally:
            self._flush_lock.release()
        self._broadcast()
        return result

    def flush_pending(self) -> FlushResult:
        """Replay every unsynced entry, including those that exhausted their retries."""
        return self._run_replay("Flush", lambda: self.outbox.pending(include_failed=True))

    def retry_due(self) -> FlushResult:
        """Retry-worker pass: only pending entries whose backoff has elapsed."""
        now = self._clock()
        return self._run_replay("Retry", lambda: self.outbox.pending(include_failed=False, due_at=now))

    def notify_connectivity(self, online: bool) -> Optional[FlushResult]:
        """Feed reachability changes in; going back online flushes immediately."""
        was_online = self._online
        self._set_online(online)
        if online and not was_online:
            logger.info("Backend reachable again, flushing pending changes")
            return self.flush_pending()
        return None

    # --- Conflicts ---

    def conflicts(self) -> List[OutboxItem]:
        return self.outbox.conflicts()

    def discard(self, entity_type: EntityType, record_id: str) -> bool:
        """Drop a queued mutation; the next read brings the backend's copy back."""
        removed = self.outbox.remove(entity_type, record_id)
        if removed:
            self._broadcast()
        return removed
