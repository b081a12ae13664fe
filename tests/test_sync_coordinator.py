import pytest
import requests

from nexushr.database import init_db, make_engine, make_session_factory
from nexushr.models.outbox import OutboxStatus
from nexushr.schemas.entities import EntityType
from nexushr.services.local_store import LocalStore
from nexushr.services.outbox import Outbox
from nexushr.services.remote_client import FetchResult
from nexushr.services.sync_coordinator import SyncCoordinator, SyncMode


def _server_ids(server_client, collection="employees"):
    return {item["id"] for item in server_client.get(f"/api/{collection}").json()}


def test_online_save_pushes_immediately(sync, server_client, store, make_employee):
    envelope = sync.save(EntityType.EMPLOYEES, make_employee())

    assert sync.pending_count() == 0
    assert envelope.synced
    assert envelope.version == 1
    assert store.get(EntityType.EMPLOYEES, "lr0615").synced
    assert _server_ids(server_client) == {"lr0615"}
    assert sync.mode == SyncMode.CLOUD


def test_offline_save_is_queued_then_flushed(sync, network, server_client, store, make_employee):
    network.online = False
    sync.save(EntityType.EMPLOYEES, make_employee())

    assert sync.pending_count() == 1
    assert not store.get(EntityType.EMPLOYEES, "lr0615").synced
    assert sync.mode == SyncMode.LOCAL

    network.online = True
    result = sync.flush_pending()

    assert result.synced == 1
    assert sync.pending_count() == 0
    assert store.get(EntityType.EMPLOYEES, "lr0615").synced
    assert _server_ids(server_client) == {"lr0615"}


def test_repeated_offline_saves_coalesce(sync, network, server_client, make_employee):
    network.online = False
    sync.save(EntityType.EMPLOYEES, make_employee(name="First"))
    sync.save(EntityType.EMPLOYEES, make_employee(name="Second"))
    assert sync.pending_count() == 1

    network.online = True
    sync.flush_pending()
    names = [item["name"] for item in server_client.get("/api/employees").json()]
    assert names == ["Second"]


def test_get_all_serves_local_copy_when_offline(sync, network, make_employee):
    network.online = False
    sync.save(EntityType.EMPLOYEES, make_employee())

    records = sync.get_all(EntityType.EMPLOYEES)

    assert [r.id for r in records] == ["lr0615"]
    assert sync.mode == SyncMode.LOCAL


def test_get_all_replaces_local_table_when_online(sync, server_client, store, make_employee):
    store.put(EntityType.EMPLOYEES, make_employee(id="old0101"), synced=True)
    server_client.post("/api/employees", json={**make_employee().to_wire(), "version": 4})

    records = sync.get_all(EntityType.EMPLOYEES)

    assert [r.id for r in records] == ["lr0615"]
    local = store.get_all(EntityType.EMPLOYEES)
    assert [e.id for e in local] == ["lr0615"]
    assert local[0].synced
    assert local[0].version == 4
    assert sync.mode == SyncMode.CLOUD


class StubRemote:
    def __init__(self, records):
        self.records = records

    def get_all(self, entity_type):
        return FetchResult(records=list(self.records.get(entity_type, [])))


def test_refresh_all_fetches_every_collection(tmp_path, settings, make_employee):
    # File database: the fetches run on worker threads with their own connections
    engine = make_engine(f"sqlite:///{tmp_path / 'local.db'}")
    init_db(engine)
    factory = make_session_factory(engine)
    remote = StubRemote({EntityType.EMPLOYEES: [make_employee()]})
    coordinator = SyncCoordinator(LocalStore(factory), Outbox(factory), remote, settings.sync)

    result = coordinator.refresh_all()

    assert set(result) == set(EntityType)
    assert [e.id for e in result[EntityType.EMPLOYEES]] == ["lr0615"]
    assert result[EntityType.LEAVES] == []
    assert [e.id for e in coordinator.get_local(EntityType.EMPLOYEES)] == ["lr0615"]
    engine.dispose()


def test_subscribers_receive_pending_counts(sync, network, make_employee):
    counts = []
    unsubscribe = sync.subscribe(counts.append)
    assert counts == [0]

    network.online = False
    sync.save(EntityType.EMPLOYEES, make_employee())
    assert counts[-1] == 1

    network.online = True
    sync.flush_pending()
    assert counts[-1] == 0

    unsubscribe()
    sync.save(EntityType.EMPLOYEES, make_employee(name="Again"))
    assert counts[-1] == 0
    assert len(counts) == 3


def test_failing_subscriber_does_not_break_saves(sync, make_employee):
    def broken(count):
        raise RuntimeError("listener bug")

    received = []
    sync.subscribe(broken)
    sync.subscribe(received.append)

    sync.save(EntityType.EMPLOYEES, make_employee())
    assert received == [0, 0]


def test_local_only_mode_keeps_everything_queued(local_sync, make_employee):
    local_sync.save(EntityType.EMPLOYEES, make_employee())
    local_sync.save(EntityType.EMPLOYEES, make_employee(id="zs0101", name="Zhang San"))

    assert local_sync.pending_count() == 2
    assert local_sync.flush_pending().skipped
    assert local_sync.mode == SyncMode.LOCAL
    assert {e.id for e in local_sync.get_all(EntityType.EMPLOYEES)} == {"lr0615", "zs0101"}


def test_offline_delete_reaches_backend_later(sync, network, server_client, store, make_employee):
    sync.save(EntityType.EMPLOYEES, make_employee())
    network.online = False

    assert sync.delete(EntityType.EMPLOYEES, "lr0615")
    assert store.get(EntityType.EMPLOYEES, "lr0615") is None
    assert sync.pending_count() == 1

    network.online = True
    sync.flush_pending()
    assert sync.pending_count() == 0
    assert _server_ids(server_client) == set()


def test_delete_of_record_unknown_to_backend_succeeds(sync, network, make_employee):
    network.online = False
    sync.save(EntityType.EMPLOYEES, make_employee())
    sync.delete(EntityType.EMPLOYEES, "lr0615")

    network.online = True
    result = sync.flush_pending()
    assert result.synced == 1
    assert sync.pending_count() == 0


def test_recreate_after_offline_delete_reaches_backend(sync, network, server_client, make_employee):
    sync.save(EntityType.EMPLOYEES, make_employee(name="Original"))
    network.online = False
    sync.delete(EntityType.EMPLOYEES, "lr0615")

    envelope = sync.save(EntityType.EMPLOYEES, make_employee(name="Recreated"))
    assert envelope.version == 3
    assert sync.pending_count() == 1

    network.online = True
    result = sync.flush_pending()

    assert result.synced == 1
    assert sync.conflicts() == []
    names = [item["name"] for item in server_client.get("/api/employees").json()]
    assert names == ["Recreated"]
    assert [r.name for r in sync.get_all(EntityType.EMPLOYEES)] == ["Recreated"]


def test_recreate_after_online_delete_gets_newer_version(sync, server_client, make_employee):
    sync.save(EntityType.EMPLOYEES, make_employee(name="Original"))
    sync.delete(EntityType.EMPLOYEES, "lr0615")

    envelope = sync.save(EntityType.EMPLOYEES, make_employee(name="Recreated"))

    assert envelope.version == 3
    assert envelope.synced
    assert sync.pending_count() == 0


def test_flush_keeps_going_past_a_failing_entry(sync, network, monkeypatch, server_client, make_employee):
    network.online = False
    sync.save(EntityType.EMPLOYEES, make_employee(id="zs0101", name="Zhang San"))
    sync.save(EntityType.EMPLOYEES, make_employee())
    network.online = True

    forward = network.request

    def drop_zhang(method, url, **kwargs):
        if method == "POST" and (kwargs.get("json") or {}).get("id") == "zs0101":
            raise requests.exceptions.ConnectionError("connection reset")
        return forward(method, url, **kwargs)
    monkeypatch.setattr(network, "request", drop_zhang)

    result = sync.flush_pending()

    assert result.attempted == 2
    assert result.synced == 1
    assert result.failed == 1
    assert sync.pending_count() == 1
    assert _server_ids(server_client) == {"lr0615"}


def test_stale_write_is_parked_as_conflict(sync, server_client, make_employee):
    server_client.post("/api/employees", json={**make_employee(name="Server copy").to_wire(), "version": 5})

    sync.save(EntityType.EMPLOYEES, make_employee(name="Local copy"))

    conflicts = sync.conflicts()
    assert len(conflicts) == 1
    assert conflicts[0].record_id == "lr0615"
    assert conflicts[0].status == OutboxStatus.FAILED
    assert sync.pending_count() == 1
    assert sync.mode == SyncMode.CLOUD

    # Conflicts are not replayed
    assert sync.flush_pending().attempted == 0

    assert sync.discard(EntityType.EMPLOYEES, "lr0615")
    assert sync.pending_count() == 0
    records = sync.get_all(EntityType.EMPLOYEES)
    assert records[0].name == "Server copy"


def test_retry_due_waits_for_backoff(sync, network, clock, make_employee):
    network.online = False
    sync.save(EntityType.EMPLOYEES, make_employee())
    network.online = True

    assert sync.retry_due().attempted == 0
    assert sync.pending_count() == 1

    clock.advance(31)
    result = sync.retry_due()
    assert result.synced == 1
    assert sync.pending_count() == 0


def test_entry_fails_after_max_attempts(sync, network, outbox, make_employee):
    network.online = False
    sync.save(EntityType.EMPLOYEES, make_employee())  # attempt 1
    sync.flush_pending()  # attempt 2
    sync.flush_pending()  # attempt 3, gives up

    item = outbox.pending(include_failed=True)[0]
    assert item.status == OutboxStatus.FAILED
    assert item.attempts == 3
    assert outbox.pending(include_failed=False) == []
    assert sync.pending_count() == 1

    # A manual flush still replays failed entries
    network.online = True
    assert sync.flush_pending().synced == 1
    assert sync.pending_count() == 0


def test_reconnect_triggers_flush(sync, network, make_employee):
    network.online = False
    sync.save(EntityType.EMPLOYEES, make_employee())
    network.online = True

    result = sync.notify_connectivity(True)
    assert result is not None
    assert result.synced == 1
    assert sync.pending_count() == 0

    # Already online: nothing to do
    assert sync.notify_connectivity(True) is None


@pytest.mark.parametrize("entity_type", list(EntityType))
def test_get_local_is_empty_for_fresh_store(local_sync, entity_type):
    assert local_sync.get_local(entity_type) == []
