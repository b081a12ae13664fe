import pytest
import requests

from nexushr.core.exceptions import RemoteConflictError, RemoteUnavailableError
from nexushr.schemas.entities import EntityType
from nexushr.services.remote_client import RemoteApiClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self._text = text

    def json(self):
        if self._text is not None:
            raise ValueError("not JSON")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def _client(**kwargs):
    return RemoteApiClient("http://backend/", timeout=2.0, session=FakeSession(**kwargs))


def test_upsert_and_fetch_through_backend(remote, make_employee):
    remote.upsert(EntityType.EMPLOYEES, make_employee().to_wire(), version=3)

    result = remote.get_all(EntityType.EMPLOYEES)

    assert [e.id for e in result.records] == ["lr0615"]
    assert result.records[0].join_date.isoformat() == "2024-06-15"
    assert result.versions == {"lr0615": 3}


def test_stale_upsert_raises_conflict(remote, make_employee):
    remote.upsert(EntityType.EMPLOYEES, make_employee().to_wire(), version=3)
    with pytest.raises(RemoteConflictError):
        remote.upsert(EntityType.EMPLOYEES, make_employee(name="Other").to_wire(), version=2)


def test_delete_missing_record_is_not_an_error(remote):
    remote.delete(EntityType.LEAVES, "LR-404")


def test_health_follows_network(remote, network):
    assert remote.health()
    network.online = False
    assert not remote.health()


def test_connection_error_becomes_remote_unavailable():
    client = _client(error=requests.exceptions.ConnectionError("refused"))
    with pytest.raises(RemoteUnavailableError) as exc:
        client.get_all(EntityType.EMPLOYEES)
    assert exc.value.status_code == 503


def test_timeout_becomes_remote_unavailable():
    client = _client(error=requests.exceptions.Timeout("slow"))
    with pytest.raises(RemoteUnavailableError):
        client.upsert(EntityType.SALARIES, {"id": "x"})


def test_server_error_keeps_status_code():
    client = _client(response=FakeResponse(status_code=502))
    with pytest.raises(RemoteUnavailableError) as exc:
        client.get_all(EntityType.LEAVES)
    assert exc.value.status_code == 502


@pytest.mark.parametrize("response", [
    FakeResponse(text="<html>"),
    FakeResponse(payload={"not": "a list"}),
    FakeResponse(payload=[{"id": "lr0615"}]),  # missing required fields
    FakeResponse(payload=["just a string"]),
])
def test_malformed_bodies_are_rejected(response):
    client = _client(response=response)
    with pytest.raises(RemoteUnavailableError):
        client.get_all(EntityType.EMPLOYEES)


def test_requests_use_base_url_and_timeout():
    session = FakeSession(response=FakeResponse(payload=[]))
    client = RemoteApiClient("http://backend/", timeout=2.0, session=session)

    client.get_all(EntityType.SALARIES)
    client.delete(EntityType.SALARIES, "lr0615_2024-08")

    (get_method, get_url, get_kwargs), (del_method, del_url, del_kwargs) = session.requests
    assert (get_method, get_url) == ("GET", "http://backend/api/salaries")
    assert get_kwargs["timeout"] == 2.0
    assert (del_method, del_url) == ("DELETE", "http://backend/api/salaries")
    assert del_kwargs["params"] == {"id": "lr0615_2024-08"}
