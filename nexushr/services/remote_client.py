"""
Remote API Client

Thin wrapper around the REST backend:

    GET    /api/{employees|leaves|salaries}          -> JSON array of records
    POST   /api/{employees|leaves|salaries}          -> upsert one record
    DELETE /api/{employees|leaves|salaries}?id=<id>  -> delete one record
    GET    /health                                   -> liveness probe

Every failure (connection error, timeout, non-2xx status, malformed body) is
raised as RemoteUnavailableError; a 409 on upsert is RemoteConflictError.
Callers decide what to do with them; this module never falls back.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

import requests
from pydantic import ValidationError as PydanticValidationError

from nexushr.core.exceptions import RemoteConflictError, RemoteUnavailableError
from nexushr.schemas.base import CamelModel
from nexushr.schemas.entities import EntityType

logger = logging.getLogger(__name__)

VERSION_KEY = "version"


@dataclass
class FetchResult:
    records: List[CamelModel]
    versions: Dict[str, int] = field(default_factory=dict)


class RemoteApiClient:
    def __init__(self, base_url: str, timeout: float = 5.0, session: Optional[Any] = None):
        """
        Args:
            base_url: Backend root, e.g. ``http://localhost:8787``
            timeout: Per-request timeout in seconds
            session: Anything with a requests-style ``request()`` method;
                a fresh ``requests.Session`` when omitted
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            session.headers.update({"Content-Type": "application/json"})
        self._session = session

    def _request(self, method: str, path: str, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            logger.warning(f"{method} {path} timed out after {self.timeout}s")
            raise RemoteUnavailableError(f"{method} {path} timed out")
        except requests.exceptions.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise RemoteUnavailableError(f"{method} {path} failed: {e}")

        if response.status_code == 409:
            raise RemoteConflictError(f"{method} {path} rejected: newer version on the server")
        if not 200 <= response.status_code < 300:
            raise RemoteUnavailableError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code
            )
        return response

    def _json(self, response, path: str) -> Any:
        try:
            return response.json()
        except ValueError:
            raise RemoteUnavailableError(f"Malformed JSON from {path}")

    def get_all(self, entity_type: EntityType) -> FetchResult:
        path = f"/api/{entity_type.value}"
        payload = self._json(self._request("GET", path), path)
        if not isinstance(payload, list):
            raise RemoteUnavailableError(f"Expected a JSON array from {path}")

        model = entity_type.record_model
        result = FetchResult(records=[])
        try:
            for item in payload:
                record = model.from_wire(item)
                result.records.append(record)
                result.versions[record.id] = int(item.get(VERSION_KEY) or 0)
        except (PydanticValidationError, AttributeError, TypeError, ValueError) as e:
            raise RemoteUnavailableError(f"Malformed record from {path}: {e}")
        return result

    def upsert(self, entity_type: EntityType, payload: Dict[str, Any], version: int = 0) -> None:
        """Upsert a record already serialised to its wire form."""
        body = dict(payload)
        body[VERSION_KEY] = version
        self._request("POST", f"/api/{entity_type.value}", json=body)

    def delete(self, entity_type: EntityType, record_id: str) -> None:
        try:
            self._request("DELETE", f"/api/{entity_type.value}", params={"id": record_id})
        except RemoteUnavailableError as e:
            # Already gone on the server: the delete has the effect we want
            if e.status_code == 404:
                return
            raise

    def health(self) -> bool:
        try:
            self._request("GET", "/health")
            return True
        except RemoteUnavailableError:
            return False
