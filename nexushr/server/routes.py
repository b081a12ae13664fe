from typing import Any, Dict, Iterator, List
import logging

from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from nexushr.core.dates import utc_now
from nexushr.core.exceptions import NotFoundError, RemoteConflictError, ValidationError
from nexushr.core.schemas import ApiResponse
from nexushr.schemas.entities import EntityType
from nexushr.server.models import RemoteRecord
from nexushr.services.remote_client import VERSION_KEY

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["records"]
)


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def _collection(name: str) -> EntityType:
    try:
        return EntityType(name)
    except ValueError:
        raise NotFoundError(f"Unknown collection '{name}'", error_code="COLLECTION_NOT_FOUND")


@router.get("/{collection}")
def list_records(collection: str, db: Session = Depends(get_db)) -> List[Dict[str, Any]]:
    entity_type = _collection(collection)
    rows = db.query(RemoteRecord).filter(RemoteRecord.collection == entity_type.value).all()
    return [{**row.payload, VERSION_KEY: row.version} for row in rows]


@router.post("/{collection}")
def upsert_record(collection: str, body: Dict[str, Any] = Body(...), db: Session = Depends(get_db)):
    """
    Insert or replace one record.

    A client may send the record's version. A write carrying a version not
    newer than the stored one is accepted only when it changes nothing;
    otherwise it is refused with 409 so the client keeps its copy aside.
    """
    entity_type = _collection(collection)
    incoming_version = body.get(VERSION_KEY)
    try:
        record = entity_type.record_model.from_wire(body)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {entity_type.value} record",
            details={"errors": [err["msg"] for err in e.errors()]}
        )
    payload = record.to_wire()

    row = db.query(RemoteRecord).filter(
        RemoteRecord.collection == entity_type.value,
        RemoteRecord.id == record.id
    ).first()

    if row is not None and incoming_version is not None and int(incoming_version) <= row.version:
        if row.payload != payload:
            logger.warning(
                f"Rejected stale write {entity_type.value}/{record.id}: "
                f"v{incoming_version} <= stored v{row.version}"
            )
            raise RemoteConflictError(f"{entity_type.value}/{record.id} has a newer version (v{row.version})")
        return ApiResponse.ok({"id": record.id, VERSION_KEY: row.version}).to_dict()

    if row is None:
        row = RemoteRecord(collection=entity_type.value, id=record.id, version=0)
        db.add(row)
    row.payload = payload
    row.version = int(incoming_version) if incoming_version is not None else row.version + 1
    row.updated_at = utc_now()
    db.commit()
    return ApiResponse.ok({"id": record.id, VERSION_KEY: row.version}).to_dict()


@router.delete("/{collection}")
def delete_record(collection: str, id: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    entity_type = _collection(collection)
    row = db.query(RemoteRecord).filter(
        RemoteRecord.collection == entity_type.value,
        RemoteRecord.id == id
    ).first()
    if row is None:
        raise NotFoundError(f"{entity_type.value}/{id} not found")
    db.delete(row)
    db.commit()
    return ApiResponse.ok({"id": id}).to_dict()
