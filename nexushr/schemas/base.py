from typing import Any, Dict, Generic, TypeVar
from datetime import datetime
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Records travel as camelCase JSON, the format the backend and older clients share."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, payload: Dict[str, Any]):
        return cls.model_validate(payload)


T = TypeVar("T", bound=CamelModel)


class Versioned(BaseModel, Generic[T]):
    """A locally stored record together with its sync bookkeeping."""
    data: T
    synced: bool = False
    updated_at: datetime
    version: int = 0

    @property
    def id(self) -> str:
        return self.data.id
