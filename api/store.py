"""
Model record storage.

The training jobs only need three operations from persistence: create a
pending record, update it with final metrics, and read it back. ModelStore
names that interface; InMemoryModelStore is the implementation used by the
app and the tests.
"""

import copy
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from .shared.errors import NotFound

# Mapping between wire (camelCase) field names and ModelRecord attributes
_FIELD_NAMES = {
    "f1Score": "f1_score",
    "trainingData": "training_data",
    "isActive": "is_active",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
_WIRE_NAMES = {attr: wire for wire, attr in _FIELD_NAMES.items()}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ModelRecord:
    """Persisted summary of one trained model."""

    id: str
    name: str
    type: str
    version: str = "v1.0.0"
    accuracy: float = 0.0
    precision: float = 0.0
    recall: float = 0.0
    f1_score: float = 0.0
    training_data: str = ""
    is_active: bool = False
    parameters: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase shape the dashboard expects."""
        return {
            _WIRE_NAMES.get(key, key): value.isoformat() if isinstance(value, datetime) else value
            for key, value in asdict(self).items()
        }


class ModelStore(Protocol):
    async def create_model(self, fields: Dict[str, Any]) -> ModelRecord: ...

    async def update_model(self, model_id: str, fields: Dict[str, Any]) -> None: ...

    async def get_model(self, model_id: str) -> Optional[ModelRecord]: ...

    async def list_models(self) -> List[ModelRecord]: ...


class InMemoryModelStore:
    """ModelStore that keeps records in a dict for the lifetime of the process."""

    def __init__(self):
        self._records: Dict[str, ModelRecord] = {}

    @staticmethod
    def _attributes(fields: Dict[str, Any]) -> Dict[str, Any]:
        attrs = {_FIELD_NAMES.get(k, k): v for k, v in fields.items()}
        allowed = set(ModelRecord.__dataclass_fields__) - {"id", "created_at", "updated_at"}
        unknown = set(attrs) - allowed
        if unknown:
            raise ValueError(f"Unknown model fields: {', '.join(sorted(unknown))}")
        return attrs

    async def create_model(self, fields: Dict[str, Any]) -> ModelRecord:
        """Create a record and assign it a fresh id."""
        record = ModelRecord(id=str(uuid.uuid4()), **self._attributes(fields))
        self._records[record.id] = record
        return copy.deepcopy(record)

    async def update_model(self, model_id: str, fields: Dict[str, Any]) -> None:
        """Apply a partial update.

        Raises:
            NotFound: If no record has this id
        """
        record = self._records.get(model_id)
        if record is None:
            raise NotFound("Model", model_id)
        for name, value in self._attributes(fields).items():
            setattr(record, name, value)
        record.updated_at = _now()

    async def get_model(self, model_id: str) -> Optional[ModelRecord]:
        record = self._records.get(model_id)
        return copy.deepcopy(record) if record else None

    async def list_models(self) -> List[ModelRecord]:
        records = sorted(self._records.values(), key=lambda r: r.created_at, reverse=True)
        return [copy.deepcopy(r) for r in records]
