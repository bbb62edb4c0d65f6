"""
In-process record store.
Used for local development (STORE_BACKEND=memory) and tests. Every operation
runs under one asyncio lock, so multi-field updates are atomic per process.
"""

import asyncio
import copy
from typing import Any, Dict, List, Optional, Tuple

from src.infra.store.base import Record, RecordNotFoundError, RecordStore
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class MemoryRecordStore(RecordStore):
    """Dictionary-backed record store"""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Record]] = {}
        self._lock = asyncio.Lock()

    def _records(self, collection: str) -> Dict[str, Record]:
        return self._collections.setdefault(collection, {})

    async def get(self, collection: str, record_id: str) -> Optional[Record]:
        async with self._lock:
            record = self._records(collection).get(record_id)
            return copy.deepcopy(record) if record is not None else None

    async def set(self, collection: str, record_id: str, fields: Record, merge: bool = False) -> None:
        async with self._lock:
            records = self._records(collection)
            if merge and record_id in records:
                records[record_id].update(copy.deepcopy(fields))
            else:
                records[record_id] = copy.deepcopy(fields)

    async def create(self, collection: str, record_id: str, fields: Record) -> bool:
        async with self._lock:
            records = self._records(collection)
            if record_id in records:
                return False
            records[record_id] = copy.deepcopy(fields)
            return True

    async def update(self, collection: str, record_id: str, fields: Record) -> None:
        async with self._lock:
            records = self._records(collection)
            if record_id not in records:
                raise RecordNotFoundError(collection, record_id)
            records[record_id].update(copy.deepcopy(fields))

    async def update_arrays(
        self,
        collection: str,
        record_id: str,
        union: Optional[Dict[str, Any]] = None,
        remove: Optional[Dict[str, Any]] = None
    ) -> None:
        async with self._lock:
            record = self._records(collection).get(record_id)
            if record is None:
                raise RecordNotFoundError(collection, record_id)

            for field, value in (remove or {}).items():
                record[field] = [item for item in record.get(field) or [] if item != value]

            for field, value in (union or {}).items():
                values = list(record.get(field) or [])
                if value not in values:
                    values.append(value)
                record[field] = values

    async def compare_and_set(
        self,
        collection: str,
        record_id: str,
        field: str,
        expected: Any,
        new_value: Any
    ) -> bool:
        async with self._lock:
            record = self._records(collection).get(record_id)
            if record is None or field not in record or record[field] != expected:
                return False
            record[field] = new_value
            return True

    async def query(self, collection: str, field: str, value: Any) -> List[Tuple[str, Record]]:
        async with self._lock:
            return [
                (record_id, copy.deepcopy(record))
                for record_id, record in self._records(collection).items()
                if field in record and record[field] == value
            ]
