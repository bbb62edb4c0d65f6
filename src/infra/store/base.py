"""
Record store abstraction.

A record is a flat document (field -> JSON-compatible value) addressed by
(collection, id). Array fields behave as sets under the array operators.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

Record = Dict[str, Any]


class StoreUnavailableError(Exception):
    """The backing store could not serve the request"""


class RecordNotFoundError(Exception):
    """An update targeted a record that does not exist"""

    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection}/{record_id} does not exist")


class RecordStore(ABC):
    """Document store used for identity and content records"""

    @abstractmethod
    async def get(self, collection: str, record_id: str) -> Optional[Record]:
        """Return a copy of the record, or None when absent"""

    @abstractmethod
    async def set(self, collection: str, record_id: str, fields: Record, merge: bool = False) -> None:
        """
        Write a record. With merge=False the record is replaced, with merge=True
        only the given top-level fields are overwritten.
        """

    @abstractmethod
    async def create(self, collection: str, record_id: str, fields: Record) -> bool:
        """Write a new record only if none exists yet. Returns False when one already does."""

    @abstractmethod
    async def update(self, collection: str, record_id: str, fields: Record) -> None:
        """Overwrite the given fields of an existing record (RecordNotFoundError if absent)"""

    @abstractmethod
    async def update_arrays(
        self,
        collection: str,
        record_id: str,
        union: Optional[Dict[str, Any]] = None,
        remove: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Atomically add values to and remove values from array fields of an
        existing record. `union` maps field -> value to add when missing,
        `remove` maps field -> value to drop.
        """

    @abstractmethod
    async def compare_and_set(
        self,
        collection: str,
        record_id: str,
        field: str,
        expected: Any,
        new_value: Any
    ) -> bool:
        """Set field to new_value only if it currently equals expected"""

    @abstractmethod
    async def query(self, collection: str, field: str, value: Any) -> List[Tuple[str, Record]]:
        """Return (id, record) pairs whose field equals value"""

    async def array_union(self, collection: str, record_id: str, field: str, value: Any) -> None:
        await self.update_arrays(collection, record_id, union={field: value})

    async def array_remove(self, collection: str, record_id: str, field: str, value: Any) -> None:
        await self.update_arrays(collection, record_id, remove={field: value})

    async def ping(self) -> bool:
        return True
