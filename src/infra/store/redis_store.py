"""
Redis-backed record store.

Each record is a hash at `{prefix}{collection}:{id}` whose field values are
JSON encoded. Operations that must be atomic (update of an existing record,
array union/remove, compare-and-set) run as Lua scripts.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from src.infra.store.base import Record, RecordNotFoundError, RecordStore, StoreUnavailableError
from src.infra.config.settings import get_settings
from src.core.logger.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()

# KEYS[1] = record key, ARGV = field1, value1, field2, value2, ...
CREATE_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
  return 0
end
redis.call('HSET', KEYS[1], unpack(ARGV))
return 1
"""

# KEYS[1] = record key, ARGV = field1, value1, field2, value2, ...
UPDATE_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return 0
end
redis.call('HSET', KEYS[1], unpack(ARGV))
return 1
"""

# KEYS[1] = record key, ARGV[1] = JSON list of [field, op, value]; op is "union" or "remove"
UPDATE_ARRAYS_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return 0
end
local ops = cjson.decode(ARGV[1])
for _, op in ipairs(ops) do
  local field, action, value = op[1], op[2], op[3]
  local raw = redis.call('HGET', KEYS[1], field)
  local current = {}
  if raw then
    current = cjson.decode(raw)
  end
  local out = {}
  local found = false
  for _, item in ipairs(current) do
    if item == value then
      found = true
      if action == 'union' then
        table.insert(out, item)
      end
    else
      table.insert(out, item)
    end
  end
  if action == 'union' and not found then
    table.insert(out, value)
  end
  if #out == 0 then
    redis.call('HSET', KEYS[1], field, '[]')
  else
    redis.call('HSET', KEYS[1], field, cjson.encode(out))
  end
end
return 1
"""

# KEYS[1] = record key, ARGV[1] = field, ARGV[2] = expected JSON, ARGV[3] = new JSON
COMPARE_AND_SET_SCRIPT = """
local current = redis.call('HGET', KEYS[1], ARGV[1])
if current ~= ARGV[2] then
  return 0
end
redis.call('HSET', KEYS[1], ARGV[1], ARGV[3])
return 1
"""


def _encode(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


class RedisRecordStore(RecordStore):
    """Record store on top of Redis hashes"""

    def __init__(self, redis_client: redis.Redis, key_prefix: Optional[str] = None):
        self.redis = redis_client
        self.key_prefix = key_prefix if key_prefix is not None else settings.RECORD_KEY_PREFIX
        self._create_script = redis_client.register_script(CREATE_SCRIPT)
        self._update_script = redis_client.register_script(UPDATE_SCRIPT)
        self._update_arrays_script = redis_client.register_script(UPDATE_ARRAYS_SCRIPT)
        self._compare_and_set_script = redis_client.register_script(COMPARE_AND_SET_SCRIPT)

    def _get_key(self, collection: str, record_id: str) -> str:
        return f"{self.key_prefix}{collection}:{record_id}"

    def _decode_record(self, raw: Dict[str, str]) -> Record:
        return {field: json.loads(value) for field, value in raw.items()}

    def _unavailable(self, operation: str, collection: str, record_id: str, error: Exception) -> StoreUnavailableError:
        logger.error(
            f"Record store {operation} failed",
            extra={
                "collection": collection,
                "record_id": record_id,
                "error": str(error)
            }
        )
        return StoreUnavailableError(f"{operation} {collection}/{record_id}: {error}")

    async def get(self, collection: str, record_id: str) -> Optional[Record]:
        try:
            raw = await self.redis.hgetall(self._get_key(collection, record_id))
        except RedisError as e:
            raise self._unavailable("get", collection, record_id, e) from e
        return self._decode_record(raw) if raw else None

    async def set(self, collection: str, record_id: str, fields: Record, merge: bool = False) -> None:
        key = self._get_key(collection, record_id)
        mapping = {field: _encode(value) for field, value in fields.items()}
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                if not merge:
                    pipe.delete(key)
                if mapping:
                    pipe.hset(key, mapping=mapping)
                await pipe.execute()
        except RedisError as e:
            raise self._unavailable("set", collection, record_id, e) from e

        logger.debug(
            "Record written",
            extra={"collection": collection, "record_id": record_id, "merge": merge}
        )

    def _field_args(self, fields: Record) -> List[str]:
        args: List[str] = []
        for field, value in fields.items():
            args.extend([field, _encode(value)])
        return args

    async def create(self, collection: str, record_id: str, fields: Record) -> bool:
        if not fields:
            raise ValueError("A new record needs at least one field")
        try:
            created = await self._create_script(
                keys=[self._get_key(collection, record_id)],
                args=self._field_args(fields)
            )
        except RedisError as e:
            raise self._unavailable("create", collection, record_id, e) from e
        return bool(created)

    async def update(self, collection: str, record_id: str, fields: Record) -> None:
        if not fields:
            return
        try:
            updated = await self._update_script(
                keys=[self._get_key(collection, record_id)],
                args=self._field_args(fields)
            )
        except RedisError as e:
            raise self._unavailable("update", collection, record_id, e) from e
        if not updated:
            raise RecordNotFoundError(collection, record_id)

    async def update_arrays(
        self,
        collection: str,
        record_id: str,
        union: Optional[Dict[str, Any]] = None,
        remove: Optional[Dict[str, Any]] = None
    ) -> None:
        # Removals first so a field named in both ends up containing the value
        ops = [[field, "remove", value] for field, value in (remove or {}).items()]
        ops += [[field, "union", value] for field, value in (union or {}).items()]
        if not ops:
            return
        try:
            updated = await self._update_arrays_script(
                keys=[self._get_key(collection, record_id)],
                args=[_encode(ops)]
            )
        except RedisError as e:
            raise self._unavailable("update_arrays", collection, record_id, e) from e
        if not updated:
            raise RecordNotFoundError(collection, record_id)

    async def compare_and_set(
        self,
        collection: str,
        record_id: str,
        field: str,
        expected: Any,
        new_value: Any
    ) -> bool:
        try:
            swapped = await self._compare_and_set_script(
                keys=[self._get_key(collection, record_id)],
                args=[field, _encode(expected), _encode(new_value)]
            )
        except RedisError as e:
            raise self._unavailable("compare_and_set", collection, record_id, e) from e
        return bool(swapped)

    async def query(self, collection: str, field: str, value: Any) -> List[Tuple[str, Record]]:
        prefix = self._get_key(collection, "")
        matches: List[Tuple[str, Record]] = []
        try:
            async for key in self.redis.scan_iter(match=f"{prefix}*"):
                raw = await self.redis.hget(key, field)
                if raw is None or json.loads(raw) != value:
                    continue
                record = await self.redis.hgetall(key)
                matches.append((key[len(prefix):], self._decode_record(record)))
        except RedisError as e:
            raise self._unavailable("query", collection, f"{field}=={value!r}", e) from e
        return matches

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except RedisError:
            return False
