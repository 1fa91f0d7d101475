# imgconvert/record_store.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError
from redis.exceptions import RedisError

from .config import REDIS_URL, RECORD_KEY_PREFIX
from .exceptions import RecordStoreError
from .models import ImageRecord

logger = logging.getLogger(__name__)

_BACKEND_ERRORS = (RedisError, OSError)


class _MemoryStore:
    """In-process backend, injected through ``RecordStore(backend=...)``."""

    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        v = self._data.get(key)
        return v.copy() if isinstance(v, dict) else None

    def mget(self, keys: List[str]) -> List[Optional[Dict[str, Any]]]:
        return [self.get(k) for k in keys]

    def set(self, key: str, value: Dict[str, Any]) -> None:
        self._data[key] = value.copy()


class _RedisStore:
    """One JSON document per image, stored as a plain string value."""

    def __init__(self, url: str):
        from redis import Redis  # type: ignore

        # decode_responses=True gives us str instead of bytes
        self.r = Redis.from_url(url, decode_responses=True)

    @staticmethod
    def _decode(raw: Optional[str]) -> Optional[Dict[str, Any]]:
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("[RecordStore] Skipping undecodable record")
            return None

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self._decode(self.r.get(key))

    def mget(self, keys: List[str]) -> List[Optional[Dict[str, Any]]]:
        if not keys:
            return []
        return [self._decode(raw) for raw in self.r.mget(keys)]

    def set(self, key: str, value: Dict[str, Any]) -> None:
        self.r.set(key, json.dumps(value))


class RecordStore:
    """Read and update image records.

    Only status and result-path transitions are written; the records
    themselves are created by whoever uploads the source images.
    """

    _prefix = RECORD_KEY_PREFIX

    def __init__(self, backend=None):
        self._backend = backend

    def _get_backend(self):
        if self._backend is None:
            if not REDIS_URL:
                raise RecordStoreError("REDIS_URL is not configured")
            try:
                self._backend = _RedisStore(REDIS_URL)
            except Exception as e:
                raise RecordStoreError(f"Could not create Redis client: {e}") from e
        return self._backend

    def _key(self, image_id: str) -> str:
        return f"{self._prefix}{image_id}"

    def put(self, record: ImageRecord) -> None:
        try:
            self._get_backend().set(self._key(record.id), record.model_dump(mode="json"))
        except _BACKEND_ERRORS as e:
            raise RecordStoreError(f"Failed to write record {record.id}: {e}") from e

    def get(self, image_id: str) -> Optional[ImageRecord]:
        try:
            data = self._get_backend().get(self._key(image_id))
        except _BACKEND_ERRORS as e:
            raise RecordStoreError(f"Failed to read record {image_id}: {e}") from e
        return self._to_record(data)

    def fetch_convertible(self, image_ids: Iterable[str]) -> List[ImageRecord]:
        """Records matching ``image_ids`` with ``requires_conversion`` set, in request order."""
        ids = list(dict.fromkeys(image_ids))
        try:
            rows = self._get_backend().mget([self._key(i) for i in ids])
        except _BACKEND_ERRORS as e:
            raise RecordStoreError(f"Failed to fetch records: {e}") from e

        records = []
        for row in rows:
            record = self._to_record(row)
            if record is not None and record.requires_conversion is True:
                records.append(record)
        return records

    def update(self, image_id: str, **fields: Any) -> ImageRecord:
        """Set individual fields on an existing record and return the new snapshot."""
        current = self.get(image_id)
        if current is None:
            raise RecordStoreError(f"Record {image_id} not found")
        try:
            updated = ImageRecord.model_validate({**current.model_dump(), **fields})
        except ValidationError as e:
            raise RecordStoreError(f"Invalid update for record {image_id}: {e}") from e
        self.put(updated)
        return updated

    @staticmethod
    def _to_record(data: Optional[Dict[str, Any]]) -> Optional[ImageRecord]:
        if data is None:
            return None
        try:
            return ImageRecord.model_validate(data)
        except ValidationError as e:
            logger.warning(f"[RecordStore] Skipping malformed record {data.get('id')!r}: {e}")
            return None
