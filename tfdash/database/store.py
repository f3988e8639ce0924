"""Durable record store adapters.

Records are plain JSON-compatible dicts keyed by ``id`` inside a named table
(``templates``, ``deployments``, ``scheduled_actions``). Services only use the
get/put/list/delete surface, so the backend can be Supabase in production and
an in-process dict for local runs and tests.
"""
import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from supabase import create_client, Client

from tfdash.config import settings

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    @abstractmethod
    def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def put(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or replace ``record`` (must carry an ``id``)."""

    @abstractmethod
    def list(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        ...


class SupabaseRecordStore(RecordStore):
    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_settings(cls) -> "SupabaseRecordStore":
        """Prefer the service_role key so background workers bypass RLS."""
        if not settings.supabase_url:
            raise ValueError("SUPABASE_URL must be configured for the supabase store backend")
        key = settings.supabase_service_role_key or settings.supabase_key
        return cls(create_client(settings.supabase_url, key))

    def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        result = self.client.table(table)\
            .select("*")\
            .eq("id", record_id)\
            .maybe_single()\
            .execute()
        # maybe_single() may hand back None instead of an empty response
        if result is None or not result.data:
            return None
        return result.data

    def put(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        result = self.client.table(table).upsert(record).execute()
        if result.data:
            return result.data[0]
        return record

    def list(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
    ) -> List[Dict[str, Any]]:
        query = self.client.table(table).select("*")
        for field, value in (filters or {}).items():
            query = query.eq(field, value)
        if order_by:
            query = query.order(order_by, desc=desc)
        result = query.execute()
        return result.data or []

    def delete(self, table: str, record_id: str) -> bool:
        result = self.client.table(table).delete().eq("id", record_id).execute()
        return bool(result.data)


class MemoryRecordStore(RecordStore):
    """Thread-safe in-process store. Returns copies so callers never share state."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tables: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def get(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._tables.get(table, {}).get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def put(self, table: str, record: Dict[str, Any]) -> Dict[str, Any]:
        if not record.get("id"):
            raise ValueError("Record must have an id")
        with self._lock:
            self._tables.setdefault(table, {})[record["id"]] = copy.deepcopy(record)
        return copy.deepcopy(record)

    def list(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        desc: bool = False,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._tables.get(table, {}).values()]
        if filters:
            rows = [r for r in rows if all(r.get(k) == v for k, v in filters.items())]
        if order_by:
            present = [r for r in rows if r.get(order_by) is not None]
            missing = [r for r in rows if r.get(order_by) is None]
            present.sort(key=lambda r: r[order_by], reverse=desc)
            rows = present + missing
        return rows

    def delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            return self._tables.get(table, {}).pop(record_id, None) is not None


def create_store(backend: Optional[str] = None) -> RecordStore:
    backend = (backend or settings.store_backend).lower()
    if backend == "supabase":
        logger.info("Using Supabase record store")
        return SupabaseRecordStore.from_settings()
    if backend != "memory":
        logger.warning(f"Unknown store backend {backend}, using in-memory store")
    return MemoryRecordStore()
