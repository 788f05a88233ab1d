"""Memory store: local-cache-first writes, remote-preferred reads.

Policy:
- ``save`` writes the local cache synchronously first, then replaces the
  durable document in a background task.  Remote failures are logged and
  counted, never retried and never raised to the caller.
- ``load`` races the remote fetch against a fixed timeout.  On timeout, any
  error, a missing or malformed document it falls back to the local cache.
  A successful remote read refreshes the cache unless the cached document
  is newer.  While a write for the subject is still in flight the cache is
  served without asking the remote.
- A subject without identity, or a store without a remote, is cache-only.

The durable document is always replaced as a whole; this module never
merges fields.
"""

import asyncio
import time
from typing import Any, Protocol

import structlog
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from insight.cache import FileCache, KeyValueCache
from insight.domain.models import MEMORY_SCHEMA_VERSION, Memory
from insight.repository import MemoryDocumentRepository
from shared.config import settings
from shared.database import get_session_factory
from shared.metrics import (
    memory_reads_total,
    memory_remote_read_duration_seconds,
    memory_remote_writes_total,
)

logger = structlog.get_logger()

CACHE_KEY_PREFIX = "insight.memory"
ANONYMOUS_CACHE_KEY = f"{CACHE_KEY_PREFIX}.local"


class MemoryDocumentError(Exception):
    """A stored document is not a Memory this version can trust."""


def decode_memory(document: Any) -> Memory:
    """Validate a stored document, checking ``schemaVersion`` before the rest."""
    if not isinstance(document, dict):
        raise MemoryDocumentError(f"expected a JSON object, got {type(document).__name__}")

    version = document.get("schemaVersion")
    if version != MEMORY_SCHEMA_VERSION:
        raise MemoryDocumentError(f"unsupported schemaVersion {version!r}")

    try:
        return Memory.model_validate(document)
    except ValidationError as exc:
        raise MemoryDocumentError(str(exc)) from exc


class RemoteMemoryStore(Protocol):
    async def fetch(self, subject_id: str) -> dict[str, Any] | None: ...

    async def replace(
        self, subject_id: str, document: dict[str, Any], schema_version: int
    ) -> None: ...

    async def delete(self, subject_id: str) -> None: ...


class PostgresMemoryStore:
    """RemoteMemoryStore backed by the ``subject_memory`` table. One session per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def fetch(self, subject_id: str) -> dict[str, Any] | None:
        async with self.session_factory() as session:
            return await MemoryDocumentRepository(session).get(subject_id)

    async def replace(
        self, subject_id: str, document: dict[str, Any], schema_version: int
    ) -> None:
        async with self.session_factory() as session:
            await MemoryDocumentRepository(session).replace(subject_id, document, schema_version)
            await session.commit()

    async def delete(self, subject_id: str) -> None:
        async with self.session_factory() as session:
            await MemoryDocumentRepository(session).delete(subject_id)
            await session.commit()


class MemoryStore:
    def __init__(
        self,
        cache: KeyValueCache,
        remote: RemoteMemoryStore | None = None,
        read_timeout: float = 2.5,
    ):
        self.cache = cache
        self.remote = remote
        self.read_timeout = read_timeout
        self._pending: dict[str, set[asyncio.Task]] = {}

    @staticmethod
    def cache_key(subject_id: str | None) -> str:
        return f"{CACHE_KEY_PREFIX}.{subject_id}" if subject_id else ANONYMOUS_CACHE_KEY

    def _remote_for(self, subject_id: str | None) -> RemoteMemoryStore | None:
        return self.remote if subject_id else None

    # --- Reads ---

    def load_cached(self, subject_id: str | None) -> Memory | None:
        """Synchronous cache read. A corrupt entry reads as a miss."""
        document = self.cache.get(self.cache_key(subject_id))
        if document is None:
            return None
        try:
            return decode_memory(document)
        except MemoryDocumentError as exc:
            logger.warning(
                "memory_document_corrupt", subject_id=subject_id, source="cache", error=str(exc)
            )
            return None

    def _fallback(self, subject_id: str | None) -> Memory | None:
        memory = self.load_cached(subject_id)
        memory_reads_total.labels(source="cache" if memory else "empty").inc()
        return memory

    async def load(self, subject_id: str | None) -> Memory | None:
        """Freshest available Memory, or None when neither remote nor cache has one."""
        remote = self._remote_for(subject_id)
        if remote is None:
            return self._fallback(subject_id)

        # Until our own write lands the cache holds the newer document.
        if subject_id in self._pending:
            logger.info("memory_remote_write_pending", subject_id=subject_id)
            return self._fallback(subject_id)

        start_time = time.monotonic()
        try:
            # wait_for cancels the fetch when the timer wins.
            document = await asyncio.wait_for(remote.fetch(subject_id), self.read_timeout)
        except TimeoutError:
            logger.warning(
                "memory_remote_read_failed",
                subject_id=subject_id,
                reason="timeout",
                timeout_seconds=self.read_timeout,
            )
            return self._fallback(subject_id)
        except Exception as exc:
            logger.warning(
                "memory_remote_read_failed", subject_id=subject_id, reason="error", error=str(exc)
            )
            return self._fallback(subject_id)
        finally:
            memory_remote_read_duration_seconds.observe(time.monotonic() - start_time)

        if document is None:
            logger.info("memory_remote_missing", subject_id=subject_id)
            return self._fallback(subject_id)

        try:
            memory = decode_memory(document)
        except MemoryDocumentError as exc:
            logger.warning(
                "memory_document_corrupt", subject_id=subject_id, source="remote", error=str(exc)
            )
            return self._fallback(subject_id)

        cached = self.load_cached(subject_id)
        if cached is not None and cached.last_updated_date > memory.last_updated_date:
            logger.info("memory_remote_stale", subject_id=subject_id)
            memory_reads_total.labels(source="cache").inc()
            return cached

        self.cache.set(self.cache_key(subject_id), memory.to_document())
        memory_reads_total.labels(source="remote").inc()
        logger.info("memory_loaded", subject_id=subject_id, source="remote")
        return memory

    # --- Writes ---

    async def save(self, subject_id: str | None, memory: Memory) -> None:
        """Write the cache now and the durable document in the background."""
        document = memory.to_document()
        self.cache.set(self.cache_key(subject_id), document)
        logger.info(
            "memory_cached",
            subject_id=subject_id,
            interaction_count=memory.interaction_count,
        )

        remote = self._remote_for(subject_id)
        if remote is None:
            memory_remote_writes_total.labels(outcome="skipped").inc()
            return

        task = asyncio.create_task(
            self._write_remote(remote, subject_id, document, memory.schema_version)
        )
        tasks = self._pending.setdefault(subject_id, set())
        tasks.add(task)
        task.add_done_callback(lambda done: self._forget(subject_id, done))

    def _forget(self, subject_id: str, task: asyncio.Task) -> None:
        tasks = self._pending.get(subject_id)
        if tasks is None:
            return
        tasks.discard(task)
        if not tasks:
            del self._pending[subject_id]

    async def _write_remote(
        self,
        remote: RemoteMemoryStore,
        subject_id: str,
        document: dict[str, Any],
        schema_version: int,
    ) -> None:
        try:
            await remote.replace(subject_id, document, schema_version)
        except Exception as exc:
            memory_remote_writes_total.labels(outcome="failed").inc()
            logger.warning("memory_remote_write_failed", subject_id=subject_id, error=str(exc))
            return
        memory_remote_writes_total.labels(outcome="ok").inc()
        logger.info("memory_remote_written", subject_id=subject_id)

    @property
    def pending_writes(self) -> int:
        return sum(len(tasks) for tasks in self._pending.values())

    async def drain(self, subject_id: str | None = None) -> None:
        """Wait for scheduled remote writes to finish: one subject's, or all of them."""
        if subject_id is None:
            tasks = [task for pending in self._pending.values() for task in pending]
        else:
            tasks = list(self._pending.get(subject_id, ()))
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # --- Clear ---

    async def clear(self, subject_id: str | None) -> None:
        """Remove the cache entry and the durable document. Idempotent."""
        self.cache.delete(self.cache_key(subject_id))

        remote = self._remote_for(subject_id)
        if remote is None:
            logger.info("memory_cleared", subject_id=subject_id, remote=False)
            return

        # A write still in flight would otherwise recreate the document.
        await self.drain(subject_id)
        try:
            await remote.delete(subject_id)
        except Exception as exc:
            logger.warning("memory_remote_delete_failed", subject_id=subject_id, error=str(exc))
            return
        logger.info("memory_cleared", subject_id=subject_id, remote=True)


def build_memory_store() -> MemoryStore:
    """MemoryStore wired from settings: file cache plus Postgres when enabled."""
    remote = PostgresMemoryStore(get_session_factory()) if settings.remote_store_enabled else None
    return MemoryStore(
        cache=FileCache(settings.cache_dir),
        remote=remote,
        read_timeout=settings.remote_read_timeout_seconds,
    )
