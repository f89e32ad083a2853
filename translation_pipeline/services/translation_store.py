"""Durable storage backends for the translation cache.

Two interchangeable backends sit behind one async interface:

- IndexedBackend: a SQLAlchemy async table with indexes on created_at
  (expiry sweeps) and target_lang (per-language invalidation). Primary.
- FlatBackend: a synchronous dbm key/value file holding JSON documents.
  Used when the indexed backend cannot be opened.

create_store() picks one at startup and the choice holds for the life of the
process. Neither backend keeps entries in memory; every read goes to storage.
"""

from __future__ import annotations

import dbm
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from translation_pipeline.config import Settings, get_settings
from translation_pipeline.database import create_engine_for_database, init_db
from translation_pipeline.models.cached_translation import CachedTranslation

logger = logging.getLogger(__name__)


class CorruptEntryError(Exception):
    """A stored record exists but cannot be decoded into a CacheEntry."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"Corrupt translation cache entry {key!r}: {reason}")
        self.key = key


@dataclass
class CacheEntry:
    key: str
    original_text: str
    translated_text: str
    source_lang: str
    target_lang: str
    created_at: float

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, key: str, data: object) -> "CacheEntry":
        """Validate a decoded record; raise CorruptEntryError on any mismatch."""
        if not isinstance(data, dict):
            raise CorruptEntryError(key, "record is not an object")
        try:
            entry = cls(
                key=key,
                original_text=data["original_text"],
                translated_text=data["translated_text"],
                source_lang=data["source_lang"],
                target_lang=data["target_lang"],
                created_at=float(data["created_at"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise CorruptEntryError(key, f"{type(exc).__name__}: {exc}") from exc
        for field_name in ("original_text", "translated_text", "source_lang", "target_lang"):
            if not isinstance(getattr(entry, field_name), str):
                raise CorruptEntryError(key, f"{field_name} is not a string")
        return entry


class StoreAdapter(ABC):
    """Uniform async key/value interface over a physical cache backend."""

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the stored entry, None when absent.

        Raises:
            CorruptEntryError: If a record exists but cannot be decoded
        """

    @abstractmethod
    async def put(self, entry: CacheEntry) -> None:
        """Insert or replace an entry."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove an entry; absent keys are ignored."""

    @abstractmethod
    async def iterate_expired(self, cutoff: float) -> list[str]:
        """Return keys of entries created before cutoff (epoch seconds)."""

    @abstractmethod
    async def clear(self) -> int:
        """Remove every entry owned by the translation cache."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored entries."""

    @abstractmethod
    async def delete_by_target_lang(self, target_lang: str) -> int:
        """Remove every entry for one target language."""

    async def close(self) -> None:
        """Release the underlying storage handle."""


# ===== Indexed backend =====


class IndexedBackend(StoreAdapter):
    """SQLAlchemy-backed store (SQLite via aiosqlite by default)."""

    name = "indexed"

    def __init__(self, engine: AsyncEngine):
        self._engine = engine
        self._session_maker = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    async def open(cls, database_url: str, echo: bool = False) -> "IndexedBackend":
        """Create the engine and schema. Any failure propagates to the caller."""
        engine = create_engine_for_database(database_url, echo=echo)
        try:
            await init_db(engine)
        except Exception:
            await engine.dispose()
            raise
        return cls(engine)

    @staticmethod
    def _row_to_entry(row: CachedTranslation) -> CacheEntry:
        return CacheEntry.from_dict(
            row.key,
            {
                "original_text": row.original_text,
                "translated_text": row.translated_text,
                "source_lang": row.source_lang,
                "target_lang": row.target_lang,
                "created_at": row.created_at,
            },
        )

    async def get(self, key: str) -> Optional[CacheEntry]:
        async with self._session_maker() as session:
            row = await session.get(CachedTranslation, key)
            if row is None:
                return None
            return self._row_to_entry(row)

    async def put(self, entry: CacheEntry) -> None:
        async with self._session_maker() as session:
            await session.merge(CachedTranslation(**entry.to_dict()))
            await session.commit()

    async def delete(self, key: str) -> None:
        async with self._session_maker() as session:
            await session.execute(delete(CachedTranslation).where(CachedTranslation.key == key))
            await session.commit()

    async def iterate_expired(self, cutoff: float) -> list[str]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(CachedTranslation.key).where(CachedTranslation.created_at < cutoff)
            )
            return list(result.scalars().all())

    async def clear(self) -> int:
        async with self._session_maker() as session:
            result = await session.execute(delete(CachedTranslation))
            await session.commit()
            return result.rowcount or 0

    async def count(self) -> int:
        async with self._session_maker() as session:
            result = await session.execute(select(func.count()).select_from(CachedTranslation))
            return int(result.scalar_one())

    async def delete_by_target_lang(self, target_lang: str) -> int:
        async with self._session_maker() as session:
            result = await session.execute(
                delete(CachedTranslation).where(CachedTranslation.target_lang == target_lang)
            )
            await session.commit()
            return result.rowcount or 0

    async def close(self) -> None:
        await self._engine.dispose()


# ===== Flat backend =====

_WRITE_ERRORS = (OSError,) + tuple(dbm.error)

# Sibling files written by the dbm implementations that do not use the path itself
_DUMB_SUFFIXES = (".dat", ".dir", ".bak")
_NDBM_SUFFIXES = (".pag", ".dir", ".db")


class FlatBackend(StoreAdapter):
    """dbm key/value file holding one JSON document per entry.

    Writes are best-effort: over the soft size cap, or when the write itself
    fails, expired and corrupt entries are evicted and the write is dropped.
    """

    name = "flat"
    KEY_PREFIX = "tc_"

    def __init__(
        self,
        path: str | Path,
        ttl_seconds: int,
        max_size_bytes: int,
        clock: Callable[[], float] = time.time,
    ):
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self.ttl_seconds = ttl_seconds
        self.max_size_bytes = max_size_bytes
        self._clock = clock
        self._db = dbm.open(str(self._path), "c")
        logger.info(f"Flat translation cache opened: {self._path}")

    def _storage_key(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    def _owned_keys(self) -> list[str]:
        """Cache keys (without prefix) currently stored in the file."""
        keys = []
        for raw_key in self._db.keys():
            storage_key = raw_key.decode("utf-8") if isinstance(raw_key, bytes) else raw_key
            if storage_key.startswith(self.KEY_PREFIX):
                keys.append(storage_key[len(self.KEY_PREFIX):])
        return keys

    def _read(self, key: str) -> Optional[CacheEntry]:
        raw = self._db.get(self._storage_key(key))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            raise CorruptEntryError(key, f"invalid JSON: {exc}") from exc
        return CacheEntry.from_dict(key, data)

    def _remove(self, key: str) -> bool:
        try:
            del self._db[self._storage_key(key)]
            return True
        except KeyError:
            return False

    def _storage_files(self) -> list[Path]:
        """Files making up this dbm database, never its neighbours."""
        if self._path.exists():
            # dbm.gnu and dbm.sqlite3 keep everything in the path itself
            return [self._path]
        suffixes = _DUMB_SUFFIXES if dbm.whichdb(str(self._path)) == "dbm.dumb" else _NDBM_SUFFIXES
        return [self._path.with_name(self._path.name + suffix) for suffix in suffixes]

    def storage_size(self) -> int:
        """Bytes used on disk by the dbm file(s)."""
        total = 0
        for candidate in self._storage_files():
            try:
                total += candidate.stat().st_size
            except OSError:
                continue
        return total

    def _expired_or_corrupt(self, cutoff: float) -> list[str]:
        stale = []
        for key in self._owned_keys():
            try:
                entry = self._read(key)
            except CorruptEntryError:
                stale.append(key)
                continue
            if entry is not None and entry.created_at < cutoff:
                stale.append(key)
        return stale

    def evict_expired(self) -> int:
        """Drop expired and undecodable entries; returns how many were removed."""
        cutoff = self._clock() - self.ttl_seconds
        removed = 0
        try:
            for key in self._expired_or_corrupt(cutoff):
                if self._remove(key):
                    removed += 1
        except _WRITE_ERRORS as e:
            logger.warning(f"Flat translation cache eviction failed: {e}")
        if removed:
            logger.info(f"Evicted {removed} stale flat cache entries")
        return removed

    async def get(self, key: str) -> Optional[CacheEntry]:
        return self._read(key)

    async def put(self, entry: CacheEntry) -> None:
        payload = json.dumps(entry.to_dict(), ensure_ascii=False).encode("utf-8")

        if self.storage_size() + len(payload) > self.max_size_bytes:
            self.evict_expired()
            if self.storage_size() + len(payload) > self.max_size_bytes:
                logger.debug(f"Flat translation cache over soft cap, dropping write: {entry.key}")
                return

        try:
            self._db[self._storage_key(entry.key)] = payload
        except _WRITE_ERRORS as e:
            logger.warning(f"Flat translation cache write failed, evicting expired entries: {e}")
            self.evict_expired()

    async def delete(self, key: str) -> None:
        self._remove(key)

    async def iterate_expired(self, cutoff: float) -> list[str]:
        return self._expired_or_corrupt(cutoff)

    async def clear(self) -> int:
        removed = 0
        for key in self._owned_keys():
            if self._remove(key):
                removed += 1
        return removed

    async def count(self) -> int:
        return len(self._owned_keys())

    async def delete_by_target_lang(self, target_lang: str) -> int:
        removed = 0
        for key in self._owned_keys():
            try:
                entry = self._read(key)
            except CorruptEntryError:
                continue
            if entry is not None and entry.target_lang == target_lang and self._remove(key):
                removed += 1
        return removed

    async def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None


async def create_store(
    settings: Optional[Settings] = None,
    clock: Callable[[], float] = time.time,
) -> StoreAdapter:
    """Probe the indexed backend once; fall back to the flat one for good."""
    settings = settings or get_settings()

    if settings.translation_cache_indexed_enabled:
        try:
            store = await IndexedBackend.open(
                settings.translation_cache_db_url,
                echo=settings.app_debug,
            )
            logger.info("Translation cache using indexed store")
            return store
        except Exception as e:
            logger.warning(
                f"Indexed translation store unavailable ({type(e).__name__}: {e}); "
                "falling back to flat store"
            )
    else:
        logger.info("Indexed translation store disabled by configuration")

    return FlatBackend(
        settings.translation_cache_flat_path,
        ttl_seconds=settings.translation_cache_ttl_seconds,
        max_size_bytes=settings.translation_cache_max_size_mb * 1024 * 1024,
        clock=clock,
    )
