"""Durable storage for genre charts."""

import hashlib
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .dataclasses import AlbumEntry, CacheRecord, ChartResult


class ChartStoreError(Exception):
    """The store could not be read or written."""


class CacheKeyNotFound(ChartStoreError):
    """No row exists for the requested genre key."""
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"No cached chart for '{key}'")


class ChartStore:
    """Keyed chart storage with upsert semantics.

    Implementations must raise CacheKeyNotFound for a missing key and
    ChartStoreError for anything else that goes wrong, so callers can tell
    "never cached" from "store unavailable".
    """

    def get(self, key: str) -> CacheRecord:
        raise NotImplementedError

    def upsert(self, key: str, chart: ChartResult) -> CacheRecord:
        raise NotImplementedError

    def clear(self) -> int:
        raise NotImplementedError

    def get_info(self, ttl_hours: Optional[float] = None) -> Dict[str, Any]:
        return {}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def record_to_dict(record: CacheRecord) -> Dict[str, Any]:
    return {
        'genre': record.chart.genre_key,
        'data': [entry.to_dict() for entry in record.chart.albums],
        'updated_at': record.updated_at.isoformat(),
        'created_at': record.created_at.isoformat() if record.created_at else None,
    }


def _parse_timestamp(value: str) -> datetime:
    stamp = datetime.fromisoformat(value)
    # Rows written without an offset are UTC
    return stamp if stamp.tzinfo else stamp.replace(tzinfo=timezone.utc)


def record_from_dict(data: Dict[str, Any]) -> CacheRecord:
    updated_at = _parse_timestamp(data['updated_at'])
    created_at = _parse_timestamp(data['created_at']) if data.get('created_at') else None
    albums = tuple(AlbumEntry.from_dict(item) for item in data['data'])
    return CacheRecord(
        chart=ChartResult(genre_key=data['genre'], albums=albums, fetched_at=updated_at),
        updated_at=updated_at,
        created_at=created_at,
    )


class MemoryChartStore(ChartStore):
    """Process-local store, mainly for tests and one-off CLI runs."""

    def __init__(self) -> None:
        self._records: Dict[str, CacheRecord] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> CacheRecord:
        try:
            return self._records[key]
        except KeyError:
            raise CacheKeyNotFound(key) from None

    def upsert(self, key: str, chart: ChartResult) -> CacheRecord:
        with self._lock:
            existing = self._records.get(key)
            record = CacheRecord(
                chart=chart,
                updated_at=chart.fetched_at,
                created_at=existing.created_at if existing else chart.fetched_at,
            )
            self._records[key] = record
            return record

    def clear(self) -> int:
        with self._lock:
            count = len(self._records)
            self._records.clear()
            return count

    def get_info(self, ttl_hours: Optional[float] = None) -> Dict[str, Any]:
        return {'total_files': len(self._records), 'cache_dir': None}


class JsonChartStore(ChartStore):
    """One JSON document per genre key under the cache directory.

    Writes go to a temp file that replaces the target atomically, under a
    lock, so concurrent upserts leave a whole record (last writer wins).
    """

    def __init__(self, cache_dir: str) -> None:
        self.cache_dir = Path(cache_dir) / 'charts'
        self.logger = logging.getLogger(__name__)
        self._write_lock = threading.Lock()

        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _get_key_hash(self, key: str) -> str:
        return hashlib.sha256(key.encode('utf-8')).hexdigest()

    def _get_cache_file(self, key: str) -> Path:
        return self.cache_dir / f"{self._get_key_hash(key)}.json"

    def _read(self, cache_file: Path) -> Optional[Dict[str, Any]]:
        if not cache_file.exists():
            return None
        with open(cache_file, 'r', encoding='utf-8') as f:
            return json.load(f)

    def get(self, key: str) -> CacheRecord:
        cache_file = self._get_cache_file(key)
        try:
            data = self._read(cache_file)
            if data is None:
                raise CacheKeyNotFound(key)
            return record_from_dict(data)
        except CacheKeyNotFound:
            raise
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ChartStoreError(f"Corrupted cache file for '{key}': {e}") from e
        except OSError as e:
            raise ChartStoreError(f"Failed to read cache file for '{key}': {e}") from e

    def upsert(self, key: str, chart: ChartResult) -> CacheRecord:
        cache_file = self._get_cache_file(key)
        with self._write_lock:
            created_at = chart.fetched_at
            try:
                existing = self._read(cache_file)
                if existing and existing.get('created_at'):
                    created_at = _parse_timestamp(existing['created_at'])
            except (OSError, ValueError) as e:
                self.logger.debug(f"Ignoring unreadable existing cache row for '{key}': {e}")

            record = CacheRecord(chart=chart, updated_at=chart.fetched_at, created_at=created_at)
            try:
                fd, tmp_path = tempfile.mkstemp(dir=self.cache_dir, suffix='.tmp')
                try:
                    with os.fdopen(fd, 'w', encoding='utf-8') as f:
                        json.dump(record_to_dict(record), f, ensure_ascii=False, indent=2)
                    os.replace(tmp_path, cache_file)
                except BaseException:
                    if os.path.exists(tmp_path):
                        os.unlink(tmp_path)
                    raise
            except OSError as e:
                raise ChartStoreError(f"Failed to write cache file for '{key}': {e}") from e

        self.logger.debug(f"Cached chart for: {key}")
        return record

    def clear(self) -> int:
        """Clear all cached charts."""
        try:
            cache_files = list(self.cache_dir.glob("*.json"))
            for cache_file in cache_files:
                cache_file.unlink()
            self.logger.info(f"Cleared {len(cache_files)} cache files")
            return len(cache_files)
        except OSError as e:
            self.logger.error(f"Error clearing cache: {e}")
            return 0

    def get_info(self, ttl_hours: Optional[float] = None) -> Dict[str, Any]:
        """Get cache statistics."""
        try:
            cache_files = list(self.cache_dir.glob("*.json"))
            total_size = sum(f.stat().st_size for f in cache_files)

            stale_count = 0
            if ttl_hours:
                now = _now()
                for cache_file in cache_files:
                    try:
                        record = record_from_dict(self._read(cache_file))
                        if (now - record.updated_at).total_seconds() >= ttl_hours * 3600:
                            stale_count += 1
                    except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                        stale_count += 1  # Count corrupted files as stale

            return {
                'total_files': len(cache_files),
                'total_size_mb': round(total_size / (1024 * 1024), 2),
                'stale_files': stale_count,
                'cache_dir': str(self.cache_dir),
            }
        except OSError as e:
            self.logger.error(f"Error getting cache info: {e}")
            return {}
