"""Analysis cache store abstractions and a JSON-file implementation."""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "closet.analysis_cache"


@dataclass
class AnalysisCacheEntry:
    """Memoized analysis keyed by file fingerprint."""

    timestamp: float
    result: Dict[str, Any] = field(default_factory=dict)

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.timestamp < ttl_seconds


class AnalysisCacheStore:
    """Interface for the fingerprint -> analysis map.

    Stores never expire entries on their own; callers compare the entry
    timestamp against their TTL.
    """

    def get(self, key: str) -> Optional[AnalysisCacheEntry]:
        raise NotImplementedError

    def put(self, key: str, entry: AnalysisCacheEntry) -> None:
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError


def _evict_oldest(entries: Dict[str, Dict[str, Any]], max_entries: Optional[int]) -> None:
    if not max_entries or len(entries) <= max_entries:
        return
    ordered = sorted(entries.items(), key=lambda kv: kv[1].get("timestamp", 0.0))
    for key, _ in ordered[: len(entries) - max_entries]:
        del entries[key]


class InMemoryAnalysisCacheStore(AnalysisCacheStore):
    """Process-local cache, handy for tests and one-shot scripts."""

    def __init__(self, max_entries: Optional[int] = None) -> None:
        self.max_entries = max_entries
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[AnalysisCacheEntry]:
        with self._lock:
            raw = self._entries.get(key)
        if raw is None:
            return None
        return AnalysisCacheEntry(timestamp=raw["timestamp"], result=json.loads(raw["result"]))

    def put(self, key: str, entry: AnalysisCacheEntry) -> None:
        with self._lock:
            self._entries[key] = {"timestamp": entry.timestamp, "result": json.dumps(entry.result)}
            _evict_oldest(self._entries, self.max_entries)

    def __len__(self) -> int:
        return len(self._entries)


class JSONAnalysisCacheStore(AnalysisCacheStore):
    """JSON-file-backed cache holding one namespaced map of entries."""

    def __init__(self, path: str | Path = "data/analysis_cache.json", max_entries: Optional[int] = None) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.max_entries = max_entries
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            document = json.loads(self.path.read_text())
        except (OSError, ValueError) as exc:
            logger.warning("Analysis cache unreadable, starting empty", extra={"error": str(exc)})
            return {}
        entries = document.get(CACHE_NAMESPACE) if isinstance(document, dict) else None
        return entries if isinstance(entries, dict) else {}

    def _save(self, entries: Dict[str, Dict[str, Any]]) -> None:
        self.path.write_text(json.dumps({CACHE_NAMESPACE: entries}, indent=2, sort_keys=True))

    def get(self, key: str) -> Optional[AnalysisCacheEntry]:
        with self._lock:
            raw = self._load().get(key)
        if not raw or "timestamp" not in raw:
            return None
        return AnalysisCacheEntry(timestamp=float(raw["timestamp"]), result=raw.get("result") or {})

    def put(self, key: str, entry: AnalysisCacheEntry) -> None:
        with self._lock:
            entries = self._load()
            entries[key] = {"timestamp": entry.timestamp, "result": entry.result}
            _evict_oldest(entries, self.max_entries)
            self._save(entries)

    def __len__(self) -> int:
        return len(self._load())


__all__ = [
    "AnalysisCacheEntry",
    "AnalysisCacheStore",
    "CACHE_NAMESPACE",
    "InMemoryAnalysisCacheStore",
    "JSONAnalysisCacheStore",
]
