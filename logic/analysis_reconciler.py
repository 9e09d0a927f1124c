"""Multi-provider image analysis with a fingerprint-keyed cache."""

from __future__ import annotations

import json
import logging
import time
from concurrent.futures import ALL_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from closet_app.config import DEFAULT_CACHE_TTL_SECONDS
from closet_app.logging_config import get_logger, log_event
from memory.analysis_cache import AnalysisCacheEntry, AnalysisCacheStore
from models.image_file import ImageFile
from tools.vision_providers import TagProvider

logger = get_logger(__name__)


def _unique(values: Sequence[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


@dataclass(frozen=True)
class NormalizedTags:
    """Merged analysis keyed by provider name.

    A provider that failed is present with an empty result.
    """

    providers: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def tags(self) -> List[str]:
        return _unique([tag for result in self.providers.values() for tag in result.get("tags", [])])

    @property
    def labels(self) -> List[str]:
        return _unique([label for result in self.providers.values() for label in result.get("labels", [])])

    def to_json(self) -> str:
        return json.dumps(self.providers, sort_keys=True)


class AnalysisReconciler:
    """Fans an image out to every provider and caches the merged result.

    Returns ``None`` when every provider failed so the caller can switch to
    a local heuristic. Partial failures are logged and absorbed.
    """

    def __init__(
        self,
        providers: Sequence[TagProvider],
        cache: AnalysisCacheStore,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        max_workers: Optional[int] = None,
    ) -> None:
        names = [provider.name for provider in providers]
        if len(set(names)) != len(names):
            raise ValueError(f"Provider names must be unique: {names}")
        self.providers = list(providers)
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.max_workers = max_workers

    def analyze(self, image: ImageFile) -> Optional[NormalizedTags]:
        key = image.fingerprint
        entry = self.cache.get(key)
        if entry and entry.is_fresh(self.clock(), self.ttl_seconds):
            log_event(logger, logging.INFO, "analysis_cache_hit", providers=sorted(entry.result))
            return NormalizedTags(dict(entry.result))

        if not self.providers:
            return None

        merged, succeeded = self._fan_out(image)
        if not succeeded:
            log_event(logger, logging.WARNING, "analysis_unavailable", providers=sorted(merged))
            return None

        try:
            self.cache.put(key, AnalysisCacheEntry(timestamp=self.clock(), result=merged))
        except OSError as exc:
            log_event(logger, logging.WARNING, "analysis_cache_write_failed", error=str(exc))
        log_event(
            logger,
            logging.INFO,
            "analysis_completed",
            succeeded=succeeded,
            failed=[name for name in merged if name not in succeeded],
        )
        return NormalizedTags(merged)

    def _fan_out(self, image: ImageFile) -> tuple[Dict[str, Dict[str, Any]], List[str]]:
        workers = self.max_workers or len(self.providers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="analysis") as pool:
            futures = {provider.name: pool.submit(provider.analyze, image) for provider in self.providers}
            wait(futures.values(), return_when=ALL_COMPLETED)

        merged: Dict[str, Dict[str, Any]] = {}
        succeeded: List[str] = []
        for name, future in futures.items():
            error = future.exception()
            if error is not None:
                log_event(logger, logging.WARNING, "provider_failed", provider=name, error=str(error))
                merged[name] = {}
                continue
            merged[name] = dict(future.result() or {})
            succeeded.append(name)
        return merged, succeeded


__all__ = ["AnalysisReconciler", "NormalizedTags"]
