"""
Annotation cache - keeps scan results for the lifetime of the process.
"""

from typing import Callable, Dict, Optional, Sequence
import logging
import threading

from .occurrence import AnnotationResult

logger = logging.getLogger("apikit.discovery")


class AnnotationCache:
    """
    Scan results keyed by project path and include paths.

    Entries never expire; ``clear()`` is the only way to force a rescan.
    """

    def __init__(self):
        self._entries: Dict[str, AnnotationResult] = {}
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0}

    @staticmethod
    def key_for(project_path: str, include_paths: Optional[Sequence[str]] = None) -> str:
        return f"{project_path}:{','.join(include_paths) if include_paths else 'default'}"

    def get(self, project_path: str, include_paths: Optional[Sequence[str]] = None) -> Optional[AnnotationResult]:
        with self._lock:
            return self._entries.get(self.key_for(project_path, include_paths))

    def put(
        self,
        project_path: str,
        include_paths: Optional[Sequence[str]],
        result: AnnotationResult,
    ) -> None:
        with self._lock:
            self._entries[self.key_for(project_path, include_paths)] = result

    def get_or_scan(
        self,
        project_path: str,
        include_paths: Optional[Sequence[str]],
        scan: Callable[[str, Optional[Sequence[str]]], AnnotationResult],
    ) -> AnnotationResult:
        """Cached result, scanning (outside the lock) on a miss."""
        key = self.key_for(project_path, include_paths)
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                self._stats["hits"] += 1
        if cached is not None:
            logger.debug("Using cached annotations (%d annotations)", cached.total)
            return cached

        result = scan(project_path, include_paths)
        with self._lock:
            self._stats["misses"] += 1
            # Concurrent scans of the same key keep the first result
            result = self._entries.setdefault(key, result)
        logger.info("Analyzed and cached %d annotations", result.total)
        return result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Annotation cache cleared")

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {**self._stats, "entries": len(self._entries)}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
