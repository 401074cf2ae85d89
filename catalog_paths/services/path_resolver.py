"""Category path materialization.

``PathResolver.resolve`` walks from a category up to its root through the
store, one lookup per level, and returns the chain root-first. A missing
ancestor ends the walk (the path is truncated, not rejected). A repeated id or
a chain longer than ``max_depth`` fails fast instead of looping.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Iterable, Optional

from catalog_paths.schemas import CategoryPath, PathSegment

from . import exceptions
from .category_store import CategoryRecord, CategoryStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64

_MISSING = object()


class RecordMemo:
    """Per-batch record cache shared by concurrent resolutions.

    Lookups that found nothing are remembered too. Never keep one of these
    beyond a single request or batch: it is not invalidated on mutations.
    """

    def __init__(self) -> None:
        self._records: dict[int, Optional[CategoryRecord]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def lookup(self, category_id: int) -> object:
        with self._lock:
            value = self._records.get(category_id, _MISSING)
            if value is _MISSING:
                self.misses += 1
            else:
                self.hits += 1
            return value

    def remember(self, category_id: int, record: Optional[CategoryRecord]) -> None:
        with self._lock:
            self._records.setdefault(category_id, record)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class PathResolver:
    def __init__(
        self,
        store: CategoryStore,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        memo: RecordMemo | None = None,
    ):
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self.store = store
        self.max_depth = max_depth
        self.memo = memo

    def resolve(self, category_id: int, *, deadline: float | None = None) -> CategoryPath:
        """Return the root-first path of ``category_id``.

        ``deadline`` is a ``time.monotonic()`` value; once it has passed the walk
        stops with ``ResolutionTimeout`` before the next lookup.
        """

        segments: list[PathSegment] = []
        visited: list[int] = []
        current_id: Optional[int] = category_id

        while current_id is not None:
            if current_id in visited:
                logger.error(
                    "Cycle in category parents starting at %s: %s -> %s",
                    category_id,
                    visited,
                    current_id,
                )
                raise exceptions.CycleDetected(
                    f"Category {category_id} has a cyclic parent chain",
                    category_id=category_id,
                    chain=visited + [current_id],
                )
            if len(segments) >= self.max_depth:
                raise exceptions.PathDepthExceeded(
                    f"Category {category_id} is nested deeper than {self.max_depth} levels",
                    category_id=category_id,
                    chain=visited,
                )
            if deadline is not None and time.monotonic() >= deadline:
                raise exceptions.ResolutionTimeout(
                    f"Resolving category {category_id} timed out",
                    category_id=category_id,
                    chain=visited,
                )

            record = self._fetch(current_id)
            if record is None:
                if visited:
                    logger.debug(
                        "Path of category %s truncated at missing ancestor %s",
                        category_id,
                        current_id,
                    )
                break

            visited.append(current_id)
            segments.insert(0, PathSegment(id=record.id, name=record.name, slug=record.slug))
            current_id = record.parent_id

        return CategoryPath.from_segments(segments)

    def resolve_many(
        self, category_ids: Iterable[int], *, deadline: float | None = None
    ) -> dict[int, CategoryPath]:
        if self.memo is None:
            self.memo = RecordMemo()
        return {category_id: self.resolve(category_id, deadline=deadline) for category_id in category_ids}

    def _fetch(self, category_id: int) -> Optional[CategoryRecord]:
        if self.memo is None:
            return self.store.get_category_by_id(category_id)
        cached = self.memo.lookup(category_id)
        if cached is not _MISSING:
            return cached  # type: ignore[return-value]
        record = self.store.get_category_by_id(category_id)
        self.memo.remember(category_id, record)
        return record
