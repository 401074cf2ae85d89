"""Read-only access to category records.

Every store hands out immutable ``CategoryRecord`` snapshots keyed by id, so
callers walk the tree by looking ids up rather than following ORM references.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from catalog_paths.models import Category

_UNSET = object()


@dataclass(frozen=True)
class CategoryRecord:
    id: int
    name: str
    slug: str
    parent_id: Optional[int] = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @classmethod
    def from_model(cls, category: Category) -> "CategoryRecord":
        return cls(
            id=category.id,
            name=category.name,
            slug=category.slug,
            parent_id=category.parent_id,
        )


@dataclass(frozen=True)
class CategoryFilter:
    """Optional constraints for ``list_categories``.

    ``parent_id`` distinguishes "any parent" (left unset) from "roots only"
    (``None``).
    """

    parent_id: object = _UNSET
    search: Optional[str] = None
    ids: Optional[frozenset[int]] = None

    @classmethod
    def children_of(cls, parent_id: Optional[int]) -> "CategoryFilter":
        return cls(parent_id=parent_id)

    @classmethod
    def with_ids(cls, ids: Iterable[int]) -> "CategoryFilter":
        return cls(ids=frozenset(ids))

    @property
    def filters_parent(self) -> bool:
        return self.parent_id is not _UNSET

    def matches(self, record: CategoryRecord) -> bool:
        if self.filters_parent and record.parent_id != self.parent_id:
            return False
        if self.ids is not None and record.id not in self.ids:
            return False
        if self.search:
            needle = self.search.lower()
            if needle not in record.name.lower() and needle not in record.slug.lower():
                return False
        return True


class CategoryStore(Protocol):
    def get_category_by_id(self, category_id: int) -> CategoryRecord | None:
        ...

    def get_category_by_slug(self, slug: str) -> CategoryRecord | None:
        ...

    def list_categories(self, category_filter: CategoryFilter | None = None) -> list[CategoryRecord]:
        ...


class SqlCategoryStore:
    """Category store backed by a SQLAlchemy session.

    The session is shared, so access is serialised with a lock; resolutions
    running on worker threads still see one consistent session.
    """

    def __init__(self, db: Session):
        self.db = db
        self._lock = threading.Lock()

    def get_category_by_id(self, category_id: int) -> CategoryRecord | None:
        with self._lock:
            category = self.db.get(Category, category_id)
            return CategoryRecord.from_model(category) if category else None

    def get_category_by_slug(self, slug: str) -> CategoryRecord | None:
        with self._lock:
            category = self.db.execute(
                select(Category).where(Category.slug == slug)
            ).scalar_one_or_none()
            return CategoryRecord.from_model(category) if category else None

    def list_categories(self, category_filter: CategoryFilter | None = None) -> list[CategoryRecord]:
        statement = select(Category).order_by(Category.name, Category.id)
        if category_filter is not None:
            if category_filter.filters_parent:
                if category_filter.parent_id is None:
                    statement = statement.where(Category.parent_id.is_(None))
                else:
                    statement = statement.where(Category.parent_id == category_filter.parent_id)
            if category_filter.ids is not None:
                statement = statement.where(Category.id.in_(category_filter.ids))
            if category_filter.search:
                pattern = f"%{category_filter.search}%"
                statement = statement.where(
                    or_(Category.name.ilike(pattern), Category.slug.ilike(pattern))
                )
        with self._lock:
            categories = self.db.execute(statement).scalars().all()
            return [CategoryRecord.from_model(category) for category in categories]


class InMemoryCategoryStore:
    def __init__(self, records: Iterable[CategoryRecord] = ()) -> None:
        self._records: dict[int, CategoryRecord] = {}
        self._lock = threading.Lock()
        for record in records:
            self._records[record.id] = record

    def add(self, record: CategoryRecord) -> None:
        with self._lock:
            self._records[record.id] = record

    def remove(self, category_id: int) -> None:
        with self._lock:
            self._records.pop(category_id, None)

    def get_category_by_id(self, category_id: int) -> CategoryRecord | None:
        with self._lock:
            return self._records.get(category_id)

    def get_category_by_slug(self, slug: str) -> CategoryRecord | None:
        with self._lock:
            for record in self._records.values():
                if record.slug == slug:
                    return record
        return None

    def list_categories(self, category_filter: CategoryFilter | None = None) -> list[CategoryRecord]:
        with self._lock:
            records = list(self._records.values())
        if category_filter is not None:
            records = [record for record in records if category_filter.matches(record)]
        return sorted(records, key=lambda record: (record.name, record.id))
