import logging

from sqlalchemy import event, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from catalog_paths.core.cache import cache, invalidate_cache
from catalog_paths.core.config import get_settings
from catalog_paths.models import Category
from catalog_paths.schemas import (
    CategoryCreate,
    CategoryNodeRead,
    CategoryPath,
    CategoryUpdate,
    CategoryWithPath,
)

from . import exceptions
from .category_store import CategoryFilter, CategoryRecord, SqlCategoryStore
from .category_tree import CategoryTree
from .path_resolver import PathResolver

logger = logging.getLogger(__name__)

CATEGORY_PATH_NAMESPACE = "category_paths"
CATEGORY_TREE_NAMESPACE = "category_tree"
PATH_NAMESPACES = (CATEGORY_PATH_NAMESPACE, CATEGORY_TREE_NAMESPACE)
CATEGORY_PATH_CACHE_TTL = 300

_DIRTY_FLAG = "category_paths_dirty"


class CategoryService:
    def __init__(self, db: Session):
        self.db = db
        self.store = SqlCategoryStore(db)
        self.max_depth = get_settings().CATEGORY_PATH_MAX_DEPTH
        self.resolver = PathResolver(self.store, max_depth=self.max_depth)

    def list_categories(self, search: str | None = None) -> list[CategoryRecord]:
        return self.store.list_categories(CategoryFilter(search=search) if search else None)

    def list_children(self, parent_id: int | None) -> list[CategoryRecord]:
        return self.store.list_categories(CategoryFilter.children_of(parent_id))

    def count(self) -> int:
        return self.db.execute(select(func.count(Category.id))).scalar_one()

    def get_category(self, category_id: int) -> Category:
        return self._get_category(category_id)

    def get_category_by_slug(self, slug: str) -> Category | None:
        return self.db.query(Category).filter(Category.slug == slug).first()

    @cache(
        ttl=CATEGORY_PATH_CACHE_TTL,
        namespace=CATEGORY_PATH_NAMESPACE,
        key_builder=lambda self, category_id: f"id:{category_id}",
        value_type=CategoryPath,
    )
    def get_category_path(self, category_id: int) -> CategoryPath:
        return self.resolver.resolve(category_id)

    def get_category_with_path(self, slug: str) -> CategoryWithPath | None:
        category = self.get_category_by_slug(slug)
        if category is None:
            return None
        return CategoryWithPath(
            id=category.id,
            name=category.name,
            slug=category.slug,
            parent_id=category.parent_id,
            path=self.get_category_path(category.id),
        )

    def build_tree(self) -> CategoryTree:
        return CategoryTree.build(self.store.list_categories())

    @cache(
        ttl=CATEGORY_PATH_CACHE_TTL,
        namespace=CATEGORY_TREE_NAMESPACE,
        key_builder=lambda self: "all",
        value_type=list[CategoryNodeRead],
    )
    def get_tree(self) -> list[CategoryNodeRead]:
        return self.build_tree().to_schema()

    def create_category(self, payload: CategoryCreate) -> Category:
        self._ensure_slug_available(payload.slug)
        if payload.parent_id is not None:
            parent_path = self._parent_path(payload.parent_id)
            if len(parent_path) + 1 > self.max_depth:
                raise exceptions.InvalidCategoryError(
                    f"Categories cannot be nested deeper than {self.max_depth} levels"
                )
        category = Category(**payload.model_dump())
        self.db.add(category)
        self._commit()
        self.db.refresh(category)
        self._invalidate()
        logger.info("Category %s (%s) created under %s", category.id, category.slug, category.parent_id)
        return category

    def update_category(self, category_id: int, payload: CategoryUpdate) -> Category:
        category = self._get_category(category_id)
        data = payload.model_dump(exclude_unset=True)
        # ``parent_id=None`` moves the category to the top level; other fields
        # set to None are simply left alone.
        data = {key: value for key, value in data.items() if value is not None or key == "parent_id"}

        if "slug" in data and data["slug"] != category.slug:
            self._ensure_slug_available(data["slug"])
        if "parent_id" in data and data["parent_id"] != category.parent_id:
            self._ensure_valid_parent(category_id, data["parent_id"])

        for key, value in data.items():
            setattr(category, key, value)
        self.db.add(category)
        self._commit()
        self.db.refresh(category)
        self._invalidate()
        logger.info("Category %s updated: %s", category_id, sorted(data))
        return category

    def reparent_category(self, category_id: int, parent_id: int | None) -> Category:
        return self.update_category(category_id, CategoryUpdate(parent_id=parent_id))

    def delete_category(self, category_id: int) -> None:
        category = self._get_category(category_id)
        has_children = self.db.execute(
            select(func.count(Category.id)).where(Category.parent_id == category_id)
        ).scalar_one()
        if has_children:
            raise exceptions.ConflictError("Category has subcategories")
        category.products.clear()
        self.db.delete(category)
        self._commit()
        self._invalidate()
        logger.info("Category %s deleted", category_id)

    def _ensure_valid_parent(self, category_id: int, parent_id: int | None) -> None:
        if parent_id is None:
            return
        if parent_id == category_id:
            raise exceptions.InvalidCategoryError("A category cannot be its own parent")
        parent_path = self._parent_path(parent_id)
        if category_id in parent_path.ids:
            raise exceptions.InvalidCategoryError("A category cannot be moved under its own descendant")

        tree = self.build_tree()
        node = tree.get(category_id)
        subtree_height = 0
        if node is not None:
            subtree_height = max(
                (tree.get(child_id).level - node.level for child_id in tree.descendant_ids(category_id)),
                default=0,
            )
        if len(parent_path) + 1 + subtree_height > self.max_depth:
            raise exceptions.InvalidCategoryError(
                f"Categories cannot be nested deeper than {self.max_depth} levels"
            )

    def _parent_path(self, parent_id: int) -> CategoryPath:
        self._get_category(parent_id)
        try:
            return self.resolver.resolve(parent_id)
        except exceptions.CycleDetected as exc:
            raise exceptions.InvalidCategoryError("Parent category has a cyclic ancestry") from exc

    def _ensure_slug_available(self, slug: str) -> None:
        if self.get_category_by_slug(slug) is not None:
            raise exceptions.ConflictError(f"Category slug '{slug}' already exists")

    def _get_category(self, category_id: int) -> Category:
        category = self.db.query(Category).filter(Category.id == category_id).first()
        if not category:
            raise exceptions.NotFoundError("Category not found")
        return category

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise exceptions.ConflictError("Category conflicts with an existing record") from exc

    @staticmethod
    def _invalidate() -> None:
        invalidate_cache(*PATH_NAMESPACES)


def _mark_category_changes(session: Session, flush_context) -> None:
    for obj in (*session.new, *session.dirty, *session.deleted):
        if isinstance(obj, Category):
            session.info[_DIRTY_FLAG] = True
            return


def _invalidate_after_commit(session: Session) -> None:
    if session.info.pop(_DIRTY_FLAG, False):
        invalidate_cache(*PATH_NAMESPACES)


def _forget_after_rollback(session: Session) -> None:
    session.info.pop(_DIRTY_FLAG, None)


def register_invalidation_hooks() -> None:
    """Invalidate cached paths after any commit that touched a category.

    Covers writers that bypass ``CategoryService``. Bulk ``UPDATE``/``DELETE``
    statements skip the unit of work and are not seen here.
    """

    if event.contains(Session, "after_flush", _mark_category_changes):
        return
    event.listen(Session, "after_flush", _mark_category_changes)
    event.listen(Session, "after_commit", _invalidate_after_commit)
    event.listen(Session, "after_rollback", _forget_after_rollback)
