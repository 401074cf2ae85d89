"""Matching slash-separated URL paths against resolved category paths.

The product check is permissive: a requested path is accepted when it equals
one of the product's category paths or when either is a segment-aligned prefix
or suffix of the other. Bookmarks to a shorter or longer path than the
canonical one keep working, at the price of accepting some paths that are not
exactly canonical.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from catalog_paths.schemas import CategoryWithPath, EnrichedProduct, PathMatch

from .category_store import CategoryStore
from .path_resolver import PathResolver

logger = logging.getLogger(__name__)


def split_path(path: Optional[str]) -> list[str]:
    if not path:
        return []
    return [segment for segment in path.strip().split("/") if segment]


def normalize_path(path: Optional[str]) -> str:
    return "/".join(split_path(path))


def paths_overlap(requested: Optional[str], canonical: Optional[str]) -> bool:
    """True when the paths are equal or one is a prefix or suffix of the other."""

    left = split_path(requested)
    right = split_path(canonical)
    if not left or not right:
        return left == right
    shorter, longer = (left, right) if len(left) <= len(right) else (right, left)
    size = len(shorter)
    return longer[:size] == shorter or longer[-size:] == shorter


def product_matches_path(product: EnrichedProduct, requested: Optional[str]) -> bool:
    """True when ``requested`` is consistent with one of the product's paths.

    An empty request is consistent with any path, but a product without
    categories has nothing to be consistent with.
    """

    if not split_path(requested):
        return bool(product.category_paths)
    return any(paths_overlap(requested, path) for path in product.category_paths)


class ProductLookup(Protocol):
    def get_product_by_slug(self, slug: str) -> EnrichedProduct | None:
        ...


class CategoryPathRouter:
    def __init__(self, store: CategoryStore, products: ProductLookup, resolver: PathResolver | None = None):
        self.store = store
        self.products = products
        self.resolver = resolver or PathResolver(store)

    def match(self, path: str) -> PathMatch:
        """Resolve ``path`` to a category or to a product under a category path.

        An unmatched path comes back with ``kind=None``; reporting it as not
        found is up to the caller.
        """

        segments = split_path(path)
        normalized = "/".join(segments)
        if not segments:
            return PathMatch(path=normalized)

        category = self._match_category(segments)
        if category is not None:
            return PathMatch(kind="category", path=normalized, category=category)

        product = self.products.get_product_by_slug(segments[-1])
        if product is not None:
            category_path = "/".join(segments[:-1])
            if product_matches_path(product, category_path):
                return PathMatch(kind="product", path=normalized, product=product)
            logger.info(
                "Product %s found but %r matches none of %s",
                product.slug,
                category_path,
                product.category_paths,
            )
        return PathMatch(path=normalized)

    def _match_category(self, segments: list[str]) -> CategoryWithPath | None:
        record = self.store.get_category_by_slug(segments[-1])
        if record is None:
            return None
        resolved = self.resolver.resolve(record.id)
        if resolved.slugs != segments:
            return None
        return CategoryWithPath(
            id=record.id,
            name=record.name,
            slug=record.slug,
            parent_id=record.parent_id,
            path=resolved,
        )
