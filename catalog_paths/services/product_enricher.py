"""Attach resolved category paths to products."""

from __future__ import annotations

import contextvars
import logging
import time
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Iterable, Optional, Sequence

from catalog_paths.core.observability import correlation_context
from catalog_paths.schemas import (
    BatchEnrichment,
    EnrichedCategory,
    EnrichedProduct,
    EnrichmentOutcome,
)

from . import exceptions
from .path_resolver import PathResolver, RecordMemo

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = (
    "id",
    "name",
    "slug",
    "description",
    "price",
    "image_url",
    "created_at",
    "updated_at",
)


def _read(source: Any, key: str, default: Any = None) -> Any:
    if isinstance(source, Mapping):
        return source.get(key, default)
    return getattr(source, key, default)


def _category_stubs(product: Any) -> list[tuple[int, str, str]]:
    raw = _read(product, "categories")
    if not isinstance(raw, (list, tuple)):
        return []
    stubs: list[tuple[int, str, str]] = []
    for item in raw:
        category_id = _read(item, "id")
        if not isinstance(category_id, int) or isinstance(category_id, bool):
            logger.warning(
                "Skipping category with invalid id %r on product %s", category_id, _read(product, "id")
            )
            continue
        stubs.append((category_id, _read(item, "name") or "", _read(item, "slug") or ""))
    return stubs


class ProductPathEnricher:
    def __init__(self, resolver: PathResolver):
        self.resolver = resolver

    def enrich(self, product: Any, *, deadline: float | None = None) -> EnrichedProduct:
        """Resolve a path for every category of ``product``.

        ``product`` may be an ORM object or a mapping. Categories that are
        absent or not a list yield empty ``categories`` and ``categoryPaths``.
        """

        fields = {name: _read(product, name) for name in PRODUCT_FIELDS}
        categories: list[EnrichedCategory] = []
        for category_id, name, slug in _category_stubs(product):
            path = self.resolver.resolve(category_id, deadline=deadline)
            categories.append(EnrichedCategory(id=category_id, name=name, slug=slug, path=path))

        return EnrichedProduct(
            **fields,
            category_ids=[category.id for category in categories],
            categories=categories,
            category_paths=[category.path.full_path for category in categories],
        )

    def enrich_many(
        self,
        products: Iterable[Any],
        *,
        timeout: Optional[float] = None,
        max_workers: int = 1,
    ) -> BatchEnrichment:
        """Enrich each product independently, keeping input order.

        A failure or timeout on one product is recorded on its outcome and the
        rest of the batch carries on. ``timeout`` applies per product.
        """

        items = list(products)
        if self.resolver.memo is None:
            self.resolver.memo = RecordMemo()

        with correlation_context(prefix="enrich") as correlation_id:
            if max_workers > 1 and len(items) > 1:
                outcomes = self._enrich_concurrently(items, timeout, max_workers)
            else:
                outcomes = [self._enrich_one(index, product, timeout) for index, product in enumerate(items)]

            failed = sum(1 for outcome in outcomes if not outcome.ok)
            if failed:
                logger.warning("Enriched %d products, %d failed", len(outcomes), failed)
            else:
                logger.debug("Enriched %d products", len(outcomes))
        return BatchEnrichment(correlation_id=correlation_id, outcomes=outcomes)

    def _enrich_one(self, index: int, product: Any, timeout: Optional[float]) -> EnrichmentOutcome:
        product_id = _read(product, "id")
        deadline = time.monotonic() + timeout if timeout is not None else None
        try:
            enriched = self.enrich(product, deadline=deadline)
        except exceptions.ServiceError as exc:
            logger.warning("Enrichment of product %s failed: %s", product_id, exc)
            return _failure(index, product_id, exc)
        except Exception as exc:
            logger.exception("Unexpected error enriching product %s", product_id)
            return _failure(index, product_id, exc)
        return EnrichmentOutcome(index=index, product_id=product_id, product=enriched)

    def _enrich_concurrently(
        self, items: Sequence[Any], timeout: Optional[float], max_workers: int
    ) -> list[EnrichmentOutcome]:
        executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="enrich")
        try:
            futures: list[Future[EnrichmentOutcome]] = [
                executor.submit(contextvars.copy_context().run, self._enrich_one, index, product, timeout)
                for index, product in enumerate(items)
            ]
            outcomes: list[EnrichmentOutcome] = []
            for index, future in enumerate(futures):
                try:
                    outcomes.append(future.result(timeout=timeout))
                except FutureTimeoutError:
                    future.cancel()
                    product_id = _read(items[index], "id")
                    logger.warning("Enrichment of product %s did not finish in %ss", product_id, timeout)
                    outcomes.append(
                        _failure(
                            index,
                            product_id,
                            exceptions.ResolutionTimeout(f"Enrichment of product {product_id} timed out"),
                        )
                    )
            return outcomes
        finally:
            # Workers share the caller's store and session, so none may outlive
            # this call. Queued items are dropped; running ones stop at their
            # own deadline before the next fetch.
            executor.shutdown(wait=True, cancel_futures=True)


def _failure(index: int, product_id: Any, exc: BaseException) -> EnrichmentOutcome:
    return EnrichmentOutcome(
        index=index,
        product_id=product_id,
        error=str(exc) or exc.__class__.__name__,
        error_kind=exc.__class__.__name__,
    )
