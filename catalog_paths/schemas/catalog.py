from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SLUG_PATTERN = r"^[a-z0-9-]+$"


class PathSegment(BaseModel):
    id: int
    name: str
    slug: str


class CategoryPath(BaseModel):
    """Root-first ancestor chain of a category.

    ``ids``, ``names`` and ``slugs`` are parallel; ``fullPath`` joins the slugs
    with ``/``. An empty path means the starting category does not exist.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    ids: list[int] = Field(default_factory=list)
    names: list[str] = Field(default_factory=list)
    slugs: list[str] = Field(default_factory=list)
    full_path: str = Field(default="", alias="fullPath")

    @classmethod
    def from_segments(cls, segments: list[PathSegment]) -> "CategoryPath":
        slugs = [segment.slug for segment in segments]
        return cls(
            ids=[segment.id for segment in segments],
            names=[segment.name for segment in segments],
            slugs=slugs,
            full_path="/".join(slugs),
        )

    @property
    def is_empty(self) -> bool:
        return not self.ids

    def __len__(self) -> int:
        return len(self.ids)


class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., min_length=1, max_length=200, pattern=SLUG_PATTERN)
    parent_id: Optional[int] = None


class CategoryCreate(CategoryBase):
    pass


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, min_length=1, max_length=200, pattern=SLUG_PATTERN)
    parent_id: Optional[int] = None


class CategoryRead(CategoryBase):
    model_config = ConfigDict(from_attributes=True)

    id: int


class CategoryWithPath(CategoryRead):
    path: CategoryPath


class CategoryNodeRead(BaseModel):
    id: int
    name: str
    slug: str
    parent_id: Optional[int] = None
    level: int
    children: list["CategoryNodeRead"] = Field(default_factory=list)


class EnrichedCategory(BaseModel):
    id: int
    name: str
    slug: str
    path: CategoryPath


class EnrichedProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = None
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    category_ids: list[int] = Field(default_factory=list, alias="categoryIds")
    categories: list[EnrichedCategory] = Field(default_factory=list)
    category_paths: list[str] = Field(default_factory=list, alias="categoryPaths")


class EnrichmentOutcome(BaseModel):
    index: int
    product_id: Optional[int | str] = None
    product: Optional[EnrichedProduct] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchEnrichment(BaseModel):
    correlation_id: Optional[str] = None
    outcomes: list[EnrichmentOutcome] = Field(default_factory=list)

    @property
    def products(self) -> list[EnrichedProduct]:
        return [outcome.product for outcome in self.outcomes if outcome.product is not None]

    @property
    def failures(self) -> list[EnrichmentOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


class PathMatch(BaseModel):
    kind: Optional[Literal["category", "product"]] = None
    path: str
    category: Optional[CategoryWithPath] = None
    product: Optional[EnrichedProduct] = None

    @property
    def matched(self) -> bool:
        return self.kind is not None
