from .catalog import (
    SLUG_PATTERN,
    BatchEnrichment,
    CategoryCreate,
    CategoryNodeRead,
    CategoryPath,
    CategoryRead,
    CategoryUpdate,
    CategoryWithPath,
    EnrichedCategory,
    EnrichedProduct,
    EnrichmentOutcome,
    PathMatch,
    PathSegment,
)
from .common import HealthStatus

__all__ = [
    "SLUG_PATTERN",
    "BatchEnrichment",
    "CategoryCreate",
    "CategoryNodeRead",
    "CategoryPath",
    "CategoryRead",
    "CategoryUpdate",
    "CategoryWithPath",
    "EnrichedCategory",
    "EnrichedProduct",
    "EnrichmentOutcome",
    "HealthStatus",
    "PathMatch",
    "PathSegment",
]
