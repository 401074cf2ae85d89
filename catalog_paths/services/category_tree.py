from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from catalog_paths.schemas import CategoryNodeRead, CategoryPath, PathSegment

from . import exceptions
from .category_store import CategoryRecord

logger = logging.getLogger(__name__)


@dataclass
class CategoryNode:
    id: int
    name: str
    slug: str
    parent_id: Optional[int] = None
    level: int = 0
    children: list["CategoryNode"] = field(default_factory=list)

    def to_schema(self) -> CategoryNodeRead:
        return CategoryNodeRead(
            id=self.id,
            name=self.name,
            slug=self.slug,
            parent_id=self.parent_id,
            level=self.level,
            children=[child.to_schema() for child in self.children],
        )


class CategoryTree:
    """Forest of categories indexed by id.

    Nodes only point down to their children; the way up is ``parent_id``
    looked up in the index, which keeps the structure acyclic.
    """

    def __init__(self, roots: list[CategoryNode], index: dict[int, CategoryNode]):
        self.roots = roots
        self._index = index

    @classmethod
    def build(cls, records: Iterable[CategoryRecord]) -> "CategoryTree":
        index: dict[int, CategoryNode] = {}
        for record in records:
            index[record.id] = CategoryNode(
                id=record.id,
                name=record.name,
                slug=record.slug,
                parent_id=record.parent_id,
                level=-1,
            )

        roots: list[CategoryNode] = []
        for node in index.values():
            parent = index.get(node.parent_id) if node.parent_id is not None else None
            if parent is None:
                # Parent outside this set: the node heads its own subtree here.
                roots.append(node)
            else:
                parent.children.append(node)

        reached = cls._assign_levels(roots)
        if reached != len(index):
            stranded = sorted(node_id for node_id, node in index.items() if node.level < 0)
            logger.error("Category cycle among %s while building tree", stranded)
            raise exceptions.CycleDetected(
                "Categories form a parent cycle",
                category_id=stranded[0] if stranded else None,
                chain=stranded,
            )
        return cls(roots, index)

    @staticmethod
    def _assign_levels(roots: list[CategoryNode]) -> int:
        """Set levels breadth-first and return how many nodes were reached.

        Nodes start at level -1; any still there afterwards sit on a cycle.
        """

        for root in roots:
            root.level = 0
        queue = deque(roots)
        reached = 0
        while queue:
            node = queue.popleft()
            reached += 1
            for child in node.children:
                child.level = node.level + 1
                queue.append(child)
        return reached

    def get(self, category_id: int) -> CategoryNode | None:
        return self._index.get(category_id)

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._index

    def __len__(self) -> int:
        return len(self._index)

    def iter_nodes(self) -> Iterator[CategoryNode]:
        """Depth-first, pre-order walk over every node."""

        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def descendant_ids(self, category_id: int, *, include_self: bool = True) -> set[int]:
        node = self._index.get(category_id)
        if node is None:
            return set()
        found: set[int] = {node.id} if include_self else set()
        stack = list(node.children)
        while stack:
            current = stack.pop()
            found.add(current.id)
            stack.extend(current.children)
        return found

    def select(self, category_id: int, selection: Iterable[int] = ()) -> set[int]:
        """Return ``selection`` plus the category and all of its descendants."""

        return set(selection) | self.descendant_ids(category_id)

    def deselect(self, category_id: int, selection: Iterable[int] = ()) -> set[int]:
        """Return ``selection`` minus the category and all of its descendants."""

        return set(selection) - self.descendant_ids(category_id)

    def toggle(self, category_id: int, selection: Iterable[int] = ()) -> set[int]:
        current = set(selection)
        if category_id in current:
            return self.deselect(category_id, current)
        return self.select(category_id, current)

    def paths(self) -> dict[int, CategoryPath]:
        """Paths for every node, computed from the in-memory tree.

        A node whose parent was left out of the input set is a root here, so
        its path starts at that node.
        """

        result: dict[int, CategoryPath] = {}
        stack: list[tuple[CategoryNode, list[PathSegment]]] = [(root, []) for root in self.roots]
        while stack:
            node, ancestors = stack.pop()
            segments = ancestors + [PathSegment(id=node.id, name=node.name, slug=node.slug)]
            result[node.id] = CategoryPath.from_segments(segments)
            stack.extend((child, segments) for child in node.children)
        return result

    def to_schema(self) -> list[CategoryNodeRead]:
        return [root.to_schema() for root in self.roots]
