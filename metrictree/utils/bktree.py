from __future__ import annotations

import logging
import threading
from typing import Dict, Generic, Hashable, Iterable, Iterator, List, Optional, Set, Tuple, TypeVar

from .distance import Comparator, DistanceFunction, Number, from_comparator
from .logging_config import get_logger

logger = get_logger(__name__)


ElementT = TypeVar("ElementT", bound=Hashable)


class InvalidInputError(ValueError):
    """Raised for arguments a metric tree cannot be built or queried with."""


class _MetricNode(Generic[ElementT]):
    """A single node within a metric tree."""

    __slots__ = ("value", "children")

    def __init__(self, value: ElementT):
        self.value: ElementT = value
        self.children: Dict[Number, "_MetricNode[ElementT]"] = {}

    def attach(self, distance: Number, value: ElementT) -> None:
        # Searches iterate without the lock, so swap in a new mapping instead of mutating.
        children = dict(self.children)
        children[distance] = _MetricNode(value)
        self.children = children


class MetricTree(Generic[ElementT]):
    """
    A BK-tree: every child of a node is keyed by its distance to that node.

    Searches skip every child whose key falls outside
    ``[max(0, d - radius), d + radius]``, where ``d`` is the distance from the
    node to the query. That is only sound when the distance function is a
    metric; a function breaking symmetry or the triangle inequality makes
    searches silently miss elements.

    Elements must be hashable and must not change after insertion.
    """

    def __init__(self, distance_func: DistanceFunction, root: Optional[ElementT] = None):
        self._distance = distance_func
        self._lock = threading.Lock()
        self._root: Optional[_MetricNode[ElementT]] = None
        self._size = 0

        if root is not None:
            self.insert(root)

    @classmethod
    def from_comparator(cls, comparator: Comparator, root: Optional[ElementT] = None) -> "MetricTree[ElementT]":
        """Create a tree whose distance is ``|comparator(x, y)|``."""
        return cls(from_comparator(comparator), root)

    @property
    def distance_func(self) -> DistanceFunction:
        return self._distance

    @property
    def root(self) -> Optional[ElementT]:
        return self._root.value if self._root is not None else None

    def insert(self, element: ElementT) -> bool:
        """
        Insert an element.

        Returns True when the element was added, False when some node on its
        insertion path is at distance 0 from it (the tree is left unchanged).
        """
        if element is None:
            raise InvalidInputError("None cannot be stored in a metric tree")

        with self._lock:
            if self._root is None:
                self._root = _MetricNode(element)
                self._size += 1
                return True

            node = self._root
            while True:
                distance = self._distance(node.value, element)
                if distance == 0:
                    return False

                child = node.children.get(distance)
                if child is None:
                    node.attach(distance, element)
                    self._size += 1
                    return True

                node = child

    def update(self, elements: Iterable[ElementT]) -> int:
        """Insert every element in order; return how many were new."""
        return sum(1 for element in elements if self.insert(element))

    def search_within(self, query: ElementT, radius: Number) -> Set[ElementT]:
        """All elements at distance ``<= radius`` from ``query``."""
        self._check_bound("radius", radius)
        return {value for value, _ in self._matches(query, radius, exact=False)}

    def search_at(self, query: ElementT, distance: Number) -> Set[ElementT]:
        """All elements at distance exactly ``distance`` from ``query``."""
        self._check_bound("distance", distance)
        return {value for value, _ in self._matches(query, distance, exact=True)}

    def search(self, query: ElementT, radius: Number) -> List[Tuple[ElementT, Number]]:
        """Elements within ``radius`` paired with their distance, closest first."""
        self._check_bound("radius", radius)
        return sorted(self._matches(query, radius, exact=False), key=lambda match: match[1])

    def exists_within(self, query: ElementT, radius: Number) -> bool:
        self._check_bound("radius", radius)
        return next(self._matches(query, radius, exact=False), None) is not None

    def exists_at(self, query: ElementT, distance: Number) -> bool:
        self._check_bound("distance", distance)
        return next(self._matches(query, distance, exact=True), None) is not None

    def height(self) -> int:
        """Number of levels; 1 for a lone root and 0 for an empty tree."""
        height = 0
        level = [self._root] if self._root is not None else []
        while level:
            height += 1
            level = [child for node in level for child in node.children.values()]
        return height

    def child_count(self) -> int:
        """Number of direct children of the root."""
        return len(self._root.children) if self._root is not None else 0

    def dump(self) -> str:
        """Indented tree shape, one node per line, children labelled by their distance key."""
        if self._root is None:
            return "[]"

        lines: List[str] = []
        self._dump_node(self._root, None, 0, lines)
        return "\n".join(lines)

    def _dump_node(self, node: _MetricNode[ElementT], key: Optional[Number], depth: int, lines: List[str]) -> None:
        label = f"[{node.value!r}]" if key is None else f"({key}) [{node.value!r}]"
        lines.append("    " * depth + label)
        children = node.children
        for child_key in sorted(children):
            self._dump_node(children[child_key], child_key, depth + 1, lines)

    def _matches(self, query: ElementT, bound: Number, exact: bool) -> Iterator[Tuple[ElementT, Number]]:
        root = self._root
        if root is None:
            return

        stack = [root]
        while stack:
            node = stack.pop()
            distance = self._distance(node.value, query)

            if (distance == bound) if exact else (distance <= bound):
                yield node.value, distance

            lower = max(distance - bound, 0)
            upper = distance + bound

            for child_distance, child in node.children.items():
                if lower <= child_distance <= upper:
                    stack.append(child)

    @staticmethod
    def _check_bound(name: str, value: Number) -> None:
        # NaN fails every comparison, so test for the accepted range
        if not value >= 0:
            raise InvalidInputError(f"{name} must be non-negative, got {value!r}")

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[ElementT]:
        stack = [self._root] if self._root is not None else []
        while stack:
            node = stack.pop()
            yield node.value
            stack.extend(node.children.values())

    def __contains__(self, element: object) -> bool:
        return self.exists_at(element, 0)

    def __str__(self) -> str:
        return f"height:{self.height()}\n{self.dump()}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(size={self._size}, height={self.height()})"


def build(elements: Iterable[ElementT], distance_func: DistanceFunction) -> MetricTree[ElementT]:
    """
    Build a tree by inserting ``elements`` in iteration order.

    Raises InvalidInputError for an empty collection.
    """
    items = list(elements)
    if not items:
        raise InvalidInputError("cannot build a metric tree from an empty collection")

    tree: MetricTree[ElementT] = MetricTree(distance_func)
    inserted = tree.update(items)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Built metric tree: %d elements, %d duplicates skipped, height %d",
            inserted, len(items) - inserted, tree.height(),
        )
    return tree


def build_from_comparator(elements: Iterable[ElementT], comparator: Comparator) -> MetricTree[ElementT]:
    """Like build(), with the distance ``|comparator(x, y)|``."""
    return build(elements, from_comparator(comparator))
