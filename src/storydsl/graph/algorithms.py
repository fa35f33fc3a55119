"""Shared graph algorithms.

Pure functions over an implicit graph given as a start node and a
neighbour lookup. Used by the parser (reachability over DSL choices)
and the serializer (card ordering over persisted choices).
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Hashable, Iterable, Iterator
from typing import TypeVar

NodeT = TypeVar("NodeT", bound=Hashable)


def iter_breadth_first(
    start: NodeT | None,
    neighbors: Callable[[NodeT], Iterable[NodeT]],
) -> Iterator[NodeT]:
    """Yield nodes reachable from ``start`` in breadth-first order.

    Each node is yielded once. Neighbours are expanded in the order the
    lookup returns them, so the traversal is deterministic whenever the
    lookup is.

    Args:
        start: Node to begin from. ``None`` yields nothing.
        neighbors: Returns the outgoing neighbours of a node. Nodes the
            lookup knows nothing about should return an empty iterable.

    Yields:
        Visited nodes, ``start`` first.
    """
    if start is None:
        return

    visited: set[NodeT] = set()
    queue: deque[NodeT] = deque([start])
    while queue:
        node = queue.popleft()
        if node in visited:
            continue
        visited.add(node)
        yield node
        for neighbor in neighbors(node):
            if neighbor not in visited:
                queue.append(neighbor)


def breadth_first_order(
    start: NodeT | None,
    neighbors: Callable[[NodeT], Iterable[NodeT]],
) -> list[NodeT]:
    """Return the breadth-first visit order from ``start`` as a list."""
    return list(iter_breadth_first(start, neighbors))


def reachable_from(
    start: NodeT | None,
    neighbors: Callable[[NodeT], Iterable[NodeT]],
) -> set[NodeT]:
    """Return the set of nodes reachable from ``start`` (inclusive)."""
    return set(iter_breadth_first(start, neighbors))
