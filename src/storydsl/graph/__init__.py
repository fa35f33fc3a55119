"""Graph helpers shared by the DSL parser and serializer."""

from storydsl.graph.algorithms import breadth_first_order, iter_breadth_first, reachable_from

__all__ = [
    "breadth_first_order",
    "iter_breadth_first",
    "reachable_from",
]
