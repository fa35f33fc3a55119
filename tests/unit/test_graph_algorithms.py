"""Tests for the shared breadth-first helpers."""

from __future__ import annotations

from storydsl.graph.algorithms import breadth_first_order, iter_breadth_first, reachable_from

EDGES: dict[str, list[str]] = {
    "a": ["b", "c"],
    "b": ["d"],
    "c": ["d", "a"],
    "d": [],
    "island": ["a"],
}


def _neighbors(node: str) -> list[str]:
    return EDGES.get(node, [])


class TestBreadthFirst:
    def test_level_order(self) -> None:
        assert breadth_first_order("a", _neighbors) == ["a", "b", "c", "d"]

    def test_none_start(self) -> None:
        assert breadth_first_order(None, _neighbors) == []

    def test_unknown_start_is_visited(self) -> None:
        assert breadth_first_order("zzz", _neighbors) == ["zzz"]

    def test_is_lazy(self) -> None:
        calls: list[str] = []

        def tracking(node: str) -> list[str]:
            calls.append(node)
            return _neighbors(node)

        walker = iter_breadth_first("a", tracking)
        assert next(walker) == "a"
        assert calls == []


class TestReachableFrom:
    def test_excludes_unreachable(self) -> None:
        assert reachable_from("a", _neighbors) == {"a", "b", "c", "d"}

    def test_from_leaf(self) -> None:
        assert reachable_from("d", _neighbors) == {"d"}

    def test_none_start(self) -> None:
        assert reachable_from(None, _neighbors) == set()
