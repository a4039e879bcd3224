"""
Possible m-connecting paths and Possible-D-SEP in partially oriented graphs.

A path between x and y is possibly m-connecting given Z when every
intermediate node w passes:
    - a definite collider passes iff w is in the closure of Z
      (Z together with all ancestors of Z over committed directed edges);
    - any other node passes iff w is not in Z, or w is in Z but the triple
      is not underlined and both incident edges are o-o (so w could still
      turn out to be a collider).
"""

from collections import deque
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Iterator, Optional, Set, Tuple

from .graph import Graph


@dataclass(frozen=True)
class MConnectingPath:
    path: Tuple[str, ...]
    conditions: FrozenSet[str]

    def __len__(self):
        return len(self.path) - 1

    def __str__(self):
        return " .. ".join(self.path)


def conditioning_closure(graph: Graph, z: Iterable[str]) -> Set[str]:
    """Z plus every ancestor of Z (explicit worklist, no recursion)."""
    return graph.ancestors(z)


def _is_open(graph: Graph, a: str, b: str, c: str) -> bool:
    edge_ab = graph.get_edge(a, b)
    edge_bc = graph.get_edge(b, c)
    return edge_ab.is_nondirected() and edge_bc.is_nondirected()


def _passes(graph: Graph, prev: str, w: str, nxt: str, z: FrozenSet[str], closure: Set[str]) -> bool:
    if graph.is_def_collider(prev, w, nxt):
        return w in closure
    if w not in z:
        return True
    return not graph.is_underline_triple(prev, w, nxt) and _is_open(graph, prev, w, nxt)


def iter_m_connecting_paths(
    graph: Graph, x: str, y: str, z: Iterable[str], length: Optional[int] = None
) -> Iterator[MConnectingPath]:
    """
    Lazily enumerate simple possibly m-connecting paths from x to y given z.

    With ``length`` set, only paths with exactly that many edges are
    produced. Adjacent x and y yield the single path (x, y).
    """
    z = frozenset(z)
    if x == y or not graph.contains_node(x) or not graph.contains_node(y):
        return
    if any(not graph.contains_node(w) for w in z):
        return
    if graph.is_adjacent(x, y):
        yield MConnectingPath((x, y), z)
        return

    closure = conditioning_closure(graph, z)
    stack = [(x,)]
    while stack:
        path = stack.pop()
        current = path[-1]
        # reversed so paths come out in node order
        for nxt in reversed(graph.adjacent_nodes(current)):
            if nxt in path:
                continue
            if len(path) >= 2 and not _passes(graph, path[-2], current, nxt, z, closure):
                continue
            if nxt == y:
                if length is None or len(path) == length:
                    yield MConnectingPath(path + (nxt,), z)
                continue
            if length is not None and len(path) >= length:
                continue
            stack.append(path + (nxt,))


def find_m_connecting_paths(graph: Graph, x: str, y: str, z: Iterable[str]) -> Tuple[MConnectingPath, ...]:
    return tuple(iter_m_connecting_paths(graph, x, y, z))


def find_m_connecting_paths_of_length(
    graph: Graph, x: str, y: str, z: Iterable[str], length: int
) -> Tuple[MConnectingPath, ...]:
    return tuple(iter_m_connecting_paths(graph, x, y, z, length=length))


def is_m_separated(graph: Graph, x: str, y: str, z: Iterable[str]) -> bool:
    return next(iter_m_connecting_paths(graph, x, y, z), None) is None


# --------------------------------------------------------------------
# Possible-D-SEP
# --------------------------------------------------------------------


def possible_dsep(graph: Graph, x: str, y: Optional[str] = None, max_path_length: int = -1) -> Set[str]:
    """
    Possible-D-SEP(x, y): nodes reachable from x along a path on which every
    intermediate node is a definite collider or forms a triangle with its
    path neighbors. Paths longer than ``max_path_length`` edges are not
    followed (-1 for unbounded). x and y are excluded from the result.
    """
    result = set()
    visited = set()
    queue = deque()
    for b in graph.adjacent_nodes(x):
        queue.append((x, b, 1))
        visited.add((x, b))

    while queue:
        a, b, dist = queue.popleft()
        result.add(b)
        if max_path_length != -1 and dist >= max_path_length:
            continue
        for c in graph.adjacent_nodes(b):
            if c == a or c == x:
                continue
            if (b, c) in visited:
                continue
            if graph.is_def_collider(a, b, c) or graph.is_adjacent(a, c):
                visited.add((b, c))
                queue.append((b, c, dist + 1))

    result.discard(x)
    if y is not None:
        result.discard(y)
    return result
