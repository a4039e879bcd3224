import numpy as np
import networkx as nx
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .errors import GraphError


# Endpoint mark codes (PAG marks)
NULL = 0      # no edge
CIRCLE = 1    # o
ARROW = 2     # >
TAIL = 3      # -

MARK_NAMES = {NULL: "null", CIRCLE: "circle", ARROW: "arrow", TAIL: "tail"}

_LEFT_SYMBOL = {TAIL: "-", ARROW: "<", CIRCLE: "o"}
_RIGHT_SYMBOL = {TAIL: "-", ARROW: ">", CIRCLE: "o"}


class NodeType(Enum):
    MEASURED = "measured"
    LATENT = "latent"
    ERROR = "error"
    SELECTION = "selection"


@dataclass(frozen=True)
class Node:
    name: str
    node_type: NodeType = NodeType.MEASURED

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class Edge:
    """
    Edge node1 *-* node2. endpoint1 is the mark at node1, endpoint2 the
    mark at node2; the pairing is never swapped without swapping the nodes.
    """
    node1: str
    node2: str
    endpoint1: int
    endpoint2: int

    def endpoint_at(self, name: str) -> int:
        if name == self.node1:
            return self.endpoint1
        if name == self.node2:
            return self.endpoint2
        raise GraphError(f"{name} is not an endpoint of {self}")

    def other(self, name: str) -> str:
        if name == self.node1:
            return self.node2
        if name == self.node2:
            return self.node1
        raise GraphError(f"{name} is not an endpoint of {self}")

    def reverse(self) -> "Edge":
        return Edge(self.node2, self.node1, self.endpoint2, self.endpoint1)

    def is_directed(self) -> bool:
        return {self.endpoint1, self.endpoint2} == {TAIL, ARROW}

    def is_undirected(self) -> bool:
        return self.endpoint1 == TAIL and self.endpoint2 == TAIL

    def is_bidirected(self) -> bool:
        return self.endpoint1 == ARROW and self.endpoint2 == ARROW

    def is_nondirected(self) -> bool:
        return self.endpoint1 == CIRCLE and self.endpoint2 == CIRCLE

    def is_partially_oriented(self) -> bool:
        return {self.endpoint1, self.endpoint2} == {CIRCLE, ARROW}

    def points_towards(self, name: str) -> bool:
        """True for a directed edge whose arrowhead is at ``name``."""
        return self.is_directed() and self.endpoint_at(name) == ARROW

    def __str__(self):
        left = _LEFT_SYMBOL.get(self.endpoint1, "?")
        right = _RIGHT_SYMBOL.get(self.endpoint2, "?")
        return f"{self.node1} {left}-{right} {self.node2}"


@dataclass(frozen=True)
class Triple:
    """Unordered triple <x, y, z> centred at y; <x, y, z> == <z, y, x>."""
    x: str
    y: str
    z: str

    def __post_init__(self):
        if self.x > self.z:
            x, z = self.x, self.z
            object.__setattr__(self, "x", z)
            object.__setattr__(self, "z", x)

    def __str__(self):
        return f"<{self.x}, {self.y}, {self.z}>"


class TripleMark(Enum):
    COLLIDER = "collider"
    NONCOLLIDER = "noncollider"   # underline
    AMBIGUOUS = "ambiguous"       # dotted underline


class Graph:
    """
    Mixed graph over named nodes with independent endpoint marks.

    We store a dense endpoint-mark matrix M where M[i, j] is the mark
    seen at j on edge (i, j):
        0: NULL   (no edge)
        1: CIRCLE (o)
        2: ARROW  (>)
        3: TAIL   (-)
    An edge exists iff M[i, j] != NULL (equivalently M[j, i] != NULL).
    A per-node adjacency index is kept alongside M so neighbor queries do
    not scan whole rows. Triple marks (collider / underline / dotted
    underline) are part of the graph state.
    """

    def __init__(self, nodes: Iterable = ()):
        self._nodes: List[Node] = []
        self._index: Dict[str, int] = {}
        for node in nodes:
            node = node if isinstance(node, Node) else Node(str(node))
            if node.name in self._index:
                raise GraphError(f"Duplicate node: {node.name}")
            self._index[node.name] = len(self._nodes)
            self._nodes.append(node)
        n = len(self._nodes)
        self.M = np.zeros((n, n), dtype=int)
        self._adj: List[Set[int]] = [set() for _ in range(n)]
        self._triples: Dict[Triple, TripleMark] = {}

    # ----- nodes -----

    def _ix(self, node) -> int:
        name = node.name if isinstance(node, Node) else node
        try:
            return self._index[name]
        except KeyError:
            raise GraphError(f"Unknown node: {name}") from None

    def add_node(self, node) -> Node:
        node = node if isinstance(node, Node) else Node(str(node))
        if node.name in self._index:
            raise GraphError(f"Duplicate node: {node.name}")
        self._index[node.name] = len(self._nodes)
        self._nodes.append(node)
        self.M = np.pad(self.M, ((0, 1), (0, 1)), constant_values=NULL)
        self._adj.append(set())
        return node

    def remove_node(self, name: str):
        i = self._ix(name)
        self.M = np.delete(np.delete(self.M, i, axis=0), i, axis=1)
        del self._nodes[i]
        self._index = {node.name: k for k, node in enumerate(self._nodes)}
        self._adj = [set(np.flatnonzero(row).tolist()) for row in self.M]
        self._triples = {
            t: mark for t, mark in self._triples.items() if name not in (t.x, t.y, t.z)
        }

    def contains_node(self, name: str) -> bool:
        name = name.name if isinstance(name, Node) else name
        return name in self._index

    def get_node(self, name: str) -> Node:
        return self._nodes[self._ix(name)]

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes)

    def node_names(self) -> List[str]:
        return [node.name for node in self._nodes]

    def __contains__(self, name) -> bool:
        return self.contains_node(name)

    def __len__(self):
        return len(self._nodes)

    # ----- edges -----

    def add_edge(self, a: str, b: str, mark_a: int, mark_b: int):
        i, j = self._ix(a), self._ix(b)
        if i == j:
            raise GraphError(f"Self loops are not allowed: {a}")
        if self.M[i, j] != NULL:
            raise GraphError(f"{a} and {b} are already adjacent: {self.get_edge(a, b)}")
        if mark_a not in _LEFT_SYMBOL or mark_b not in _RIGHT_SYMBOL:
            raise GraphError(f"Invalid endpoint marks ({mark_a}, {mark_b})")
        self.M[i, j] = mark_b
        self.M[j, i] = mark_a
        self._adj[i].add(j)
        self._adj[j].add(i)

    def add_directed_edge(self, a: str, b: str):
        """a --> b"""
        self.add_edge(a, b, TAIL, ARROW)

    def add_undirected_edge(self, a: str, b: str):
        """a --- b"""
        self.add_edge(a, b, TAIL, TAIL)

    def add_nondirected_edge(self, a: str, b: str):
        """a o-o b"""
        self.add_edge(a, b, CIRCLE, CIRCLE)

    def add_bidirected_edge(self, a: str, b: str):
        """a <-> b"""
        self.add_edge(a, b, ARROW, ARROW)

    def add_partially_oriented_edge(self, a: str, b: str):
        """a o-> b"""
        self.add_edge(a, b, CIRCLE, ARROW)

    def remove_edge(self, a: str, b: str):
        i, j = self._ix(a), self._ix(b)
        if self.M[i, j] == NULL:
            raise GraphError(f"No edge between {a} and {b}")
        self.M[i, j] = NULL
        self.M[j, i] = NULL
        self._adj[i].discard(j)
        self._adj[j].discard(i)
        pair = {a, b}
        self._triples = {
            t: mark for t, mark in self._triples.items()
            if {t.x, t.y} != pair and {t.y, t.z} != pair
        }

    def get_edge(self, a: str, b: str) -> Optional[Edge]:
        i, j = self._ix(a), self._ix(b)
        if self.M[i, j] == NULL:
            return None
        return Edge(self._nodes[i].name, self._nodes[j].name, int(self.M[j, i]), int(self.M[i, j]))

    def edges(self) -> List[Edge]:
        result = []
        n = len(self._nodes)
        for i in range(n):
            for j in sorted(self._adj[i]):
                if j > i:
                    result.append(
                        Edge(self._nodes[i].name, self._nodes[j].name, int(self.M[j, i]), int(self.M[i, j]))
                    )
        return result

    def num_edges(self) -> int:
        return sum(len(s) for s in self._adj) // 2

    # ----- adjacency helpers -----

    def is_adjacent(self, a: str, b: str) -> bool:
        return self.M[self._ix(a), self._ix(b)] != NULL

    def adjacent_nodes(self, name: str) -> List[str]:
        return [self._nodes[j].name for j in sorted(self._adj[self._ix(name)])]

    def degree(self, name: str) -> int:
        return len(self._adj[self._ix(name)])

    def endpoint(self, a: str, b: str) -> int:
        """Mark at b on edge a *-* b (NULL when not adjacent)."""
        return int(self.M[self._ix(a), self._ix(b)])

    def set_endpoint(self, a: str, b: str, mark: int):
        """
        Set the mark at b on the existing edge a *-* b; the mark at a is untouched.

        This is Tetrad's ``setEndpoint(from, to, mark)`` order, which names the
        far end. ``set_mark_at(node, toward, mark)`` takes the near end first.
        """
        i, j = self._ix(a), self._ix(b)
        if self.M[i, j] == NULL:
            raise GraphError(f"No edge between {a} and {b}")
        if mark not in _RIGHT_SYMBOL:
            raise GraphError(f"Invalid endpoint mark {mark}; use remove_edge to delete edges")
        self.M[i, j] = mark

    def set_mark_at(self, node: str, toward: str, mark: int):
        """Set the mark at ``node``'s end of the edge node *-* toward."""
        self.set_endpoint(toward, node, mark)

    def reorient_all_with(self, mark: int):
        """Keep adjacencies but set every endpoint to ``mark``."""
        self.M[self.M != NULL] = mark

    # ----- parents / children -----

    def _children_ix(self, i: int) -> List[int]:
        return [j for j in sorted(self._adj[i]) if self.M[i, j] == ARROW and self.M[j, i] == TAIL]

    def _parents_ix(self, i: int) -> List[int]:
        return [j for j in sorted(self._adj[i]) if self.M[j, i] == ARROW and self.M[i, j] == TAIL]

    def parents(self, name: str) -> List[str]:
        return [self._nodes[j].name for j in self._parents_ix(self._ix(name))]

    def children(self, name: str) -> List[str]:
        return [self._nodes[j].name for j in self._children_ix(self._ix(name))]

    def is_parent_of(self, a: str, b: str) -> bool:
        i, j = self._ix(a), self._ix(b)
        return self.M[i, j] == ARROW and self.M[j, i] == TAIL

    def is_directed_from_to(self, a: str, b: str) -> bool:
        return self.is_parent_of(a, b)

    # ----- helpers for collider / triangle checks -----

    def is_def_collider(self, a: str, b: str, c: str) -> bool:
        """
        a *-> b <-* c  (arrowheads into b from both sides)
        """
        if not (self.is_adjacent(a, b) and self.is_adjacent(b, c)):
            return False
        return self.endpoint(a, b) == ARROW and self.endpoint(c, b) == ARROW

    def is_def_noncollider(self, a: str, b: str, c: str) -> bool:
        if not (self.is_adjacent(a, b) and self.is_adjacent(b, c)):
            return False
        if self.endpoint(a, b) == TAIL or self.endpoint(c, b) == TAIL:
            return True
        return (
            self.endpoint(a, b) == CIRCLE
            and self.endpoint(c, b) == CIRCLE
            and not self.is_adjacent(a, c)
            and self.is_underline_triple(a, b, c)
        )

    def forms_triangle(self, a: str, b: str, c: str) -> bool:
        return self.is_adjacent(a, b) and self.is_adjacent(b, c) and self.is_adjacent(a, c)

    def is_unshielded(self, a: str, b: str, c: str) -> bool:
        return (
            a != c
            and self.is_adjacent(a, b)
            and self.is_adjacent(b, c)
            and not self.is_adjacent(a, c)
        )

    # ----- directed paths -----

    def exists_directed_cycle(self) -> bool:
        """DFS over directed edges with an explicit stack."""
        n = len(self._nodes)
        # 0: unvisited, 1: on the current path, 2: finished
        state = [0] * n
        for root in range(n):
            if state[root]:
                continue
            state[root] = 1
            stack = [(root, iter(self._children_ix(root)))]
            while stack:
                node, children = stack[-1]
                for child in children:
                    if state[child] == 1:
                        return True
                    if state[child] == 0:
                        state[child] = 1
                        stack.append((child, iter(self._children_ix(child))))
                        break
                else:
                    state[node] = 2
                    stack.pop()
        return False

    def exists_directed_path(self, a: str, b: str) -> bool:
        """True if there is a directed path a --> ... --> b of length >= 1."""
        target = self._ix(b)
        seen = set()
        stack = self._children_ix(self._ix(a))
        while stack:
            node = stack.pop()
            if node == target:
                return True
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self._children_ix(node))
        return False

    def ancestors(self, names: Iterable[str]) -> Set[str]:
        """The given nodes plus everything with a directed path into them."""
        seen = set()
        stack = [self._ix(name) for name in names]
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self._parents_ix(node))
        return {self._nodes[k].name for k in seen}

    def is_ancestor_of(self, a: str, b: str) -> bool:
        return a in self.ancestors([b])

    # ----- triple bookkeeping -----

    def mark_triple(self, x: str, y: str, z: str, mark: TripleMark):
        if not (self.is_adjacent(x, y) and self.is_adjacent(y, z)):
            raise GraphError(f"<{x}, {y}, {z}> is not a triple in this graph")
        self._triples[Triple(x, y, z)] = mark

    def unmark_triple(self, x: str, y: str, z: str):
        self._triples.pop(Triple(x, y, z), None)

    def triple_mark(self, x: str, y: str, z: str) -> Optional[TripleMark]:
        return self._triples.get(Triple(x, y, z))

    def triples(self, mark: Optional[TripleMark] = None) -> List[Triple]:
        found = [t for t, m in self._triples.items() if mark is None or m == mark]
        return sorted(found, key=lambda t: (t.y, t.x, t.z))

    def is_underline_triple(self, x: str, y: str, z: str) -> bool:
        return self.triple_mark(x, y, z) == TripleMark.NONCOLLIDER

    def is_ambiguous_triple(self, x: str, y: str, z: str) -> bool:
        return self.triple_mark(x, y, z) == TripleMark.AMBIGUOUS

    # ----- derived graphs -----

    def copy(self) -> "Graph":
        new_graph = Graph(self._nodes)
        new_graph.M = self.M.copy()
        new_graph._adj = [set(s) for s in self._adj]
        new_graph._triples = dict(self._triples)
        return new_graph

    def subgraph(self, names: Iterable[str]) -> "Graph":
        """Induced subgraph over ``names``; marks and triple marks are preserved."""
        keep = sorted({self._ix(name) for name in names})
        sub = Graph([self._nodes[k] for k in keep])
        sub.M = self.M[np.ix_(keep, keep)].copy()
        sub._adj = [set(np.flatnonzero(row).tolist()) for row in sub.M]
        kept = set(sub.node_names())
        for t, mark in self._triples.items():
            if {t.x, t.y, t.z} <= kept:
                sub._triples[t] = mark
        return sub

    def to_networkx(self) -> nx.Graph:
        """Undirected networkx view; endpoint marks are stored as edge attributes."""
        G = nx.Graph()
        for node in self._nodes:
            G.add_node(node.name, node_type=node.node_type.value)
        for edge in self.edges():
            G.add_edge(
                edge.node1,
                edge.node2,
                endpoints={
                    edge.node1: MARK_NAMES[edge.endpoint1],
                    edge.node2: MARK_NAMES[edge.endpoint2],
                },
                label=str(edge),
            )
        return G

    def __eq__(self, other):
        if not isinstance(other, Graph):
            return NotImplemented
        return self.node_names() == other.node_names() and np.array_equal(self.M, other.M)

    __hash__ = None

    def __str__(self):
        lines = ["Graph Nodes:", ";".join(self.node_names()), "", "Graph Edges:"]
        for k, edge in enumerate(self.edges(), 1):
            lines.append(f"{k}. {edge}")
        return "\n".join(lines)

    def __repr__(self):
        return f"Graph(nodes={len(self._nodes)}, edges={self.num_edges()})"


def complete_graph(names: Iterable[str], mark: int = CIRCLE) -> Graph:
    """Complete graph over ``names`` with every endpoint set to ``mark``."""
    G = Graph(names)
    n = len(G)
    G.M[:, :] = mark
    np.fill_diagonal(G.M, NULL)
    G._adj = [set(k for k in range(n) if k != i) for i in range(n)]
    return G


def unordered_pairs(names: List[str]) -> List[Tuple[str, str]]:
    return [(names[i], names[j]) for i in range(len(names)) for j in range(i + 1, len(names))]
