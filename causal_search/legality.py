"""
Legality checks for finished graphs.

The checks run cheapest first and stop at the first violation, so a
report carries one actionable counterexample rather than a full list.
"""

from dataclasses import dataclass
from itertools import combinations
from typing import Optional

import networkx as nx

from .graph import Graph, CIRCLE, ARROW, TAIL
from .orientation import find_discriminating_path
from .sepsets import SepsetMap


@dataclass(frozen=True)
class LegalityReport:
    legal: bool
    reason: str = ""

    def __bool__(self):
        return self.legal

    def __str__(self):
        return "legal" if self.legal else f"illegal: {self.reason}"


_LEGAL = LegalityReport(True, "")


def _directed_subgraph(graph: Graph) -> nx.DiGraph:
    D = nx.DiGraph()
    D.add_nodes_from(graph.node_names())
    for edge in graph.edges():
        if edge.is_directed():
            src, dst = (edge.node1, edge.node2) if edge.endpoint2 == ARROW else (edge.node2, edge.node1)
            D.add_edge(src, dst)
    return D


def _cycle_report(graph: Graph) -> Optional[LegalityReport]:
    if not graph.exists_directed_cycle():
        return None
    cycle = nx.find_cycle(_directed_subgraph(graph))
    rendered = " --> ".join([u for u, _ in cycle] + [cycle[0][0]])
    return LegalityReport(False, f"directed cycle: {rendered}")


def _check_unshielded_triples(graph: Graph, sepsets: SepsetMap) -> Optional[LegalityReport]:
    for y in graph.node_names():
        for x, z in combinations(graph.adjacent_nodes(y), 2):
            if graph.is_adjacent(x, z) or graph.is_ambiguous_triple(x, y, z):
                continue
            sepset = sepsets.get(x, z)
            if sepset is None:
                continue
            if graph.is_def_collider(x, y, z) and y in sepset:
                return LegalityReport(
                    False, f"collider <{x}, {y}, {z}> but {y} is in sepset({x}, {z})"
                )
            if y not in sepset and (graph.endpoint(x, y) == TAIL or graph.endpoint(z, y) == TAIL):
                return LegalityReport(
                    False, f"non-collider <{x}, {y}, {z}> but {y} is not in sepset({x}, {z})"
                )
    return None


def _check_discriminating_paths(graph: Graph, sepsets: SepsetMap) -> Optional[LegalityReport]:
    for b in graph.node_names():
        for c in graph.adjacent_nodes(b):
            for a in graph.adjacent_nodes(b):
                if a == c or graph.endpoint(b, a) != ARROW or not graph.is_parent_of(a, c):
                    continue
                path = find_discriminating_path(graph, a, b, c)
                if path is None:
                    continue
                sepset = sepsets.get(path[0], c)
                if sepset is None:
                    continue
                rendered = ", ".join(path)
                if b in sepset and graph.is_def_collider(a, b, c):
                    return LegalityReport(
                        False, f"discriminating path <{rendered}>: {b} is in the sepset but is a collider"
                    )
                if b not in sepset and graph.endpoint(c, b) == TAIL:
                    return LegalityReport(
                        False, f"discriminating path <{rendered}>: {b} is not in the sepset but is a non-collider"
                    )
    return None


def is_legal_pag(graph: Graph, sepsets: Optional[SepsetMap] = None,
                 allow_selection_bias: bool = False) -> LegalityReport:
    """
    Checks, in order:
    1. no undirected (tail-tail) edge, unless selection bias is allowed
    2. no directed cycle, then no almost directed cycle
    3. unshielded colliders / non-colliders agree with the recorded sepsets
    4. discriminating paths are oriented consistently with the sepsets
    Checks 3 and 4 need ``sepsets``.
    """
    if not allow_selection_bias:
        for edge in graph.edges():
            if edge.is_undirected():
                return LegalityReport(False, f"undirected edge present: {edge}")

    report = _cycle_report(graph)
    if report is not None:
        return report

    for edge in graph.edges():
        if not edge.is_bidirected():
            continue
        a, b = edge.node1, edge.node2
        if graph.exists_directed_path(a, b) or graph.exists_directed_path(b, a):
            return LegalityReport(False, f"almost directed cycle: {edge} with a directed path between them")

    if sepsets is None:
        return _LEGAL

    report = _check_unshielded_triples(graph, sepsets)
    if report is not None:
        return report

    report = _check_discriminating_paths(graph, sepsets)
    if report is not None:
        return report
    return _LEGAL


def check_cpdag(graph: Graph) -> LegalityReport:
    """No circle endpoint left and no directed cycle."""
    for edge in graph.edges():
        if CIRCLE in (edge.endpoint1, edge.endpoint2):
            return LegalityReport(False, f"circle endpoint present: {edge}")
    report = _cycle_report(graph)
    if report is not None:
        return report
    return _LEGAL
