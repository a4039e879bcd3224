"""
Adjacency (skeleton) search.

Starting from a complete graph, pairs are tested for independence over
conditioning sets of growing size. Each depth level reads a frozen snapshot
of the adjacencies; removals found during the level are applied only after
every pair of that level has been tested, so the outcome does not depend on
the order in which pairs are visited (or on running them in parallel).
"""

import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from joblib import Parallel, delayed

from .diagnostics import CancellationToken, Diagnostics, EventKind
from .errors import OracleFailure
from .graph import Graph, complete_graph
from .independence import IndependenceOracle
from .knowledge import Knowledge
from .mconnecting import possible_dsep
from .sepsets import SepsetMap

logger = logging.getLogger(__name__)


@dataclass
class SkeletonResult:
    graph: Graph
    sepsets: SepsetMap
    untested: List[Tuple[str, str]] = field(default_factory=list)
    complete: bool = True
    depth_reached: int = -1


@dataclass(frozen=True)
class _PairOutcome:
    x: str
    y: str
    sepset: Optional[FrozenSet[str]]
    p_value: Optional[float]
    n_tests: int
    failures: Tuple[str, ...]


def _iter_conditioning_sets(candidate_lists: Sequence[List[str]], sizes: Iterable[int]):
    """
    For each size, all subsets of each candidate list in combination order.
    A set already produced from an earlier list is not repeated.
    """
    for size in sizes:
        seen = set()
        for candidates in candidate_lists:
            for cond in combinations(candidates, size):
                key = frozenset(cond)
                if key in seen:
                    continue
                seen.add(key)
                yield cond


def _test_pair(oracle: IndependenceOracle, x: str, y: str,
               candidate_lists: Sequence[List[str]], sizes: Iterable[int]) -> _PairOutcome:
    n_tests = 0
    failures = []
    for cond in _iter_conditioning_sets(candidate_lists, sizes):
        n_tests += 1
        try:
            result = oracle.test(x, y, cond)
        except OracleFailure as exc:
            # a failed test counts as "not independent"
            failures.append(str(exc))
            continue
        if result.independent:
            return _PairOutcome(x, y, frozenset(cond), result.p_value, n_tests, tuple(failures))
    return _PairOutcome(x, y, None, None, n_tests, tuple(failures))


def _run_tests(oracle, jobs, n_jobs) -> List[_PairOutcome]:
    """jobs: (x, y, candidate_lists, sizes) tuples; results keep the job order."""
    if n_jobs is None or n_jobs == 1:
        return [_test_pair(oracle, *job) for job in jobs]
    return Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_test_pair)(oracle, *job) for job in jobs
    )


class _TestLedger:
    """Per-pair test/failure counts across levels, for the untested report."""

    def __init__(self, diagnostics: Diagnostics):
        self.diagnostics = diagnostics
        self.counts: Dict[FrozenSet[str], List[int]] = {}

    def add(self, outcome: _PairOutcome):
        counts = self.counts.setdefault(frozenset((outcome.x, outcome.y)), [0, 0])
        counts[0] += outcome.n_tests
        counts[1] += len(outcome.failures)
        for message in outcome.failures:
            self.diagnostics.record(
                EventKind.ORACLE_FAILURE, message, x=outcome.x, y=outcome.y
            )

    def untested(self, graph: Graph) -> List[Tuple[str, str]]:
        result = []
        for edge in graph.edges():
            tests, failures = self.counts.get(frozenset((edge.node1, edge.node2)), (0, 0))
            if tests > 0 and tests == failures:
                result.append((edge.node1, edge.node2))
                self.diagnostics.record(
                    EventKind.UNTESTED_EDGE,
                    f"every test of {edge.node1}-{edge.node2} failed; edge kept",
                    x=edge.node1, y=edge.node2,
                )
        return result


class AdjacencySearch:
    """
    PC-style adjacency search.

    depth:  maximum conditioning set size (-1 for unbounded)
    n_jobs: > 1 runs the pair tests of a level on joblib worker threads
    remove_doubly_forbidden: drop edges knowledge forbids in both directions
        before any test is run
    """

    def __init__(
        self,
        oracle: IndependenceOracle,
        knowledge: Optional[Knowledge] = None,
        depth: int = -1,
        n_jobs: Optional[int] = None,
        remove_doubly_forbidden: bool = False,
        diagnostics: Optional[Diagnostics] = None,
        cancel: Optional[CancellationToken] = None,
        verbose: bool = False,
    ):
        self.oracle = oracle
        self.knowledge = knowledge if knowledge is not None else Knowledge()
        self.depth = depth
        self.n_jobs = n_jobs
        self.remove_doubly_forbidden = remove_doubly_forbidden
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.cancel = cancel
        self.verbose = verbose

    def _remove_forbidden(self, graph: Graph):
        for edge in graph.edges():
            x, y = edge.node1, edge.node2
            if self.knowledge.is_forbidden_both_ways(x, y) and not self.knowledge.is_required_either_way(x, y):
                graph.remove_edge(x, y)
                self.diagnostics.record(
                    EventKind.EDGE_REMOVED,
                    f"{x}-{y} removed: forbidden in both directions",
                    x=x, y=y, reason="knowledge",
                )

    def search(self, nodes: Optional[Iterable[str]] = None,
               initial_graph: Optional[Graph] = None) -> SkeletonResult:
        names = list(nodes) if nodes is not None else self.oracle.variables
        if initial_graph is None:
            graph = complete_graph(names)
        else:
            graph = Graph(names)
            for edge in initial_graph.edges():
                if edge.node1 in graph and edge.node2 in graph:
                    graph.add_nondirected_edge(edge.node1, edge.node2)

        sepsets = SepsetMap()
        ledger = _TestLedger(self.diagnostics)
        if self.remove_doubly_forbidden:
            self._remove_forbidden(graph)

        logger.info(
            "Adjacency search over %d variables (depth=%s, n_jobs=%s)",
            len(names), self.depth, self.n_jobs,
        )
        if self.verbose:
            print("Skeleton phase...")

        depth = 0
        depth_reached = -1
        complete = True
        while True:
            if self.cancel is not None and self.cancel.cancelled:
                complete = False
                self.diagnostics.record(EventKind.CANCELLED, f"adjacency search cancelled at depth {depth}")
                break
            if self.depth != -1 and depth > self.depth:
                break

            # stable snapshot for this level
            adjacency = {name: graph.adjacent_nodes(name) for name in names}
            jobs = []
            for edge in graph.edges():
                x, y = edge.node1, edge.node2
                if self.knowledge.is_required_either_way(x, y):
                    continue
                adj_x = [v for v in adjacency[x] if v != y]
                adj_y = [v for v in adjacency[y] if v != x]
                if len(adj_x) < depth and len(adj_y) < depth:
                    continue
                jobs.append((x, y, (adj_x, adj_y), (depth,)))
            if not jobs:
                break

            if self.verbose:
                print(f"  Conditioning set size n={depth}, {len(jobs)} pairs")

            removed = []
            for outcome in _run_tests(self.oracle, jobs, self.n_jobs):
                ledger.add(outcome)
                if outcome.sepset is not None:
                    removed.append(outcome)

            for outcome in removed:
                graph.remove_edge(outcome.x, outcome.y)
                sepsets.set(outcome.x, outcome.y, outcome.sepset, outcome.p_value)
                self.diagnostics.record(
                    EventKind.EDGE_REMOVED,
                    f"{outcome.x} _||_ {outcome.y} | {sorted(outcome.sepset)} (p={outcome.p_value:.4g})",
                    x=outcome.x, y=outcome.y, sepset=sorted(outcome.sepset),
                    p_value=outcome.p_value, depth=depth,
                )
            logger.info("Depth %d: removed %d edges, %d remain", depth, len(removed), graph.num_edges())
            depth_reached = depth
            depth += 1

        return SkeletonResult(graph, sepsets, ledger.untested(graph), complete, depth_reached)


def possible_dsep_pruning(
    graph: Graph,
    sepsets: SepsetMap,
    oracle: IndependenceOracle,
    knowledge: Optional[Knowledge] = None,
    depth: int = -1,
    max_path_length: int = -1,
    n_jobs: Optional[int] = None,
    diagnostics: Optional[Diagnostics] = None,
    cancel: Optional[CancellationToken] = None,
    verbose: bool = False,
) -> SkeletonResult:
    """
    Second FCI deletion stage. ``graph`` should carry the provisional
    collider orientation; its edges are removed in place when some subset of
    Possible-D-SEP(x, y) or Possible-D-SEP(y, x) separates the pair. New
    separating sets are written into ``sepsets``.
    """
    knowledge = knowledge if knowledge is not None else Knowledge()
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    ledger = _TestLedger(diagnostics)

    if cancel is not None and cancel.cancelled:
        diagnostics.record(EventKind.CANCELLED, "possible-dsep stage cancelled before start")
        return SkeletonResult(graph, sepsets, [], False, -1)

    if verbose:
        print("Possible-D-SEP deletion phase...")

    position = {name: k for k, name in enumerate(graph.node_names())}
    jobs = []
    for edge in graph.edges():
        x, y = edge.node1, edge.node2
        if knowledge.is_required_either_way(x, y):
            continue
        pds_x = sorted(possible_dsep(graph, x, y, max_path_length), key=position.get)
        pds_y = sorted(possible_dsep(graph, y, x, max_path_length), key=position.get)
        largest = max(len(pds_x), len(pds_y))
        if depth != -1:
            largest = min(largest, depth)
        if largest < 1:
            continue
        jobs.append((x, y, (pds_x, pds_y), range(1, largest + 1)))

    removed = []
    for outcome in _run_tests(oracle, jobs, n_jobs):
        ledger.add(outcome)
        if outcome.sepset is not None:
            removed.append(outcome)

    for outcome in removed:
        graph.remove_edge(outcome.x, outcome.y)
        sepsets.set(outcome.x, outcome.y, outcome.sepset, outcome.p_value)
        diagnostics.record(
            EventKind.EDGE_REMOVED,
            f"{outcome.x} _||_ {outcome.y} | {sorted(outcome.sepset)} (possible-dsep)",
            x=outcome.x, y=outcome.y, sepset=sorted(outcome.sepset),
            p_value=outcome.p_value, reason="possible_dsep",
        )
    logger.info("Possible-D-SEP stage removed %d edges", len(removed))
    return SkeletonResult(graph, sepsets, ledger.untested(graph), True, depth)
