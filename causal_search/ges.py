"""
Greedy score-based search over DAGs.

The search runs two phases:
1. Forward phase: start from the empty graph (plus required edges) and
   greedily add the edge with the best score improvement
2. Backward phase: greedily remove the edge with the best score improvement

Every candidate must respect background knowledge and keep the graph
acyclic. The resulting DAG can be turned into its CPDAG with cpdag().
"""

import logging
from typing import List, Optional

from .config import Mode
from .errors import OracleFailure
from .graph import Graph, CIRCLE
from .knowledge import Knowledge
from .orientation import OrientationEngine
from .score import ScoreCache, ScoreOracle

logger = logging.getLogger(__name__)


class GreedyScoreSearch:
    """
    Attributes:
        score: Local score oracle (higher is better)
        knowledge: Background knowledge respected by every move
        verbose: Whether to print progress information
    """

    def __init__(self, score: ScoreOracle, knowledge: Optional[Knowledge] = None, verbose: bool = False):
        self.score = score
        self.knowledge = knowledge if knowledge is not None else Knowledge()
        self.verbose = verbose
        self.graph_ = None
        self.score_cache_ = None

    def fit(self, variables: Optional[List[str]] = None) -> Graph:
        """
        Run the forward and backward phases.

        Args:
            variables: Names to search over (defaults to the score's variables)

        Returns:
            The highest scoring DAG found
        """
        names = list(variables) if variables is not None else self.score.variables
        if self.verbose:
            print("GES: Initializing...")

        G = Graph(names)
        for a, b in self.knowledge.required_edges():
            if a in G and b in G:
                G.add_directed_edge(a, b)
        self.score_cache_ = ScoreCache(self.score)

        if self.verbose:
            print("GES: Forward phase...")
        self._forward_phase(G)
        if self.verbose:
            print(f"GES: Forward phase complete. {G.num_edges()} edges.")
            print("GES: Backward phase...")
        self._backward_phase(G)

        if self.verbose:
            print(f"GES: Backward phase complete. {G.num_edges()} edges.")
            cache_stats = self.score_cache_.stats()
            print(f"GES: Cache stats - {cache_stats['hits']} hits, "
                  f"{cache_stats['misses']} misses, "
                  f"hit rate: {cache_stats['hit_rate']:.2%}")
        logger.info("Greedy score search finished with %d edges", G.num_edges())

        self.graph_ = G
        return G

    def is_valid_edge_addition(self, G: Graph, a: str, b: str) -> bool:
        if G.is_adjacent(a, b):
            return False
        if self.knowledge.is_forbidden(a, b):
            return False
        # a --> b closes a cycle iff b already reaches a
        return not G.exists_directed_path(b, a)

    def _delta(self, node, parents, add=None, remove=None) -> Optional[float]:
        try:
            return self.score_cache_.delta(node, parents, add=add, remove=remove)
        except OracleFailure as exc:
            logger.warning("Score unavailable: %s", exc)
            return None

    def _forward_phase(self, G: Graph) -> Graph:
        """Greedily add the edge a --> b with the largest positive score gain."""
        names = G.node_names()
        iteration = 0
        while True:
            best_delta = 0.0
            best_edge = None
            for a in names:
                for b in names:
                    if a == b or not self.is_valid_edge_addition(G, a, b):
                        continue
                    delta = self._delta(b, G.parents(b), add=a)
                    if delta is not None and delta > best_delta:
                        best_delta = delta
                        best_edge = (a, b)
            if best_edge is None:
                break
            G.add_directed_edge(*best_edge)
            iteration += 1
            if self.verbose and iteration % 10 == 0:
                print(f"  Forward iteration {iteration}: added {best_edge[0]} → {best_edge[1]}, "
                      f"delta={best_delta:.4f}")
        return G

    def _backward_phase(self, G: Graph) -> Graph:
        """Greedily remove the edge a --> b with the largest positive score gain."""
        iteration = 0
        while True:
            best_delta = 0.0
            best_edge = None
            for edge in G.edges():
                if not edge.is_directed():
                    continue
                a, b = (edge.node1, edge.node2) if G.is_parent_of(edge.node1, edge.node2) else (edge.node2, edge.node1)
                if self.knowledge.is_required(a, b):
                    continue
                delta = self._delta(b, G.parents(b), remove=a)
                if delta is not None and delta > best_delta:
                    best_delta = delta
                    best_edge = (a, b)
            if best_edge is None:
                break
            G.remove_edge(*best_edge)
            iteration += 1
            if self.verbose and iteration % 10 == 0:
                print(f"  Backward iteration {iteration}: removed {best_edge[0]} → {best_edge[1]}, "
                      f"delta={best_delta:.4f}")
        return G

    def cpdag(self) -> Graph:
        """CPDAG of the fitted DAG: its v-structures plus the Meek closure."""
        if self.graph_ is None:
            self.fit()
        dag = self.graph_
        G = dag.copy()
        G.reorient_all_with(CIRCLE)
        engine = OrientationEngine(Mode.CPDAG, knowledge=self.knowledge)
        return engine.orient(G, is_collider=dag.is_def_collider)
