import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .config import ColliderDiscovery, ConflictRule, Mode
from .diagnostics import CancellationToken, Diagnostics, EventKind
from .errors import InputError
from .ges import GreedyScoreSearch
from .graph import Graph
from .independence import FisherZOracle, IndependenceOracle
from .knowledge import Knowledge
from .legality import LegalityReport, check_cpdag, is_legal_pag
from .orientation import OrientationEngine, finalize_cpdag
from .score import GaussianBicScore, ScoreOracle
from .sepsets import SepsetMap
from .skeleton import AdjacencySearch, possible_dsep_pruning

logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    graph: Graph
    sepsets: SepsetMap
    diagnostics: Diagnostics
    legality: LegalityReport
    complete: bool = True
    untested: List[Tuple[str, str]] = field(default_factory=list)


class _Search:
    """Shared validation, reporting and the fit() entry point."""

    def __init__(self, alpha=0.05, depth=-1, knowledge=None, n_jobs=None,
                 max_passes=None, cancel: Optional[CancellationToken] = None, verbose=False):
        self.alpha = alpha
        self.depth = depth
        self.knowledge = knowledge if knowledge is not None else Knowledge()
        self.n_jobs = n_jobs
        self.max_passes = max_passes
        self.cancel = cancel
        self.verbose = verbose
        self.graph_ = None
        self.sepsets_ = None
        self.result_ = None
        self.var_names_ = None

    def _validate(self, oracle: IndependenceOracle) -> List[str]:
        variables = list(oracle.variables)
        if not variables:
            raise InputError("No variables to search over")
        if len(set(variables)) != len(variables):
            raise InputError(f"Duplicate variable names: {variables}")
        self.knowledge.validate(variables)
        return variables

    def _adjacency_search(self, oracle, diagnostics, remove_doubly_forbidden=False):
        return AdjacencySearch(
            oracle,
            knowledge=self.knowledge,
            depth=self.depth,
            n_jobs=self.n_jobs,
            remove_doubly_forbidden=remove_doubly_forbidden,
            diagnostics=diagnostics,
            cancel=self.cancel,
            verbose=self.verbose,
        )

    def _finish(self, graph, sepsets, diagnostics, legality, complete, untested) -> SearchResult:
        if not legality:
            logger.warning("Result is not legal: %s", legality.reason)
            diagnostics.record(EventKind.ILLEGAL_RESULT, legality.reason)
        if not complete:
            logger.warning("Search was cancelled; returning a partial graph")
        result = SearchResult(graph, sepsets, diagnostics, legality, complete, untested)
        self.graph_ = graph
        self.sepsets_ = sepsets
        self.result_ = result
        return result

    def _oracle_for(self, X, var_names):
        return FisherZOracle(X, var_names, alpha=self.alpha)

    def fit(self, X, var_names=None):
        """
        X: (n_samples, k) array or DataFrame
        var_names: list of length k (ignored for DataFrames with column names)
        """
        oracle = self._oracle_for(X, var_names)
        self.var_names_ = oracle.variables
        self.search(oracle)
        return self

    def search(self, oracle: IndependenceOracle) -> SearchResult:
        raise NotImplementedError


class PC(_Search):
    """
    Adjacency search, knowledge, colliders and Meek closure, returning a
    CPDAG (undirected edges as ---).
    """

    def __init__(self, alpha=0.05, depth=-1, knowledge=None,
                 conflict_rule=ConflictRule.PRIORITIZE_EXISTING,
                 collider_discovery=ColliderDiscovery.SEPSETS,
                 n_jobs=None, max_passes=None, cancel=None, verbose=False):
        super().__init__(alpha, depth, knowledge, n_jobs, max_passes, cancel, verbose)
        self.conflict_rule = ConflictRule(conflict_rule)
        self.collider_discovery = ColliderDiscovery(collider_discovery)

    def search(self, oracle: IndependenceOracle) -> SearchResult:
        variables = self._validate(oracle)
        diagnostics = Diagnostics()

        skeleton = self._adjacency_search(oracle, diagnostics).search(variables)
        G = skeleton.graph
        complete = skeleton.complete

        if complete:
            engine = OrientationEngine(
                Mode.CPDAG,
                knowledge=self.knowledge,
                oracle=oracle,
                sepsets=skeleton.sepsets,
                conflict_rule=self.conflict_rule,
                collider_discovery=self.collider_discovery,
                depth=self.depth,
                diagnostics=diagnostics,
                cancel=self.cancel,
                max_passes=self.max_passes,
                verbose=self.verbose,
            )
            engine.orient(G, skeleton.sepsets)
            complete = engine.complete
        else:
            finalize_cpdag(G)

        return self._finish(G, skeleton.sepsets, diagnostics, check_cpdag(G), complete, skeleton.untested)


class FCI(_Search):
    """
    Adjacency search, optional Possible-D-SEP pruning, then colliders and
    the FCI rules on a fresh o-o skeleton, returning a PAG.
    """

    def __init__(self, alpha=0.05, depth=-1, knowledge=None, possible_dsep=True,
                 max_path_length=-1, complete_rule_set=True,
                 collider_discovery=ColliderDiscovery.SEPSETS,
                 allow_selection_bias=False,
                 n_jobs=None, max_passes=None, cancel=None, verbose=False):
        super().__init__(alpha, depth, knowledge, n_jobs, max_passes, cancel, verbose)
        self.possible_dsep = possible_dsep
        self.max_path_length = max_path_length
        self.complete_rule_set = complete_rule_set
        self.collider_discovery = ColliderDiscovery(collider_discovery)
        self.allow_selection_bias = allow_selection_bias

    def _engine(self, oracle, sepsets, diagnostics, collider_discovery=None):
        return OrientationEngine(
            Mode.PAG,
            knowledge=self.knowledge,
            oracle=oracle,
            sepsets=sepsets,
            complete_rule_set=self.complete_rule_set,
            max_path_length=self.max_path_length,
            collider_discovery=collider_discovery or self.collider_discovery,
            depth=self.depth,
            diagnostics=diagnostics,
            cancel=self.cancel,
            max_passes=self.max_passes,
            verbose=self.verbose,
        )

    def _prune_possible_dsep(self, G, sepsets, oracle, diagnostics):
        """Returns (reset o-o graph, untested pairs, complete)."""
        provisional = G.copy()
        scratch = self._engine(oracle, sepsets, Diagnostics(), ColliderDiscovery.SEPSETS)
        scratch.orient_with_knowledge(provisional)
        scratch.orient_colliders(provisional, sepsets)
        pds = possible_dsep_pruning(
            provisional, sepsets, oracle,
            knowledge=self.knowledge,
            depth=self.depth,
            max_path_length=self.max_path_length,
            n_jobs=self.n_jobs,
            diagnostics=diagnostics,
            cancel=self.cancel,
            verbose=self.verbose,
        )
        reset = Graph(G.nodes)
        for edge in pds.graph.edges():
            reset.add_nondirected_edge(edge.node1, edge.node2)
        return reset, pds.untested, pds.complete

    def search(self, oracle: IndependenceOracle) -> SearchResult:
        variables = self._validate(oracle)
        diagnostics = Diagnostics()

        skeleton = self._adjacency_search(oracle, diagnostics).search(variables)
        G, sepsets = skeleton.graph, skeleton.sepsets
        untested = list(skeleton.untested)
        complete = skeleton.complete

        if complete and self.possible_dsep:
            G, more_untested, complete = self._prune_possible_dsep(G, sepsets, oracle, diagnostics)
            untested = [pair for pair in untested if G.is_adjacent(*pair)]
            untested.extend(pair for pair in more_untested if pair not in untested)

        if complete:
            engine = self._engine(oracle, sepsets, diagnostics)
            engine.orient(G, sepsets)
            complete = engine.complete

        legality = is_legal_pag(G, sepsets, allow_selection_bias=self.allow_selection_bias)
        return self._finish(G, sepsets, diagnostics, legality, complete, untested)


class GFCI(FCI):
    """
    Greedy score search for an initial DAG, then adjacency search from its
    skeleton and the FCI orientation. Unshielded triples become colliders
    when they are v-structures in the score graph, or triangles there whose
    middle node is not in the separating set.
    """

    def __init__(self, alpha=0.05, depth=-1, knowledge=None, penalty_discount=1.0,
                 possible_dsep=False, max_path_length=-1, complete_rule_set=True,
                 allow_selection_bias=False,
                 n_jobs=None, max_passes=None, cancel=None, verbose=False):
        super().__init__(alpha, depth, knowledge, possible_dsep, max_path_length, complete_rule_set,
                         ColliderDiscovery.SEPSETS, allow_selection_bias,
                         n_jobs, max_passes, cancel, verbose)
        self.penalty_discount = penalty_discount
        self.ges_graph_ = None

    def search(self, oracle: IndependenceOracle, score: Optional[ScoreOracle] = None) -> SearchResult:
        if score is None:
            raise InputError("GFCI needs a score oracle")
        variables = self._validate(oracle)
        if sorted(score.variables) != sorted(variables):
            raise InputError("Score and independence oracles cover different variables")
        diagnostics = Diagnostics()

        if self.verbose:
            print("\n=== Greedy score search ===")
        dag = GreedyScoreSearch(score, self.knowledge, self.verbose).fit(variables)
        self.ges_graph_ = dag

        if self.verbose:
            print("\n=== Adjacency search from the score graph ===")
        skeleton = self._adjacency_search(oracle, diagnostics).search(variables, initial_graph=dag)
        G, sepsets = skeleton.graph, skeleton.sepsets
        untested = list(skeleton.untested)
        complete = skeleton.complete

        if complete and self.possible_dsep:
            G, more_untested, complete = self._prune_possible_dsep(G, sepsets, oracle, diagnostics)
            untested = [pair for pair in untested if G.is_adjacent(*pair)]
            untested.extend(pair for pair in more_untested if pair not in untested)

        def is_collider(x, y, z):
            if dag.is_def_collider(x, y, z) and not dag.is_adjacent(x, z):
                return True
            return dag.forms_triangle(x, y, z) and sepsets.contains(x, z) and not sepsets.is_in_sepset(y, x, z)

        if complete:
            engine = self._engine(oracle, sepsets, diagnostics)
            engine.orient(G, sepsets, is_collider=is_collider)
            complete = engine.complete

        # colliders here come from the score graph, so they are not checked against sepsets
        legality = is_legal_pag(G, allow_selection_bias=self.allow_selection_bias)
        return self._finish(G, sepsets, diagnostics, legality, complete, untested)

    def fit(self, X, var_names=None):
        oracle = self._oracle_for(X, var_names)
        score = GaussianBicScore(X, oracle.variables, self.penalty_discount)
        self.var_names_ = oracle.variables
        self.search(oracle, score)
        return self
