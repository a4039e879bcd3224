"""
causal_search: constraint- and score-based causal structure search.

Builds a skeleton from conditional independence tests, orients it with
colliders and the Meek or FCI rule closure, and checks the resulting CPDAG
or PAG for legality.
"""

from .algo import PC, FCI, GFCI, SearchResult
from .config import ColliderDiscovery, ConflictRule, Mode
from .diagnostics import CancellationToken, Diagnostics, EventKind
from .errors import (
    CausalSearchError,
    GraphError,
    InputError,
    KnowledgeConflict,
    NonTerminationError,
    OracleFailure,
    OrientationConflict,
)
from .graph import Edge, Graph, Node, NodeType, Triple, TripleMark, NULL, CIRCLE, ARROW, TAIL
from .graph_io import format_graph, parse_graph
from .independence import CountingOracle, FisherZOracle, GraphOracle, IndependenceOracle, IndependenceResult
from .knowledge import Knowledge
from .legality import LegalityReport, check_cpdag, is_legal_pag
from .mconnecting import find_m_connecting_paths, find_m_connecting_paths_of_length, is_m_separated
from .orientation import OrientationEngine, Rule
from .score import GaussianBicScore, ScoreOracle
from .sepsets import SepsetMap
from .skeleton import AdjacencySearch, SkeletonResult

__all__ = [
    "PC", "FCI", "GFCI", "SearchResult",
    "ColliderDiscovery", "ConflictRule", "Mode",
    "CancellationToken", "Diagnostics", "EventKind",
    "CausalSearchError", "GraphError", "InputError", "KnowledgeConflict",
    "NonTerminationError", "OracleFailure", "OrientationConflict",
    "Edge", "Graph", "Node", "NodeType", "Triple", "TripleMark",
    "NULL", "CIRCLE", "ARROW", "TAIL",
    "format_graph", "parse_graph",
    "CountingOracle", "FisherZOracle", "GraphOracle", "IndependenceOracle", "IndependenceResult",
    "Knowledge",
    "LegalityReport", "check_cpdag", "is_legal_pag",
    "find_m_connecting_paths", "find_m_connecting_paths_of_length", "is_m_separated",
    "OrientationEngine", "Rule",
    "GaussianBicScore", "ScoreOracle",
    "SepsetMap",
    "AdjacencySearch", "SkeletonResult",
]
