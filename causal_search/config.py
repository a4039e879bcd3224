from enum import Enum


class Mode(str, Enum):
    """Target representation of the orientation phase."""

    CPDAG = "cpdag"
    PAG = "pag"


class ColliderDiscovery(str, Enum):
    """How unshielded triples are classified in the collider phase.

    SEPSETS uses the separating set recorded by the adjacency search.
    CONSERVATIVE re-tests the pair over every subset of both neighborhoods
    and marks the triple ambiguous when the verdicts disagree.
    """

    SEPSETS = "sepsets"
    CONSERVATIVE = "conservative"


class ConflictRule(str, Enum):
    """What a CPDAG collider does when an edge already points the other way."""

    PRIORITIZE_EXISTING = "prioritize_existing"
    ORIENT_BIDIRECTED = "orient_bidirected"
