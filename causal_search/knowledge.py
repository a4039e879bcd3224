"""
Background knowledge: forbidden edges, required edges and temporal tiers.

Tiers are an ordered partition of the variables. An edge from a later tier
into an earlier one is forbidden; edges inside a tier are forbidden only
when that tier is flagged with ``set_tier_forbidden_within``.

The search treats a Knowledge object as read-only input. The mutators exist
so callers can build one incrementally before handing it over.
"""

from typing import Dict, Iterable, List, Optional, Set, Tuple

import networkx as nx

from .errors import InputError
from .graph import Edge, ARROW, TAIL


class Knowledge:
    def __init__(
        self,
        forbidden: Iterable[Tuple[str, str]] = (),
        required: Iterable[Tuple[str, str]] = (),
        tiers: Iterable[Iterable[str]] = (),
        forbidden_within_tiers: Iterable[int] = (),
    ):
        self._forbidden: Set[Tuple[str, str]] = set()
        self._required: Set[Tuple[str, str]] = set()
        self._tiers: List[List[str]] = []
        self._tier_of: Dict[str, int] = {}
        self._forbidden_within: Set[int] = set()
        # (name, first tier, second tier) for nodes placed twice; reported by validate()
        self._misplaced: List[Tuple[str, int, int]] = []

        for a, b in forbidden:
            self.set_forbidden(a, b)
        for a, b in required:
            self.set_required(a, b)
        for t, names in enumerate(tiers):
            for name in names:
                self.add_to_tier(t, name)
        for t in forbidden_within_tiers:
            self.set_tier_forbidden_within(t)

    # ----- construction -----

    def set_forbidden(self, a: str, b: str):
        self._forbidden.add((a, b))

    def set_required(self, a: str, b: str):
        self._required.add((a, b))

    def add_to_tier(self, tier: int, name: str):
        if tier < 0:
            raise InputError(f"Tier index must be non-negative, got {tier}")
        while len(self._tiers) <= tier:
            self._tiers.append([])
        existing = self._tier_of.get(name)
        if existing is not None:
            if existing != tier:
                self._misplaced.append((name, existing, tier))
            return
        self._tiers[tier].append(name)
        self._tier_of[name] = tier

    def set_tier_forbidden_within(self, tier: int, forbidden: bool = True):
        if forbidden:
            self._forbidden_within.add(tier)
        else:
            self._forbidden_within.discard(tier)

    # ----- queries -----

    def is_forbidden(self, a: str, b: str) -> bool:
        """True if the directed edge a --> b is ruled out."""
        if a == b:
            return False
        if (a, b) in self._forbidden:
            return True
        ta, tb = self._tier_of.get(a), self._tier_of.get(b)
        if ta is None or tb is None:
            return False
        if ta > tb:
            return True
        return ta == tb and ta in self._forbidden_within

    def is_required(self, a: str, b: str) -> bool:
        return (a, b) in self._required

    def is_required_either_way(self, a: str, b: str) -> bool:
        return (a, b) in self._required or (b, a) in self._required

    def is_forbidden_both_ways(self, a: str, b: str) -> bool:
        return self.is_forbidden(a, b) and self.is_forbidden(b, a)

    def tier_of(self, name: str) -> Optional[int]:
        return self._tier_of.get(name)

    def tier(self, index: int) -> List[str]:
        return list(self._tiers[index])

    @property
    def num_tiers(self) -> int:
        return len(self._tiers)

    def forbidden_edges(self) -> List[Tuple[str, str]]:
        """Explicitly forbidden edges (tier-implied ones are not listed)."""
        return sorted(self._forbidden)

    def required_edges(self) -> List[Tuple[str, str]]:
        return sorted(self._required)

    def is_empty(self) -> bool:
        return not (self._forbidden or self._required or self._tier_of)

    def is_violated_by(self, edge: Edge) -> bool:
        """
        An edge violates knowledge when its committed marks make it a
        forbidden directed edge, or when they contradict a required edge
        (an arrowhead at the required tail, or a tail at the required head).
        """
        a, b = edge.node1, edge.node2
        if edge.is_directed():
            src, dst = (a, b) if edge.endpoint2 == ARROW else (b, a)
            if self.is_forbidden(src, dst):
                return True
        for src, dst in ((a, b), (b, a)):
            if not self.is_required(src, dst):
                continue
            if edge.endpoint_at(src) == ARROW or edge.endpoint_at(dst) == TAIL:
                return True
        return False

    # ----- validation -----

    def validate(self, variables: Optional[Iterable[str]] = None):
        """
        Raise InputError when the knowledge is self-contradictory or names
        variables outside ``variables``.
        """
        if self._misplaced:
            name, first, second = self._misplaced[0]
            raise InputError(f"{name} is placed in tiers {first} and {second}")

        for a, b in sorted(self._forbidden | self._required):
            if a == b:
                raise InputError(f"Self edge {a} --> {a} in knowledge")

        for a, b in sorted(self._required):
            if self.is_forbidden(a, b):
                raise InputError(f"{a} --> {b} is both required and forbidden")
            if (b, a) in self._required:
                raise InputError(f"{a} --> {b} is required in both directions")

        required_graph = nx.DiGraph(list(self._required))
        if not nx.is_directed_acyclic_graph(required_graph):
            cycle = nx.find_cycle(required_graph)
            raise InputError(f"Required edges form a directed cycle: {cycle}")

        if variables is not None:
            known = set(variables)
            mentioned = set(self._tier_of)
            for a, b in self._forbidden | self._required:
                mentioned.update((a, b))
            unknown = sorted(mentioned - known)
            if unknown:
                raise InputError(f"Knowledge mentions unknown variables: {unknown}")

    def __repr__(self):
        return (
            f"Knowledge(forbidden={len(self._forbidden)}, required={len(self._required)}, "
            f"tiers={len(self._tiers)})"
        )
