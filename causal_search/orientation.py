import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from itertools import combinations
from typing import Callable, Dict, Generator, List, Optional, Sequence, Set, Tuple

from .config import ColliderDiscovery, ConflictRule, Mode
from .diagnostics import CancellationToken, Diagnostics, EventKind
from .errors import InputError, KnowledgeConflict, NonTerminationError, OracleFailure, OrientationConflict
from .graph import Edge, Graph, TripleMark, MARK_NAMES, CIRCLE, ARROW, TAIL
from .independence import IndependenceOracle
from .knowledge import Knowledge
from .sepsets import SepsetMap

logger = logging.getLogger(__name__)


class Rule(Enum):
    KNOWLEDGE = "knowledge"
    COLLIDER = "R0"
    MEEK_R1 = "meek-R1"
    MEEK_R2 = "meek-R2"
    MEEK_R3 = "meek-R3"
    MEEK_R4 = "meek-R4"
    FCI_R1 = "R1"
    FCI_R2 = "R2"
    FCI_R3 = "R3"
    FCI_R4 = "R4"   # discriminating path
    FCI_R5 = "R5"
    FCI_R6 = "R6"
    FCI_R7 = "R7"
    FCI_R8 = "R8"
    FCI_R9 = "R9"
    FCI_R10 = "R10"


CPDAG_RULES = (Rule.MEEK_R1, Rule.MEEK_R2, Rule.MEEK_R3, Rule.MEEK_R4)
PAG_RULES = (
    Rule.FCI_R1, Rule.FCI_R2, Rule.FCI_R3, Rule.FCI_R4,
    Rule.FCI_R5, Rule.FCI_R6, Rule.FCI_R7,
    Rule.FCI_R8, Rule.FCI_R9, Rule.FCI_R10,
)
_COMPLETE_ONLY = {Rule.FCI_R5, Rule.FCI_R6, Rule.FCI_R7, Rule.FCI_R8, Rule.FCI_R9, Rule.FCI_R10}


@dataclass(frozen=True)
class Orientation:
    """
    A proposed change. commits holds (a, b, mark) triples setting the mark
    at b on edge a *-* b; snapshot holds every touched endpoint as it was
    when the proposal was made.
    """
    rule: Rule
    commits: Tuple[Tuple[str, str, int], ...]
    snapshot: Tuple[Tuple[str, str, int], ...]
    message: str = ""


# --------------------------------------------------------------------
# Path predicates
# --------------------------------------------------------------------


def is_uncovered(graph: Graph, path: Sequence[str]) -> bool:
    for idx in range(1, len(path) - 1):
        if graph.is_adjacent(path[idx - 1], path[idx + 1]):
            return False
    return True


def is_circle_edge(graph: Graph, u: str, v: str) -> bool:
    return graph.is_adjacent(u, v) and graph.endpoint(u, v) == CIRCLE and graph.endpoint(v, u) == CIRCLE


def is_pd_edge(graph: Graph, u: str, v: str) -> bool:
    """
    Edge u ?-? v is potentially directed from u to v if:
    - it is not into u (mark at u != ARROW)
    - it is not out of v (mark at v != TAIL)
    """
    if not graph.is_adjacent(u, v):
        return False
    return graph.endpoint(v, u) != ARROW and graph.endpoint(u, v) != TAIL


def _uncovered_paths(graph: Graph, start: str, end: str, step_ok, exclude=(), max_path_length=-1):
    stack = [(start,)]
    while stack:
        path = stack.pop()
        node = path[-1]
        for nb in reversed(graph.adjacent_nodes(node)):
            if nb in path or nb in exclude:
                continue
            if not step_ok(graph, node, nb):
                continue
            if len(path) >= 2 and graph.is_adjacent(path[-2], nb):
                continue
            new_path = path + (nb,)
            if nb == end:
                yield new_path
            elif max_path_length == -1 or len(new_path) - 1 < max_path_length:
                stack.append(new_path)


def uncovered_circle_paths(graph: Graph, a: str, b: str, max_path_length: int = -1) -> Generator[Tuple[str, ...], None, None]:
    """Uncovered paths of o-o edges from a to b."""
    return _uncovered_paths(graph, a, b, is_circle_edge, max_path_length=max_path_length)


def uncovered_pd_paths(graph: Graph, start: str, end: str, exclude=(), max_path_length: int = -1):
    """Uncovered potentially directed paths from start to end."""
    return _uncovered_paths(graph, start, end, is_pd_edge, exclude, max_path_length)


def find_discriminating_path(graph: Graph, a: str, b: str, c: str, max_path_length: int = -1) -> Optional[List[str]]:
    """
    Given a <-* b o-* c with a --> c, search back from a for a path
    <e, ..., a, b, c> that discriminates b: e is not adjacent to c, and every
    node strictly between e and b is a collider on the path and a parent of c.
    """
    previous: Dict[str, str] = {a: b}
    queue = deque([(a, 1)])
    while queue:
        t, dist = queue.popleft()
        if max_path_length != -1 and dist + 2 > max_path_length:
            continue
        for e in graph.adjacent_nodes(t):
            if e in previous or e in (b, c):
                continue
            if graph.endpoint(e, t) != ARROW:
                continue
            if not graph.is_adjacent(e, c):
                path = [e]
                node = t
                while node != b:
                    path.append(node)
                    node = previous[node]
                return path + [b, c]
            if graph.is_parent_of(e, c) and graph.endpoint(t, e) == ARROW:
                previous[e] = t
                queue.append((e, dist + 1))
    return None


def finalize_cpdag(graph: Graph) -> Graph:
    """Turn remaining circle marks into tails (o-o becomes ---)."""
    graph.M[graph.M == CIRCLE] = TAIL
    return graph


# --------------------------------------------------------------------
# Rule engine
# --------------------------------------------------------------------


class OrientationEngine:
    """
    Orients a skeleton with circle endpoints into a CPDAG or a PAG.

    Marks only ever change from CIRCLE to ARROW or TAIL. In CPDAG mode an
    unoriented edge is o-o during the whole run and becomes --- in
    finalize_cpdag.
    """

    def __init__(
        self,
        mode="pag",
        knowledge: Optional[Knowledge] = None,
        oracle: Optional[IndependenceOracle] = None,
        sepsets: Optional[SepsetMap] = None,
        complete_rule_set: bool = True,
        max_path_length: int = -1,
        conflict_rule: ConflictRule = ConflictRule.PRIORITIZE_EXISTING,
        collider_discovery: ColliderDiscovery = ColliderDiscovery.SEPSETS,
        depth: int = -1,
        diagnostics: Optional[Diagnostics] = None,
        cancel: Optional[CancellationToken] = None,
        max_passes: Optional[int] = None,
        rules: Optional[Sequence[Rule]] = None,
        verbose: bool = False,
    ):
        self.mode = Mode(mode)
        self.knowledge = knowledge if knowledge is not None else Knowledge()
        self.oracle = oracle
        self.sepsets = sepsets
        self.complete_rule_set = complete_rule_set
        self.max_path_length = max_path_length
        self.conflict_rule = ConflictRule(conflict_rule)
        self.collider_discovery = ColliderDiscovery(collider_discovery)
        self.depth = depth
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.cancel = cancel
        self.max_passes = max_passes
        self.verbose = verbose
        self.complete = True
        self._reported = set()

        if self.collider_discovery == ColliderDiscovery.CONSERVATIVE and oracle is None:
            raise InputError("Conservative collider discovery needs an independence oracle")

        self._scanners: Dict[Rule, Callable[[Graph], List[Orientation]]] = {
            Rule.MEEK_R1: self._meek_r1,
            Rule.MEEK_R2: self._meek_r2,
            Rule.MEEK_R3: self._meek_r3,
            Rule.MEEK_R4: self._meek_r4,
            Rule.FCI_R1: self._fci_r1,
            Rule.FCI_R2: self._fci_r2,
            Rule.FCI_R3: self._fci_r3,
            Rule.FCI_R4: self._fci_r4,
            Rule.FCI_R5: self._fci_r5,
            Rule.FCI_R6: self._fci_r6,
            Rule.FCI_R7: self._fci_r7,
            Rule.FCI_R8: self._fci_r8,
            Rule.FCI_R9: self._fci_r9,
            Rule.FCI_R10: self._fci_r10,
        }
        missing = [r for r in Rule if r not in self._scanners and r not in (Rule.KNOWLEDGE, Rule.COLLIDER)]
        if missing:
            raise RuntimeError(f"No scanner registered for {missing}")

        if rules is None:
            rules = CPDAG_RULES if self.mode == Mode.CPDAG else PAG_RULES
            if not complete_rule_set:
                rules = tuple(r for r in rules if r not in _COMPLETE_ONLY)
        for rule in rules:
            if rule not in self._scanners:
                raise InputError(f"{rule} is not a closure rule")
        self.rules = tuple(rules)

    # ----- proposals and commits -----

    def _propose(self, graph: Graph, out: List[Orientation], rule: Rule, commits, message: str = ""):
        commits = tuple(commits)
        if all(graph.endpoint(a, b) == mark for a, b, mark in commits):
            return
        snapshot = []
        seen = set()
        for a, b, _ in commits:
            for u, v in ((a, b), (b, a)):
                if (u, v) not in seen:
                    seen.add((u, v))
                    snapshot.append((u, v, graph.endpoint(u, v)))
        out.append(Orientation(rule, commits, tuple(snapshot), message))

    @staticmethod
    def _is_stale(graph: Graph, orientation: Orientation) -> bool:
        return any(graph.endpoint(u, v) != mark for u, v, mark in orientation.snapshot)

    def _commit(self, graph: Graph, orientation: Orientation) -> bool:
        changes = []
        for a, b, mark in orientation.commits:
            current = graph.endpoint(a, b)
            if current == mark:
                continue
            if current != CIRCLE:
                raise OrientationConflict(
                    f"{orientation.rule.value} wants {MARK_NAMES[mark]} at {b} on "
                    f"{graph.get_edge(a, b)}; the mark is already committed",
                    a, b,
                )
            changes.append((a, b, mark))
        if not changes:
            return False

        for a, b, mark in changes:
            graph.set_endpoint(a, b, mark)

        def revert():
            for a, b, _ in changes:
                graph.set_endpoint(a, b, CIRCLE)

        for a, b, _ in changes:
            edge = graph.get_edge(a, b)
            if self.knowledge.is_violated_by(edge):
                revert()
                raise KnowledgeConflict(f"{orientation.rule.value} would create {edge}, which knowledge forbids", a, b)

        if self.mode == Mode.CPDAG and any(graph.get_edge(a, b).is_directed() for a, b, _ in changes):
            if graph.exists_directed_cycle():
                revert()
                a, b, _ = changes[0]
                raise OrientationConflict(f"{orientation.rule.value} would create a directed cycle", a, b)
        return True

    def _report_conflict(self, orientation: Orientation, exc: OrientationConflict):
        key = (orientation.rule, orientation.commits)
        if key in self._reported:
            return
        self._reported.add(key)
        kind = EventKind.KNOWLEDGE_CONFLICT if isinstance(exc, KnowledgeConflict) else EventKind.ORIENTATION_CONFLICT
        self.diagnostics.record(kind, str(exc), rule=orientation.rule.value, a=exc.a, b=exc.b)

    def _apply(self, graph: Graph, orientation: Orientation) -> bool:
        try:
            committed = self._commit(graph, orientation)
        except OrientationConflict as exc:
            self._report_conflict(orientation, exc)
            return False
        if committed:
            edges = sorted({frozenset((a, b)) for a, b, _ in orientation.commits}, key=sorted)
            rendered = ", ".join(str(graph.get_edge(*sorted(pair))) for pair in edges)
            kind = EventKind.KNOWLEDGE_ORIENTATION if orientation.rule == Rule.KNOWLEDGE else EventKind.RULE_APPLIED
            if orientation.rule == Rule.COLLIDER:
                kind = EventKind.COLLIDER_ORIENTED
            self.diagnostics.record(
                kind, f"{orientation.rule.value}: {rendered} {orientation.message}".rstrip(),
                rule=orientation.rule.value,
            )
        return committed

    # ----- knowledge -----

    def orient_with_knowledge(self, graph: Graph) -> int:
        """
        Required a --> b is oriented a --> b. A forbidden a --> b becomes
        b --> a in CPDAG mode and gets an arrowhead at a in PAG mode.
        """
        if self.knowledge.is_empty():
            return 0
        proposals = []
        for edge in graph.edges():
            x, y = edge.node1, edge.node2
            if self.knowledge.is_forbidden_both_ways(x, y):
                self.diagnostics.record(
                    EventKind.KNOWLEDGE_CONFLICT,
                    f"{x}-{y} is forbidden in both directions; left unoriented",
                    x=x, y=y,
                )
                continue
            for a, b in ((x, y), (y, x)):
                if self.knowledge.is_required(a, b):
                    self._propose(graph, proposals, Rule.KNOWLEDGE, [(b, a, TAIL), (a, b, ARROW)], "(required)")
                elif self.knowledge.is_forbidden(a, b):
                    if self.mode == Mode.CPDAG:
                        self._propose(graph, proposals, Rule.KNOWLEDGE, [(a, b, TAIL), (b, a, ARROW)], "(forbidden)")
                    else:
                        self._propose(graph, proposals, Rule.KNOWLEDGE, [(b, a, ARROW)], "(forbidden)")
        count = 0
        for orientation in proposals:
            if not self._is_stale(graph, orientation) and self._apply(graph, orientation):
                count += 1
        logger.info("Knowledge oriented %d edges", count)
        return count

    # ----- Phase A: colliders -----

    def _conservative_verdict(self, graph: Graph, x: str, y: str, z: str, sepsets: Optional[SepsetMap]):
        verdicts = set()
        candidates = [[v for v in graph.adjacent_nodes(x) if v != z], [v for v in graph.adjacent_nodes(z) if v != x]]
        largest = max(len(c) for c in candidates)
        if self.depth != -1:
            largest = min(largest, self.depth)
        tried = set()
        for size in range(largest + 1):
            for cands in candidates:
                for cond in combinations(cands, size):
                    if frozenset(cond) in tried:
                        continue
                    tried.add(frozenset(cond))
                    try:
                        result = self.oracle.test(x, z, cond)
                    except OracleFailure as exc:
                        self.diagnostics.record(EventKind.ORACLE_FAILURE, str(exc), x=x, y=z)
                        continue
                    if result.independent:
                        verdicts.add(y in cond)
        if not verdicts:
            sepset = sepsets.get(x, z) if sepsets is not None else None
            if sepset is None:
                return None
            verdicts.add(y in sepset)
        if verdicts == {True}:
            return TripleMark.NONCOLLIDER
        if verdicts == {False}:
            return TripleMark.COLLIDER
        return TripleMark.AMBIGUOUS

    def _classify(self, graph, x, y, z, sepsets, is_collider) -> Optional[TripleMark]:
        if is_collider is not None:
            return TripleMark.COLLIDER if is_collider(x, y, z) else TripleMark.NONCOLLIDER
        if self.collider_discovery == ColliderDiscovery.CONSERVATIVE:
            return self._conservative_verdict(graph, x, y, z, sepsets)
        sepset = sepsets.get(x, z) if sepsets is not None else None
        if sepset is None:
            return None
        return TripleMark.NONCOLLIDER if y in sepset else TripleMark.COLLIDER

    def _arrowhead_blocked(self, graph: Graph, x: str, y: str) -> Optional[OrientationConflict]:
        """Why an arrowhead at y on x *-* y cannot be added, or None if it can."""
        mark_y = graph.endpoint(x, y)
        if mark_y == ARROW:
            return None
        if mark_y == TAIL:
            return OrientationConflict(f"{graph.get_edge(x, y)} already has a tail at {y}", x, y)
        mark_x = graph.endpoint(y, x)
        if self.mode == Mode.CPDAG and mark_x == CIRCLE:
            mark_x = TAIL
        if self.knowledge.is_violated_by(Edge(x, y, mark_x, ARROW)):
            return KnowledgeConflict(f"knowledge rules out an arrowhead at {y} on {x}-{y}", x, y)
        if self.mode == Mode.CPDAG and mark_x == ARROW and self.conflict_rule == ConflictRule.PRIORITIZE_EXISTING:
            return OrientationConflict(f"{graph.get_edge(x, y)} already points into {x}", x, y)
        return None

    def orient_colliders(self, graph: Graph, sepsets: Optional[SepsetMap] = None,
                         is_collider: Optional[Callable[[str, str, str], bool]] = None) -> int:
        """
        Orient every unshielded triple x *-* y *-* z: a collider iff y is not
        in sepset(x, z) (or ``is_collider`` says so); otherwise the triple is
        marked as a definite non-collider.
        """
        if sepsets is not None:
            self.sepsets = sepsets
        sepsets = self.sepsets
        if self.verbose:
            print("Orienting unshielded colliders...")
        count = 0
        for y in graph.node_names():
            for x, z in combinations(graph.adjacent_nodes(y), 2):
                if graph.is_adjacent(x, z):
                    continue
                verdict = self._classify(graph, x, y, z, sepsets, is_collider)
                if verdict is None:
                    logger.debug("No separating set for %s, %s; <%s, %s, %s> left alone", x, z, x, y, z)
                    continue
                if verdict == TripleMark.NONCOLLIDER:
                    graph.mark_triple(x, y, z, TripleMark.NONCOLLIDER)
                    self.diagnostics.record(EventKind.NONCOLLIDER, f"<{x}, {y}, {z}> is a non-collider")
                    continue
                if verdict == TripleMark.AMBIGUOUS:
                    graph.mark_triple(x, y, z, TripleMark.AMBIGUOUS)
                    self.diagnostics.record(EventKind.AMBIGUOUS_TRIPLE, f"<{x}, {y}, {z}> is ambiguous")
                    continue

                blocked = self._arrowhead_blocked(graph, x, y) or self._arrowhead_blocked(graph, z, y)
                if blocked is not None:
                    kind = EventKind.KNOWLEDGE_CONFLICT if isinstance(blocked, KnowledgeConflict) else EventKind.ORIENTATION_CONFLICT
                    self.diagnostics.record(kind, f"collider <{x}, {y}, {z}> skipped: {blocked}", x=x, y=y, z=z)
                    continue
                proposal = Orientation(
                    Rule.COLLIDER, ((x, y, ARROW), (z, y, ARROW)), (), f"(collider at {y})"
                )
                if self._apply(graph, proposal):
                    count += 1
                graph.mark_triple(x, y, z, TripleMark.COLLIDER)

        if self.mode == Mode.CPDAG:
            # x o-> y becomes x --> y
            for edge in graph.edges():
                if edge.endpoint1 == CIRCLE and edge.endpoint2 == ARROW:
                    graph.set_endpoint(edge.node2, edge.node1, TAIL)
                elif edge.endpoint1 == ARROW and edge.endpoint2 == CIRCLE:
                    graph.set_endpoint(edge.node1, edge.node2, TAIL)
        logger.info("Oriented %d colliders", count)
        return count

    # ----- Phase B: closure -----

    def apply_rules(self, graph: Graph) -> int:
        """
        Apply the configured rules until a full pass commits nothing.
        Returns the number of committed orientations.
        """
        bound = self.max_passes if self.max_passes is not None else 2 * graph.num_edges() + 2
        passes = 0
        total = 0
        while True:
            if self.cancel is not None and self.cancel.cancelled:
                self.complete = False
                self.diagnostics.record(EventKind.CANCELLED, f"orientation cancelled after {passes} passes")
                break
            if passes >= bound:
                raise NonTerminationError(f"Orientation did not converge within {bound} passes")
            passes += 1

            proposals = []
            for rule in self.rules:
                proposals.extend(self._scanners[rule](graph))

            committed = 0
            for orientation in proposals:
                if self._is_stale(graph, orientation):
                    continue
                if self._apply(graph, orientation):
                    committed += 1
            if self.verbose:
                print(f"  pass {passes}: {committed} orientations")
            total += committed
            if committed == 0:
                break
        logger.info("Rule closure: %d orientations in %d passes", total, passes)
        return total

    def orient(self, graph: Graph, sepsets: Optional[SepsetMap] = None, is_collider=None) -> Graph:
        """Knowledge, colliders, rule closure and (CPDAG mode) finalisation."""
        self.orient_with_knowledge(graph)
        self.orient_colliders(graph, sepsets, is_collider)
        self.apply_rules(graph)
        if self.mode == Mode.CPDAG:
            finalize_cpdag(graph)
        return graph

    # --------------------------------------------------------------------
    # Meek rules (CPDAG); o-o is the unoriented edge
    # --------------------------------------------------------------------

    def _meek_r1(self, G: Graph) -> List[Orientation]:
        """a --> b o-o c, a and c not adjacent: b --> c"""
        out = []
        for b in G.node_names():
            for a in G.parents(b):
                for c in G.adjacent_nodes(b):
                    if c == a or not is_circle_edge(G, b, c) or G.is_adjacent(a, c):
                        continue
                    self._propose(G, out, Rule.MEEK_R1, [(c, b, TAIL), (b, c, ARROW)])
        return out

    def _meek_r2(self, G: Graph) -> List[Orientation]:
        """a --> b --> c and a o-o c: a --> c"""
        out = []
        for a in G.node_names():
            for c in G.adjacent_nodes(a):
                if not is_circle_edge(G, a, c):
                    continue
                if any(G.is_parent_of(b, c) for b in G.children(a)):
                    self._propose(G, out, Rule.MEEK_R2, [(c, a, TAIL), (a, c, ARROW)])
        return out

    def _meek_r3(self, G: Graph) -> List[Orientation]:
        """a o-o c --> b <-- d o-o a, a o-o b, c and d not adjacent: a --> b"""
        out = []
        for b in G.node_names():
            parents = G.parents(b)
            for a in G.adjacent_nodes(b):
                if not is_circle_edge(G, a, b):
                    continue
                spouses = [p for p in parents if is_circle_edge(G, a, p)]
                for c, d in combinations(spouses, 2):
                    if G.is_adjacent(c, d):
                        continue
                    self._propose(G, out, Rule.MEEK_R3, [(b, a, TAIL), (a, b, ARROW)])
                    break
        return out

    def _meek_r4(self, G: Graph) -> List[Orientation]:
        """a o-o b, a o-o c, a o-o d, c --> d --> b, c and b not adjacent: a --> b"""
        out = []
        for b in G.node_names():
            for a in G.adjacent_nodes(b):
                if not is_circle_edge(G, a, b):
                    continue
                found = False
                for d in G.parents(b):
                    if not is_circle_edge(G, a, d):
                        continue
                    for c in G.parents(d):
                        if c != b and is_circle_edge(G, a, c) and not G.is_adjacent(c, b):
                            found = True
                            break
                    if found:
                        break
                if found:
                    self._propose(G, out, Rule.MEEK_R4, [(b, a, TAIL), (a, b, ARROW)])
        return out

    # --------------------------------------------------------------------
    # R1-R10 (Zhang 2008) orientation rules
    # --------------------------------------------------------------------

    def _fci_r1(self, G: Graph) -> List[Orientation]:
        """a *-> b o-* c, a and c not adjacent, <a, b, c> not ambiguous: b --> c"""
        out = []
        for b in G.node_names():
            for a in G.adjacent_nodes(b):
                if G.endpoint(a, b) != ARROW:
                    continue
                for c in G.adjacent_nodes(b):
                    if c == a or G.endpoint(c, b) != CIRCLE or G.is_adjacent(a, c):
                        continue
                    if G.is_ambiguous_triple(a, b, c):
                        continue
                    self._propose(G, out, Rule.FCI_R1, [(c, b, TAIL), (b, c, ARROW)])
        return out

    def _fci_r2(self, G: Graph) -> List[Orientation]:
        """a --> b *-> c or a *-> b --> c, and a *-o c: a *-> c"""
        out = []
        for a in G.node_names():
            for c in G.adjacent_nodes(a):
                if G.endpoint(a, c) != CIRCLE:
                    continue
                for b in G.adjacent_nodes(a):
                    if b == c or not G.is_adjacent(b, c):
                        continue
                    case1 = G.is_parent_of(a, b) and G.endpoint(b, c) == ARROW
                    case2 = G.endpoint(a, b) == ARROW and G.is_parent_of(b, c)
                    if case1 or case2:
                        self._propose(G, out, Rule.FCI_R2, [(a, c, ARROW)])
                        break
        return out

    def _fci_r3(self, G: Graph) -> List[Orientation]:
        """a *-> b <-* c, a *-o d o-* c, a and c not adjacent, d *-o b: d *-> b"""
        out = []
        for b in G.node_names():
            into_b = [v for v in G.adjacent_nodes(b) if G.endpoint(v, b) == ARROW]
            for d in G.adjacent_nodes(b):
                if G.endpoint(d, b) != CIRCLE:
                    continue
                for a, c in combinations(into_b, 2):
                    if a == d or c == d or G.is_adjacent(a, c):
                        continue
                    if not (G.is_adjacent(a, d) and G.is_adjacent(c, d)):
                        continue
                    if G.endpoint(a, d) == CIRCLE and G.endpoint(c, d) == CIRCLE:
                        self._propose(G, out, Rule.FCI_R3, [(d, b, ARROW)])
                        break
        return out

    def _fci_r4(self, G: Graph) -> List[Orientation]:
        """
        Discriminating path <e, ..., a, b, c> for b with b o-* c.
        b in sepset(e, c) gives b --> c and its absence a collider
        (a <-> b <-> c). With no recorded sepset the oracle decides: e and c
        independent given the interior plus b gives b --> c, independent
        given the interior without b gives a collider.
        """
        out = []
        for b in G.node_names():
            for c in G.adjacent_nodes(b):
                if G.endpoint(c, b) != CIRCLE:
                    continue
                for a in G.adjacent_nodes(b):
                    if a == c or G.endpoint(b, a) != ARROW or not G.is_parent_of(a, c):
                        continue
                    if G.is_ambiguous_triple(a, b, c):
                        continue
                    path = find_discriminating_path(G, a, b, c, self.max_path_length)
                    if path is None:
                        continue
                    collider = self._discriminated_collider(path, b)
                    if collider is None:
                        continue
                    e = path[0]
                    if collider:
                        commits = [(a, b, ARROW), (c, b, ARROW)]
                        if G.endpoint(b, c) == CIRCLE:
                            commits.append((b, c, ARROW))
                        self._propose(G, out, Rule.FCI_R4, commits, f"(collider; path {'-'.join(path)})")
                    else:
                        commits = [(c, b, TAIL)]
                        if G.endpoint(b, c) == CIRCLE:
                            commits.append((b, c, ARROW))
                        self._propose(G, out, Rule.FCI_R4, commits, f"(non-collider; path {'-'.join(path)})")
                    logger.debug("Discriminating path %s for %s (from %s)", path, b, e)
        return out

    def _discriminated_collider(self, path: List[str], b: str) -> Optional[bool]:
        """
        True when b is a collider on the discriminating path, False when it
        is not, None when undecided. The recorded sepset(e, c) decides when
        there is one; otherwise the oracle is asked about e and c given the
        path interior with and without b.
        """
        e, c = path[0], path[-1]
        sepset = self.sepsets.get(e, c) if self.sepsets is not None else None
        if sepset is not None:
            return b not in sepset
        if self.oracle is None:
            return None
        interior = [v for v in path[1:-1] if v != b]
        try:
            if self.oracle.test(e, c, interior + [b]).independent:
                return False
            if self.oracle.test(e, c, interior).independent:
                return True
        except OracleFailure as exc:
            self.diagnostics.record(EventKind.ORACLE_FAILURE, str(exc), x=e, y=c)
        return None

    def _fci_r5(self, G: Graph) -> List[Orientation]:
        """a o-o b with an uncovered circle path <a, c, ..., d, b>, a/d and b/c not adjacent: all tails"""
        out = []
        for a, b in ((e.node1, e.node2) for e in G.edges() if e.is_nondirected()):
            for path in uncovered_circle_paths(G, a, b, self.max_path_length):
                if len(path) < 4:
                    continue
                c, d = path[1], path[-2]
                if G.is_adjacent(a, d) or G.is_adjacent(b, c):
                    continue
                commits = [(a, b, TAIL), (b, a, TAIL)]
                for u, v in zip(path[:-1], path[1:]):
                    commits.extend([(u, v, TAIL), (v, u, TAIL)])
                self._propose(G, out, Rule.FCI_R5, commits)
                break
        return out

    def _fci_r6(self, G: Graph) -> List[Orientation]:
        """a --- b o-* c: b --* c"""
        out = []
        for b in G.node_names():
            if not any(G.get_edge(a, b).is_undirected() for a in G.adjacent_nodes(b)):
                continue
            for c in G.adjacent_nodes(b):
                if G.endpoint(c, b) == CIRCLE:
                    self._propose(G, out, Rule.FCI_R6, [(c, b, TAIL)])
        return out

    def _fci_r7(self, G: Graph) -> List[Orientation]:
        """a --o b o-* c, a and c not adjacent: b --* c"""
        out = []
        for b in G.node_names():
            for a in G.adjacent_nodes(b):
                if not (G.endpoint(b, a) == TAIL and G.endpoint(a, b) == CIRCLE):
                    continue
                for c in G.adjacent_nodes(b):
                    if c == a or G.endpoint(c, b) != CIRCLE or G.is_adjacent(a, c):
                        continue
                    self._propose(G, out, Rule.FCI_R7, [(c, b, TAIL)])
        return out

    def _fci_r8(self, G: Graph) -> List[Orientation]:
        """a --> b --> c or a --o b --> c, and a o-> c: a --> c"""
        out = []
        for a in G.node_names():
            for c in G.adjacent_nodes(a):
                if not (G.endpoint(c, a) == CIRCLE and G.endpoint(a, c) == ARROW):
                    continue
                for b in G.adjacent_nodes(a):
                    if b == c or not G.is_parent_of(b, c):
                        continue
                    if G.is_parent_of(a, b) or (G.endpoint(b, a) == TAIL and G.endpoint(a, b) == CIRCLE):
                        self._propose(G, out, Rule.FCI_R8, [(c, a, TAIL)])
                        break
        return out

    def _fci_r9(self, G: Graph) -> List[Orientation]:
        """a o-> c with an uncovered pd path <a, b, ..., c>, b and c not adjacent: a --> c"""
        out = []
        for a in G.node_names():
            for c in G.adjacent_nodes(a):
                if not (G.endpoint(c, a) == CIRCLE and G.endpoint(a, c) == ARROW):
                    continue
                for path in uncovered_pd_paths(G, a, c, max_path_length=self.max_path_length):
                    if len(path) < 4 or G.is_adjacent(path[1], c):
                        continue
                    self._propose(G, out, Rule.FCI_R9, [(c, a, TAIL)])
                    break
        return out

    def _first_steps(self, G: Graph, a: str, target: str, exclude) -> Set[str]:
        """Second nodes of the uncovered pd paths from a to target."""
        return {p[1] for p in uncovered_pd_paths(G, a, target, exclude, self.max_path_length)}

    def _fci_r10(self, G: Graph) -> List[Orientation]:
        """
        a o-> c, b --> c <-- d, uncovered pd paths a..b and a..d whose
        second nodes m and w are distinct and not adjacent: a --> c
        """
        out = []
        for c in G.node_names():
            parents = G.parents(c)
            if len(parents) < 2:
                continue
            for a in G.adjacent_nodes(c):
                if not (G.endpoint(c, a) == CIRCLE and G.endpoint(a, c) == ARROW):
                    continue
                done = False
                for b, d in combinations(parents, 2):
                    if a in (b, d):
                        continue
                    firsts_b = self._first_steps(G, a, b, (c,))
                    if not firsts_b:
                        continue
                    firsts_d = self._first_steps(G, a, d, (c,))
                    for m in firsts_b:
                        if any(m != w and not G.is_adjacent(m, w) for w in firsts_d):
                            self._propose(G, out, Rule.FCI_R10, [(c, a, TAIL)])
                            done = True
                            break
                    if done:
                        break
        return out
