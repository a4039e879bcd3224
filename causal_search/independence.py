"""
Conditional independence oracles.

The search only depends on the abstract IndependenceOracle. FisherZOracle
and GraphOracle are ready-made collaborators for Gaussian data and for
known ground-truth graphs.
"""

import threading
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from math import log, sqrt
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.stats import norm

from .errors import InputError, OracleFailure
from .graph import Graph, NodeType
from .mconnecting import is_m_separated


@dataclass(frozen=True)
class IndependenceResult:
    independent: bool
    p_value: float


class IndependenceOracle(ABC):
    """test(x, y, z) must be deterministic for identical inputs within a run."""

    @property
    @abstractmethod
    def variables(self) -> List[str]:
        ...

    @abstractmethod
    def test(self, x: str, y: str, z: Iterable[str]) -> IndependenceResult:
        """Raise OracleFailure when the test cannot be computed."""


class FisherZOracle(IndependenceOracle):
    """
    Gaussian CI test using Fisher-Z on partial correlations.
    data:      (n_samples, n_vars) array or DataFrame (column names become variables)
    var_names: variable names for array input
    alpha:     significance level; independent iff p_value > alpha
    """

    def __init__(self, data, var_names: Optional[List[str]] = None, alpha: float = 0.05):
        if isinstance(data, pd.DataFrame):
            if var_names is None:
                var_names = [str(c) for c in data.columns]
            data = data.to_numpy(dtype=float)
        data = np.asarray(data, dtype=float)
        if data.ndim != 2:
            raise InputError(f"Expected a 2-d data matrix, got shape {data.shape}")
        n, p = data.shape
        if var_names is None:
            var_names = [f"X{i}" for i in range(p)]
        if len(var_names) != p:
            raise InputError(f"{len(var_names)} names for {p} columns")
        if len(set(var_names)) != p:
            raise InputError("Duplicate variable names")

        self.alpha = alpha
        self.n_samples = n
        self._names = list(var_names)
        self._index = {name: k for k, name in enumerate(self._names)}
        self._cov = np.cov(data, rowvar=False)
        self._cache: Dict[Tuple[FrozenSet[str], FrozenSet[str]], IndependenceResult] = {}

    @property
    def variables(self) -> List[str]:
        return list(self._names)

    def _ix(self, name):
        try:
            return self._index[name]
        except KeyError:
            raise InputError(f"Unknown variable: {name}") from None

    def partial_correlation(self, x: str, y: str, z: Iterable[str]) -> float:
        var_idx = [self._ix(x), self._ix(y)] + [self._ix(w) for w in z]
        C = self._cov[np.ix_(var_idx, var_idx)]
        if not np.all(np.isfinite(C)):
            raise OracleFailure(f"Non-finite covariance for {x}, {y} | {sorted(z)}")
        if np.linalg.cond(C) > 1e12:
            raise OracleFailure(f"Singular covariance for {x}, {y} | {sorted(z)}")
        # precision; the first two rows/cols correspond to x and y
        K = np.linalg.inv(C)
        denom = K[0, 0] * K[1, 1]
        if denom <= 0:
            raise OracleFailure(f"Degenerate precision matrix for {x}, {y} | {sorted(z)}")
        return float(-K[0, 1] / np.sqrt(denom))

    def test(self, x: str, y: str, z: Iterable[str]) -> IndependenceResult:
        z = frozenset(z)
        key = (frozenset((x, y)), z)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        r = self.partial_correlation(x, y, sorted(z, key=self._ix))
        r = max(min(r, 0.999999), -0.999999)
        stat = 0.5 * log((1 + r) / (1 - r)) * sqrt(max(self.n_samples - len(z) - 3, 1))
        p_value = float(2.0 * (1.0 - norm.cdf(abs(stat))))
        result = IndependenceResult(p_value > self.alpha, p_value)
        self._cache[key] = result
        return result


class GraphOracle(IndependenceOracle):
    """
    Exact oracle reading m-separation off a ground-truth DAG or MAG.
    Latent nodes are not offered as variables but still carry paths.
    """

    def __init__(self, graph: Graph, observed: Optional[Iterable[str]] = None):
        self.graph = graph
        if observed is None:
            observed = [n.name for n in graph.nodes if n.node_type == NodeType.MEASURED]
        self._observed = list(observed)
        for name in self._observed:
            if not graph.contains_node(name):
                raise InputError(f"Unknown variable: {name}")

    @property
    def variables(self) -> List[str]:
        return list(self._observed)

    def test(self, x: str, y: str, z: Iterable[str]) -> IndependenceResult:
        independent = is_m_separated(self.graph, x, y, z)
        return IndependenceResult(independent, 1.0 if independent else 0.0)


class CountingOracle(IndependenceOracle):
    """Wraps another oracle and records every call (thread-safe)."""

    def __init__(self, oracle: IndependenceOracle):
        self.oracle = oracle
        self.calls: List[Tuple[str, str, FrozenSet[str], Optional[IndependenceResult]]] = []
        self.failures = 0
        self._by_size = Counter()
        self._lock = threading.Lock()

    @property
    def variables(self) -> List[str]:
        return self.oracle.variables

    def test(self, x: str, y: str, z: Iterable[str]) -> IndependenceResult:
        z = frozenset(z)
        try:
            result = self.oracle.test(x, y, z)
        except OracleFailure:
            with self._lock:
                self.calls.append((x, y, z, None))
                self.failures += 1
                self._by_size[len(z)] += 1
            raise
        with self._lock:
            self.calls.append((x, y, z, result))
            self._by_size[len(z)] += 1
        return result

    def tests_for(self, x: str, y: str) -> List[FrozenSet[str]]:
        pair = {x, y}
        return [z for a, b, z, _ in self.calls if {a, b} == pair]

    def count_by_size(self) -> Dict[int, int]:
        return dict(sorted(self._by_size.items()))

    def __len__(self):
        return len(self.calls)
