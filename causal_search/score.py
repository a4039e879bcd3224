"""
Local scores for score-based search.

The Gaussian BIC score is decomposable: total_score = sum of
local_score(node, parents). This allows efficient incremental updates
during the forward/backward phases of the greedy search.
"""

from abc import ABC, abstractmethod
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .errors import InputError, OracleFailure


class ScoreOracle(ABC):
    """Local score of a node given a parent set; higher is better."""

    @property
    @abstractmethod
    def variables(self) -> List[str]:
        ...

    @abstractmethod
    def local_score(self, node: str, parents: Iterable[str]) -> float:
        ...


class GaussianBicScore(ScoreOracle):
    """
    BIC for linear Gaussian models.

    For each (node, parents):
    - Regress X[:, node] on X[:, parents] via OLS (with intercept)
    - log_likelihood = -n/2 * (1 + log(2π) + log(RSS/n))
    - BIC = log_likelihood - penalty_discount * (k+1)/2 * log(n)

    where k = number of parents, n = number of samples.
    """

    def __init__(self, data, var_names: Optional[List[str]] = None, penalty_discount: float = 1.0):
        """
        Args:
            data: (n_samples, n_vars) array or DataFrame
            var_names: Variable names for array input
            penalty_discount: Multiplier on the complexity penalty
        """
        if isinstance(data, pd.DataFrame):
            if var_names is None:
                var_names = [str(c) for c in data.columns]
            data = data.to_numpy(dtype=float)
        self.X = np.asarray(data, dtype=float)
        n, p = self.X.shape
        if var_names is None:
            var_names = [f"X{i}" for i in range(p)]
        if len(var_names) != p:
            raise InputError(f"{len(var_names)} names for {p} columns")
        self._names = list(var_names)
        self._index = {name: k for k, name in enumerate(self._names)}
        self.penalty_discount = penalty_discount

    @property
    def variables(self) -> List[str]:
        return list(self._names)

    def local_score(self, node: str, parents: Iterable[str]) -> float:
        n = self.X.shape[0]
        y = self.X[:, self._index[node]]
        parent_indices = [self._index[p] for p in parents]

        if len(parent_indices) == 0:
            # No parents: just use variance of y
            rss = np.sum((y - np.mean(y)) ** 2)
        else:
            X_with_intercept = np.column_stack([np.ones(n), self.X[:, parent_indices]])
            try:
                beta, _, _, _ = np.linalg.lstsq(X_with_intercept, y, rcond=None)
            except np.linalg.LinAlgError as exc:
                raise OracleFailure(f"OLS failed for {node} | {list(parents)}") from exc
            rss = np.sum((y - X_with_intercept @ beta) ** 2)

        # Prevent log(0)
        if rss <= 0:
            rss = 1e-10

        log_likelihood = -n / 2 * (1 + np.log(2 * np.pi) + np.log(rss / n))
        # k+1 accounts for intercept and k parent coefficients
        num_params = len(parent_indices) + 1
        return float(log_likelihood - self.penalty_discount * (num_params / 2) * np.log(n))


class ScoreCache:
    """Local scores memoised on (node, parent set), with hit/miss counts."""

    def __init__(self, score: ScoreOracle):
        self.score = score
        self._scores: Dict[Tuple[str, FrozenSet[str]], float] = {}
        self.hits = 0
        self.misses = 0

    def local_score(self, node: str, parents: Iterable[str]) -> float:
        key = (node, frozenset(parents))
        value = self._scores.get(key)
        if value is not None:
            self.hits += 1
            return value
        self.misses += 1
        value = self.score.local_score(node, sorted(key[1]))
        self._scores[key] = value
        return value

    def delta(self, node: str, parents: Iterable[str], add: Optional[str] = None,
              remove: Optional[str] = None) -> float:
        """Score of ``node`` after ``add`` joins or ``remove`` leaves its parents, minus the current one."""
        parents = set(parents)
        changed = set(parents)
        if add is not None:
            changed.add(add)
        if remove is not None:
            changed.discard(remove)
        return self.local_score(node, changed) - self.local_score(node, parents)

    def stats(self) -> Dict[str, float]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total if total else 0.0,
            "size": len(self._scores),
        }
