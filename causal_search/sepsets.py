from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple


class SepsetMap:
    """
    Separating sets keyed by unordered node pair.

    Each entry holds the conditioning set that made the pair independent
    and the p-value of that test (None when unknown).
    """

    def __init__(self):
        self._sepsets: Dict[FrozenSet[str], FrozenSet[str]] = {}
        self._p_values: Dict[FrozenSet[str], Optional[float]] = {}

    @staticmethod
    def _key(x: str, y: str) -> FrozenSet[str]:
        return frozenset((x, y))

    def set(self, x: str, y: str, z: Iterable[str], p_value: Optional[float] = None):
        key = self._key(x, y)
        self._sepsets[key] = frozenset(z)
        self._p_values[key] = p_value

    def get(self, x: str, y: str) -> Optional[FrozenSet[str]]:
        return self._sepsets.get(self._key(x, y))

    def p_value(self, x: str, y: str) -> Optional[float]:
        return self._p_values.get(self._key(x, y))

    def contains(self, x: str, y: str) -> bool:
        return self._key(x, y) in self._sepsets

    def remove(self, x: str, y: str):
        key = self._key(x, y)
        self._sepsets.pop(key, None)
        self._p_values.pop(key, None)

    def is_in_sepset(self, node: str, x: str, y: str) -> bool:
        sepset = self.get(x, y)
        return sepset is not None and node in sepset

    def pairs(self) -> List[Tuple[str, str]]:
        return sorted(tuple(sorted(key)) for key in self._sepsets)

    def copy(self) -> "SepsetMap":
        new_map = SepsetMap()
        new_map._sepsets = dict(self._sepsets)
        new_map._p_values = dict(self._p_values)
        return new_map

    def __contains__(self, pair) -> bool:
        x, y = pair
        return self.contains(x, y)

    def __len__(self):
        return len(self._sepsets)

    def __repr__(self):
        items = ", ".join(f"{x}-{y}: {sorted(self.get(x, y))}" for x, y in self.pairs())
        return f"SepsetMap({items})"
