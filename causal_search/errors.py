"""
Exception taxonomy for the search pipeline.

InputError and NonTerminationError abort a run. OracleFailure and
OrientationConflict are recovered locally and only show up in the
diagnostics channel. An illegal final PAG is reported, never raised.
"""


class CausalSearchError(Exception):
    """Base class for all errors raised by causal_search."""


class GraphError(CausalSearchError, ValueError):
    """Invalid operation on a Graph (unknown node, missing edge, self loop, ...)."""


class InputError(CausalSearchError, ValueError):
    """Malformed knowledge or variable set, detected before the search starts."""


class OracleFailure(CausalSearchError):
    """A single independence or score query could not be computed."""


class OrientationConflict(CausalSearchError):
    """An orientation contradicts knowledge or an already committed mark."""

    def __init__(self, message: str, a: str = None, b: str = None):
        super().__init__(message)
        self.a = a
        self.b = b


class KnowledgeConflict(OrientationConflict):
    """An orientation would produce an edge that knowledge rules out."""


class NonTerminationError(CausalSearchError, RuntimeError):
    """The orientation fixed-point loop exceeded its pass bound."""