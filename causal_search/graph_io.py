"""
Graph I/O utilities for the Tetrad text graph format.

Tetrad graph format:
    Graph Nodes:
    X1;X2;X3;X4

    Graph Edges:
    1. X1 --> X2
    2. X2 <-> X3
    3. X3 --- X4
    4. X1 o-> X4

Edge types:
    --> : directed edge (tail to arrow)
    <-- : directed edge (arrow to tail)
    <-> : bidirected edge (latent confounder)
    --- : undirected edge
    o-> : PAG circle-arrow
    <-o : PAG arrow-circle
    o-o : PAG circle-circle
    --o / o-- : PAG tail-circle
"""

import re
from typing import Tuple

from .errors import GraphError
from .graph import Graph, ARROW, CIRCLE, TAIL

_EDGE_PATTERN = re.compile(r'^(\S+)\s+([-<o])-([->o])\s+(\S+)$')

_LEFT_MARKS = {"-": TAIL, "<": ARROW, "o": CIRCLE}
_RIGHT_MARKS = {"-": TAIL, ">": ARROW, "o": CIRCLE}


def parse_edge(edge_str: str) -> Tuple[str, str, int, int]:
    """
    Parse a single Tetrad edge string into (node1, node2, mark1, mark2).

    Examples:
        "X1 --> X2"    -> ("X1", "X2", TAIL, ARROW)
        "3. X1 o-o X2" -> ("X1", "X2", CIRCLE, CIRCLE)
    """
    # Remove leading number and period if present (e.g., "1. X1 --> X2")
    edge_str = re.sub(r'^\d+\.\s*', '', edge_str.strip())
    match = _EDGE_PATTERN.match(edge_str)
    if match is None:
        raise GraphError(f"Unrecognised edge: {edge_str!r}")
    src, left, right, tgt = match.groups()
    return src, tgt, _LEFT_MARKS[left], _RIGHT_MARKS[right]


def parse_graph(content: str) -> Graph:
    """Parse a Tetrad graph from string content."""
    nodes = []
    edges = []

    section = None
    for line in content.strip().split('\n'):
        line = line.strip()
        if not line:
            continue
        if line.startswith('Graph Nodes'):
            section = 'nodes'
            continue
        if line.startswith('Graph Edges'):
            section = 'edges'
            continue
        if section == 'nodes':
            nodes.extend(name.strip() for name in line.split(';') if name.strip())
        elif section == 'edges':
            edges.append(parse_edge(line))

    if section is None:
        raise GraphError("Missing 'Graph Nodes:' section")

    G = Graph(nodes)
    for src, tgt, mark_src, mark_tgt in edges:
        G.add_edge(src, tgt, mark_src, mark_tgt)
    return G


def format_graph(graph: Graph) -> str:
    """Render ``graph`` in the Tetrad text format (inverse of parse_graph)."""
    return str(graph) + "\n"


def read_graph(filepath: str) -> Graph:
    with open(filepath, 'r') as f:
        return parse_graph(f.read())


def write_graph(graph: Graph, filepath: str):
    with open(filepath, 'w') as f:
        f.write(format_graph(graph))
