import unittest
import os
import sys
import tempfile
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from causal_search.errors import GraphError
from causal_search.graph import Graph, CIRCLE, ARROW, TAIL
from causal_search.graph_io import parse_edge, parse_graph, format_graph, read_graph, write_graph


PAG_TEXT = """Graph Nodes:
X1;X2;X3;X4

Graph Edges:
1. X1 --> X2
2. X2 <-> X3
3. X3 --- X4
4. X1 o-> X4
"""


class TestGraphIO(unittest.TestCase):
    def test_parse_edge(self):
        self.assertEqual(parse_edge("X1 --> X2"), ("X1", "X2", TAIL, ARROW))
        self.assertEqual(parse_edge("3. X1 o-o X2"), ("X1", "X2", CIRCLE, CIRCLE))
        self.assertEqual(parse_edge("X1 <-o X2"), ("X1", "X2", ARROW, CIRCLE))
        self.assertEqual(parse_edge("X1 --o X2"), ("X1", "X2", TAIL, CIRCLE))

    def test_parse_edge_rejects_garbage(self):
        with self.assertRaises(GraphError):
            parse_edge("X1 ==> X2")

    def test_parse_graph(self):
        G = parse_graph(PAG_TEXT)
        self.assertEqual(G.node_names(), ["X1", "X2", "X3", "X4"])
        self.assertTrue(G.is_parent_of("X1", "X2"))
        self.assertTrue(G.get_edge("X2", "X3").is_bidirected())
        self.assertTrue(G.get_edge("X3", "X4").is_undirected())
        self.assertEqual(G.endpoint("X1", "X4"), ARROW)
        self.assertEqual(G.endpoint("X4", "X1"), CIRCLE)

    def test_parse_graph_needs_nodes_section(self):
        with self.assertRaises(GraphError):
            parse_graph("1. X1 --> X2")

    def test_format_then_parse(self):
        G = Graph(["A", "B", "C"])
        G.add_partially_oriented_edge("C", "A")
        G.add_nondirected_edge("B", "C")
        text = format_graph(G)
        self.assertIn("1. A <-o C", text)
        self.assertEqual(parse_graph(text), G)

    def test_read_write(self):
        G = parse_graph(PAG_TEXT)
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "pag.txt")
            write_graph(G, path)
            self.assertEqual(read_graph(path), G)


if __name__ == '__main__':
    unittest.main()
