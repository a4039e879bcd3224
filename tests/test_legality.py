import unittest
import os
import sys
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from causal_search.graph import Graph
from causal_search.legality import check_cpdag, is_legal_pag
from causal_search.sepsets import SepsetMap


class TestPagLegality(unittest.TestCase):
    def setUp(self):
        self.G = Graph(["A", "B", "C", "D"])

    def test_circle_graph_is_legal(self):
        self.G.add_nondirected_edge("A", "B")
        report = is_legal_pag(self.G)
        self.assertTrue(report)
        self.assertEqual(str(report), "legal")

    def test_undirected_edge(self):
        self.G.add_undirected_edge("A", "B")
        report = is_legal_pag(self.G)
        self.assertFalse(report)
        self.assertTrue(report.reason.startswith("undirected edge present"))
        self.assertTrue(is_legal_pag(self.G, allow_selection_bias=True))

    def test_directed_cycle(self):
        self.G.add_directed_edge("A", "B")
        self.G.add_directed_edge("B", "C")
        self.G.add_directed_edge("C", "A")
        report = is_legal_pag(self.G)
        self.assertFalse(report)
        self.assertIn("directed cycle", report.reason)

    def test_almost_directed_cycle(self):
        self.G.add_directed_edge("A", "C")
        self.G.add_directed_edge("C", "B")
        self.G.add_bidirected_edge("A", "B")
        report = is_legal_pag(self.G)
        self.assertFalse(report)
        self.assertIn("almost directed cycle", report.reason)

    def test_collider_against_sepset(self):
        self.G.add_partially_oriented_edge("A", "B")
        self.G.add_partially_oriented_edge("C", "B")
        sepsets = SepsetMap()
        sepsets.set("A", "C", ["B"])
        self.assertTrue(is_legal_pag(self.G))
        report = is_legal_pag(self.G, sepsets)
        self.assertFalse(report)
        self.assertIn("collider <A, B, C>", report.reason)

    def test_noncollider_against_sepset(self):
        self.G.add_directed_edge("A", "B")
        self.G.add_directed_edge("B", "C")
        sepsets = SepsetMap()
        sepsets.set("A", "C", [])
        report = is_legal_pag(self.G, sepsets)
        self.assertFalse(report)
        self.assertIn("non-collider", report.reason)

    def test_discriminating_path_against_sepset(self):
        # D --> A <-> B, A --> C, B --> C; B is a non-collider on <D, A, B, C>
        self.G.add_directed_edge("D", "A")
        self.G.add_bidirected_edge("A", "B")
        self.G.add_directed_edge("A", "C")
        self.G.add_directed_edge("B", "C")
        sepsets = SepsetMap()
        sepsets.set("D", "C", ["A"])
        sepsets.set("D", "B", [])
        report = is_legal_pag(self.G, sepsets)
        self.assertFalse(report)
        self.assertIn("discriminating path <D, A, B, C>", report.reason)

    def test_consistent_sepsets_are_legal(self):
        self.G.add_partially_oriented_edge("A", "B")
        self.G.add_partially_oriented_edge("C", "B")
        self.G.add_directed_edge("B", "D")
        sepsets = SepsetMap()
        sepsets.set("A", "C", [])
        sepsets.set("A", "D", ["B"])
        sepsets.set("C", "D", ["B"])
        self.assertTrue(is_legal_pag(self.G, sepsets))


class TestCpdagLegality(unittest.TestCase):
    def test_circles_are_illegal(self):
        G = Graph(["A", "B"])
        G.add_nondirected_edge("A", "B")
        report = check_cpdag(G)
        self.assertFalse(report)
        self.assertIn("circle endpoint present", report.reason)

    def test_undirected_and_directed_edges_are_legal(self):
        G = Graph(["A", "B", "C"])
        G.add_undirected_edge("A", "B")
        G.add_directed_edge("B", "C")
        self.assertTrue(check_cpdag(G))

    def test_cycle(self):
        G = Graph(["A", "B", "C"])
        G.add_directed_edge("A", "B")
        G.add_directed_edge("B", "C")
        G.add_directed_edge("C", "A")
        self.assertIn("directed cycle", check_cpdag(G).reason)


if __name__ == '__main__':
    unittest.main()
