import unittest
import os
import sys
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from causal_search.errors import GraphError
from causal_search.graph import (
    Graph, Node, NodeType, Edge, Triple, TripleMark, complete_graph, unordered_pairs,
    NULL, CIRCLE, ARROW, TAIL,
)


class TestGraphStructure(unittest.TestCase):
    def setUp(self):
        self.G = Graph(["A", "B", "C", "D"])

    def test_marks_are_kept_per_endpoint(self):
        self.G.add_edge("A", "B", CIRCLE, ARROW)
        self.assertEqual(self.G.endpoint("A", "B"), ARROW)   # mark at B
        self.assertEqual(self.G.endpoint("B", "A"), CIRCLE)  # mark at A
        edge = self.G.get_edge("B", "A")
        self.assertEqual(edge.node1, "B")
        self.assertEqual(edge.endpoint_at("A"), CIRCLE)
        self.assertEqual(str(self.G.get_edge("A", "B")), "A o-> B")

    def test_adjacency_is_symmetric(self):
        self.G.add_directed_edge("A", "B")
        self.assertTrue(self.G.is_adjacent("A", "B"))
        self.assertTrue(self.G.is_adjacent("B", "A"))
        self.assertEqual(self.G.adjacent_nodes("B"), ["A"])
        self.assertEqual(self.G.endpoint("A", "C"), NULL)

    def test_add_edge_rejects_self_loops_and_duplicates(self):
        with self.assertRaises(GraphError):
            self.G.add_directed_edge("A", "A")
        self.G.add_directed_edge("A", "B")
        with self.assertRaises(GraphError):
            self.G.add_undirected_edge("B", "A")
        with self.assertRaises(GraphError):
            self.G.add_directed_edge("A", "Z")

    def test_set_endpoint_leaves_other_end_alone(self):
        self.G.add_nondirected_edge("A", "B")
        self.G.set_endpoint("A", "B", ARROW)
        self.assertEqual(self.G.endpoint("A", "B"), ARROW)
        self.assertEqual(self.G.endpoint("B", "A"), CIRCLE)
        self.G.set_endpoint("B", "A", TAIL)
        self.assertTrue(self.G.is_parent_of("A", "B"))

    def test_set_mark_at_names_the_near_end(self):
        self.G.add_nondirected_edge("A", "B")
        self.G.set_mark_at("A", "B", TAIL)
        self.assertEqual(self.G.endpoint("B", "A"), TAIL)
        self.assertEqual(self.G.endpoint("A", "B"), CIRCLE)
        with self.assertRaises(GraphError):
            self.G.set_mark_at("A", "C", TAIL)

    def test_set_endpoint_requires_an_edge(self):
        with self.assertRaises(GraphError):
            self.G.set_endpoint("A", "B", ARROW)
        self.G.add_nondirected_edge("A", "B")
        with self.assertRaises(GraphError):
            self.G.set_endpoint("A", "B", NULL)

    def test_remove_edge_drops_triples(self):
        self.G.add_nondirected_edge("A", "B")
        self.G.add_nondirected_edge("B", "C")
        self.G.mark_triple("A", "B", "C", TripleMark.NONCOLLIDER)
        self.assertTrue(self.G.is_underline_triple("C", "B", "A"))
        self.G.remove_edge("B", "C")
        self.assertIsNone(self.G.triple_mark("A", "B", "C"))
        self.assertEqual(self.G.num_edges(), 1)
        with self.assertRaises(GraphError):
            self.G.remove_edge("B", "C")

    def test_remove_node_cascades(self):
        self.G.add_directed_edge("A", "B")
        self.G.add_directed_edge("B", "C")
        self.G.add_directed_edge("C", "D")
        self.G.remove_node("B")
        self.assertEqual(self.G.node_names(), ["A", "C", "D"])
        self.assertEqual(self.G.num_edges(), 1)
        self.assertTrue(self.G.is_parent_of("C", "D"))
        self.assertEqual(self.G.adjacent_nodes("A"), [])

    def test_add_node_extends_matrix(self):
        self.G.add_directed_edge("A", "B")
        self.G.add_node(Node("L", NodeType.LATENT))
        self.G.add_bidirected_edge("L", "A")
        self.assertEqual(self.G.get_node("L").node_type, NodeType.LATENT)
        self.assertTrue(self.G.get_edge("A", "L").is_bidirected())
        self.assertTrue(self.G.is_parent_of("A", "B"))
        with self.assertRaises(GraphError):
            self.G.add_node("A")

    def test_edges_are_listed_in_node_order(self):
        self.G.add_directed_edge("D", "A")
        self.G.add_undirected_edge("B", "C")
        self.assertEqual([str(e) for e in self.G.edges()], ["A <-- D", "B --- C"])


class TestGraphQueries(unittest.TestCase):
    def setUp(self):
        # A --> B <-- C, B --> D
        self.G = Graph(["A", "B", "C", "D"])
        self.G.add_directed_edge("A", "B")
        self.G.add_directed_edge("C", "B")
        self.G.add_directed_edge("B", "D")

    def test_parents_and_children(self):
        self.assertEqual(self.G.parents("B"), ["A", "C"])
        self.assertEqual(self.G.children("B"), ["D"])

    def test_colliders(self):
        self.assertTrue(self.G.is_def_collider("A", "B", "C"))
        self.assertFalse(self.G.is_def_collider("A", "B", "D"))
        self.assertTrue(self.G.is_def_noncollider("A", "B", "D"))
        self.assertTrue(self.G.is_unshielded("A", "B", "C"))
        self.assertFalse(self.G.forms_triangle("A", "B", "C"))

    def test_directed_paths_and_ancestors(self):
        self.assertTrue(self.G.exists_directed_path("A", "D"))
        self.assertFalse(self.G.exists_directed_path("D", "A"))
        self.assertEqual(self.G.ancestors(["D"]), {"A", "B", "C", "D"})
        self.assertTrue(self.G.is_ancestor_of("C", "D"))
        self.assertFalse(self.G.exists_directed_cycle())

    def test_directed_cycle(self):
        self.G.add_directed_edge("D", "A")
        self.assertTrue(self.G.exists_directed_cycle())

    def test_circle_edges_do_not_count_as_directed(self):
        G = Graph(["A", "B", "C"])
        G.add_partially_oriented_edge("A", "B")
        G.add_partially_oriented_edge("B", "C")
        G.add_partially_oriented_edge("C", "A")
        self.assertFalse(G.exists_directed_cycle())
        self.assertEqual(G.parents("B"), [])

    def test_noncollider_needs_underline_for_circles(self):
        G = Graph(["A", "B", "C"])
        G.add_nondirected_edge("A", "B")
        G.add_nondirected_edge("B", "C")
        self.assertFalse(G.is_def_noncollider("A", "B", "C"))
        G.mark_triple("A", "B", "C", TripleMark.NONCOLLIDER)
        self.assertTrue(G.is_def_noncollider("A", "B", "C"))


class TestGraphCopies(unittest.TestCase):
    def test_copy_is_independent(self):
        G = complete_graph(["A", "B", "C"])
        H = G.copy()
        H.remove_edge("A", "B")
        self.assertTrue(G.is_adjacent("A", "B"))
        self.assertNotEqual(G, H)

    def test_subgraph_keeps_marks_and_triples(self):
        G = Graph(["A", "B", "C", "D"])
        G.add_partially_oriented_edge("A", "B")
        G.add_nondirected_edge("B", "C")
        G.add_directed_edge("C", "D")
        G.mark_triple("A", "B", "C", TripleMark.AMBIGUOUS)
        sub = G.subgraph(["A", "B", "C"])
        self.assertEqual(sub.node_names(), ["A", "B", "C"])
        self.assertEqual(sub.endpoint("A", "B"), ARROW)
        self.assertTrue(sub.is_ambiguous_triple("C", "B", "A"))
        self.assertEqual(sub.num_edges(), 2)

    def test_reorient_all_with(self):
        G = Graph(["A", "B", "C"])
        G.add_directed_edge("A", "B")
        G.add_bidirected_edge("B", "C")
        G.reorient_all_with(CIRCLE)
        self.assertTrue(all(e.is_nondirected() for e in G.edges()))

    def test_complete_graph(self):
        G = complete_graph(["A", "B", "C", "D"])
        self.assertEqual(G.num_edges(), 6)
        self.assertEqual(G.degree("A"), 3)
        self.assertEqual(len(unordered_pairs(G.node_names())), 6)

    def test_to_networkx(self):
        G = Graph(["A", "B"])
        G.add_partially_oriented_edge("A", "B")
        nxg = G.to_networkx()
        self.assertEqual(set(nxg.nodes), {"A", "B"})
        data = nxg.edges["A", "B"]
        self.assertEqual(data["endpoints"], {"A": "circle", "B": "arrow"})
        self.assertEqual(data["label"], "A o-> B")


class TestEdgeAndTriple(unittest.TestCase):
    def test_edge_predicates(self):
        self.assertTrue(Edge("A", "B", TAIL, ARROW).points_towards("B"))
        self.assertFalse(Edge("A", "B", TAIL, ARROW).points_towards("A"))
        self.assertTrue(Edge("A", "B", CIRCLE, ARROW).is_partially_oriented())
        self.assertEqual(Edge("A", "B", TAIL, ARROW).reverse(), Edge("B", "A", ARROW, TAIL))
        with self.assertRaises(GraphError):
            Edge("A", "B", TAIL, ARROW).other("C")

    def test_triple_is_unordered(self):
        self.assertEqual(Triple("C", "B", "A"), Triple("A", "B", "C"))
        self.assertEqual(str(Triple("C", "B", "A")), "<A, B, C>")


if __name__ == '__main__':
    unittest.main()
