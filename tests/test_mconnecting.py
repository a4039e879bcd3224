import unittest
import os
import sys
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from causal_search.graph import Graph, TripleMark
from causal_search.mconnecting import (
    conditioning_closure,
    find_m_connecting_paths,
    find_m_connecting_paths_of_length,
    is_m_separated,
    iter_m_connecting_paths,
    possible_dsep,
)


class TestMSeparationInDags(unittest.TestCase):
    def setUp(self):
        # A --> B <-- C, B --> D, C --> E
        self.G = Graph(["A", "B", "C", "D", "E"])
        self.G.add_directed_edge("A", "B")
        self.G.add_directed_edge("C", "B")
        self.G.add_directed_edge("B", "D")
        self.G.add_directed_edge("C", "E")

    def test_collider_blocks_when_unconditioned(self):
        self.assertTrue(is_m_separated(self.G, "A", "C", []))
        self.assertTrue(is_m_separated(self.G, "A", "E", []))

    def test_conditioning_on_collider_or_descendant_opens(self):
        self.assertFalse(is_m_separated(self.G, "A", "C", ["B"]))
        self.assertFalse(is_m_separated(self.G, "A", "C", ["D"]))
        self.assertFalse(is_m_separated(self.G, "A", "E", ["D"]))
        self.assertTrue(is_m_separated(self.G, "A", "E", ["D", "C"]))

    def test_conditioning_on_chain_node_blocks(self):
        self.assertFalse(is_m_separated(self.G, "A", "D", []))
        self.assertTrue(is_m_separated(self.G, "A", "D", ["B"]))

    def test_closure_contains_ancestors(self):
        self.assertEqual(conditioning_closure(self.G, ["D"]), {"A", "B", "C", "D"})

    def test_paths_are_reported_with_conditions(self):
        paths = find_m_connecting_paths(self.G, "A", "C", ["D"])
        self.assertEqual(len(paths), 1)
        self.assertEqual(paths[0].path, ("A", "B", "C"))
        self.assertEqual(paths[0].conditions, frozenset({"D"}))
        self.assertEqual(len(paths[0]), 2)

    def test_adjacent_nodes_give_single_path(self):
        paths = find_m_connecting_paths(self.G, "A", "B", ["C", "D"])
        self.assertEqual([p.path for p in paths], [("A", "B")])

    def test_unknown_nodes_give_no_paths(self):
        self.assertEqual(find_m_connecting_paths(self.G, "A", "Z", []), ())
        self.assertEqual(find_m_connecting_paths(self.G, "A", "A", []), ())


class TestPossiblyMConnecting(unittest.TestCase):
    def setUp(self):
        # A o-o B o-o C
        self.G = Graph(["A", "B", "C"])
        self.G.add_nondirected_edge("A", "B")
        self.G.add_nondirected_edge("B", "C")

    def test_open_circle_triple_in_z_passes(self):
        self.assertFalse(is_m_separated(self.G, "A", "C", ["B"]))
        self.assertFalse(is_m_separated(self.G, "A", "C", []))

    def test_underlined_triple_in_z_blocks(self):
        self.G.mark_triple("A", "B", "C", TripleMark.NONCOLLIDER)
        self.assertTrue(is_m_separated(self.G, "A", "C", ["B"]))
        self.assertFalse(is_m_separated(self.G, "A", "C", []))

    def test_partially_oriented_triple_in_z_blocks(self):
        G = Graph(["A", "B", "C"])
        G.add_partially_oriented_edge("B", "A")
        G.add_nondirected_edge("B", "C")
        self.assertTrue(is_m_separated(G, "A", "C", ["B"]))

    def test_definite_collider_needs_closure(self):
        G = Graph(["A", "B", "C"])
        G.add_partially_oriented_edge("A", "B")
        G.add_partially_oriented_edge("C", "B")
        self.assertTrue(is_m_separated(G, "A", "C", []))
        self.assertFalse(is_m_separated(G, "A", "C", ["B"]))


class TestPathLengths(unittest.TestCase):
    def setUp(self):
        # X --> A --> Y and X --> B --> C --> Y
        self.G = Graph(["X", "A", "B", "C", "Y"])
        self.G.add_directed_edge("X", "A")
        self.G.add_directed_edge("A", "Y")
        self.G.add_directed_edge("X", "B")
        self.G.add_directed_edge("B", "C")
        self.G.add_directed_edge("C", "Y")

    def test_all_paths(self):
        paths = sorted(p.path for p in find_m_connecting_paths(self.G, "X", "Y", []))
        self.assertEqual(paths, [("X", "A", "Y"), ("X", "B", "C", "Y")])

    def test_paths_of_exact_length(self):
        two = find_m_connecting_paths_of_length(self.G, "X", "Y", [], 2)
        three = find_m_connecting_paths_of_length(self.G, "X", "Y", [], 3)
        self.assertEqual([p.path for p in two], [("X", "A", "Y")])
        self.assertEqual([p.path for p in three], [("X", "B", "C", "Y")])
        self.assertEqual(find_m_connecting_paths_of_length(self.G, "X", "Y", [], 4), ())

    def test_conditioning_blocks_one_path(self):
        paths = [p.path for p in iter_m_connecting_paths(self.G, "X", "Y", ["A"])]
        self.assertEqual(paths, [("X", "B", "C", "Y")])


class TestPossibleDsep(unittest.TestCase):
    def setUp(self):
        # A o-> B <-o C, C o-o D
        self.G = Graph(["A", "B", "C", "D"])
        self.G.add_partially_oriented_edge("A", "B")
        self.G.add_partially_oriented_edge("C", "B")
        self.G.add_nondirected_edge("C", "D")

    def test_collider_paths_are_followed(self):
        self.assertEqual(possible_dsep(self.G, "A"), {"B", "C"})

    def test_y_is_excluded(self):
        self.assertEqual(possible_dsep(self.G, "A", "B"), {"C"})

    def test_path_length_bound(self):
        self.assertEqual(possible_dsep(self.G, "A", max_path_length=1), {"B"})

    def test_triangles_are_followed(self):
        self.G.add_nondirected_edge("B", "D")
        self.assertEqual(possible_dsep(self.G, "A"), {"B", "C", "D"})


if __name__ == '__main__':
    unittest.main()
