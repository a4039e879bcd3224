import random
import unittest
import os
import sys
import numpy as np
import pandas as pd
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from causal_search.algo import PC, FCI, GFCI
from causal_search.diagnostics import CancellationToken, EventKind
from causal_search.errors import InputError
from causal_search.ges import GreedyScoreSearch
from causal_search.graph import Graph, Node, NodeType, CIRCLE, ARROW, TAIL
from causal_search.independence import GraphOracle
from causal_search.knowledge import Knowledge
from causal_search.score import GaussianBicScore


def collider_dag():
    """A --> B <-- C, B --> D"""
    G = Graph(["A", "B", "C", "D"])
    G.add_directed_edge("A", "B")
    G.add_directed_edge("C", "B")
    G.add_directed_edge("B", "D")
    return G


def random_latent_dag(rng, n_nodes=8, n_latent=2, p_edge=0.3):
    """Random DAG in index order; ``n_latent`` randomly chosen nodes are hidden."""
    names = [f"V{i}" for i in range(n_nodes)]
    truth = Graph(names)
    for i in range(n_nodes):
        for j in range(i + 1, n_nodes):
            if rng.random() < p_edge:
                truth.add_directed_edge(names[i], names[j])
    hidden = set(rng.sample(names, n_latent))
    return truth, [n for n in names if n not in hidden]


def assert_sound_pag(test, truth, pag, msg=""):
    """A tail at u means u is an ancestor of v, an arrowhead at u means it is not."""
    for edge in pag.edges():
        for u, v in ((edge.node1, edge.node2), (edge.node2, edge.node1)):
            mark = pag.endpoint(v, u)
            ancestor = u in truth.ancestors([v])
            if mark == TAIL:
                test.assertTrue(ancestor, f"{msg} {edge}: {u} is not an ancestor of {v}")
            elif mark == ARROW:
                test.assertFalse(ancestor, f"{msg} {edge}: {u} is an ancestor of {v}")


class TestPC(unittest.TestCase):
    def test_collider_and_meek_orientation(self):
        result = PC().search(GraphOracle(collider_dag()))
        G = result.graph
        self.assertTrue(G.is_parent_of("A", "B"))
        self.assertTrue(G.is_parent_of("C", "B"))
        self.assertTrue(G.is_parent_of("B", "D"))
        self.assertEqual(G.num_edges(), 3)
        self.assertTrue(result.legality)
        self.assertTrue(result.complete)

    def test_chain_stays_undirected(self):
        truth = Graph(["A", "B", "C"])
        truth.add_directed_edge("A", "B")
        truth.add_directed_edge("B", "C")
        G = PC().search(GraphOracle(truth)).graph
        self.assertTrue(G.get_edge("A", "B").is_undirected())
        self.assertTrue(G.get_edge("B", "C").is_undirected())
        self.assertFalse(G.is_adjacent("A", "C"))

    def test_forbidden_edge_orients_the_other_way(self):
        truth = Graph(["A", "B"])
        truth.add_directed_edge("A", "B")
        pc = PC(knowledge=Knowledge(forbidden=[("B", "A")]))
        result = pc.search(GraphOracle(truth))
        self.assertTrue(result.graph.is_parent_of("A", "B"))
        self.assertIs(pc.graph_, result.graph)
        self.assertEqual(result.diagnostics.count(EventKind.KNOWLEDGE_ORIENTATION), 1)

    def test_invalid_knowledge_is_rejected_up_front(self):
        pc = PC(knowledge=Knowledge(required=[("A", "Q")]))
        with self.assertRaises(InputError):
            pc.search(GraphOracle(collider_dag()))

    def test_cancelled_search_is_partial(self):
        token = CancellationToken()
        token.cancel()
        result = PC(cancel=token).search(GraphOracle(collider_dag()))
        self.assertFalse(result.complete)
        self.assertTrue(all(e.is_undirected() for e in result.graph.edges()))

    def test_fit_on_data(self):
        rng = np.random.default_rng(3)
        n = 3000
        A = rng.normal(size=n)
        C = rng.normal(size=n)
        B = 0.9 * A + 0.9 * C + rng.normal(size=n)
        data = pd.DataFrame({"A": A, "B": B, "C": C})
        pc = PC(alpha=0.01).fit(data)
        self.assertEqual(pc.var_names_, ["A", "B", "C"])
        self.assertTrue(pc.graph_.is_adjacent("A", "B"))
        self.assertTrue(pc.graph_.is_adjacent("C", "B"))


class TestFCI(unittest.TestCase):
    def test_latent_confounder_gives_circle_edge(self):
        truth = Graph(["X", "Y", Node("L", NodeType.LATENT)])
        truth.add_directed_edge("L", "X")
        truth.add_directed_edge("L", "Y")
        result = FCI().search(GraphOracle(truth, observed=["X", "Y"]))
        self.assertEqual(result.graph.node_names(), ["X", "Y"])
        self.assertTrue(result.graph.get_edge("X", "Y").is_nondirected())
        self.assertTrue(result.legality)

    def test_collider_pag(self):
        result = FCI().search(GraphOracle(collider_dag()))
        G = result.graph
        self.assertEqual(G.endpoint("A", "B"), ARROW)
        self.assertEqual(G.endpoint("C", "B"), ARROW)
        self.assertEqual(G.endpoint("B", "A"), CIRCLE)
        # R1 pushes the orientation on to D
        self.assertEqual(G.endpoint("B", "D"), ARROW)
        self.assertEqual(G.endpoint("D", "B"), TAIL)
        self.assertTrue(result.legality)

    def test_confounded_collider(self):
        # A --> B <-- L --> C, C --> D with L latent: B <-> C in the PAG
        truth = Graph(["A", "B", "C", "D", Node("L", NodeType.LATENT)])
        truth.add_directed_edge("A", "B")
        truth.add_directed_edge("L", "B")
        truth.add_directed_edge("L", "C")
        truth.add_directed_edge("D", "C")
        G = FCI().search(GraphOracle(truth)).graph
        self.assertTrue(G.get_edge("B", "C").is_bidirected())
        self.assertEqual(G.endpoint("B", "A"), CIRCLE)

    def test_without_possible_dsep(self):
        result = FCI(possible_dsep=False, complete_rule_set=False).search(GraphOracle(collider_dag()))
        self.assertEqual(result.graph.num_edges(), 3)

    def test_discriminating_path_follows_the_sepset(self):
        # V6 --> V2 --> V5, V6 --> V3 --> V5, V3 --> V4 --> V5,
        # V0 --> {V3, V7}, V1 --> {V5, V7} with V0 and V1 hidden
        truth = Graph([f"V{i}" for i in range(8)])
        for a, b in [("V6", "V2"), ("V2", "V5"), ("V6", "V3"), ("V3", "V5"), ("V3", "V4"),
                     ("V4", "V5"), ("V0", "V3"), ("V0", "V7"), ("V1", "V5"), ("V1", "V7")]:
            truth.add_directed_edge(a, b)
        observed = [f"V{i}" for i in range(2, 8)]
        result = FCI().search(GraphOracle(truth, observed=observed))
        G = result.graph
        self.assertEqual(result.sepsets.get("V6", "V5"), frozenset({"V2", "V3"}))
        self.assertFalse(G.is_parent_of("V7", "V5"))
        self.assertEqual(G.endpoint("V5", "V7"), ARROW)
        self.assertEqual(G.endpoint("V3", "V7"), ARROW)
        self.assertTrue(result.legality, result.legality.reason)
        assert_sound_pag(self, truth, G)

    def test_random_latent_models_give_sound_pags(self):
        rng = random.Random(406)
        for trial in range(40):
            truth, observed = random_latent_dag(rng)
            result = FCI().search(GraphOracle(truth, observed=observed))
            self.assertTrue(result.legality, f"trial {trial}: {result.legality.reason}")
            assert_sound_pag(self, truth, result.graph, f"trial {trial}")


class TestGreedyScoreSearch(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(7)
        n = 1000
        X = rng.normal(size=n)
        Y = rng.normal(size=n)
        Z = 1.0 * X + rng.normal(size=n)
        self.data = pd.DataFrame({"X": X, "Y": Y, "Z": Z})

    def test_finds_the_dependent_pair(self):
        ges = GreedyScoreSearch(GaussianBicScore(self.data))
        dag = ges.fit()
        self.assertTrue(dag.is_adjacent("X", "Z"))
        self.assertFalse(dag.exists_directed_cycle())
        cpdag = ges.cpdag()
        self.assertTrue(cpdag.get_edge("X", "Z").is_undirected())

    def test_respects_knowledge(self):
        knowledge = Knowledge(forbidden=[("X", "Z")])
        dag = GreedyScoreSearch(GaussianBicScore(self.data), knowledge).fit()
        self.assertTrue(dag.is_parent_of("Z", "X"))


class TestGFCI(unittest.TestCase):
    def test_needs_a_score(self):
        with self.assertRaises(InputError):
            GFCI().search(GraphOracle(collider_dag()))

    def test_fit_on_collider_data(self):
        rng = np.random.default_rng(11)
        n = 3000
        A = rng.normal(size=n)
        C = rng.normal(size=n)
        B = 0.9 * A + 0.9 * C + rng.normal(size=n)
        data = pd.DataFrame({"A": A, "B": B, "C": C})
        gfci = GFCI(alpha=0.01).fit(data)
        G = gfci.graph_
        self.assertIsNotNone(gfci.ges_graph_)
        self.assertTrue(G.is_adjacent("A", "B"))
        self.assertTrue(G.is_adjacent("C", "B"))
        self.assertTrue(gfci.result_.legality)


if __name__ == '__main__':
    unittest.main()
