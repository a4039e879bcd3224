#!/usr/bin/env python3
"""
Causal structure search on a CSV file.

Runs PC, FCI or GFCI with a Fisher-Z test on the numeric columns of the
data and prints the resulting graph in the Tetrad text format, together
with its legality verdict and a summary of the diagnostics.

Usage:
    python run_search.py --data data/my_data.csv --algorithm fci

    # Background knowledge: tiers and explicit forbidden/required edges
    python run_search.py --data data/my_data.csv --tiers "A,B;C,D" --forbid C,A --require A,B

    # Save the graph
    python run_search.py --data data/my_data.csv --output results/pag.txt
"""

import argparse
import logging
import os
import sys

import numpy as np
import pandas as pd

from causal_search import PC, FCI, GFCI, ColliderDiscovery, ConflictRule, Knowledge
from causal_search.graph_io import write_graph

ALGORITHMS = ("pc", "fci", "gfci")


def load_data(path):
    """Read a CSV and keep the complete numeric columns."""
    df = pd.read_csv(path)

    if 'date' in df.columns:
        df = df.drop(columns=['date'])

    df = df.replace('NA', np.nan)
    for col in df.columns:
        df[col] = pd.to_numeric(df[col], errors='coerce')
    df = df.dropna(axis=1, how='all')
    df = df.dropna()
    return df.select_dtypes(include=[np.number])


def parse_pair(text):
    parts = [p.strip() for p in text.split(',')]
    if len(parts) != 2 or not all(parts):
        raise argparse.ArgumentTypeError(f"expected 'A,B', got {text!r}")
    return parts[0], parts[1]


def build_knowledge(args):
    tiers = []
    if args.tiers:
        tiers = [[name.strip() for name in tier.split(',') if name.strip()] for tier in args.tiers.split(';')]
    return Knowledge(forbidden=args.forbid, required=args.require, tiers=tiers)


def build_algorithm(args, knowledge):
    common = dict(
        alpha=args.alpha,
        depth=args.depth,
        knowledge=knowledge,
        n_jobs=args.n_jobs,
        verbose=args.verbose,
    )
    if args.algorithm == "pc":
        return PC(
            conflict_rule=ConflictRule(args.conflict_rule),
            collider_discovery=ColliderDiscovery(args.collider_discovery),
            **common,
        )
    if args.algorithm == "fci":
        return FCI(
            possible_dsep=not args.no_possible_dsep,
            max_path_length=args.max_path_length,
            complete_rule_set=not args.no_complete_rules,
            collider_discovery=ColliderDiscovery(args.collider_discovery),
            allow_selection_bias=args.allow_selection_bias,
            **common,
        )
    return GFCI(
        penalty_discount=args.penalty_discount,
        max_path_length=args.max_path_length,
        complete_rule_set=not args.no_complete_rules,
        allow_selection_bias=args.allow_selection_bias,
        **common,
    )


def main():
    parser = argparse.ArgumentParser(
        description='Run a causal structure search (PC, FCI or GFCI) on a CSV file.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--data', '-d',
        type=str,
        required=True,
        help='Path to CSV data file'
    )

    parser.add_argument(
        '--algorithm', '-A',
        choices=ALGORITHMS,
        default='fci',
        help='Search algorithm (default: fci)'
    )

    parser.add_argument(
        '--alpha', '-a',
        type=float,
        default=0.05,
        help='Significance level for the Fisher-Z test (default: 0.05)'
    )

    parser.add_argument(
        '--depth',
        type=int,
        default=-1,
        help='Maximum conditioning set size, -1 for unbounded (default: -1)'
    )

    parser.add_argument(
        '--max-path-length',
        type=int,
        default=-1,
        help='Bound on discriminating and Possible-D-SEP paths, -1 for unbounded (default: -1)'
    )

    parser.add_argument(
        '--collider-discovery',
        choices=[c.value for c in ColliderDiscovery],
        default=ColliderDiscovery.SEPSETS.value,
        help='How unshielded triples are classified (default: sepsets)'
    )

    parser.add_argument(
        '--conflict-rule',
        choices=[c.value for c in ConflictRule],
        default=ConflictRule.PRIORITIZE_EXISTING.value,
        help='PC only: what to do when two colliders disagree (default: prioritize_existing)'
    )

    parser.add_argument(
        '--penalty-discount',
        type=float,
        default=1.0,
        help='GFCI only: BIC penalty multiplier (default: 1.0)'
    )

    parser.add_argument(
        '--no-possible-dsep',
        action='store_true',
        help='FCI only: skip the Possible-D-SEP deletion stage'
    )

    parser.add_argument(
        '--no-complete-rules',
        action='store_true',
        help='Apply only R1-R4 (skip the tail rules R5-R10)'
    )

    parser.add_argument(
        '--allow-selection-bias',
        action='store_true',
        help='Accept undirected edges in the legality check'
    )

    parser.add_argument(
        '--tiers',
        type=str,
        default=None,
        help="Temporal tiers, earliest first: 'A,B;C;D,E'"
    )

    parser.add_argument(
        '--forbid',
        type=parse_pair,
        action='append',
        default=[],
        help="Forbidden directed edge 'A,B' (A --> B); may be repeated"
    )

    parser.add_argument(
        '--require',
        type=parse_pair,
        action='append',
        default=[],
        help="Required directed edge 'A,B' (A --> B); may be repeated"
    )

    parser.add_argument(
        '--n-jobs', '-j',
        type=int,
        default=None,
        help='Worker threads for the independence tests of one depth level'
    )

    parser.add_argument(
        '--output', '-o',
        type=str,
        default=None,
        help='Write the resulting graph to this file (Tetrad text format)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Print progress output'
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not os.path.exists(args.data):
        print(f"ERROR: Data file not found: {args.data}")
        return 1

    print(f"\nLoading data from {args.data}...")
    df = load_data(args.data)
    print(f"Data shape: {df.shape}, Variables: {list(df.columns)}")

    algorithm = build_algorithm(args, build_knowledge(args))
    print(f"Running {args.algorithm.upper()}...")
    algorithm.fit(df)
    result = algorithm.result_

    print("\n" + "=" * 40)
    print(f"Legality: {result.legality}")
    if not result.complete:
        print("Search was cancelled; the graph is partial")
    for x, y in result.untested:
        print(f"Untested edge kept: {x} - {y}")
    print(f"Diagnostics: {result.diagnostics.summary()}")
    print("=" * 40)
    print(result.graph)

    if args.output:
        out_dir = os.path.dirname(args.output)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        write_graph(result.graph, args.output)
        print(f"\nGraph saved to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
