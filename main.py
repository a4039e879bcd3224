import logging

import numpy as np
import pandas as pd

from causal_search import PC, FCI, GFCI


def simulate_linear_data(n=1000, seed=0):
    """
    Simulate a linear Gaussian model with known causal DAG:
        X1 → X3 ← X2
        X3 → X4
        X4 → X5
    plus a latent common cause of X2 and X5 (L, not returned).
    """
    rng = np.random.default_rng(seed)
    latent = rng.normal(size=n)

    X1 = rng.normal(size=n)
    X2 = 0.8 * latent + rng.normal(size=n)
    X3 = 0.7 * X1 + 0.7 * X2 + rng.normal(size=n)
    X4 = 0.8 * X3 + rng.normal(size=n)
    X5 = 0.6 * X4 + 0.8 * latent + rng.normal(size=n)

    return pd.DataFrame({"X1": X1, "X2": X2, "X3": X3, "X4": X4, "X5": X5})


def print_result(title, model):
    result = model.result_
    print("\n" + "=" * 40)
    print(title)
    print(f"Legality: {result.legality}")
    print(f"Complete: {result.complete}")
    print(f"Diagnostics: {result.diagnostics.summary()}")
    print("=" * 40)
    print(result.graph)


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("Generating simulated data...")
    data = simulate_linear_data(n=2000, seed=42)

    print("Running PC...")
    pc = PC(alpha=0.01).fit(data)
    print_result("PC (CPDAG)", pc)

    print("\nRunning FCI...")
    fci = FCI(alpha=0.01).fit(data)
    print_result("FCI (PAG)", fci)

    print("\nRunning GFCI...")
    gfci = GFCI(alpha=0.01, verbose=True).fit(data)
    print_result("GFCI (PAG)", gfci)


if __name__ == "__main__":
    main()
