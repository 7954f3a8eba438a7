"""
Synthetic nesting summaries for the nest success tests.
"""

import numpy as np
import pandas as pd
import pytest

from nestsuccess.features import BASE_FEATURES, DIST_STAGE_COLUMNS, MCP_STAGE_COLUMNS


def make_nesting_summary(n_seasons: int = 50, rows_per_season: int = 1, seed: int = 0) -> pd.DataFrame:
    """
    Build a table of bird-seasons with balanced, mildly separable outcomes.

    Failed attempts travel further from the nest in the chick stages and spend
    less time there.
    """
    rng = np.random.default_rng(seed)
    outcomes = np.array(["yes", "no"] * (n_seasons // 2) + ["yes"] * (n_seasons % 2))
    rng.shuffle(outcomes)

    rows = []
    for i, outcome in enumerate(outcomes):
        failed = outcome == "no"
        for _ in range(rows_per_season):
            row = {"year_id": f"bird{i:03d}_2023", "success": outcome}
            for name in BASE_FEATURES + DIST_STAGE_COLUMNS + MCP_STAGE_COLUMNS + ["tottime100m"]:
                row[name] = rng.normal(10.0, 2.0)
            row["sex"] = rng.choice(["m", "f"])
            row["age_cy"] = int(rng.integers(2, 12))
            row["nest_prob"] = rng.uniform(0.5, 1.0)
            row["Dist95Chick2"] += 6.0 if failed else 0.0
            row["Dist95Chick1"] += 4.0 if failed else 0.0
            row["MCP95Chick2"] += 6.0 if failed else 0.0
            row["timeChick2"] -= 5.0 if failed else 0.0
            rows.append(row)

    return pd.DataFrame(rows)


def constant_fit(X, y, mtry, num_trees, random_state):
    """Tuning surrogate that needs no forest."""
    return 0.5


@pytest.fixture
def nesting_summary() -> pd.DataFrame:
    return make_nesting_summary()


@pytest.fixture
def small_grid() -> dict:
    """Keeps pipeline tests fast: 3 x 2 real forests instead of 30 x 7."""
    return {"mtry_values": (2, 4, 6), "num_trees_values": (30, 50)}
