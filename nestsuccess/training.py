"""
Training data partitioning.

Individuals (``year_id``) are split between training and test data, not rows,
so that no bird-season contributes to both sides.
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd

from .features import ID_COLUMN

logger = logging.getLogger(__name__)

TRAIN_FRACTION = 0.7


def split_by_individual(
    table: pd.DataFrame,
    train_fraction: float = TRAIN_FRACTION,
    rng: Optional[np.random.Generator] = None,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Randomly assign individual-seasons to a training or test set.

    Args:
        table: Prepared table with a 'year_id' column
        train_fraction: Share of distinct individuals sampled for training
        rng: Random generator; a fresh unseeded one is used if omitted

    Returns:
        Tuple of (train, test) tables
    """
    if rng is None:
        rng = np.random.default_rng()

    individuals = pd.unique(table[ID_COLUMN])
    n_train = int(round(len(individuals) * train_fraction))
    training_ids = rng.choice(individuals, size=n_train, replace=False)

    in_train = table[ID_COLUMN].isin(training_ids)
    train = table.loc[in_train].reset_index(drop=True)
    test = table.loc[~in_train].reset_index(drop=True)

    logger.info(
        f"Split {len(individuals)} individuals: {n_train} for training ({len(train)} rows), "
        f"{len(individuals) - n_train} for testing ({len(test)} rows)"
    )
    if len(test) == 0:
        logger.warning("Test set is empty; test evaluation will be undefined")

    return train, test
