"""
Scoring of labelled seasons with a fitted nest success model.
"""

import logging

import numpy as np
import pandas as pd

from .features import LABEL_COLUMN, SUCCESS_LEVELS
from .model import NestSuccessForest

logger = logging.getLogger(__name__)


def predicted_label(succ_prob: np.ndarray, no_succ_prob: np.ndarray) -> pd.Categorical:
    """
    Compare class probabilities: 'yes' if success is more likely, 'no' if less,
    missing when both are equal.
    """
    succ_prob = np.asarray(succ_prob, dtype=float)
    no_succ_prob = np.asarray(no_succ_prob, dtype=float)

    labels = np.full(len(succ_prob), None, dtype=object)
    labels[succ_prob > no_succ_prob] = "yes"
    labels[succ_prob < no_succ_prob] = "no"

    return pd.Categorical(labels, categories=SUCCESS_LEVELS)


def score_partition(model: NestSuccessForest, table: pd.DataFrame) -> pd.DataFrame:
    """
    Append predicted probabilities and labels to a labelled table.

    Args:
        model: Fitted NestSuccessForest
        table: Prepared table with a 'success' column

    Returns:
        Copy of the table with 'success' renamed to 'success_observed' and
        'no_succ_prob', 'succ_prob' and 'success_predicted' appended
    """
    scored = table.rename(columns={LABEL_COLUMN: "success_observed"})
    probabilities = model.predict_proba(table)

    scored["no_succ_prob"] = probabilities["no_succ_prob"].to_numpy()
    scored["succ_prob"] = probabilities["succ_prob"].to_numpy()
    scored["success_predicted"] = predicted_label(scored["succ_prob"], scored["no_succ_prob"])

    n_ties = int(scored["success_predicted"].isna().sum())
    if n_ties:
        logger.warning(f"{n_ties} seasons have equal success and failure probability; left unclassified")

    return scored
