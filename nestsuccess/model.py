"""
Random forest model for nest success, hyperparameter tuning and persistence.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

import joblib
import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier
from tqdm import tqdm

from .features import (
    FINAL_FEATURES,
    SUCCESS_LEVELS,
    TUNING_FEATURES,
    design_matrix,
    label_vector,
    validate_features,
)

logger = logging.getLogger(__name__)


MTRY_GRID = tuple(range(1, 31))
# 100 sits between 750 and 1500 in the tuned grid of the published models; kept as is
NUM_TREES_GRID = (500, 750, 100, 1500, 2000, 2500, 5000)

# Signature of a tuning fit: (X, y, mtry, num_trees, random_state) -> out-of-bag error
FitFunction = Callable[[np.ndarray, np.ndarray, int, int, Optional[int]], float]


def oob_error(
    X: np.ndarray,
    y: np.ndarray,
    mtry: int,
    num_trees: int,
    random_state: Optional[int] = None,
) -> float:
    """
    Fit a bootstrap random forest and return its out-of-bag misclassification rate.

    Args:
        X: Feature matrix
        y: Labels ('yes'/'no')
        mtry: Number of variables tried at each split
        num_trees: Number of trees
        random_state: Random seed

    Returns:
        Fraction of training rows misclassified by their out-of-bag trees
    """
    forest = RandomForestClassifier(
        n_estimators=num_trees,
        max_features=mtry,
        bootstrap=True,
        oob_score=True,
        random_state=random_state,
    )
    forest.fit(X, y)
    return 1.0 - forest.oob_score_


def tuning_grid(
    mtry_values: tuple[int, ...] = MTRY_GRID,
    num_trees_values: tuple[int, ...] = NUM_TREES_GRID,
) -> pd.DataFrame:
    """All (mtry, num_trees) combinations, mtry varying fastest."""
    rows = [(m, t) for t in num_trees_values for m in mtry_values]
    return pd.DataFrame(rows, columns=["mtry", "num_trees"])


def tune_hyperparameters(
    train: pd.DataFrame,
    features: list[str] = TUNING_FEATURES,
    fit_fn: Optional[FitFunction] = None,
    mtry_values: tuple[int, ...] = MTRY_GRID,
    num_trees_values: tuple[int, ...] = NUM_TREES_GRID,
    random_state: Optional[int] = None,
    progress: bool = True,
) -> pd.DataFrame:
    """
    Grid search over mtry and number of trees using the out-of-bag error.

    Args:
        train: Prepared training table
        features: Predictors used by the tuning forests
        fit_fn: Function returning the OOB error of one combination (default: oob_error)
        mtry_values: Candidate mtry values
        num_trees_values: Candidate tree counts
        random_state: Seed passed to every fit
        progress: Show a progress bar

    Returns:
        Grid with an 'oob_error' column, sorted ascending. Ties keep the
        enumeration order, so the first row is the selected combination.
    """
    validate_features(train, features)
    fit_fn = fit_fn or oob_error

    X = design_matrix(train, features)
    y = label_vector(train)

    grid = tuning_grid(mtry_values, num_trees_values)
    errors = []
    for row in tqdm(
        grid.itertuples(index=False), total=len(grid), desc="Tuning random forest", disable=not progress
    ):
        errors.append(float(fit_fn(X, y, int(row.mtry), int(row.num_trees), random_state)))

    grid["oob_error"] = errors
    tuned = grid.sort_values("oob_error", kind="mergesort").reset_index(drop=True)

    best = tuned.iloc[0]
    logger.info(
        f"Best of {len(tuned)} combinations: mtry={int(best['mtry'])}, "
        f"num_trees={int(best['num_trees'])}, OOB error={best['oob_error']:.3f}"
    )
    return tuned


def oob_permutation_importance(
    forest: RandomForestClassifier,
    X: np.ndarray,
    y: np.ndarray,
    random_state: Optional[int] = None,
) -> np.ndarray:
    """
    Out-of-bag permutation importance of a fitted bootstrap forest.

    Each tree is scored only on the rows its bootstrap sample left out. One
    column at a time is shuffled among those rows, and the drop in accuracy is
    averaged over all trees with at least one out-of-bag row.

    Args:
        forest: Forest fitted on X and y with bootstrap=True
        X: Feature matrix the forest was fitted on
        y: Labels the forest was fitted on
        random_state: Seed for the column permutations

    Returns:
        Mean decrease in accuracy for each column of X
    """
    rng = np.random.default_rng(random_state)
    n_samples, n_features = X.shape
    # Trees predict class indices into forest.classes_
    y_index = np.searchsorted(forest.classes_, y)

    drops = np.zeros(n_features)
    n_scored = 0
    for tree, in_bag in zip(forest.estimators_, forest.estimators_samples_):
        oob = np.ones(n_samples, dtype=bool)
        oob[in_bag] = False
        if not oob.any():
            continue

        X_oob = X[oob]
        y_oob = y_index[oob]
        baseline = np.mean(tree.predict(X_oob) == y_oob)

        for j in range(n_features):
            X_permuted = X_oob.copy()
            X_permuted[:, j] = rng.permutation(X_permuted[:, j])
            drops[j] += baseline - np.mean(tree.predict(X_permuted) == y_oob)
        n_scored += 1

    if n_scored == 0:
        logger.warning("No tree has out-of-bag rows; importance is undefined")
        return np.full(n_features, np.nan)

    return drops / n_scored


def importance_table(features: list[str], scores: np.ndarray) -> pd.DataFrame:
    """
    Rank variables by permutation importance.

    Negative scores count as 0 on the relative scale. If no variable has a
    positive score there is no meaningful ranking and rel_imp is NaN throughout.

    Args:
        features: Variable names
        scores: Mean decrease in accuracy for each variable

    Returns:
        DataFrame with variable, red_accuracy and rel_imp (percent of the top variable),
        sorted descending
    """
    table = pd.DataFrame({"variable": list(features), "red_accuracy": np.asarray(scores, dtype=float)})
    table = table.sort_values("red_accuracy", ascending=False, kind="mergesort").reset_index(drop=True)

    top = table["red_accuracy"].max()
    if top > 0:
        table["rel_imp"] = table["red_accuracy"].clip(lower=0) / top * 100
    else:
        logger.warning("No variable has positive permutation importance")
        table["rel_imp"] = np.nan

    return table


class NestSuccessForest:
    """
    Probability random forest predicting whether a nesting attempt succeeded.
    """

    def __init__(
        self,
        mtry: int,
        num_trees: int,
        features: Optional[list[str]] = None,
        random_state: Optional[int] = None,
    ):
        """
        Initialize the model.

        Args:
            mtry: Number of variables tried at each split
            num_trees: Number of trees
            features: Ordered predictors (default: FINAL_FEATURES)
            random_state: Seed for tree growing and permutation importance
        """
        self.mtry = int(mtry)
        self.num_trees = int(num_trees)
        self.features = list(features or FINAL_FEATURES)
        self.random_state = random_state

        self.model = RandomForestClassifier(
            n_estimators=self.num_trees,
            max_features=self.mtry,
            bootstrap=True,
            oob_score=True,
            random_state=random_state,
        )
        self.is_trained = False
        self.oob_error: Optional[float] = None
        self.importance: Optional[pd.DataFrame] = None

    def fit(self, train: pd.DataFrame) -> "NestSuccessForest":
        """
        Fit the forest and compute out-of-bag permutation importance.

        Args:
            train: Prepared training table

        Returns:
            self
        """
        validate_features(train, self.features)
        X = design_matrix(train, self.features)
        y = label_vector(train)

        logger.info(f"Fitting final forest: mtry={self.mtry}, num_trees={self.num_trees}, n={len(y)}")
        self.model.fit(X, y)
        self.is_trained = True
        self.oob_error = 1.0 - self.model.oob_score_

        scores = oob_permutation_importance(self.model, X, y, random_state=self.random_state)
        self.importance = importance_table(self.features, scores)

        logger.info(f"OOB error: {self.oob_error:.3f}; top variable: {self.importance['variable'].iloc[0]}")
        return self

    def predict_proba(self, table: pd.DataFrame) -> pd.DataFrame:
        """
        Predict per-class probabilities.

        Args:
            table: Table containing all model features

        Returns:
            DataFrame with 'succ_prob' and 'no_succ_prob', aligned with the input rows
        """
        if not self.is_trained:
            raise RuntimeError("Model has not been trained yet")

        X = design_matrix(table, self.features)
        probabilities = {level: np.zeros(len(table)) for level in SUCCESS_LEVELS}
        if len(table):
            proba = self.model.predict_proba(X)
            for i, level in enumerate(self.model.classes_):
                probabilities[str(level)] = proba[:, i]

        return pd.DataFrame(
            {"succ_prob": probabilities["yes"], "no_succ_prob": probabilities["no"]},
            index=table.index,
        )

    def save(self, path: str | Path) -> None:
        """Save the trained model to disk."""
        if not self.is_trained:
            raise RuntimeError("Model has not been trained yet")

        save_data = {
            "model": self.model,
            "mtry": self.mtry,
            "num_trees": self.num_trees,
            "features": self.features,
            "random_state": self.random_state,
            "oob_error": self.oob_error,
            "importance": self.importance,
        }
        joblib.dump(save_data, path)

    @classmethod
    def load(cls, path: str | Path) -> "NestSuccessForest":
        """Load a trained model from disk."""
        data = joblib.load(path)

        forest = cls(
            mtry=data["mtry"],
            num_trees=data["num_trees"],
            features=data["features"],
            random_state=data["random_state"],
        )
        forest.model = data["model"]
        forest.oob_error = data["oob_error"]
        forest.importance = data["importance"]
        forest.is_trained = True

        return forest
