"""
Main pipeline for training the nest success model.

Workflow developed by Ursin Beeli and Steffen Oppel for red kite GPS tracking:
seasons classified as nesting attempts are combined with the observed breeding
outcome, and the same movement metrics used for nest detection predict whether
the attempt succeeded.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import numpy as np
import pandas as pd

from .evaluation import ConfusionSummary, confusion_summary
from .features import FINAL_FEATURES, TUNING_FEATURES, prepare_nesting_summary, validate_features
from .model import MTRY_GRID, NUM_TREES_GRID, FitFunction, NestSuccessForest, tune_hyperparameters
from .plotting import plot_variable_importance, release_figure, save_figure
from .predict import score_partition
from .training import TRAIN_FRACTION, split_by_individual

logger = logging.getLogger(__name__)


@dataclass
class TrainingResult:
    """Container for a trained nest success model and its diagnostics."""

    model: NestSuccessForest
    summary: pd.DataFrame  # scored training rows followed by scored test rows
    eval_train: ConfusionSummary
    eval_test: ConfusionSummary
    nest_cutoff: float  # minimum nest_prob among training rows
    importance: pd.DataFrame
    tuning: pd.DataFrame
    n_train: int  # leading rows of summary that were used for training
    figure: Any = None

    KEYS = ("model", "summary", "eval_train", "eval_test", "nest_cutoff")

    def __getitem__(self, key: str):
        if key not in self.KEYS:
            raise KeyError(key)
        return getattr(self, key)

    def keys(self) -> tuple[str, ...]:
        return self.KEYS

    def save(self, output_dir: Path) -> dict[str, Path]:
        """Save model, tables and plot to files."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        paths = {}

        model_path = output_dir / "nest_success_model.joblib"
        self.model.save(model_path)
        paths["model"] = model_path

        summary_path = output_dir / "nest_success_summary.csv"
        self.summary.to_csv(summary_path, index=False)
        paths["summary"] = summary_path

        importance_path = output_dir / "variable_importance.csv"
        self.importance.to_csv(importance_path, index=False)
        paths["importance"] = importance_path

        tuning_path = output_dir / "tuning.csv"
        self.tuning.to_csv(tuning_path, index=False)
        paths["tuning"] = tuning_path

        if self.figure is not None:
            plot_path = output_dir / "variable_importance.png"
            save_figure(self.figure, plot_path)
            self.figure = None
            paths["plot"] = plot_path

        for name, path in paths.items():
            logger.info(f"Saved {name}: {path}")

        return paths


def train_nest_success(
    nestingsummary: pd.DataFrame,
    plot: bool = True,
    seed: Optional[int] = None,
    fit_fn: Optional[FitFunction] = None,
    mtry_values: tuple[int, ...] = MTRY_GRID,
    num_trees_values: tuple[int, ...] = NUM_TREES_GRID,
    train_fraction: float = TRAIN_FRACTION,
    plot_path: Optional[Path] = None,
    progress: bool = True,
) -> TrainingResult:
    """
    Train a random forest predicting whether nesting was successful.

    Args:
        nestingsummary: One row per bird-season with movement metrics, 'nest_prob',
            'year_id' and the observed outcome in 'success' ('yes'/'no')
        plot: Produce a variable importance plot
        seed: Seed for the individual split and every forest; None is non-deterministic
        fit_fn: Replacement for the tuning fit, returning an OOB error
        mtry_values: Candidate mtry values for tuning
        num_trees_values: Candidate tree counts for tuning
        train_fraction: Share of individuals used for training
        plot_path: Write the plot to this file instead of keeping the figure. A
            kept figure is already closed in pyplot and is written by
            TrainingResult.save
        progress: Show a progress bar during tuning

    Returns:
        TrainingResult with the model, scored summary table, train/test
        evaluation and the nest_prob cutoff

    Raises:
        MissingLabelColumn: if there is no 'success' column
        MissingFeature: if a model predictor is absent
    """
    prepared = prepare_nesting_summary(nestingsummary)
    # The tuning predictors are a superset of the final ones
    validate_features(prepared, TUNING_FEATURES)

    rng = np.random.default_rng(seed)
    train, test = split_by_individual(prepared, train_fraction=train_fraction, rng=rng)

    tuning = tune_hyperparameters(
        train,
        features=TUNING_FEATURES,
        fit_fn=fit_fn,
        mtry_values=mtry_values,
        num_trees_values=num_trees_values,
        random_state=seed,
        progress=progress,
    )
    best = tuning.iloc[0]

    model = NestSuccessForest(
        mtry=int(best["mtry"]),
        num_trees=int(best["num_trees"]),
        features=FINAL_FEATURES,
        random_state=seed,
    )
    model.fit(train)

    scored_train = score_partition(model, train)
    eval_train = confusion_summary(scored_train["success_observed"], scored_train["success_predicted"])

    scored_test = score_partition(model, test)
    eval_test = confusion_summary(scored_test["success_observed"], scored_test["success_predicted"])

    logger.info(f"Training accuracy: {eval_train.accuracy:.3f}")
    logger.info(f"Test accuracy: {eval_test.accuracy:.3f}")

    summary = pd.concat([scored_train, scored_test], ignore_index=True)

    figure = None
    if plot:
        figure = plot_variable_importance(model.importance, eval_test.accuracy)
        if plot_path is not None:
            save_figure(figure, plot_path)
            figure = None
        else:
            release_figure(figure)

    nest_cutoff = float(train["nest_prob"].min(skipna=True))

    return TrainingResult(
        model=model,
        summary=summary,
        eval_train=eval_train,
        eval_test=eval_test,
        nest_cutoff=nest_cutoff,
        importance=model.importance,
        tuning=tuning,
        n_train=len(scored_train),
        figure=figure,
    )
