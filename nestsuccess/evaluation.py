"""
Confusion matrix and accuracy statistics for yes/no nest success predictions.
"""

import logging
import warnings
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.metrics import cohen_kappa_score, confusion_matrix

from .features import SUCCESS_LEVELS

logger = logging.getLogger(__name__)


def _ratio(numerator: float, denominator: float) -> float:
    return float(numerator) / denominator if denominator else float("nan")


@dataclass
class ConfusionSummary:
    """Container for a 2x2 confusion matrix and the statistics derived from it."""

    table: pd.DataFrame  # rows: observed, columns: predicted (the reference)
    overall: dict[str, float]
    by_class: dict[str, float]
    positive: str = "yes"
    n_unclassified: int = 0
    levels: list[str] = field(default_factory=lambda: list(SUCCESS_LEVELS))

    @property
    def accuracy(self) -> float:
        return self.overall["Accuracy"]

    def to_dict(self) -> dict:
        """Plain-python representation for JSON output."""
        return {
            "positive": self.positive,
            "table": {
                str(obs): {str(pred): int(n) for pred, n in row.items()}
                for obs, row in self.table.iterrows()
            },
            "overall": {k: float(v) for k, v in self.overall.items()},
            "by_class": {k: float(v) for k, v in self.by_class.items()},
            "n_unclassified": self.n_unclassified,
        }


def confusion_summary(observed, predicted, positive: str = "yes") -> ConfusionSummary:
    """
    Compare observed and predicted outcomes.

    The predicted labels are the reference and the observed labels the data,
    the orientation the published success models were evaluated with. Rates such
    as sensitivity and the no-information rate are therefore relative to the
    predicted classes. Rows whose prediction (or observation) is missing are
    left out of the table.

    Args:
        observed: Observed labels ('yes'/'no')
        predicted: Predicted labels ('yes'/'no', missing for ties)
        positive: Level treated as the positive class

    Returns:
        ConfusionSummary with overall accuracy statistics and per-class statistics
    """
    levels = [positive] + [level for level in SUCCESS_LEVELS if level != positive]
    observed = pd.Series(pd.Categorical(observed, categories=levels))
    predicted = pd.Series(pd.Categorical(predicted, categories=levels))

    complete = observed.notna().to_numpy() & predicted.notna().to_numpy()
    n_unclassified = int((~complete).sum())
    obs = np.asarray(observed[complete].astype(str))
    pred = np.asarray(predicted[complete].astype(str))
    n = len(obs)

    # sklearn puts the reference on the rows; transpose to observed x predicted
    counts = confusion_matrix(pred, obs, labels=levels).T if n else np.zeros((2, 2), dtype=int)
    table = pd.DataFrame(
        counts,
        index=pd.Index(levels, name="observed"),
        columns=pd.Index(levels, name="predicted"),
    )

    # Columns are the reference classes
    tp, fp = counts[0, 0], counts[0, 1]
    fn, tn = counts[1, 0], counts[1, 1]
    correct = tp + tn

    accuracy = _ratio(correct, n)
    no_information_rate = _ratio(counts.sum(axis=0).max(), n)

    if n:
        test = stats.binomtest(int(correct), n)
        ci = test.proportion_ci(confidence_level=0.95, method="exact")
        accuracy_lower, accuracy_upper = float(ci.low), float(ci.high)
        accuracy_p = float(stats.binomtest(int(correct), n, p=no_information_rate, alternative="greater").pvalue)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            kappa = float(cohen_kappa_score(obs, pred, labels=levels))
    else:
        logger.warning("No classified rows to evaluate")
        accuracy_lower = accuracy_upper = accuracy_p = kappa = float("nan")

    discordant = fp + fn
    if discordant:
        mcnemar = (abs(int(fp) - int(fn)) - 1) ** 2 / discordant
        mcnemar_p = float(stats.chi2.sf(mcnemar, df=1))
    else:
        mcnemar_p = float("nan")

    overall = {
        "Accuracy": accuracy,
        "Kappa": kappa,
        "AccuracyLower": accuracy_lower,
        "AccuracyUpper": accuracy_upper,
        "AccuracyNull": no_information_rate,
        "AccuracyPValue": accuracy_p,
        "McnemarPValue": mcnemar_p,
    }

    sensitivity = _ratio(tp, tp + fn)
    specificity = _ratio(tn, tn + fp)
    precision = _ratio(tp, tp + fp)
    by_class = {
        "Sensitivity": sensitivity,
        "Specificity": specificity,
        "Pos Pred Value": precision,
        "Neg Pred Value": _ratio(tn, tn + fn),
        "Precision": precision,
        "Recall": sensitivity,
        "F1": _ratio(2 * precision * sensitivity, precision + sensitivity),
        "Prevalence": _ratio(tp + fn, n),
        "Detection Rate": _ratio(tp, n),
        "Detection Prevalence": _ratio(tp + fp, n),
        "Balanced Accuracy": (sensitivity + specificity) / 2,
    }

    return ConfusionSummary(
        table=table,
        overall=overall,
        by_class=by_class,
        positive=positive,
        n_unclassified=n_unclassified,
        levels=levels,
    )
