"""
Variable importance plot for the nest success model.
"""

import logging
from pathlib import Path
from typing import Optional

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

TOP_N = 10


def plot_variable_importance(
    importance: pd.DataFrame,
    accuracy: float,
    top_n: int = TOP_N,
    ax: Optional[plt.Axes] = None,
) -> plt.Figure:
    """
    Horizontal bar chart of relative variable importance.

    Args:
        importance: Table with 'variable' and 'rel_imp', sorted descending
        accuracy: Test-set accuracy shown as an annotation
        top_n: Number of variables to show
        ax: Axes to draw on (a new figure is created if omitted)

    Returns:
        The matplotlib Figure
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(12, 8))
    else:
        fig = ax.figure

    # Most important variable at the top
    top = importance.head(top_n).iloc[::-1]
    positions = np.arange(len(top))

    ax.barh(positions, top["rel_imp"], color="lightblue")
    ax.set_yticks(positions)
    ax.set_yticklabels(top["variable"], fontsize=16, color="black")
    ax.set_xlim(-5, 105)
    ax.set_xticks(range(0, 101, 20))
    ax.tick_params(axis="x", labelsize=18, labelcolor="black")
    ax.set_xlabel("Variable importance (%)", fontsize=20)
    ax.set_ylabel("Explanatory variable", fontsize=20)

    label_row = min(1, len(top) - 1) if len(top) else 0
    ax.text(80, label_row, f"Accuracy =  {round(accuracy, 3)}", fontsize=22, ha="center", va="center")

    ax.set_facecolor("white")
    ax.grid(False)
    for spine in ax.spines.values():
        spine.set_visible(False)

    fig.tight_layout()
    return fig


def save_figure(fig: plt.Figure, path: str | Path) -> None:
    """Write a figure to disk and release it."""
    fig.savefig(path, dpi=150, bbox_inches="tight", facecolor="white")
    plt.close(fig)
    logger.info(f"Saved variable importance plot to {path}")


def release_figure(fig: plt.Figure) -> plt.Figure:
    """Detach a figure from pyplot's figure manager; it can still be drawn and saved."""
    plt.close(fig)
    return fig
