"""
Feature definitions and data preparation for the nest success model.

The input table holds one row per bird-season (``year_id``) with movement
summary metrics for each breeding stage, as assembled by ``data_prep`` and
annotated with ``nest_prob`` by ``predict_nesting``.
"""

import logging

import numpy as np
import pandas as pd

from .errors import MissingFeature, MissingLabelColumn

logger = logging.getLogger(__name__)


LABEL_COLUMN = "success"
ID_COLUMN = "year_id"

# Level order matters: the first level is the positive class in evaluation
SUCCESS_LEVELS = ["yes", "no"]
SEX_LEVELS = ["m", "f"]

BASE_FEATURES = [
    "sex",
    "revisits_day",
    "residence_time_day",
    "age_cy",
    "revisits_night",
    "residence_time_night",
    "dist_max_day_to_max_night",
    "median_day_dist_to_max_night",
    "relative_dist_max_day_to_max_night",
    "nest_prob",
    "revisitsSettle",
    "revisitsIncu1",
    "revisitsIncu2",
    "revisitsChick1",
    "revisitsChick2",
    "timeSettle",
    "timeIncu1",
    "timeIncu2",
    "timeChick1",
    "timeChick2",
    "meandayrevisitsBrood",
    "lastvisitDay",
    "maxtimeawayBrood2km",
    "Dist99Chick2",
    "Dist99Settle",
    "Dist99Incu1",
    "MCP95Chick2",
    "MCP95Chick1",
    "MCP95Incu1",
]

DERIVED_FEATURES = [
    "DistDiffChick2",
    "DistDiffChick1",
    "DistDiffIncu2",
    "MCPDiffChick2",
    "MCPDiffChick1",
    "MCPDiffIncu2",
    "VarMCP",
    "VarDist",
]

# Stage-specific columns the derived features are computed from
DIST_STAGE_COLUMNS = ["Dist95Incu1", "Dist95Incu2", "Dist95Chick1", "Dist95Chick2"]
MCP_STAGE_COLUMNS = ["MCP95Incu1", "MCP95Incu2", "MCP95Chick1", "MCP95Chick2"]

FINAL_FEATURES = BASE_FEATURES + DERIVED_FEATURES

# The tuning forests also see tottime100m, the final forest does not
TUNING_FEATURES = (
    BASE_FEATURES[:BASE_FEATURES.index("maxtimeawayBrood2km") + 1]
    + ["tottime100m"]
    + BASE_FEATURES[BASE_FEATURES.index("maxtimeawayBrood2km") + 1:]
    + DERIVED_FEATURES
)


def require_label_column(table: pd.DataFrame) -> None:
    """Raise MissingLabelColumn if the table cannot be used for training."""
    if LABEL_COLUMN not in table.columns:
        raise MissingLabelColumn(LABEL_COLUMN)


def validate_features(table: pd.DataFrame, features: list[str]) -> None:
    """
    Check that every predictor is present in the table.

    Args:
        table: Input table
        features: Column names the model formula refers to

    Raises:
        MissingFeature: for the first absent column, in formula order
    """
    for name in features:
        if name not in table.columns:
            raise MissingFeature(name)


def filter_labelled(table: pd.DataFrame) -> pd.DataFrame:
    """Keep only rows with a usable outcome label ('yes' or 'no')."""
    mask = table[LABEL_COLUMN].isin(SUCCESS_LEVELS)
    n_dropped = int((~mask).sum())
    if n_dropped:
        logger.info(f"Dropping {n_dropped} rows without a 'yes'/'no' success label")
    return table.loc[mask].reset_index(drop=True)


def add_derived_features(table: pd.DataFrame) -> pd.DataFrame:
    """
    Add stage-difference and stage-variance features.

    Missing inputs propagate as NaN; nothing is imputed.

    Args:
        table: Table with Dist95* and MCP95* columns for the incubation and chick stages

    Returns:
        Copy of the table with the DERIVED_FEATURES columns appended
    """
    validate_features(table, DIST_STAGE_COLUMNS + MCP_STAGE_COLUMNS)
    out = table.copy()

    # DistDiffChick1 and MCPDiffChick1 repeat the Chick2 difference, as in the fitted models
    out["DistDiffChick2"] = out["Dist95Chick2"] - out["Dist95Incu2"]
    out["DistDiffChick1"] = out["Dist95Chick2"] - out["Dist95Incu2"]
    out["DistDiffIncu2"] = out["Dist95Incu2"] - out["Dist95Incu1"]
    out["MCPDiffChick2"] = out["MCP95Chick2"] - out["MCP95Incu2"]
    out["MCPDiffChick1"] = out["MCP95Chick2"] - out["MCP95Incu2"]
    out["MCPDiffIncu2"] = out["MCP95Incu2"] - out["MCP95Incu1"]
    out["VarMCP"] = out[MCP_STAGE_COLUMNS].astype(float).var(axis=1, ddof=1, skipna=False)
    out["VarDist"] = out[DIST_STAGE_COLUMNS].astype(float).var(axis=1, ddof=1, skipna=False)

    return out


def encode_factors(table: pd.DataFrame) -> pd.DataFrame:
    """Cast success and sex to categoricals with a fixed level order."""
    out = table.copy()
    out[LABEL_COLUMN] = pd.Categorical(out[LABEL_COLUMN], categories=SUCCESS_LEVELS)
    if "sex" in out.columns:
        out["sex"] = pd.Categorical(out["sex"], categories=SEX_LEVELS)
    return out


def prepare_nesting_summary(table: pd.DataFrame) -> pd.DataFrame:
    """
    Turn a raw nesting summary into a labelled training table.

    Args:
        table: One row per bird-season, including the 'success' column

    Returns:
        Filtered table with derived features and encoded factors

    Raises:
        MissingLabelColumn: if 'success' is absent
    """
    require_label_column(table)
    prepared = filter_labelled(table)
    prepared = add_derived_features(prepared)
    prepared = encode_factors(prepared)

    n_yes = int((prepared[LABEL_COLUMN] == "yes").sum())
    logger.info(f"Labelled seasons: {len(prepared)} (yes: {n_yes}, no: {len(prepared) - n_yes})")

    return prepared


def design_matrix(table: pd.DataFrame, features: list[str]) -> np.ndarray:
    """
    Build the numeric feature matrix the forest is fitted on.

    'sex' enters as its level code (m=0, f=1), unknown levels as NaN.

    Args:
        table: Prepared table
        features: Ordered predictor names

    Returns:
        Array of shape (n_rows, len(features))
    """
    validate_features(table, features)

    columns = []
    for name in features:
        values = table[name]
        if name == "sex":
            codes = pd.Categorical(values, categories=SEX_LEVELS).codes.astype(float)
            codes[codes < 0] = np.nan
            columns.append(codes)
        else:
            columns.append(values.to_numpy(dtype=float, na_value=np.nan))

    return np.column_stack(columns) if columns else np.empty((len(table), 0))


def label_vector(table: pd.DataFrame) -> np.ndarray:
    """Outcome labels as an array of 'yes'/'no' strings."""
    return np.asarray(table[LABEL_COLUMN].astype(str))
