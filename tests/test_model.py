import numpy as np
import pandas as pd
import pytest
from sklearn.ensemble import RandomForestClassifier

from nestsuccess.errors import MissingFeature
from nestsuccess.features import prepare_nesting_summary
from nestsuccess.model import (
    MTRY_GRID,
    NUM_TREES_GRID,
    NestSuccessForest,
    importance_table,
    oob_permutation_importance,
    tune_hyperparameters,
    tuning_grid,
)

from conftest import constant_fit, make_nesting_summary


@pytest.fixture
def prepared():
    return prepare_nesting_summary(make_nesting_summary(n_seasons=40, seed=3))


def test_tuning_grid_enumeration():
    grid = tuning_grid()

    assert len(grid) == 210
    assert NUM_TREES_GRID == (500, 750, 100, 1500, 2000, 2500, 5000)
    assert grid.iloc[0].tolist() == [1, 500]
    assert grid.iloc[1].tolist() == [2, 500]
    assert grid.iloc[30].tolist() == [1, 750]
    assert set(grid["mtry"]) == set(MTRY_GRID)


def test_tuning_selects_lowest_error(prepared):
    def surrogate(X, y, mtry, num_trees, random_state):
        return abs(mtry - 17) / 100 + abs(num_trees - 2000) / 1e6

    tuned = tune_hyperparameters(prepared, fit_fn=surrogate, progress=False)

    assert len(tuned) == 210
    assert tuned.iloc[0]["mtry"] == 17
    assert tuned.iloc[0]["num_trees"] == 2000
    assert tuned.iloc[0]["oob_error"] == tuned["oob_error"].min()
    assert tuned["oob_error"].is_monotonic_increasing


def test_tuning_ties_keep_enumeration_order(prepared):
    def surrogate(X, y, mtry, num_trees, random_state):
        return 0.1 if mtry in (5, 9) else 0.3

    tuned = tune_hyperparameters(prepared, fit_fn=surrogate, progress=False)

    # mtry=5, num_trees=500 is enumerated before every other 0.1 combination
    assert tuned.iloc[0][["mtry", "num_trees"]].tolist() == [5, 500]
    assert tuned.iloc[1][["mtry", "num_trees"]].tolist() == [9, 500]
    assert tuned.iloc[2][["mtry", "num_trees"]].tolist() == [5, 750]


def test_tuning_passes_seed_and_matrix(prepared):
    calls = []

    def surrogate(X, y, mtry, num_trees, random_state):
        calls.append((X.shape, set(y), random_state))
        return 0.0

    tune_hyperparameters(prepared, fit_fn=surrogate, mtry_values=(1,), num_trees_values=(10,),
                         random_state=11, progress=False)

    assert calls == [((len(prepared), 38), {"yes", "no"}, 11)]


def test_tuning_fit_errors_propagate(prepared):
    def failing(X, y, mtry, num_trees, random_state):
        raise ValueError("bad fit")

    with pytest.raises(ValueError, match="bad fit"):
        tune_hyperparameters(prepared, fit_fn=failing, progress=False)


def test_tuning_requires_tottime100m(prepared):
    with pytest.raises(MissingFeature) as excinfo:
        tune_hyperparameters(prepared.drop(columns=["tottime100m"]), fit_fn=constant_fit, progress=False)
    assert excinfo.value.name == "tottime100m"


def test_tuning_with_real_forests(prepared):
    tuned = tune_hyperparameters(prepared, mtry_values=(2, 5), num_trees_values=(25,),
                                 random_state=0, progress=False)

    assert len(tuned) == 2
    assert tuned["oob_error"].between(0, 1).all()


def test_importance_table_relative_scale():
    table = importance_table(["a", "b", "c", "d"], np.array([0.02, 0.08, -0.01, 0.04]))

    assert table["variable"].tolist() == ["b", "d", "a", "c"]
    assert table["rel_imp"].iloc[0] == 100
    assert table["rel_imp"].between(0, 100).all()
    assert table["rel_imp"].iloc[1] == pytest.approx(50)


def test_importance_table_without_positive_scores():
    table = importance_table(["a", "b"], np.array([0.0, -0.02]))

    assert table["variable"].tolist() == ["a", "b"]
    assert table["rel_imp"].isna().all()


def test_oob_importance_ranks_informative_column_first():
    rng = np.random.default_rng(0)
    signal = rng.normal(size=200)
    X = np.column_stack([rng.normal(size=200), signal, rng.normal(size=200)])
    y = np.where(signal > 0, "yes", "no")
    forest = RandomForestClassifier(n_estimators=40, max_features=1, bootstrap=True, random_state=0).fit(X, y)

    scores = oob_permutation_importance(forest, X, y, random_state=0)

    assert scores.shape == (3,)
    assert np.argmax(scores) == 1
    assert scores[1] > 0.1
    np.testing.assert_array_equal(scores, oob_permutation_importance(forest, X, y, random_state=0))


def test_forest_fit_and_predict(prepared):
    forest = NestSuccessForest(mtry=4, num_trees=50, random_state=0).fit(prepared)

    assert forest.is_trained
    assert 0 <= forest.oob_error <= 1
    assert len(forest.importance) == 37
    assert forest.importance["red_accuracy"].iloc[0] > 0
    assert forest.importance["rel_imp"].iloc[0] == 100
    assert forest.importance["rel_imp"].between(0, 100).all()
    # the synthetic failures differ in chick-stage distance, area and time
    assert forest.importance["variable"].iloc[0] in {
        "DistDiffChick2", "DistDiffChick1", "VarDist", "MCP95Chick2",
        "MCPDiffChick2", "MCPDiffChick1", "VarMCP", "timeChick2",
    }

    proba = forest.predict_proba(prepared)
    assert list(proba.columns) == ["succ_prob", "no_succ_prob"]
    assert np.allclose(proba.sum(axis=1), 1.0)


def test_forest_requires_training(prepared):
    forest = NestSuccessForest(mtry=4, num_trees=10)
    with pytest.raises(RuntimeError):
        forest.predict_proba(prepared)


def test_forest_save_and_load(prepared, tmp_path):
    forest = NestSuccessForest(mtry=3, num_trees=20, random_state=1).fit(prepared)
    path = tmp_path / "model.joblib"
    forest.save(path)

    loaded = NestSuccessForest.load(path)

    assert loaded.mtry == 3
    assert loaded.num_trees == 20
    pd.testing.assert_frame_equal(loaded.predict_proba(prepared), forest.predict_proba(prepared))
    pd.testing.assert_frame_equal(loaded.importance, forest.importance)
