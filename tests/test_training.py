import numpy as np

from nestsuccess.features import prepare_nesting_summary
from nestsuccess.training import split_by_individual

from conftest import make_nesting_summary


def test_split_keeps_individuals_together():
    prepared = prepare_nesting_summary(make_nesting_summary(n_seasons=20, rows_per_season=3))

    train, test = split_by_individual(prepared, rng=np.random.default_rng(1))

    train_ids = set(train["year_id"])
    test_ids = set(test["year_id"])
    assert train_ids.isdisjoint(test_ids)
    assert train_ids | test_ids == set(prepared["year_id"])
    assert len(train_ids) == 14
    assert len(train) + len(test) == len(prepared)
    assert (train.groupby("year_id").size() == 3).all()


def test_split_is_reproducible_with_seed():
    prepared = prepare_nesting_summary(make_nesting_summary(n_seasons=30))

    train_a, _ = split_by_individual(prepared, rng=np.random.default_rng(7))
    train_b, _ = split_by_individual(prepared, rng=np.random.default_rng(7))

    assert train_a["year_id"].tolist() == train_b["year_id"].tolist()


def test_split_fraction_is_rounded():
    prepared = prepare_nesting_summary(make_nesting_summary(n_seasons=9))

    train, test = split_by_individual(prepared, train_fraction=0.5, rng=np.random.default_rng(0))

    assert train["year_id"].nunique() == 4
    assert test["year_id"].nunique() == 5
