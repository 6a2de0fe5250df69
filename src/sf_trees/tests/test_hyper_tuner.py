import numpy as np
import pandas as pd
import pytest

from sf_trees.grids import regular_grid
from sf_trees.hyper_tuner import HyperTuner, TuneResults
from sf_trees.model_spec import RandomForestSpec
from sf_trees.recipe import Recipe, encode_outcome
from sf_trees.splitter import Splitter
from sf_trees.utils.parallel import WorkerPool


def _recipe():
    return (
        Recipe(outcome="legal_status", id_cols=["tree_id"])
        .step_other(["species", "caretaker"], threshold=0.01)
        .step_other(["site_info"], threshold=0.005)
        .step_dummy()
        .step_date(["date"], features=["year"])
        .step_rm(["date"])
        .step_downsample(random_state=123)
    )


@pytest.fixture
def tuning_setup(clean_trees):
    splitter = Splitter("legal_status", random_state=123)
    train, _ = splitter.split(clean_trees)
    folds = splitter.folds(train, n_splits=3, random_state=234)
    tuner = HyperTuner(_recipe(), RandomForestSpec(trees=15, random_state=345), positive_class="DPW Maintained")
    return tuner, train, folds


def test_regular_grid_tuning_yields_bounded_metrics(tuning_setup):
    tuner, train, folds = tuning_setup
    grid = regular_grid({"mtry": (1, 8), "min_n": (2, 10)}, levels=3)

    results = tuner.tune_grid(train, folds, grid)
    agg = results.collect_metrics()

    for metric in ("accuracy", "roc_auc"):
        rows = agg[agg[".metric"] == metric]
        assert len(rows) == len(grid) <= 25
        assert rows["mean"].between(0, 1).all()
        assert (rows["n"] == 3).all()
    assert results.errors.empty
    assert len(results.collect_metrics(summarize=False)) == 2 * len(grid) * len(folds)


def test_tuning_on_worker_pool_matches_sequential(tuning_setup):
    tuner, train, folds = tuning_setup
    grid = regular_grid({"mtry": (2, 4), "min_n": (2, 6)}, levels=2)

    sequential = tuner.tune_grid(train, folds, grid).collect_metrics()
    with WorkerPool(n_jobs=2) as pool:
        tuner.pool = pool
        parallel = tuner.tune_grid(train, folds, grid).collect_metrics()

    pd.testing.assert_frame_equal(sequential, parallel)


def test_failed_cells_are_isolated(tuning_setup):
    tuner, train, folds = tuning_setup
    grid = pd.DataFrame({"mtry": [3, 3], "min_n": [1, 5], ".config": ["Model1", "Model2"]})

    results = tuner.tune_grid(train, folds, grid)

    assert set(results.errors[".config"]) == {"Model1"}
    assert results.errors["error"].str.contains("min_n").all()
    assert results.select_best("roc_auc")[".config"] == "Model2"


def test_all_cells_failing_raises(tuning_setup):
    tuner, train, folds = tuning_setup
    grid = pd.DataFrame({"mtry": [3], "min_n": [0], ".config": ["Model1"]})
    with pytest.raises(RuntimeError):
        tuner.tune_grid(train, folds, grid)


def test_grid_must_name_tunable_params(tuning_setup):
    tuner, train, folds = tuning_setup
    with pytest.raises(KeyError):
        tuner.tune_grid(train, folds, pd.DataFrame({"mtry": [2], ".config": ["Model1"]}))


def test_select_best_breaks_ties_by_grid_order():
    grid = pd.DataFrame({"mtry": [5, 10, 20], "min_n": [2, 2, 2], ".config": ["Model1", "Model2", "Model3"]})
    rows = []
    for fold in (1, 2):
        for config, auc in (("Model1", 0.80), ("Model2", 0.90), ("Model3", 0.90)):
            rows.append({"fold": fold, ".config": config, ".metric": "roc_auc", ".estimate": auc, "error": None})
            rows.append({"fold": fold, ".config": config, ".metric": "accuracy", ".estimate": 0.7, "error": None})
    results = TuneResults(pd.DataFrame(rows), grid)

    assert results.select_best("roc_auc") == {"mtry": 10, "min_n": 2, ".config": "Model2"}
    best = results.show_best("roc_auc", n=2)
    assert best[".config"].tolist() == ["Model2", "Model3"]
    assert np.allclose(best["std_err"], 0.0)


def test_n_predictors_counts_recipe_output(tuning_setup):
    tuner, train, _ = tuning_setup
    assert tuner.n_predictors(train) == len(_recipe().prep(train).feature_names)


def test_assessment_rows_keep_their_class_counts(tuning_setup):
    tuner, train, folds = tuning_setup
    analysis_idx, assessment_idx = folds[0]

    _, y_train, X_val, y_val = tuner._prepare_fold(train, analysis_idx, assessment_idx)

    assert len(y_val) == X_val.shape[0] == len(assessment_idx)
    expected = encode_outcome(train.iloc[assessment_idx]["legal_status"], "DPW Maintained")
    assert np.bincount(y_val, minlength=2).tolist() == np.bincount(expected, minlength=2).tolist()
    # analysis rows are downsampled to equal classes
    assert np.bincount(y_train)[0] == np.bincount(y_train)[1]
    assert len(y_train) < len(analysis_idx)


def test_stopped_pool_is_rejected(tuning_setup):
    tuner, train, folds = tuning_setup
    grid = regular_grid({"mtry": (2, 4), "min_n": (2, 6)}, levels=2)
    with WorkerPool(n_jobs=1) as pool:
        tuner.pool = pool
    assert not pool.running

    with pytest.raises(RuntimeError, match="not running"):
        tuner.tune_grid(train, folds, grid)
