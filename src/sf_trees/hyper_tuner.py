from __future__ import annotations

from typing import Any, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, roc_auc_score

from .model_spec import TUNABLE, RandomForestSpec
from .recipe import Recipe, encode_outcome
from .utils.logger import get_logger
from .utils.parallel import WorkerPool

METRICS = ("accuracy", "roc_auc")


def _evaluate_cell(
    fold: int,
    config: str,
    params: dict[str, int],
    spec: RandomForestSpec,
    X_train: np.ndarray,
    y_train: np.ndarray,
    X_val: np.ndarray,
    y_val: np.ndarray,
) -> list[dict[str, Any]]:
    """Fit one candidate on one fold and score it on the fold's assessment rows."""
    base = {"fold": fold, ".config": config, **params}
    try:
        model = spec.finalize(params).build(n_features=X_train.shape[1])
        model.fit(X_train, y_train)
        proba_all = model.predict_proba(X_val)
        proba = proba_all[:, list(model.classes_).index(1)]
        pred = model.classes_[np.argmax(proba_all, axis=1)]
        scores = {
            "accuracy": float(accuracy_score(y_val, pred)),
            "roc_auc": float(roc_auc_score(y_val, proba)),
        }
        error = None
    except Exception as exc:  # recorded per cell, reported by HyperTuner
        scores = {m: np.nan for m in METRICS}
        error = f"{type(exc).__name__}: {exc}"

    return [
        {**base, ".metric": name, ".estimate": value, "error": error}
        for name, value in scores.items()
    ]


class TuneResults:
    """Per-fold metrics of a grid search plus helpers to summarize and select."""

    def __init__(self, metrics: pd.DataFrame, grid: pd.DataFrame):
        self.metrics = metrics
        self.grid = grid

    @property
    def param_names(self) -> list[str]:
        return [c for c in self.grid.columns if c != ".config"]

    @property
    def errors(self) -> pd.DataFrame:
        failed = self.metrics[self.metrics["error"].notna()]
        return failed[["fold", ".config", "error"]].drop_duplicates().reset_index(drop=True)

    def collect_metrics(self, summarize: bool = True) -> pd.DataFrame:
        """Per-fold rows, or per-candidate mean / n / standard error in grid order."""
        if not summarize:
            return self.metrics.copy()

        keys = [".config", ".metric"]
        agg = (
            self.metrics.groupby(keys, sort=False)[".estimate"]
            .agg(mean="mean", n="count", std="std")
            .reset_index()
        )
        agg["std_err"] = agg["std"] / np.sqrt(agg["n"].where(agg["n"] > 0))
        agg = agg.drop(columns="std")
        # inner merge keeps grid order
        agg = self.grid.merge(agg, on=".config", how="inner")
        agg = agg.sort_values(".metric", kind="stable")
        return agg[[*self.param_names, ".metric", "mean", "n", "std_err", ".config"]].reset_index(drop=True)

    def show_best(self, metric: str = "roc_auc", n: int = 5) -> pd.DataFrame:
        agg = self.collect_metrics()
        agg = agg[agg[".metric"] == metric].dropna(subset=["mean"])
        return agg.sort_values("mean", ascending=False, kind="stable").head(n).reset_index(drop=True)

    def select_best(self, metric: str = "roc_auc") -> dict[str, Any]:
        """Candidate with the highest mean ``metric``; ties go to the earliest grid row."""
        best = self.show_best(metric, n=1)
        if best.empty:
            raise RuntimeError(f"No successful results for metric '{metric}'")
        row = best.iloc[0]
        out = {name: int(row[name]) for name in self.param_names}
        out[".config"] = row[".config"]
        return out


class HyperTuner:
    """Cross-validated grid search of a ``RandomForestSpec`` behind a ``Recipe``.

    The recipe is prepped on each fold's analysis rows only (downsampling
    included) and baked on the assessment rows without training-only steps.
    Every (fold, candidate) cell is independent and runs on the worker pool.
    """

    def __init__(
        self,
        recipe: Recipe,
        spec: RandomForestSpec,
        positive_class: str,
        pool: Optional[WorkerPool] = None,
    ):
        self.recipe = recipe
        self.spec = spec
        self.positive_class = positive_class
        self.pool = pool
        self.logger = get_logger(self.__class__.__name__)

    def _prepare_fold(self, train_df: pd.DataFrame, analysis_idx, assessment_idx):
        analysis = train_df.iloc[analysis_idx]
        assessment = train_df.iloc[assessment_idx]

        prepped = self.recipe.prep(analysis)
        juiced = prepped.juice()
        baked = prepped.bake(assessment)

        X_train = prepped.predictors(juiced).to_numpy(dtype=float)
        X_val = prepped.predictors(baked).to_numpy(dtype=float)
        y_train = encode_outcome(juiced[self.recipe.outcome], self.positive_class)
        y_val = encode_outcome(baked[self.recipe.outcome], self.positive_class)
        return X_train, y_train, X_val, y_val

    def n_predictors(self, train_df: pd.DataFrame) -> int:
        """Number of predictors the recipe yields on ``train_df`` (finalizes mtry bounds)."""
        return len(self.recipe.prep(train_df).feature_names)

    def tune_grid(
        self,
        train_df: pd.DataFrame,
        folds: Sequence[tuple[np.ndarray, np.ndarray]],
        grid: pd.DataFrame,
    ) -> TuneResults:
        missing = [p for p in TUNABLE if p not in grid.columns]
        if missing:
            raise KeyError(f"Grid is missing tunable parameters: {missing}")
        if ".config" not in grid.columns:
            raise KeyError("Grid is missing the '.config' column")
        if self.pool is not None and not self.pool.running:
            raise RuntimeError("Worker pool is not running; call start() before tune_grid().")

        candidates = [
            (row[".config"], {p: int(row[p]) for p in TUNABLE})
            for _, row in grid.iterrows()
        ]
        if not candidates or not folds:
            raise ValueError("tune_grid needs at least one candidate and one fold")
        self.logger.info(f"Tuning {len(candidates)} candidates over {len(folds)} folds")

        tasks = []
        for fold_id, (analysis_idx, assessment_idx) in enumerate(folds, start=1):
            X_train, y_train, X_val, y_val = self._prepare_fold(train_df, analysis_idx, assessment_idx)
            self.logger.debug(
                f"Fold {fold_id}: analysis={len(y_train):,} (downsampled), assessment={len(y_val):,}"
            )
            for config, params in candidates:
                tasks.append((fold_id, config, params, self.spec, X_train, y_train, X_val, y_val))

        if self.pool is not None:
            cells = self.pool.map(_evaluate_cell, tasks)
        else:
            with WorkerPool(n_jobs=1) as pool:
                cells = pool.map(_evaluate_cell, tasks)

        metrics = pd.DataFrame([row for cell in cells for row in cell])
        results = TuneResults(metrics, grid[[*TUNABLE, ".config"]].reset_index(drop=True))

        n_failed = len(results.errors)
        if n_failed:
            for _, err in results.errors.iterrows():
                self.logger.warning(f"Fold {err['fold']} / {err['.config']} failed: {err['error']}")
            if n_failed == len(tasks):
                raise RuntimeError("Every tuning fit failed; see warnings above")

        best = results.show_best("roc_auc", n=1)
        if not best.empty:
            self.logger.info(
                f"Best CV ROC-AUC: {best.loc[0, 'mean']:.4f} "
                f"(mtry={best.loc[0, 'mtry']}, min_n={best.loc[0, 'min_n']})"
            )
        return results
