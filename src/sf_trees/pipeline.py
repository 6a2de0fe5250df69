import os
import warnings
from textwrap import indent

import pandas as pd

from .cleaner import Cleaner
from .config import Config
from .data_loader import SF_TREES_URL, DataLoader
from .evaluator import Evaluator
from .grids import regular_grid, space_filling_grid
from .hyper_tuner import HyperTuner
from .model_spec import RandomForestSpec
from .model_trainer import ModelTrainer
from .recipe import Recipe
from .splitter import Splitter
from .utils.logger import get_logger
from .utils.parallel import WorkerPool
from .visualizer import Visualizer


def build_recipe(cfg: Config) -> Recipe:
    """Recipe declared from the ``preprocessing`` section of the config."""
    prep_cfg = cfg.preprocessing
    recipe = Recipe(outcome=cfg.data["target_col"], id_cols=cfg.data.get("id_cols", ["tree_id"]))

    for rule in prep_cfg.get("other", []):
        recipe.step_other(rule["columns"], threshold=rule["threshold"])
    recipe.step_dummy()

    date_col = prep_cfg.get("date_col", "date")
    recipe.step_date([date_col], features=prep_cfg.get("date_features", ["year"]))
    recipe.step_rm([date_col])

    if prep_cfg.get("downsample", True):
        recipe.step_downsample(random_state=prep_cfg.get("downsample_seed", 123))
    return recipe


def within_tolerance(test_value: float, cv_value: float, tolerance: float) -> bool:
    return abs(test_value - cv_value) <= tolerance


class PipelineRunner:
    """End-to-end SF street-trees maintenance-status pipeline.

    Steps:
      1. Load the CSV (URL or path) and clean it
      2. Summarize and plot the cleaned data
      3. Stratified train/test split and v-fold plan
      4. Space-filling search over default bounds
      5. Regular grid search over refined bounds
      6. Select best ROC-AUC, fit on the full training split
      7. Evaluate once on the test split"""

    def __init__(self, config_path: str):
        self.config = Config.from_yaml(config_path)
        self.logger = get_logger(self.__class__.__name__)
        warnings.filterwarnings(
            "ignore",
            message="Found unknown categories",
            category=UserWarning,
            module="sklearn",
        )

    def _log_table(self, title: str, table: pd.DataFrame) -> None:
        self.logger.info(f"{title}:\n{indent(table.to_string(index=False), ' ' * 4)}")

    def check_against_cv(self, metric: str, test_value: float, cv_value: float, tolerance: float) -> bool:
        """Log a warning when the test score strays more than ``tolerance`` from the CV estimate."""
        if within_tolerance(test_value, cv_value, tolerance):
            self.logger.info(f"Test {metric} within {tolerance} of CV estimate {cv_value:.4f}")
            return True
        self.logger.warning(
            f"Test {metric} {test_value:.4f} is {abs(test_value - cv_value):.4f} away from CV estimate {cv_value:.4f}"
        )
        return False

    def run(self) -> dict:
        cfg = self.config
        data_cfg, val_cfg, tune_cfg, out_cfg = cfg.data, cfg.validation, cfg.tuning, cfg.output
        target = data_cfg["target_col"]
        positive = data_cfg["positive_class"]
        self.logger.info("Starting SF trees training pipeline")

        raw = DataLoader(
            data_cfg.get("url", SF_TREES_URL),
            sample_size=data_cfg.get("sample_size"),
            random_state=data_cfg.get("sample_seed", 42),
        ).load()
        self.logger.info(f"Loaded dataset: {raw.shape[0]:,} rows x {raw.shape[1]} cols")

        df = Cleaner(
            target_col=target,
            positive_class=positive,
            other_label=data_cfg.get("other_label", "Other"),
            drop_columns=tuple(data_cfg.get("drop_columns", ["address"])),
        ).transform(raw)
        self.logger.info(f"Class balance:\n{df[target].value_counts(normalize=True).round(3).to_string()}")

        figures_dir = out_cfg.get("figures_dir", "artifacts/figures")
        viz = Visualizer(figures_dir, target_col=target)
        viz.summarize(df)
        viz.plot_location_map(df)
        viz.plot_caretaker_share(df)

        splitter = Splitter(
            strata=target,
            test_size=val_cfg.get("test_size", 0.25),
            random_state=val_cfg.get("split_seed", 123),
        )
        train_df, test_df = splitter.split(df)
        folds = splitter.folds(
            train_df,
            n_splits=val_cfg.get("n_splits", 10),
            random_state=val_cfg.get("fold_seed", 234),
        )

        recipe = build_recipe(cfg)
        spec = RandomForestSpec(
            trees=cfg.model.get("trees", 1000),
            random_state=cfg.model.get("random_state", 345),
            n_jobs=cfg.model.get("n_jobs", 1),
        )
        metric = tune_cfg.get("metric", "roc_auc")

        with WorkerPool(n_jobs=val_cfg.get("n_jobs", -1), backend=val_cfg.get("backend", "loky")) as pool:
            tuner = HyperTuner(recipe, spec, positive_class=positive, pool=pool)

            sf_cfg = tune_cfg.get("space_filling", {})
            ranges = RandomForestSpec.default_ranges(tuner.n_predictors(train_df))
            for name, bounds in (sf_cfg.get("ranges") or {}).items():
                ranges[name] = tuple(bounds)
            coarse_grid = space_filling_grid(ranges, size=sf_cfg.get("size", 20), seed=sf_cfg.get("seed", 345))
            coarse = tuner.tune_grid(train_df, folds, coarse_grid)
            coarse_agg = coarse.collect_metrics()
            self._log_table("Space-filling search (mean over folds)", coarse_agg)
            viz.plot_tuning_results(coarse_agg, metric=metric, filename="tuning_space_filling.png")

            reg_cfg = tune_cfg.get("regular", {})
            refined_ranges = {
                "mtry": tuple(reg_cfg.get("mtry", [10, 40])),
                "min_n": tuple(reg_cfg.get("min_n", [2, 10])),
            }
            refined_grid = regular_grid(refined_ranges, levels=reg_cfg.get("levels", 5))
            refined = tuner.tune_grid(train_df, folds, refined_grid)

        refined_agg = refined.collect_metrics()
        self._log_table("Regular grid search (mean over folds)", refined_agg)
        viz.plot_tuning_results(refined_agg, metric=metric, hue="min_n", filename="tuning_regular.png")
        viz.plot_tuning_heatmap(refined_agg, metric=metric)

        results_path = out_cfg.get("tuning_results_path")
        if results_path:
            os.makedirs(os.path.dirname(results_path) or ".", exist_ok=True)
            pd.concat(
                [coarse_agg.assign(search="space_filling"), refined_agg.assign(search="regular")],
                ignore_index=True,
            ).to_csv(results_path, index=False)
            self.logger.info(f"Saved tuning results: {results_path}")

        best = refined.select_best(metric)
        best_cv = refined.show_best(metric, n=1).loc[0, "mean"]
        self.logger.info(f"Selected {best['.config']}: mtry={best['mtry']}, min_n={best['min_n']}")

        trainer = ModelTrainer(
            recipe,
            spec.finalize(best),
            positive_class=positive,
            model_path=out_cfg.get("model_path"),
            recipe_path=out_cfg.get("recipe_path"),
        )
        trainer.fit_final(train_df)
        viz.plot_feature_importance(trainer.feature_importances())

        y_test, proba = trainer.predict_proba_test(test_df)
        evaluator = Evaluator(
            out_cfg.get("metrics_path"),
            figures_dir,
            class_names=[data_cfg.get("other_label", "Other"), positive],
        )
        metrics = evaluator.evaluate(y_test, proba)

        metrics_str = indent("\n".join(f"{k}: {v:.4f}" for k, v in metrics.items()), " " * 4)
        self.logger.info(f"Test metrics:\n{metrics_str}")

        close_to_cv = self.check_against_cv(metric, metrics[metric], best_cv, tune_cfg.get("tolerance", 0.05))

        self.logger.info("Pipeline finished")
        return {
            "best_params": best,
            "cv_estimate": float(best_cv),
            "close_to_cv": close_to_cv,
            "test_metrics": metrics,
            "n_train": len(train_df),
            "n_test": len(test_df),
        }
