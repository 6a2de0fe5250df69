import os
from typing import Optional

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from .utils.logger import get_logger


class Visualizer:
    """Exploratory and tuning plots, saved as PNG files under ``output_dir``."""

    def __init__(self, output_dir: str = "artifacts/figures", target_col: str = "legal_status", verbose: bool = True):
        self.output_dir = output_dir
        self.target_col = target_col
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)
        os.makedirs(self.output_dir, exist_ok=True)

    def _save(self, filename: str) -> str:
        path = os.path.join(self.output_dir, filename)
        plt.tight_layout()
        plt.savefig(path, dpi=200)
        plt.close()
        if self.verbose:
            self.logger.info(f"Saved plot: {path}")
        return path

    def summarize(self, df: pd.DataFrame) -> pd.DataFrame:
        """Per-column type, missing count, unique count and numeric range."""
        numeric = df.select_dtypes(include="number")
        summary = pd.DataFrame(
            {
                "dtype": df.dtypes.astype(str),
                "n_missing": df.isna().sum(),
                "n_unique": df.nunique(),
                "min": numeric.min().reindex(df.columns),
                "mean": numeric.mean().reindex(df.columns),
                "max": numeric.max().reindex(df.columns),
            }
        )
        if self.verbose:
            self.logger.info(f"Dataset summary ({len(df):,} rows):\n{summary.to_string()}")
        return summary

    def plot_location_map(self, df: pd.DataFrame, filename: str = "tree_locations.png") -> str:
        """Longitude/latitude scatter coloured by the target label."""
        plt.figure(figsize=(7, 7))
        sns.scatterplot(
            data=df,
            x="longitude",
            y="latitude",
            hue=self.target_col,
            s=2,
            alpha=0.2,
            linewidth=0,
        )
        plt.title("Street trees by maintenance status")
        return self._save(filename)

    def plot_caretaker_share(self, df: pd.DataFrame, min_count: int = 50, filename: str = "caretaker_share.png") -> str:
        """Share of each label's trees per caretaker, for caretakers with more than ``min_count`` trees."""
        counts = df.groupby([self.target_col, "caretaker"], observed=True).size().rename("n").reset_index()
        totals = counts.groupby("caretaker", observed=True)["n"].transform("sum")
        counts = counts[totals > min_count].copy()
        counts["percent"] = counts["n"] / counts.groupby(self.target_col, observed=True)["n"].transform("sum")

        plt.figure(figsize=(8, 6))
        sns.barplot(data=counts, x="percent", y="caretaker", hue=self.target_col, orient="h")
        plt.xlabel("% of trees within status")
        plt.ylabel("")
        plt.title("Caretakers by maintenance status")
        return self._save(filename)

    def plot_tuning_results(
        self,
        agg: pd.DataFrame,
        metric: str = "roc_auc",
        hue: Optional[str] = None,
        filename: str = "tuning_results.png",
    ) -> str:
        """Mean CV ``metric`` against each hyperparameter.

        Without ``hue`` one panel per parameter is drawn (space-filling search);
        with ``hue="min_n"`` a single line chart over ``mtry`` is drawn per
        ``min_n`` level (regular grid).
        """
        data = agg[agg[".metric"] == metric]
        if hue is None:
            long = data.melt(id_vars=["mean"], value_vars=["mtry", "min_n"], var_name="parameter", value_name="value")
            grid = sns.relplot(
                data=long, x="value", y="mean", col="parameter",
                kind="scatter", facet_kws={"sharex": False}, height=4,
            )
            grid.set_axis_labels("", metric)
            grid.figure.suptitle(f"Space-filling search: {metric}", y=1.02)
        else:
            plt.figure(figsize=(7, 5))
            sns.lineplot(data=data, x="mtry", y="mean", hue=hue, marker="o", palette="viridis")
            plt.ylabel(metric)
            plt.title(f"Regular grid: {metric}")
        return self._save(filename)

    def plot_tuning_heatmap(self, agg: pd.DataFrame, metric: str = "roc_auc", filename: str = "tuning_heatmap.png") -> str:
        table = agg[agg[".metric"] == metric].pivot_table(index="min_n", columns="mtry", values="mean")
        plt.figure(figsize=(7, 5))
        sns.heatmap(table, annot=True, fmt=".3f", cmap="viridis")
        plt.title(f"Mean CV {metric}")
        return self._save(filename)

    def plot_feature_importance(self, importances: pd.Series, top_n: int = 20, filename: str = "feature_importance.png") -> str:
        top = importances.head(top_n)
        plt.figure(figsize=(7, 6))
        sns.scatterplot(x=top.values, y=top.index)
        plt.xlabel("Importance")
        plt.ylabel("")
        plt.title(f"Top {len(top)} predictors")
        return self._save(filename)

    def plot_confusion_matrix(self, cm, class_names, filename: str = "confusion_matrix.png") -> str:
        normalized = cm.dtype.kind == "f"
        plt.figure(figsize=(6, 5))
        sns.heatmap(
            cm,
            annot=True,
            fmt=".2f" if normalized else "d",
            cmap="Blues",
            xticklabels=class_names,
            yticklabels=class_names,
        )
        plt.xlabel("Predicted")
        plt.ylabel("Actual")
        plt.title("Confusion Matrix" + (" (Normalized)" if normalized else ""))
        return self._save(filename)
