import json
import os
import time
from typing import Dict, Optional, Sequence

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    balanced_accuracy_score,
    confusion_matrix,
    f1_score,
    precision_score,
    recall_score,
    roc_auc_score,
)

from .utils.logger import get_logger
from .visualizer import Visualizer


class Evaluator:
    """Evaluate binary classifier probabilities, save metrics and confusion matrix."""

    def __init__(
        self,
        metrics_path: Optional[str] = None,
        figures_dir: Optional[str] = None,
        class_names: Sequence[str] = ("Other", "DPW Maintained"),
        verbose: bool = True,
    ):
        self.metrics_path = metrics_path
        self.figures_dir = figures_dir
        self.class_names = list(class_names)
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def _plot_confusion_matrix(self, y_true: np.ndarray, y_pred: np.ndarray, normalize: bool = True) -> str:
        """Confusion matrix (rows normalized to recall by default), saved with a timestamp. Returns saved path."""
        cm = confusion_matrix(y_true, y_pred, labels=[0, 1])
        if normalize:
            cm = cm.astype(float)
            row_sums = cm.sum(axis=1, keepdims=True)
            row_sums[row_sums == 0] = 1.0
            cm = cm / row_sums

        timestamp = time.strftime("%Y%m%d_%H%M%S")
        viz = Visualizer(self.figures_dir, verbose=self.verbose)
        return viz.plot_confusion_matrix(cm, self.class_names, filename=f"confusion_matrix_{timestamp}.png")

    def evaluate(self, y_true: np.ndarray, y_proba: np.ndarray) -> Dict[str, float]:
        """Score hard predictions (probability > 0.5) and the ranking (ROC-AUC)."""
        y_true = np.asarray(y_true).astype(int)
        y_proba = np.asarray(y_proba).astype(float)
        y_pred = (y_proba > 0.5).astype(int)

        metrics: Dict[str, float] = {
            "accuracy": float(accuracy_score(y_true, y_pred)),
            "roc_auc": float(roc_auc_score(y_true, y_proba)),
            "balanced_accuracy": float(balanced_accuracy_score(y_true, y_pred)),
            "f1": float(f1_score(y_true, y_pred, zero_division=0)),
            "precision": float(precision_score(y_true, y_pred, zero_division=0)),
            "recall": float(recall_score(y_true, y_pred, zero_division=0)),
        }

        if self.metrics_path:
            os.makedirs(os.path.dirname(self.metrics_path) or ".", exist_ok=True)
            with open(self.metrics_path, "w") as f:
                json.dump(metrics, f, indent=4)
            if self.verbose:
                self.logger.info(f"Saved metrics: {self.metrics_path}")

        if self.figures_dir:
            self._plot_confusion_matrix(y_true, y_pred, normalize=True)

        return metrics
