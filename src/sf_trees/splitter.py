from __future__ import annotations

import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold, train_test_split

from .utils.logger import get_logger


class Splitter:
    """Seeded stratified train/test split and v-fold resampling plan."""

    def __init__(self, strata: str, test_size: float = 0.25, random_state: int = 123):
        if not 0.0 < test_size < 1.0:
            raise ValueError(f"test_size must be in (0, 1), got {test_size}")
        self.strata = strata
        self.test_size = test_size
        self.random_state = random_state
        self.logger = get_logger(self.__class__.__name__)

    def split(self, df: pd.DataFrame) -> tuple[pd.DataFrame, pd.DataFrame]:
        train, test = train_test_split(
            df,
            test_size=self.test_size,
            stratify=df[self.strata],
            random_state=self.random_state,
        )
        self.logger.info(f"Split: train={len(train):,}, test={len(test):,}")
        return train.reset_index(drop=True), test.reset_index(drop=True)

    def folds(
        self, df: pd.DataFrame, n_splits: int = 10, random_state: int = 234
    ) -> list[tuple[np.ndarray, np.ndarray]]:
        """Positional (analysis, assessment) index pairs, stratified on ``strata``."""
        skf = StratifiedKFold(n_splits=n_splits, shuffle=True, random_state=random_state)
        plan = list(skf.split(np.zeros(len(df)), df[self.strata].astype(str)))
        self.logger.info(f"Created {len(plan)}-fold cross-validation plan")
        return plan
