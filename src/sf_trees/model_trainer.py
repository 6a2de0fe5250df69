import os
from typing import Optional

import joblib
import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier

from .model_spec import RandomForestSpec
from .recipe import Recipe, encode_outcome
from .utils.logger import get_logger


class ModelTrainer:
    """
    Fits the finalized random forest behind its recipe on the full training split.

    The recipe is prepped on the training split only; the model sees the juiced
    (downsampled) training rows. Test data is baked without training-only steps.

    Provides:
      - fit_final: prep recipe + fit model, optionally save both with joblib
      - predict_proba_test: positive-class probabilities for new data
      - feature_importances: impurity-based importances of the fitted forest
    """

    def __init__(
        self,
        recipe: Recipe,
        spec: RandomForestSpec,
        positive_class: str,
        model_path: Optional[str] = None,
        recipe_path: Optional[str] = None,
    ):
        if not spec.is_final:
            raise ValueError("ModelTrainer needs a finalized RandomForestSpec")
        self.recipe = recipe
        self.spec = spec
        self.positive_class = positive_class
        self.model_path = model_path
        self.recipe_path = recipe_path

        self.logger = get_logger(self.__class__.__name__)
        self.final_model: Optional[RandomForestClassifier] = None
        self.final_recipe: Optional[Recipe] = None

    def fit_final(self, train_df: pd.DataFrame) -> RandomForestClassifier:
        prepped = self.recipe.prep(train_df)
        juiced = prepped.juice()
        X_train = prepped.predictors(juiced)
        y_train = encode_outcome(juiced[self.recipe.outcome], self.positive_class)

        model = self.spec.build(n_features=X_train.shape[1])
        model.fit(X_train.to_numpy(dtype=float), y_train)
        self.logger.info(
            f"Fitted final forest: trees={self.spec.trees}, mtry={model.max_features}, "
            f"min_n={self.spec.min_n}, rows={len(y_train):,}, predictors={X_train.shape[1]}"
        )

        self.final_model = model
        self.final_recipe = prepped

        if self.model_path:
            os.makedirs(os.path.dirname(self.model_path) or ".", exist_ok=True)
            joblib.dump(model, self.model_path)
            self.logger.info(f"Saved model: {self.model_path}")
        if self.recipe_path:
            os.makedirs(os.path.dirname(self.recipe_path) or ".", exist_ok=True)
            joblib.dump(prepped, self.recipe_path)
            self.logger.info(f"Saved recipe: {self.recipe_path}")

        return model

    def _check_fitted(self) -> None:
        if self.final_model is None or self.final_recipe is None:
            raise RuntimeError("Call fit_final() before predicting.")

    def predict_proba_test(self, test_df: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(y_true, positive-class probability)`` for ``test_df``."""
        self._check_fitted()
        baked = self.final_recipe.bake(test_df)
        X_test = self.final_recipe.predictors(baked).to_numpy(dtype=float)
        classes = list(self.final_model.classes_)
        proba = self.final_model.predict_proba(X_test)[:, classes.index(1)]
        return encode_outcome(baked[self.recipe.outcome], self.positive_class), proba

    def feature_importances(self) -> pd.Series:
        self._check_fitted()
        return pd.Series(
            self.final_model.feature_importances_,
            index=self.final_recipe.feature_names,
            name="importance",
        ).sort_values(ascending=False)
