"""
Declarative preprocessing recipe.

A recipe is an ordered list of steps. ``prep`` fits every step on training
data only; ``bake`` replays the fitted steps on any other data. Steps tagged
``skip=True`` (e.g. downsampling) run only on the training data seen by
``prep`` and are left out of ``bake`` unless ``training=True`` is passed.
"""
from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd
from imblearn.under_sampling import RandomUnderSampler
from sklearn.base import BaseEstimator, TransformerMixin, clone
from sklearn.preprocessing import OneHotEncoder

from .utils.logger import get_logger


class OtherStep(BaseEstimator, TransformerMixin):
    """Pool infrequent levels of categorical columns into a single ``other`` level.

    ``threshold`` is a fraction of the fit rows; levels seen less often than
    that, and levels never seen during fit, are pooled.
    """

    def __init__(self, columns: Sequence[str], threshold: float = 0.05, other: str = "other", skip: bool = False):
        self.columns = columns
        self.threshold = threshold
        self.other = other
        self.skip = skip

    def fit(self, X: pd.DataFrame, y=None):
        if not 0.0 < self.threshold < 1.0:
            raise ValueError(f"threshold must be a fraction in (0, 1), got {self.threshold}")
        _require_columns(X, self.columns)

        self.keep_levels_: dict[str, list[str]] = {}
        for col in self.columns:
            freq = X[col].astype(str).value_counts(normalize=True)
            self.keep_levels_[col] = sorted(freq[freq >= self.threshold].index)
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        _require_columns(X, self.columns)
        out = X.copy()
        for col in self.columns:
            keep = self.keep_levels_[col]
            values = out[col].astype(str)
            pooled = values.where(values.isin(keep), self.other)
            levels = keep + ([self.other] if self.other not in keep else [])
            out[col] = pd.Categorical(pooled, categories=levels)
        return out


class DummyStep(BaseEstimator, TransformerMixin):
    """One-hot encode categorical predictors, dropping the first (reference) level.

    With ``columns=None`` every categorical column except ``outcome`` is encoded.
    The vocabulary is learned at fit time; unseen levels encode as all zeros.
    """

    def __init__(self, columns: Optional[Sequence[str]] = None, outcome: Optional[str] = None, skip: bool = False):
        self.columns = columns
        self.outcome = outcome
        self.skip = skip

    def fit(self, X: pd.DataFrame, y=None):
        if self.columns is None:
            cols = X.select_dtypes(include=["category", "object", "string"]).columns.tolist()
            self.columns_ = [c for c in cols if c != self.outcome]
        else:
            _require_columns(X, self.columns)
            self.columns_ = list(self.columns)

        self.encoder_ = OneHotEncoder(drop="first", handle_unknown="ignore", sparse_output=False)
        if self.columns_:
            self.encoder_.fit(X[self.columns_].astype(str))
            self.feature_names_ = self.encoder_.get_feature_names_out(self.columns_).tolist()
        else:
            self.feature_names_ = []
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        if not self.columns_:
            return X.copy()
        _require_columns(X, self.columns_)
        encoded = pd.DataFrame(
            self.encoder_.transform(X[self.columns_].astype(str)),
            columns=self.feature_names_,
            index=X.index,
        )
        return pd.concat([X.drop(columns=self.columns_), encoded], axis=1)


class DateStep(BaseEstimator, TransformerMixin):
    """Derive calendar features (``<col>_year`` etc.) from date columns."""

    SUPPORTED = ("year", "month", "dow", "doy")

    def __init__(self, columns: Sequence[str], features: Sequence[str] = ("year",), skip: bool = False):
        self.columns = columns
        self.features = features
        self.skip = skip

    def fit(self, X: pd.DataFrame, y=None):
        unknown = [f for f in self.features if f not in self.SUPPORTED]
        if unknown:
            raise ValueError(f"Unsupported date features: {unknown}")
        _require_columns(X, self.columns)
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        out = X.copy()
        for col in self.columns:
            dt = pd.to_datetime(out[col], errors="coerce")
            for feature in self.features:
                if feature == "year":
                    out[f"{col}_year"] = dt.dt.year
                elif feature == "month":
                    out[f"{col}_month"] = dt.dt.month
                elif feature == "dow":
                    out[f"{col}_dow"] = dt.dt.dayofweek
                else:
                    out[f"{col}_doy"] = dt.dt.dayofyear
        return out


class RemoveStep(BaseEstimator, TransformerMixin):
    """Drop columns."""

    def __init__(self, columns: Sequence[str], skip: bool = False):
        self.columns = columns
        self.skip = skip

    def fit(self, X: pd.DataFrame, y=None):
        _require_columns(X, self.columns)
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        return X.drop(columns=list(self.columns))


class DownsampleStep(BaseEstimator, TransformerMixin):
    """Randomly drop majority-class rows until every class matches the minority count.

    Training-only by default (``skip=True``).
    """

    def __init__(self, outcome: str, random_state: Optional[int] = None, skip: bool = True):
        self.outcome = outcome
        self.random_state = random_state
        self.skip = skip

    def fit(self, X: pd.DataFrame, y=None):
        _require_columns(X, [self.outcome])
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        labels = X[self.outcome].astype(str).to_numpy()
        if len(np.unique(labels)) < 2:
            return X.copy()

        sampler = RandomUnderSampler(sampling_strategy="auto", random_state=self.random_state)
        sampler.fit_resample(np.arange(len(X)).reshape(-1, 1), labels)
        keep = np.sort(sampler.sample_indices_)
        return X.iloc[keep].reset_index(drop=True)


def _require_columns(X: pd.DataFrame, columns: Sequence[str]) -> None:
    missing = [c for c in columns if c not in X.columns]
    if missing:
        raise KeyError(f"Columns not found: {missing}")


def encode_outcome(values: pd.Series, positive_class: str) -> np.ndarray:
    """0/1 labels, 1 where the outcome equals ``positive_class``."""
    return (values.astype(str) == positive_class).astype(int).to_numpy()


class Recipe:
    """Ordered, two-phase (prep/bake) preprocessing for a single outcome.

    Example:
        rec = (
            Recipe(outcome="legal_status", id_cols=["tree_id"])
            .step_other(["species", "caretaker"], threshold=0.01)
            .step_dummy()
            .step_date(["date"], features=["year"])
            .step_rm(["date"])
            .step_downsample(random_state=123)
        )
        prepped = rec.prep(train_df)
        X_train = prepped.juice()
        X_test = prepped.bake(test_df)
    """

    def __init__(self, outcome: str, id_cols: Sequence[str] = (), steps: Optional[list] = None):
        self.outcome = outcome
        self.id_cols = list(id_cols)
        self.steps = list(steps or [])
        self.logger = get_logger(self.__class__.__name__)
        self.fitted_steps_: Optional[list] = None
        self.juiced_: Optional[pd.DataFrame] = None

    # ---- declaration ----

    def add_step(self, step) -> "Recipe":
        self.steps.append(step)
        return self

    def step_other(self, columns: Sequence[str], threshold: float = 0.05, other: str = "other") -> "Recipe":
        return self.add_step(OtherStep(columns=list(columns), threshold=threshold, other=other))

    def step_dummy(self, columns: Optional[Sequence[str]] = None) -> "Recipe":
        cols = list(columns) if columns is not None else None
        return self.add_step(DummyStep(columns=cols, outcome=self.outcome))

    def step_date(self, columns: Sequence[str], features: Sequence[str] = ("year",)) -> "Recipe":
        return self.add_step(DateStep(columns=list(columns), features=list(features)))

    def step_rm(self, columns: Sequence[str]) -> "Recipe":
        return self.add_step(RemoveStep(columns=list(columns)))

    def step_downsample(self, random_state: Optional[int] = None) -> "Recipe":
        return self.add_step(DownsampleStep(outcome=self.outcome, random_state=random_state))

    # ---- fit / apply ----

    @property
    def is_prepped(self) -> bool:
        return self.fitted_steps_ is not None

    def prep(self, df: pd.DataFrame) -> "Recipe":
        """Fit all steps on ``df`` and return a new prepped recipe; ``self`` is unchanged."""
        _require_columns(df, [self.outcome, *self.id_cols])

        prepped = Recipe(self.outcome, self.id_cols, [clone(s) for s in self.steps])
        current = df
        fitted = []
        for step in prepped.steps:
            step.fit(current)
            current = step.transform(current)
            fitted.append(step)

        prepped.fitted_steps_ = fitted
        prepped.juiced_ = current.reset_index(drop=True)
        self.logger.debug(f"Prepped {len(fitted)} steps on {len(df):,} rows -> {len(current):,} rows")
        return prepped

    def bake(self, df: pd.DataFrame, training: bool = False) -> pd.DataFrame:
        """Apply the fitted steps; ``skip`` steps only run when ``training`` is True."""
        if not self.is_prepped:
            raise RuntimeError("Call prep() before bake().")
        current = df
        for step in self.fitted_steps_:
            if step.skip and not training:
                continue
            current = step.transform(current)
        return current.reset_index(drop=True)

    def juice(self) -> pd.DataFrame:
        """Processed training data from ``prep``, including training-only steps."""
        if self.juiced_ is None:
            raise RuntimeError("Call prep() before juice().")
        return self.juiced_.copy()

    @property
    def feature_names(self) -> list[str]:
        if self.juiced_ is None:
            raise RuntimeError("Call prep() before feature_names.")
        excluded = {self.outcome, *self.id_cols}
        return [c for c in self.juiced_.columns if c not in excluded]

    def predictors(self, baked: pd.DataFrame) -> pd.DataFrame:
        """Predictor matrix in the column order learned at prep time."""
        return baked.reindex(columns=self.feature_names, fill_value=0)

    def summary(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "number": range(1, len(self.steps) + 1),
                "type": [type(s).__name__ for s in self.steps],
                "skip": [bool(s.skip) for s in self.steps],
                "trained": [self.is_prepped] * len(self.steps),
            }
        )
