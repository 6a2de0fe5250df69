import numpy as np
import pandas as pd

from .utils.logger import get_logger


class Cleaner:
    """Turns the raw street-trees table into a complete, model-ready table.

    - ``legal_status`` becomes binary: the target class or ``other_label``
    - ``plot_size`` is parsed to its first number ("Width 3ft" -> 3.0)
    - unused columns are dropped
    - rows with any missing value are dropped (no imputation)
    - text columns become ``category``
    """

    NUMBER_PATTERN = r"(-?\d+(?:\.\d+)?)"

    def __init__(
        self,
        target_col: str = "legal_status",
        positive_class: str = "DPW Maintained",
        other_label: str = "Other",
        drop_columns: tuple = ("address",),
        size_col: str = "plot_size",
        date_col: str = "date",
    ):
        self.target_col = target_col
        self.positive_class = positive_class
        self.other_label = other_label
        self.drop_columns = tuple(drop_columns)
        self.size_col = size_col
        self.date_col = date_col
        self.logger = get_logger(self.__class__.__name__)

    @classmethod
    def parse_number(cls, values: pd.Series) -> pd.Series:
        """Extract the first numeric token of each string; NaN if there is none."""
        extracted = values.astype("string").str.extract(cls.NUMBER_PATTERN, expand=False)
        return pd.to_numeric(extracted, errors="coerce")

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        out = df.copy()

        if self.target_col not in out.columns:
            raise KeyError(f"Target column '{self.target_col}' not found")

        is_target = out[self.target_col].eq(self.positive_class).fillna(False).to_numpy(dtype=bool)
        out[self.target_col] = np.where(is_target, self.positive_class, self.other_label)

        if self.size_col in out.columns:
            out[self.size_col] = self.parse_number(out[self.size_col])

        if self.date_col in out.columns:
            out[self.date_col] = pd.to_datetime(out[self.date_col], errors="coerce")

        out = out.drop(columns=[c for c in self.drop_columns if c in out.columns])

        n_before = len(out)
        out = out.dropna().reset_index(drop=True)
        self.logger.info(f"Dropped {n_before - len(out):,} incomplete rows; {len(out):,} remain")

        text_cols = out.select_dtypes(include=["object", "string"]).columns
        for col in text_cols:
            out[col] = out[col].astype("category")

        # fixed level order: target class first
        out[self.target_col] = out[self.target_col].cat.set_categories(
            [self.positive_class, self.other_label]
        )
        return out
