from typing import Optional, Sequence
import pandas as pd

from .utils.logger import get_logger

SF_TREES_URL = (
    "https://raw.githubusercontent.com/rfordatascience/tidytuesday/master/"
    "data/2020/2020-01-28/sf_trees.csv"
)

EXPECTED_COLUMNS = (
    "tree_id",
    "legal_status",
    "species",
    "address",
    "site_order",
    "site_info",
    "caretaker",
    "date",
    "dbh",
    "plot_size",
    "latitude",
    "longitude",
)


class DataLoader:
    """Loads the street-trees CSV from a URL or path and optionally samples rows."""

    def __init__(
        self,
        path: str = SF_TREES_URL,
        sample_size: Optional[int] = None,
        random_state: int = 42,
        expected_columns: Sequence[str] = EXPECTED_COLUMNS,
    ):
        self.path = path
        self.sample_size = sample_size
        self.random_state = random_state
        self.expected_columns = tuple(expected_columns)
        self.logger = get_logger(self.__class__.__name__)

    def load(self) -> pd.DataFrame:
        self.logger.info(f"Reading {self.path}")
        df = pd.read_csv(self.path)

        missing = [c for c in self.expected_columns if c not in df.columns]
        if missing:
            raise ValueError(f"Missing expected columns: {missing}")

        if self.sample_size and self.sample_size < len(df):
            df = df.sample(self.sample_size, random_state=self.random_state)
        return df
