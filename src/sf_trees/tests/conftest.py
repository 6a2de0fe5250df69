import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from sf_trees.cleaner import Cleaner


def make_raw_trees(n: int = 400, seed: int = 0) -> pd.DataFrame:
    """Synthetic table shaped like sf_trees.csv, with a learnable target."""
    rng = np.random.default_rng(seed)

    caretaker = rng.choice(["Private", "DPW", "SFUSD", "Port"], size=n, p=[0.5, 0.35, 0.1, 0.05])
    dpw = caretaker == "DPW"
    legal_status = np.where(
        rng.random(n) < np.where(dpw, 0.9, 0.2),
        "DPW Maintained",
        rng.choice(["Permitted Site", "Undocumented", "Significant Tree"], size=n),
    )
    species = rng.choice(
        [
            "Platanus x hispanica :: Sycamore: London Plane",
            "Metrosideros excelsa :: New Zealand Xmas Tree",
            "Lophostemon confertus :: Brisbane Box",
            "Tristaniopsis laurina :: Swamp Myrtle",
            "Tree(s) ::",
        ],
        size=n,
    ).astype(object)
    species[:2] = ["Rare tree :: One", "Rare tree :: Two"]
    site_info = rng.choice(["Sidewalk: Curb side : Cutout", "Sidewalk: Property side : Yard", "Median : Cutout"], size=n)
    plot_size = rng.choice(["Width 3ft", "3x3", "Width 4ft", "4x4"], size=n).astype(object)
    dates = pd.Timestamp("1970-01-01") + pd.to_timedelta(rng.integers(0, 18000, size=n), unit="D")

    df = pd.DataFrame(
        {
            "tree_id": np.arange(1, n + 1),
            "legal_status": legal_status,
            "species": species,
            "address": [f"{i} Market St" for i in range(n)],
            "site_order": rng.integers(1, 5, size=n),
            "site_info": site_info,
            "caretaker": caretaker,
            "date": dates.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "dbh": np.round(rng.gamma(2.0, 6.0, size=n) + np.where(dpw, 8.0, 0.0), 1),
            "plot_size": plot_size,
            "latitude": 37.75 + rng.normal(0, 0.02, size=n),
            "longitude": -122.44 + rng.normal(0, 0.02, size=n),
        }
    )
    # a few incomplete rows the cleaner must drop
    df.loc[5, "dbh"] = np.nan
    df.loc[6, "plot_size"] = np.nan
    df.loc[7, "date"] = np.nan
    df.loc[8, "legal_status"] = np.nan
    return df


@pytest.fixture
def raw_trees() -> pd.DataFrame:
    return make_raw_trees()


@pytest.fixture
def clean_trees(raw_trees) -> pd.DataFrame:
    return Cleaner().transform(raw_trees)


@pytest.fixture
def trees_csv(tmp_path):
    path = tmp_path / "sf_trees.csv"
    make_raw_trees(n=300, seed=3).to_csv(path, index=False)
    return path
