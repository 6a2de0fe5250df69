import pandas as pd
import pytest

from sf_trees.data_loader import DataLoader


def test_data_loader_sampling_is_deterministic(tmp_path, raw_trees):
    csv_path = tmp_path / "sf_trees.csv"
    raw_trees.to_csv(csv_path, index=False)

    s1 = DataLoader(path=str(csv_path), sample_size=50).load()
    s2 = DataLoader(path=str(csv_path), sample_size=50).load()

    assert len(s1) == 50
    pd.testing.assert_frame_equal(
        s1.sort_values("tree_id").reset_index(drop=True),
        s2.sort_values("tree_id").reset_index(drop=True),
    )


def test_data_loader_reads_all_rows_without_sample(tmp_path, raw_trees):
    csv_path = tmp_path / "sf_trees.csv"
    raw_trees.to_csv(csv_path, index=False)

    df = DataLoader(path=str(csv_path)).load()
    assert df.shape == raw_trees.shape


def test_data_loader_rejects_missing_columns(tmp_path, raw_trees):
    csv_path = tmp_path / "broken.csv"
    raw_trees.drop(columns=["plot_size"]).to_csv(csv_path, index=False)

    with pytest.raises(ValueError, match="plot_size"):
        DataLoader(path=str(csv_path)).load()


def test_data_loader_propagates_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        DataLoader(path=str(tmp_path / "nope.csv")).load()
