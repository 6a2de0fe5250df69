import numpy as np
import pandas as pd

from sf_trees.cleaner import Cleaner


def test_cleaner_target_is_binary_and_rows_complete(clean_trees):
    assert set(clean_trees["legal_status"].unique()) <= {"DPW Maintained", "Other"}
    assert not clean_trees.isna().any().any()


def test_cleaner_drops_incomplete_rows_only(raw_trees, clean_trees):
    # rows 5, 6, 7 miss dbh / plot_size / date; row 8 misses legal_status, which becomes "Other"
    assert len(clean_trees) == len(raw_trees) - 3
    assert 9 in clean_trees["tree_id"].values
    assert clean_trees.loc[clean_trees["tree_id"] == 9, "legal_status"].iloc[0] == "Other"


def test_cleaner_parses_plot_size_and_drops_address(clean_trees):
    assert "address" not in clean_trees.columns
    assert pd.api.types.is_numeric_dtype(clean_trees["plot_size"])
    assert set(clean_trees["plot_size"].unique()) <= {3.0, 4.0}


def test_parse_number_takes_first_numeric_token():
    values = pd.Series(["Width 3ft", "3x3", "Width 2.5ft", "no size", None])
    parsed = Cleaner.parse_number(values)
    assert parsed.iloc[:3].tolist() == [3.0, 3.0, 2.5]
    assert parsed.iloc[3:].isna().all()


def test_cleaner_marks_text_columns_categorical(clean_trees):
    for col in ["legal_status", "species", "site_info", "caretaker"]:
        assert isinstance(clean_trees[col].dtype, pd.CategoricalDtype), col
    assert list(clean_trees["legal_status"].cat.categories) == ["DPW Maintained", "Other"]
    assert pd.api.types.is_datetime64_any_dtype(clean_trees["date"])


def test_cleaner_does_not_mutate_input(raw_trees):
    before = raw_trees.copy(deep=True)
    _ = Cleaner().transform(raw_trees)
    pd.testing.assert_frame_equal(raw_trees, before)


def test_cleaner_custom_positive_class():
    df = pd.DataFrame(
        {
            "legal_status": ["Permitted Site", "DPW Maintained", "Undocumented"],
            "plot_size": ["3x3", "4x4", "Width 2ft"],
            "date": ["2010-01-01", "2011-01-01", "2012-01-01"],
            "address": ["a", "b", "c"],
            "dbh": [1.0, 2.0, np.nan],
        }
    )
    out = Cleaner(positive_class="Permitted Site").transform(df)
    assert out["legal_status"].tolist() == ["Permitted Site", "Other"]
