"""Tests du stockage des jeux de référence."""

import numpy as np
import pandas as pd
import pytest

from concordlookup.config import ReferenceDataError
from concordlookup.reference import ReferenceDataStore, coerce_scalar


@pytest.fixture
def store() -> ReferenceDataStore:
    return ReferenceDataStore()


@pytest.fixture
def countries_df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "code": ["FR", "DE", "IT", "FR"],
            "name": ["France", "Allemagne", "Italie", "France"],
            "population": [68.0, 84.0, np.nan, 68.0],
        }
    )


def test_add_dataframe(store: ReferenceDataStore, countries_df: pd.DataFrame) -> None:
    meta = store.add_dataset(countries_df, "Pays", dataset_id="ref_pays")
    assert meta.dataset_id == "ref_pays"
    assert meta.columns == ("code", "name", "population")
    assert meta.row_count == 4
    rows = store.get_rows("ref_pays")
    assert rows is not None
    assert rows[0] == {"code": "FR", "name": "France", "population": 68.0}
    # NaN devient None, les flottants numpy deviennent des float Python
    assert rows[2]["population"] is None
    assert type(rows[1]["population"]) is float


def test_add_rows_fills_missing_columns(store: ReferenceDataStore) -> None:
    meta = store.add_dataset([{"a": 1}, {"a": 2, "b": "x"}], "Mix")
    assert meta.dataset_id.startswith("ref_")
    assert meta.columns == ("a", "b")
    assert store.get_rows(meta.dataset_id) == [{"a": 1, "b": None}, {"a": 2, "b": "x"}]


def test_duplicate_id_rejected(store: ReferenceDataStore) -> None:
    store.add_dataset([{"a": 1}], "A", dataset_id="ref_a")
    with pytest.raises(ReferenceDataError, match="déjà présent"):
        store.add_dataset([{"a": 2}], "A bis", dataset_id="ref_a")
    store.add_dataset([{"a": 2}], "A bis", dataset_id="ref_a", overwrite=True)
    assert store.get_rows("ref_a") == [{"a": 2}]


def test_non_scalar_cell_rejected(store: ReferenceDataStore) -> None:
    with pytest.raises(ReferenceDataError, match="non scalaire"):
        store.add_dataset([{"a": [1, 2]}], "Bad")


def test_duplicate_columns_rejected(store: ReferenceDataStore) -> None:
    df = pd.DataFrame([[1, 2]], columns=["a", "a"])
    with pytest.raises(ReferenceDataError, match="Colonnes en double"):
        store.add_dataset(df, "Dup")


def test_unknown_dataset(store: ReferenceDataStore) -> None:
    assert store.get_rows("ref_nope") is None
    assert store.get_metadata("ref_nope") is None
    assert store.get_dataframe("ref_nope") is None
    assert store.update_rows("ref_nope", []) is False
    assert store.delete_dataset("ref_nope") is False
    assert store.get_unique_values("ref_nope", "code") == []


def test_unique_values(store: ReferenceDataStore, countries_df: pd.DataFrame) -> None:
    store.add_dataset(countries_df, "Pays", dataset_id="ref_pays")
    assert store.get_unique_values("ref_pays", "code") == ["FR", "DE", "IT"]
    assert store.get_unique_values("ref_pays", "population") == [68.0, 84.0]
    assert store.get_unique_values("ref_pays", "missing") == []


def test_update_and_delete(store: ReferenceDataStore) -> None:
    store.add_dataset([{"a": 1}], "A", dataset_id="ref_a")
    assert store.update_rows("ref_a", [{"a": 1, "b": 2}, {"a": 3, "b": 4}]) is True
    meta = store.get_metadata("ref_a")
    assert meta is not None
    assert meta.row_count == 2
    assert meta.columns == ("a", "b")
    assert meta.name == "A"
    assert store.delete_dataset("ref_a") is True
    assert store.has_dataset("ref_a") is False


def test_stats_and_list(store: ReferenceDataStore, countries_df: pd.DataFrame) -> None:
    assert store.get_stats().dataset_count == 0
    store.add_dataset(countries_df, "Pays", dataset_id="ref_pays")
    store.add_dataset([{"x": 1}], "X", dataset_id="ref_x")
    stats = store.get_stats()
    assert stats.dataset_count == 2
    assert stats.total_rows == 5
    assert [m.dataset_id for m in store.list_datasets()] == ["ref_pays", "ref_x"]
    store.clear()
    assert store.list_datasets() == []


def test_get_dataframe(store: ReferenceDataStore, countries_df: pd.DataFrame) -> None:
    store.add_dataset(countries_df, "Pays", dataset_id="ref_pays")
    df = store.get_dataframe("ref_pays")
    assert df is not None
    assert list(df.columns) == ["code", "name", "population"]
    assert len(df) == 4


def test_export_import_roundtrip(store: ReferenceDataStore, countries_df: pd.DataFrame) -> None:
    store.add_dataset(countries_df, "Pays", dataset_id="ref_pays")
    snapshot = store.export_datasets()
    assert snapshot["ref_pays"]["info"]["name"] == "Pays"

    other = ReferenceDataStore()
    assert other.import_datasets(snapshot) == ["ref_pays"]
    assert other.get_rows("ref_pays") == store.get_rows("ref_pays")
    assert other.get_metadata("ref_pays").columns == ("code", "name", "population")  # type: ignore[union-attr]


def test_coerce_scalar() -> None:
    assert coerce_scalar(np.int64(3), "c") == 3
    assert type(coerce_scalar(np.int64(3), "c")) is int
    assert coerce_scalar(np.bool_(True), "c") is True
    assert coerce_scalar(pd.NA, "c") is None
    assert coerce_scalar(pd.Timestamp("2024-01-02"), "c") == "2024-01-02T00:00:00"
    assert coerce_scalar("x", "c") == "x"
