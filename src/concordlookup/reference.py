"""Jeux de données de référence : contrat de lecture et stockage en mémoire."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import asdict, dataclass, replace
from datetime import date, datetime, timezone
from typing import Any, Protocol, Union

import pandas as pd
from loguru import logger

from concordlookup.config import ReferenceDataError

Scalar = Union[str, int, float, bool, None]
ReferenceRow = dict[str, Scalar]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class DatasetMetadata:
    """Description d'un jeu de référence."""

    dataset_id: str
    name: str
    columns: tuple[str, ...]
    row_count: int
    created_at: str
    last_modified: str


@dataclass(frozen=True)
class StoreStats:
    dataset_count: int
    total_rows: int


class ReferenceDataSource(Protocol):
    """Ce dont le moteur de recherche a besoin pour lire un jeu de référence."""

    def get_rows(self, dataset_id: str) -> list[ReferenceRow] | None: ...

    def get_metadata(self, dataset_id: str) -> DatasetMetadata | None: ...


def coerce_scalar(val: Any, column: str) -> Scalar:
    """
    Convertit une cellule en scalaire Python (str, int, float, bool ou None).

    Les scalaires numpy sont convertis, NaN/NaT/pd.NA deviennent None, les dates
    sont sérialisées en ISO 8601.

    Raises:
        ReferenceDataError: Si la valeur n'est pas un scalaire.
    """
    if val is None:
        return None
    if not pd.api.types.is_scalar(val):
        raise ReferenceDataError(f"Valeur non scalaire dans la colonne {column!r}: {val!r}")
    if pd.isna(val):
        return None
    if isinstance(val, str):
        return val
    if isinstance(val, (datetime, date)):
        return val.isoformat()
    if hasattr(val, "item"):  # scalaires numpy
        val = val.item()
    if isinstance(val, (bool, int, float)):
        return val
    raise ReferenceDataError(f"Type non supporté dans la colonne {column!r}: {type(val).__name__}")


def _ingest(data: pd.DataFrame | Iterable[dict[str, Any]]) -> tuple[tuple[str, ...], list[ReferenceRow]]:
    """Valide une fois pour toutes les colonnes et les cellules d'un jeu de référence."""
    if isinstance(data, pd.DataFrame):
        columns = [str(c) for c in data.columns]
        if len(set(columns)) != len(columns):
            dupes = sorted({c for c in columns if columns.count(c) > 1})
            raise ReferenceDataError(f"Colonnes en double: {dupes}")
        records: list[dict[str, Any]] = [
            dict(zip(columns, values)) for values in data.itertuples(index=False, name=None)
        ]
    else:
        records = []
        columns = []
        seen: set[str] = set()
        for rec in data:
            if not isinstance(rec, dict):
                raise ReferenceDataError(f"Ligne invalide (dict attendu): {rec!r}")
            records.append(rec)
            for key in rec:
                col = str(key)
                if col not in seen:
                    seen.add(col)
                    columns.append(col)

    rows: list[ReferenceRow] = []
    for rec in records:
        by_name = {str(k): v for k, v in rec.items()}
        rows.append({col: coerce_scalar(by_name.get(col), col) for col in columns})
    return tuple(columns), rows


@dataclass
class _Dataset:
    metadata: DatasetMetadata
    rows: list[ReferenceRow]


class ReferenceDataStore:
    """Stockage en mémoire des jeux de référence, indexés par identifiant."""

    def __init__(self) -> None:
        self._datasets: dict[str, _Dataset] = {}

    def add_dataset(
        self,
        data: pd.DataFrame | Iterable[dict[str, Any]],
        name: str,
        *,
        dataset_id: str | None = None,
        overwrite: bool = False,
    ) -> DatasetMetadata:
        """
        Ajoute un jeu de référence.

        Args:
            data: DataFrame ou lignes (dicts).
            name: Nom affiché.
            dataset_id: Identifiant (généré avec le préfixe ref_ si absent).
            overwrite: Remplacer un jeu existant de même identifiant.

        Raises:
            ReferenceDataError: Identifiant déjà pris ou données invalides.
        """
        dataset_id = dataset_id or f"ref_{uuid.uuid4().hex}"
        if dataset_id in self._datasets and not overwrite:
            raise ReferenceDataError(f"Jeu de référence déjà présent: {dataset_id}")

        columns, rows = _ingest(data)
        now = utc_now()
        metadata = DatasetMetadata(
            dataset_id=dataset_id,
            name=name,
            columns=columns,
            row_count=len(rows),
            created_at=now,
            last_modified=now,
        )
        self._datasets[dataset_id] = _Dataset(metadata=metadata, rows=rows)
        logger.info(f"Reference dataset {dataset_id!r} loaded: {len(rows)} rows, {len(columns)} columns")
        return metadata

    def get_rows(self, dataset_id: str) -> list[ReferenceRow] | None:
        ds = self._datasets.get(dataset_id)
        return list(ds.rows) if ds else None

    def get_metadata(self, dataset_id: str) -> DatasetMetadata | None:
        ds = self._datasets.get(dataset_id)
        return ds.metadata if ds else None

    def get_dataframe(self, dataset_id: str) -> pd.DataFrame | None:
        """Retourne une copie du jeu sous forme de DataFrame (colonnes dans l'ordre d'origine)."""
        ds = self._datasets.get(dataset_id)
        if ds is None:
            return None
        return pd.DataFrame(ds.rows, columns=list(ds.metadata.columns))

    def has_dataset(self, dataset_id: str) -> bool:
        return dataset_id in self._datasets

    def list_datasets(self) -> list[DatasetMetadata]:
        return [ds.metadata for ds in self._datasets.values()]

    def update_rows(self, dataset_id: str, data: pd.DataFrame | Iterable[dict[str, Any]]) -> bool:
        """Remplace les lignes d'un jeu existant. Retourne False si le jeu est inconnu."""
        ds = self._datasets.get(dataset_id)
        if ds is None:
            return False
        columns, rows = _ingest(data)
        ds.rows = rows
        ds.metadata = replace(ds.metadata, columns=columns, row_count=len(rows), last_modified=utc_now())
        return True

    def delete_dataset(self, dataset_id: str) -> bool:
        if self._datasets.pop(dataset_id, None) is None:
            return False
        logger.info(f"Reference dataset {dataset_id!r} deleted")
        return True

    def get_unique_values(self, dataset_id: str, column: str) -> list[Scalar]:
        """Valeurs distinctes non nulles d'une colonne, dans l'ordre de première apparition."""
        ds = self._datasets.get(dataset_id)
        if ds is None or column not in ds.metadata.columns:
            return []
        seen: dict[Scalar, None] = {}
        for row in ds.rows:
            val = row.get(column)
            if val is not None:
                seen.setdefault(val, None)
        return list(seen)

    def get_stats(self) -> StoreStats:
        return StoreStats(
            dataset_count=len(self._datasets),
            total_rows=sum(ds.metadata.row_count for ds in self._datasets.values()),
        )

    def clear(self) -> None:
        self._datasets.clear()

    def export_datasets(self) -> dict[str, dict[str, Any]]:
        """Instantané des jeux : {dataset_id: {"info": {...}, "data": [lignes]}}."""
        out: dict[str, dict[str, Any]] = {}
        for dataset_id, ds in self._datasets.items():
            info = asdict(ds.metadata)
            info["columns"] = list(ds.metadata.columns)
            out[dataset_id] = {"info": info, "data": [dict(r) for r in ds.rows]}
        return out

    def import_datasets(self, snapshot: dict[str, dict[str, Any]]) -> list[str]:
        """
        Recharge un instantané produit par export_datasets (remplace les identifiants existants).

        Returns:
            Identifiants importés.
        """
        imported: list[str] = []
        for dataset_id, payload in snapshot.items():
            info = payload.get("info") or {}
            rows = payload.get("data") or []
            columns, valid_rows = _ingest(rows)
            if not columns and info.get("columns"):
                columns = tuple(str(c) for c in info["columns"])
            now = utc_now()
            metadata = DatasetMetadata(
                dataset_id=dataset_id,
                name=str(info.get("name", dataset_id)),
                columns=columns,
                row_count=len(valid_rows),
                created_at=str(info.get("created_at", now)),
                last_modified=str(info.get("last_modified", now)),
            )
            self._datasets[dataset_id] = _Dataset(metadata=metadata, rows=valid_rows)
            imported.append(dataset_id)
        logger.info(f"Imported {len(imported)} reference datasets")
        return imported
