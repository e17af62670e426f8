"""Application des recherches à un tableau : valeurs résolues, champs dérivés, revue."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd
from loguru import logger

from concordlookup.config import Config, LookupField, LookupProcessingError
from concordlookup.matching.engine import LookupMatchingEngine
from concordlookup.normalize import is_missing
from concordlookup.reference import ReferenceDataSource
from concordlookup.review.schema import FuzzyMatch
from concordlookup.review.session import EventSink, ReviewSession

ROW_ID_COLUMN = "_rowId"

RowProgressCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class LookupIssue:
    """Valeur non résolue lors du traitement."""

    row_id: str
    field_name: str
    input_value: Any
    kind: str  # no_match, reference_missing
    message: str
    severity: str = "warning"  # on_mismatch du champ
    suggestions: tuple[Any, ...] = ()


@dataclass
class LookupStats:
    total_fields: int
    total_rows: int
    exact_matches: int = 0
    normalized_matches: int = 0
    fuzzy_matches: int = 0
    no_matches: int = 0
    derived_columns: int = 0
    success_rate: float = 0.0


@dataclass(frozen=True)
class ProcessingPerformance:
    """Mesures d'un traitement complet."""

    total_time: float  # millisecondes
    avg_time_per_row: float  # millisecondes
    throughput: float  # lignes par seconde
    lookup_operations: int
    comparisons: int = 0


@dataclass
class ProcessedLookupResult:
    """Tableau enrichi et tout ce qui reste à valider."""

    data: pd.DataFrame
    issues: list[LookupIssue] = field(default_factory=list)
    stats: LookupStats = field(default_factory=lambda: LookupStats(0, 0))
    fuzzy_matches: list[FuzzyMatch] = field(default_factory=list)
    performance: ProcessingPerformance = field(default_factory=lambda: ProcessingPerformance(0.0, 0.0, 0.0, 0))

    @property
    def errors(self) -> list[LookupIssue]:
        """Problèmes des champs configurés avec on_mismatch="error"."""
        return [i for i in self.issues if i.severity == "error"]

    def start_review(self, on_event: EventSink | None = None) -> ReviewSession:
        """Ouvre une session de revue sur les correspondances floues collectées."""
        return ReviewSession(self.fuzzy_matches, on_event=on_event)


@dataclass(frozen=True)
class LookupUpdate:
    """Résultat de la re-résolution d'une cellule modifiée."""

    updated_row: dict[str, Any]
    success: bool
    confidence: float = 0.0
    error: str | None = None
    row_id: str | None = None


@dataclass(frozen=True)
class LookupUpdateRequest:
    row_id: str
    field: LookupField
    value: Any
    row: dict[str, Any]


@dataclass(frozen=True)
class LookupFieldSummary:
    name: str
    reference_id: str
    has_match_column: bool
    has_return_column: bool
    derived_field_count: int


@dataclass(frozen=True)
class LookupFieldStats:
    total_lookup_fields: int
    total_derived_fields: int
    fields: tuple[LookupFieldSummary, ...]


def _ensure_object_column(out: pd.DataFrame, col: str) -> int:
    """Crée la colonne si absente et la passe en dtype object ; retourne son index."""
    if col not in out.columns:
        out[col] = pd.Series([None] * len(out), index=out.index, dtype=object)
    elif out[col].dtype != object:
        out[col] = out[col].astype(object)
    return out.columns.get_loc(col)


def _row_ids(df: pd.DataFrame) -> list[str]:
    if ROW_ID_COLUMN not in df.columns:
        return [f"row_{i}" for i in range(len(df))]
    return [f"row_{i}" if is_missing(v) else str(v) for i, v in enumerate(df[ROW_ID_COLUMN].tolist())]


def get_lookup_field_stats(lookup_fields: Sequence[LookupField]) -> LookupFieldStats:
    """Résumé des champs de recherche d'une configuration."""
    summaries = tuple(
        LookupFieldSummary(
            name=lf.name,
            reference_id=lf.reference_id,
            has_match_column=bool(lf.match.source_column),
            has_return_column=bool(lf.match.target_column),
            derived_field_count=len(lf.match.also_get),
        )
        for lf in lookup_fields
    )
    return LookupFieldStats(
        total_lookup_fields=len(summaries),
        total_derived_fields=sum(s.derived_field_count for s in summaries),
        fields=summaries,
    )


class LookupProcessor:
    """Résout les champs de recherche d'un tableau contre les jeux de référence."""

    def __init__(self, store: ReferenceDataSource, engine: LookupMatchingEngine | None = None) -> None:
        self.store = store
        self.engine = engine or LookupMatchingEngine()

    def process_with_config(
        self,
        df: pd.DataFrame,
        config: Config,
        *,
        on_progress: RowProgressCallback | None = None,
    ) -> ProcessedLookupResult:
        return self.process(
            df,
            config.lookup_fields,
            min_confidence=config.min_confidence,
            max_fuzzy_matches=config.max_fuzzy_matches,
            process_derived_fields=config.process_derived_fields,
            continue_on_error=config.continue_on_error,
            on_progress=on_progress,
        )

    def process(
        self,
        df: pd.DataFrame,
        lookup_fields: Sequence[LookupField],
        *,
        min_confidence: float = 0.7,
        max_fuzzy_matches: int = 100,
        process_derived_fields: bool = True,
        continue_on_error: bool = True,
        on_progress: RowProgressCallback | None = None,
        batch_size: int = 1000,
    ) -> ProcessedLookupResult:
        """
        Résout chaque champ de recherche de chaque ligne.

        Args:
            df: Tableau d'entrée (copié, non modifié).
            lookup_fields: Champs à résoudre.
            min_confidence: Les correspondances floues sous ce seuil partent en revue.
            max_fuzzy_matches: Nombre max de correspondances collectées pour la revue.
            process_derived_fields: Écrire les champs dérivés (alsoGet).
            continue_on_error: Si False, la première valeur non résolue interrompt le traitement.
            on_progress: Appelé avec (recherches faites, recherches prévues) ; total = lignes x champs.
            batch_size: Taille des lots transmise au moteur.

        Returns:
            ProcessedLookupResult avec le tableau enrichi.

        Raises:
            LookupProcessingError: Valeur non résolue avec continue_on_error=False.
        """
        start = time.perf_counter()
        out = df.copy()
        n_rows = len(out)
        stats = LookupStats(total_fields=len(lookup_fields), total_rows=n_rows)
        result = ProcessedLookupResult(data=out, stats=stats)
        if not lookup_fields or n_rows == 0:
            stats.success_rate = 1.0
            result.performance = ProcessingPerformance((time.perf_counter() - start) * 1000.0, 0.0, 0.0, 0)
            return result

        row_ids = _row_ids(out)
        derived_cols: set[str] = set()
        total_ops = n_rows * len(lookup_fields)
        done_ops = 0
        comparisons = 0

        def add_issue(issue: LookupIssue) -> None:
            result.issues.append(issue)
            if not continue_on_error:
                raise LookupProcessingError(issue.message, issue)

        for lf in lookup_fields:
            inputs = out[lf.name].tolist() if lf.name in out.columns else [None] * n_rows
            inputs = [None if is_missing(v) else v for v in inputs]
            rows = self.store.get_rows(lf.reference_id)

            if rows is None:
                logger.warning(f"Reference dataset {lf.reference_id!r} missing for field {lf.name!r}")
                for row_id, value in zip(row_ids, inputs):
                    stats.no_matches += 1
                    add_issue(
                        LookupIssue(
                            row_id=row_id,
                            field_name=lf.name,
                            input_value=value,
                            kind="reference_missing",
                            message=f"Reference data not found for {lf.reference_id}",
                            severity=lf.on_mismatch,
                        )
                    )
                done_ops += n_rows
                if on_progress:
                    on_progress(done_ops, total_ops)
                continue

            offset = done_ops
            lookups, batch_metrics = self.engine.batch_lookup(
                inputs,
                rows,
                lf.match,
                batch_size=batch_size,
                on_progress=(lambda done, _total, _pct: on_progress(offset + done, total_ops)) if on_progress else None,
            )
            done_ops += n_rows
            comparisons += batch_metrics.total_comparisons
            col_idx = _ensure_object_column(out, lf.name)

            for pos, (row_id, lookup) in enumerate(zip(row_ids, lookups)):
                if not lookup.matched:
                    stats.no_matches += 1
                    if lf.on_mismatch == "null":
                        out.iat[pos, col_idx] = None
                    add_issue(
                        LookupIssue(
                            row_id=row_id,
                            field_name=lf.name,
                            input_value=lookup.input_value,
                            kind="no_match",
                            message=f'No match found for "{lookup.input_value}" in {lf.reference_id}',
                            severity=lf.on_mismatch,
                            suggestions=tuple(s.value for s in lookup.suggestions),
                        )
                    )
                    continue

                out.iat[pos, col_idx] = lookup.matched_value
                if lookup.match_type == "exact":
                    stats.exact_matches += 1
                elif lookup.match_type == "normalized":
                    stats.normalized_matches += 1
                else:
                    stats.fuzzy_matches += 1
                    if lookup.confidence < min_confidence and len(result.fuzzy_matches) < max_fuzzy_matches:
                        result.fuzzy_matches.append(
                            FuzzyMatch(
                                row_id=row_id,
                                field_name=lf.name,
                                input_value=lookup.input_value,
                                suggested_value=lookup.matched_value,
                                confidence=lookup.confidence,
                                suggestions=tuple(s.value for s in lookup.suggestions),
                            )
                        )

                if process_derived_fields:
                    for name, value in lookup.derived_values.items():
                        out.iat[pos, _ensure_object_column(out, name)] = value
                        derived_cols.add(name)

        matched = stats.exact_matches + stats.normalized_matches + stats.fuzzy_matches
        stats.derived_columns = len(derived_cols)
        stats.success_rate = matched / total_ops

        elapsed = (time.perf_counter() - start) * 1000.0
        result.performance = ProcessingPerformance(
            total_time=elapsed,
            avg_time_per_row=elapsed / n_rows,
            throughput=n_rows / (elapsed / 1000.0) if elapsed > 0 else 0.0,
            lookup_operations=total_ops,
            comparisons=comparisons,
        )
        logger.info(
            f"Processed {n_rows} rows x {len(lookup_fields)} lookup fields in {elapsed:.1f} ms: "
            f"{matched} matched, {stats.no_matches} unmatched, {len(result.fuzzy_matches)} to review"
        )
        return result

    def process_lookup_update(self, value: Any, lookup_field: LookupField, row: dict[str, Any]) -> LookupUpdate:
        """
        Re-résout une cellule modifiée par l'utilisateur.

        En cas de succès, la ligne retournée est une copie portant la valeur
        résolue et les champs dérivés ; sinon la ligne d'origine est retournée.
        """
        row_id = None if is_missing(row.get(ROW_ID_COLUMN)) else str(row.get(ROW_ID_COLUMN))
        rows = self.store.get_rows(lookup_field.reference_id)
        if rows is None:
            return LookupUpdate(
                updated_row=row,
                success=False,
                error=f"Reference data not found for {lookup_field.reference_id}",
                row_id=row_id,
            )

        lookup = self.engine.perform_lookup(value, rows, lookup_field.match)
        if not lookup.matched:
            return LookupUpdate(updated_row=row, success=False, error=f'No match found for "{value}"', row_id=row_id)

        updated = dict(row)
        updated[lookup_field.name] = lookup.matched_value
        updated.update(lookup.derived_values)
        return LookupUpdate(updated_row=updated, success=True, confidence=lookup.confidence, row_id=row_id)

    def batch_process_lookups(
        self,
        updates: Sequence[LookupUpdateRequest],
        on_progress: RowProgressCallback | None = None,
    ) -> list[LookupUpdate]:
        """Re-résout une série de cellules modifiées, dans l'ordre."""
        results: list[LookupUpdate] = []
        for i, req in enumerate(updates):
            if on_progress and i % 10 == 0:
                on_progress(i, len(updates))
            update = self.process_lookup_update(req.value, req.field, req.row)
            results.append(LookupUpdate(update.updated_row, update.success, update.confidence, update.error, req.row_id))
        if on_progress:
            on_progress(len(updates), len(updates))
        return results
