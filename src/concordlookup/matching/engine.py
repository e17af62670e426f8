"""Moteur de recherche : matching exact, normalisé puis flou dans un jeu de référence."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any

from loguru import logger

from concordlookup.config import NORMALIZED_CONFIDENCE, MatchConfig
from concordlookup.matching.schema import (
    BatchMetrics,
    LookupMetrics,
    LookupResult,
    LookupSuggestion,
    MatchType,
)
from concordlookup.matching.scorers import find_best_matches
from concordlookup.normalize import is_missing, normalize_string, safe_str
from concordlookup.reference import ReferenceDataSource, ReferenceRow

# Seuil plancher pour collecter des suggestions même sous le seuil de matching
SUGGESTION_FLOOR = 0.1

ProgressCallback = Callable[[int, int, float], None]


def no_match(input_value: Any, suggestions: tuple[LookupSuggestion, ...] = ()) -> LookupResult:
    """Résultat inerte : aucune correspondance."""
    return LookupResult(
        input_value=input_value,
        matched=False,
        confidence=0.0,
        match_type="none",
        matched_value=None,
        derived_values={},
        suggestions=suggestions,
    )


def suggestion_reason(confidence: float, input_value: str, suggestion: str) -> str:
    """Libellé lisible expliquant une suggestion."""
    if confidence >= 0.9:
        return "Very similar spelling"
    if confidence >= 0.8:
        return "Similar spelling"
    if confidence >= 0.7:
        return "Possible match"
    if input_value.lower().strip() == suggestion.lower().strip():
        return "Case difference"
    if normalize_string(input_value) == normalize_string(suggestion):
        return "Spacing or punctuation difference"
    return "Partial match"


@dataclass
class CandidateIndex:
    """
    Index des lignes candidates pour une configuration donnée.

    Ne retient que les lignes possédant les colonnes source et cible et une
    valeur source non nulle. En cas de doublon, la première ligne gagne.
    """

    rows: list[ReferenceRow]
    values: list[str]
    exact: dict[str, int]
    normalized: dict[str, int]

    @classmethod
    def build(cls, rows: Sequence[ReferenceRow] | None, config: MatchConfig) -> CandidateIndex:
        kept_rows: list[ReferenceRow] = []
        values: list[str] = []
        exact: dict[str, int] = {}
        normalized: dict[str, int] = {}
        if not rows or not config.source_column or not config.target_column:
            return cls(kept_rows, values, exact, normalized)

        skipped = 0
        for row in rows:
            if config.source_column not in row or config.target_column not in row:
                skipped += 1
                continue
            raw = row[config.source_column]
            if is_missing(raw):
                continue
            text = safe_str(raw)
            pos = len(kept_rows)
            kept_rows.append(row)
            values.append(text)
            exact.setdefault(text, pos)
            normalized.setdefault(normalize_string(text, config.normalization), pos)

        if skipped:
            logger.debug(
                f"{skipped} reference rows lack {config.source_column!r} or {config.target_column!r}, ignored"
            )
        return cls(kept_rows, values, exact, normalized)


class LookupMatchingEngine:
    """Résout une valeur contre un jeu de référence selon une MatchConfig."""

    def perform_lookup(
        self,
        input_value: Any,
        rows: Sequence[ReferenceRow] | None,
        config: MatchConfig,
    ) -> LookupResult:
        """
        Cherche la meilleure ligne de référence pour une valeur.

        Paliers (le premier qui trouve gagne) : exact (confiance 1.0), normalisé
        (0.95), flou (score combiné >= fuzzy_threshold), sinon aucun.

        Ne lève jamais sur des données : entrée vide, jeu vide ou colonnes
        inconnues donnent un résultat "none".
        """
        if not config.source_column or not config.target_column:
            logger.warning(
                f"Lookup config without source/target column "
                f"(source={config.source_column!r}, target={config.target_column!r})"
            )
        return self._lookup(input_value, CandidateIndex.build(rows, config), config)

    def lookup_in_store(
        self,
        input_value: Any,
        store: ReferenceDataSource,
        dataset_id: str,
        config: MatchConfig,
    ) -> LookupResult:
        """Recherche dans un jeu du store ; un jeu absent donne "none"."""
        rows = store.get_rows(dataset_id)
        if rows is None:
            logger.warning(f"Reference dataset {dataset_id!r} not found, lookup yields no match")
            return no_match(input_value)
        return self.perform_lookup(input_value, rows, config)

    def batch_lookup(
        self,
        input_values: Sequence[Any],
        rows: Sequence[ReferenceRow] | None,
        config: MatchConfig,
        *,
        batch_size: int = 1000,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[list[LookupResult], BatchMetrics]:
        """
        Recherche une liste de valeurs ; l'index des candidats est construit une seule fois.

        on_progress(completed, total, percentage) est appelé après chaque lot.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size doit être >= 1 (got {batch_size})")

        start = time.perf_counter()
        index = CandidateIndex.build(rows, config)
        total = len(input_values)
        results: list[LookupResult] = []
        comparisons = 0
        matched = 0

        for offset in range(0, total, batch_size):
            for value in input_values[offset : offset + batch_size]:
                result = self._lookup(value, index, config)
                results.append(result)
                if result.metrics:
                    comparisons += result.metrics.comparisons
                if result.matched:
                    matched += 1
            if on_progress:
                completed = min(offset + batch_size, total)
                on_progress(completed, total, completed / total * 100.0)

        elapsed = (time.perf_counter() - start) * 1000.0
        metrics = BatchMetrics(
            total_execution_time=elapsed,
            average_execution_time=elapsed / total if total else 0.0,
            total_comparisons=comparisons,
            match_rate=matched / total if total else 0.0,
            throughput=total / (elapsed / 1000.0) if elapsed > 0 else 0.0,
        )
        logger.info(f"Batch lookup: {matched}/{total} matched in {elapsed:.1f} ms")
        return results, metrics

    def _lookup(self, input_value: Any, index: CandidateIndex, config: MatchConfig) -> LookupResult:
        start = time.perf_counter()
        text = input_value if isinstance(input_value, str) else safe_str(input_value)
        if not text or not index.rows:
            return self._with_metrics(no_match(input_value), start, 0)

        pos = index.exact.get(text)
        if pos is not None:
            return self._with_metrics(
                self._success(input_value, index.rows[pos], config, 1.0, "exact"), start, 1
            )

        pos = index.normalized.get(normalize_string(text, config.normalization))
        if pos is not None:
            return self._with_metrics(
                self._success(input_value, index.rows[pos], config, NORMALIZED_CONFIDENCE, "normalized"),
                start,
                2,
            )

        if not config.fuzzy_enabled:
            logger.debug(f"No exact/normalized match for {text!r}, fuzzy disabled")
            return self._with_metrics(no_match(input_value), start, 2)

        floor = min(SUGGESTION_FLOOR, config.fuzzy_threshold)
        candidates = find_best_matches(text, index.values, threshold=floor, max_results=config.max_suggestions + 1)
        comparisons = 2 + len(index.values)

        suggestions = [
            LookupSuggestion(
                value=index.rows[c.index].get(config.target_column),
                confidence=c.similarity,
                reason=suggestion_reason(c.similarity, text, c.value),
                source_row=index.rows[c.index],
            )
            for c in candidates
        ]

        if candidates and candidates[0].similarity >= config.fuzzy_threshold:
            best = candidates[0]
            logger.debug(f"Fuzzy match {text!r} -> {best.value!r} ({best.similarity:.3f})")
            result = self._success(input_value, index.rows[best.index], config, best.similarity, "fuzzy")
            result = replace(result, suggestions=tuple(suggestions[1 : config.max_suggestions + 1]))
            return self._with_metrics(result, start, comparisons)

        return self._with_metrics(
            no_match(input_value, tuple(suggestions[: config.max_suggestions])), start, comparisons
        )

    @staticmethod
    def _success(
        input_value: Any,
        row: ReferenceRow,
        config: MatchConfig,
        confidence: float,
        match_type: MatchType,
    ) -> LookupResult:
        derived: dict[str, Any] = {}
        for f in config.also_get:
            if f.source_column in row:
                derived[f.target_field_name] = row[f.source_column]
        return LookupResult(
            input_value=input_value,
            matched=True,
            confidence=confidence,
            match_type=match_type,
            matched_value=row.get(config.target_column),
            derived_values=derived,
            matched_row=row,
        )

    @staticmethod
    def _with_metrics(result: LookupResult, start: float, comparisons: int) -> LookupResult:
        elapsed = (time.perf_counter() - start) * 1000.0
        return replace(result, metrics=LookupMetrics(execution_time=elapsed, comparisons=comparisons))


lookup_matching_engine = LookupMatchingEngine()


def perform_lookup(input_value: Any, rows: Sequence[ReferenceRow] | None, config: MatchConfig) -> LookupResult:
    """Raccourci vers l'instance partagée du moteur."""
    return lookup_matching_engine.perform_lookup(input_value, rows, config)
