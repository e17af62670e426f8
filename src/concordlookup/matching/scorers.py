"""Calcul des scores de similarité entre chaînes."""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from typing import Any

from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

from concordlookup.matching.schema import SimilarityMatch, SimilarityMetrics
from concordlookup.normalize import normalize_string, safe_str

DEFAULT_WEIGHTS: dict[str, float] = {"levenshtein": 0.4, "jaro": 0.3, "jaro_winkler": 0.3}
VALID_ALGORITHMS = frozenset({"levenshtein", "jaro", "jaro_winkler", "combined", "token_set"})

# En dessous de ce ratio de longueurs, deux chaînes ne peuvent pas atteindre un seuil utile
MIN_LENGTH_RATIO = 0.2
WINKLER_THRESHOLD = 0.7
WINKLER_MAX_PREFIX = 4


def levenshtein_distance(a: str, b: str) -> int:
    """
    Distance d'édition classique (insertion, suppression, substitution à coût 1).

    Délègue à rapidfuzz (algorithme bit-parallèle, mémoire linéaire).
    """
    if a == b:
        return 0
    return int(Levenshtein.distance(a, b))


def levenshtein_similarity(a: str, b: str) -> float:
    """Similarité Levenshtein dans [0, 1] : (max_len - distance) / max_len."""
    if a == b:
        return 1.0
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return (max_len - levenshtein_distance(a, b)) / max_len


def jaro_similarity(a: str, b: str) -> float:
    """
    Similarité de Jaro.

    Fenêtre de correspondance : max(len)//2 - 1. Retourne 0 si une des chaînes
    est vide, si la fenêtre est négative ou si aucun caractère ne correspond.
    """
    if a == b:
        return 1.0
    len_a, len_b = len(a), len(b)
    if len_a == 0 or len_b == 0:
        return 0.0

    window = max(len_a, len_b) // 2 - 1
    if window < 0:
        return 0.0

    a_flags = [False] * len_a
    b_flags = [False] * len_b
    matches = 0

    for i, ch in enumerate(a):
        start = max(0, i - window)
        end = min(i + window + 1, len_b)
        for j in range(start, end):
            if b_flags[j] or b[j] != ch:
                continue
            a_flags[i] = True
            b_flags[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i, ch in enumerate(a):
        if not a_flags[i]:
            continue
        while not b_flags[k]:
            k += 1
        if ch != b[k]:
            transpositions += 1
        k += 1

    m = float(matches)
    return (m / len_a + m / len_b + (m - transpositions / 2) / m) / 3


def jaro_winkler_similarity(a: str, b: str, prefix_scale: float = 0.1) -> float:
    """
    Jaro-Winkler : Jaro + bonus de préfixe commun (4 caractères max).

    Le bonus n'est appliqué que si le score Jaro est >= 0.7.
    """
    jaro = jaro_similarity(a, b)
    if jaro < WINKLER_THRESHOLD:
        return jaro

    prefix = 0
    for ca, cb in zip(a[:WINKLER_MAX_PREFIX], b[:WINKLER_MAX_PREFIX]):
        if ca != cb:
            break
        prefix += 1

    return jaro + prefix * prefix_scale * (1 - jaro)


def _resolve_weights(weights: Mapping[str, float] | None) -> tuple[float, float, float]:
    w = dict(DEFAULT_WEIGHTS)
    if weights:
        unknown = set(weights) - set(DEFAULT_WEIGHTS)
        if unknown:
            raise ValueError(f"Poids inconnus: {sorted(unknown)}. Valides: {sorted(DEFAULT_WEIGHTS)}")
        w.update({k: float(v) for k, v in weights.items()})
    total = w["levenshtein"] + w["jaro"] + w["jaro_winkler"]
    if total <= 0:
        raise ValueError(f"La somme des poids doit être > 0 (got {total})")
    return w["levenshtein"] / total, w["jaro"] / total, w["jaro_winkler"] / total


def combined_similarity(a: str, b: str, weights: Mapping[str, float] | None = None) -> float:
    """
    Score combiné pondéré : Levenshtein, Jaro et Jaro-Winkler.

    Les poids (défaut 0.4 / 0.3 / 0.3) sont renormalisés pour sommer à 1.
    """
    w_lev, w_jaro, w_jw = _resolve_weights(weights)
    return (
        levenshtein_similarity(a, b) * w_lev
        + jaro_similarity(a, b) * w_jaro
        + jaro_winkler_similarity(a, b) * w_jw
    )


def similarity(a: str, b: str, algorithm: str = "combined") -> float:
    """
    Calcule la similarité (0-1) selon l'algorithme demandé.

    Args:
        a: Première chaîne.
        b: Seconde chaîne.
        algorithm: levenshtein, jaro, jaro_winkler, combined, token_set.

    Returns:
        Score entre 0 et 1.
    """
    if algorithm == "levenshtein":
        return levenshtein_similarity(a, b)
    if algorithm == "jaro":
        return jaro_similarity(a, b)
    if algorithm == "jaro_winkler":
        return jaro_winkler_similarity(a, b)
    if algorithm == "combined":
        return combined_similarity(a, b)
    if algorithm == "token_set":
        # Ordre des mots indifférent
        if not a and not b:
            return 1.0
        return float(fuzz.token_set_ratio(a, b)) / 100.0
    raise ValueError(f"algorithm invalide: {algorithm!r}. Valides: {sorted(VALID_ALGORITHMS)}")


def benchmark_similarity(a: str, b: str, algorithm: str = "combined") -> SimilarityMetrics:
    """Mesure le temps d'un calcul de similarité (en millisecondes)."""
    start = time.perf_counter()
    score = similarity(a, b, algorithm)
    elapsed = (time.perf_counter() - start) * 1000.0
    return SimilarityMetrics(algorithm=algorithm, score=score, execution_time=elapsed, comparisons=1)


def find_best_matches(
    target: Any,
    candidates: Iterable[Any],
    threshold: float = 0.6,
    max_results: int = 5,
) -> list[SimilarityMatch]:
    """
    Cherche les meilleurs candidats pour une valeur cible.

    La cible est normalisée une seule fois. Pour chaque candidat : égalité après
    normalisation → similarité 1 sans calcul ; ratio de longueurs < 0.2 → ignoré ;
    sinon score combiné. Les candidats non-chaîne ou vides sont ignorés.

    Returns:
        Candidats >= threshold, triés par similarité décroissante, max_results au plus.
    """
    norm_target = normalize_string(target if isinstance(target, str) else safe_str(target))
    results: list[SimilarityMatch] = []

    for idx, candidate in enumerate(candidates):
        if not isinstance(candidate, str) or not candidate:
            continue

        norm_candidate = normalize_string(candidate)
        if norm_candidate == norm_target:
            results.append(SimilarityMatch(value=candidate, similarity=1.0, index=idx))
            continue

        longest = max(len(norm_target), len(norm_candidate))
        if min(len(norm_target), len(norm_candidate)) / longest < MIN_LENGTH_RATIO:
            continue

        score = combined_similarity(norm_target, norm_candidate)
        if score >= threshold:
            results.append(SimilarityMatch(value=candidate, similarity=score, index=idx))

    results.sort(key=lambda m: m.similarity, reverse=True)
    return results[:max_results]
