"""Normalisation de texte pour la comparaison de valeurs de référence."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Any

import pandas as pd

_WHITESPACE_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9\s]")
_LEADING_WS_RE = re.compile(r"^\s*")
_TRAILING_WS_RE = re.compile(r"\s*$")


@dataclass(frozen=True)
class NormalizeOptions:
    """Étapes de normalisation activables indépendamment."""

    trim: bool = True
    lowercase: bool = True
    remove_accents: bool = True
    remove_non_alphanumeric: bool = False
    collapse_whitespace: bool = True

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> NormalizeOptions:
        """
        Construit les options depuis un dict de config.

        Accepte aussi les clés de l'ancien format (caseSensitive, trimWhitespace,
        removeAccents, collapseWhitespace).
        """
        lowercase = d.get("lowercase")
        if lowercase is None and "caseSensitive" in d:
            lowercase = not d["caseSensitive"]
        return cls(
            trim=bool(d.get("trim", d.get("trimWhitespace", True))),
            lowercase=True if lowercase is None else bool(lowercase),
            remove_accents=bool(d.get("remove_accents", d.get("removeAccents", True))),
            remove_non_alphanumeric=bool(
                d.get("remove_non_alphanumeric", d.get("removeNonAlphanumeric", False))
            ),
            collapse_whitespace=bool(d.get("collapse_whitespace", d.get("collapseWhitespace", True))),
        )


DEFAULT_OPTIONS = NormalizeOptions()


def _remove_diacritics(s: str) -> str:
    """Retire les diacritiques (accents) d'une chaîne."""
    nfd = unicodedata.normalize("NFD", s)
    return "".join(c for c in nfd if unicodedata.category(c) != "Mn")


def normalize_string(s: str, options: NormalizeOptions | None = None) -> str:
    """
    Normalise une chaîne avant comparaison.

    Ordre des étapes : minuscules, suppression des accents, remplacement des
    caractères non alphanumériques par un espace, réduction des espaces, trim.

    Args:
        s: Chaîne à normaliser.
        options: Étapes à appliquer (défaut : trim, lower, accents, espaces).

    Returns:
        Chaîne normalisée.
    """
    opts = options or DEFAULT_OPTIONS
    text = s

    if opts.lowercase:
        text = text.lower()

    if opts.remove_accents:
        text = _remove_diacritics(text)

    if opts.remove_non_alphanumeric:
        # Un espace plutôt que rien : conserve les frontières de mots
        text = _NON_ALNUM_RE.sub(" ", text)

    if opts.collapse_whitespace:
        if opts.trim:
            text = _WHITESPACE_RE.sub(" ", text).strip()
        else:
            leading = _LEADING_WS_RE.match(text).group(0)  # type: ignore[union-attr]
            content = text.strip()
            trailing = _TRAILING_WS_RE.search(text).group(0) if content else ""  # type: ignore[union-attr]
            text = leading + _WHITESPACE_RE.sub(" ", content) + trailing
    elif opts.trim:
        text = text.strip()

    return text


def is_missing(val: Any) -> bool:
    """True pour None, NaN, pd.NA et NaT (valeurs manquantes des dtypes pandas compris)."""
    return val is None or bool(pd.api.types.is_scalar(val) and pd.isna(val))


def safe_str(val: Any) -> str:
    """Convertit une valeur en chaîne pour comparaison/affichage."""
    if is_missing(val) or (isinstance(val, float) and val == float("inf")):
        return ""
    if isinstance(val, bool):
        return "true" if val else "false"
    return str(val)
