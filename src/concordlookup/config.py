"""Configuration des recherches et chargement du fichier config JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from concordlookup.normalize import NormalizeOptions

VALID_ON_MISMATCH = frozenset({"error", "warning", "null"})
DEFAULT_FUZZY_THRESHOLD = 0.8
NORMALIZED_CONFIDENCE = 0.95


class ConcordLookupError(Exception):
    """Exception de base pour concordlookup."""


class ConfigError(ConcordLookupError, ValueError):
    """Erreur de validation de la configuration."""


class ConfigFileError(ConcordLookupError):
    """Erreur de chargement du fichier de configuration (fichier absent, JSON invalide)."""


class ReferenceDataError(ConcordLookupError):
    """Jeu de référence invalide ou identifiant en conflit."""


class LookupProcessingError(ConcordLookupError):
    """Traitement interrompu sur une valeur non résolue (continue_on_error=False)."""

    def __init__(self, message: str, issue: Any = None) -> None:
        super().__init__(message)
        self.issue = issue


def _pick(d: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Première clé présente parmi les alias (snake_case puis ancien format)."""
    for k in keys:
        if k in d:
            return d[k]
    return default


def _unit_interval(value: Any, name: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} doit être un nombre (got {value!r})") from e
    if not 0 <= v <= 1:
        raise ConfigError(f"{name} doit être entre 0 et 1 (got {v})")
    return v


@dataclass(frozen=True)
class DerivedField:
    """Colonne de référence à recopier dans un champ dérivé."""

    source_column: str
    target_field_name: str

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DerivedField:
        source = _pick(d, "source_column", "sourceColumn", "source", default="")
        target = _pick(d, "target_field_name", "targetFieldName", "name", default="")
        if not target:
            raise ConfigError(f"target_field_name requis pour le champ dérivé (source={source!r})")
        return cls(source_column=str(source), target_field_name=str(target))


@dataclass(frozen=True)
class MatchConfig:
    """
    Paramètres d'une recherche.

    Des colonnes absentes ne sont pas une erreur de configuration : la recherche
    ne trouve simplement rien.
    """

    source_column: str
    target_column: str
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD
    also_get: tuple[DerivedField, ...] = ()
    fuzzy_enabled: bool = True
    max_suggestions: int = 3
    normalization: NormalizeOptions = field(default_factory=NormalizeOptions)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MatchConfig:
        smart = d.get("smartMatching") or {}
        threshold = _pick(d, "fuzzy_threshold", "fuzzyThreshold", default=smart.get("confidence", DEFAULT_FUZZY_THRESHOLD))
        max_suggestions = int(_pick(d, "max_suggestions", "maxSuggestions", default=3))
        if max_suggestions < 0:
            raise ConfigError(f"max_suggestions doit être >= 0 (got {max_suggestions})")

        also_get = tuple(DerivedField.from_dict(x) for x in _pick(d, "also_get", "alsoGet", default=[]) or [])

        return cls(
            source_column=str(_pick(d, "source_column", "sourceColumn", default="") or ""),
            target_column=str(_pick(d, "target_column", "targetColumn", default="") or ""),
            fuzzy_threshold=_unit_interval(threshold, "fuzzy_threshold"),
            also_get=also_get,
            fuzzy_enabled=bool(_pick(d, "fuzzy_enabled", "fuzzyEnabled", default=smart.get("enabled", True))),
            max_suggestions=max_suggestions,
            normalization=NormalizeOptions.from_dict(d.get("normalization") or {}),
        )


@dataclass(frozen=True)
class LookupField:
    """Champ d'un tableau résolu par recherche dans un jeu de référence."""

    name: str
    reference_id: str
    match: MatchConfig
    on_mismatch: str = "warning"  # error, warning, null

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> LookupField:
        name = d.get("name", "")
        if not name:
            raise ConfigError("name requis pour un champ de recherche")
        on_mismatch = _pick(d, "on_mismatch", "onMismatch", default="warning")
        if on_mismatch not in VALID_ON_MISMATCH:
            raise ConfigError(f"on_mismatch invalide: {on_mismatch!r}. Valides: {sorted(VALID_ON_MISMATCH)}")

        match_d = dict(d.get("match") or {})
        # Ancien format : match.on / match.get, alsoGet et smartMatching au niveau du champ
        if "on" in match_d:
            match_d.setdefault("source_column", match_d.pop("on"))
        if "get" in match_d:
            match_d.setdefault("target_column", match_d.pop("get"))
        for key in ("alsoGet", "also_get", "smartMatching", "normalization"):
            if key in d and key not in match_d:
                match_d[key] = d[key]

        return cls(
            name=str(name),
            reference_id=str(_pick(d, "reference_id", "referenceFile", "reference", default="")),
            match=MatchConfig.from_dict(match_d),
            on_mismatch=on_mismatch,
        )


@dataclass
class Config:
    """Configuration principale : champs de recherche et options de traitement."""

    lookup_fields: list[LookupField] = field(default_factory=list)
    min_confidence: float = 0.7
    max_fuzzy_matches: int = 100
    process_derived_fields: bool = True
    continue_on_error: bool = True

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Config:
        fields = [LookupField.from_dict(f) for f in _pick(d, "lookup_fields", "lookupFields", default=[])]
        names = [f.name for f in fields]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ConfigError(f"Champs de recherche en double: {dupes}")

        max_fuzzy = int(_pick(d, "max_fuzzy_matches", "maxFuzzyMatches", default=100))
        if max_fuzzy < 0:
            raise ConfigError(f"max_fuzzy_matches doit être >= 0 (got {max_fuzzy})")

        return cls(
            lookup_fields=fields,
            min_confidence=_unit_interval(_pick(d, "min_confidence", "minConfidence", default=0.7), "min_confidence"),
            max_fuzzy_matches=max_fuzzy,
            process_derived_fields=bool(_pick(d, "process_derived_fields", "processDerivedFields", default=True)),
            continue_on_error=bool(_pick(d, "continue_on_error", "continueOnError", default=True)),
        )

    @classmethod
    def load(cls, path: str | Path) -> Config:
        """
        Charge la configuration depuis un fichier JSON.

        Raises:
            ConfigFileError: Si le fichier est absent ou le JSON invalide.
            ConfigError: Si la configuration est invalide.
        """
        path = Path(path).resolve()
        if not path.exists():
            raise ConfigFileError(f"Fichier de configuration introuvable: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                d = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigFileError(f"JSON invalide dans {path}: {e}") from e
        except OSError as e:
            raise ConfigFileError(f"Impossible de lire {path}: {e}") from e

        if not isinstance(d, dict):
            raise ConfigFileError(f"Fichier de configuration invalide: {path} doit contenir un objet JSON")

        return cls.from_dict(d)
