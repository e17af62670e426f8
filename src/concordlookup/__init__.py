"""concordlookup - Recherche floue dans des données de référence et revue des correspondances."""

from concordlookup.config import (
    ConcordLookupError,
    ConfigError,
    ConfigFileError,
    LookupProcessingError,
    ReferenceDataError,
)

__all__ = [
    "__version__",
    "ConcordLookupError",
    "ConfigError",
    "ConfigFileError",
    "LookupProcessingError",
    "ReferenceDataError",
]

__version__ = "0.1.0"
