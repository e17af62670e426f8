"""Rapports tabulaires des recherches et de la revue."""

from __future__ import annotations

from datetime import datetime

import pandas as pd

from concordlookup import __version__
from concordlookup.processor import LookupStats
from concordlookup.review.schema import Resolution, ReviewStats


def build_report_df(
    review_stats: ReviewStats,
    lookup_stats: LookupStats | None = None,
) -> pd.DataFrame:
    """
    Construit le DataFrame du rapport (colonnes Key / Value).

    Contient : compteurs de la revue, progression, distribution des confiances,
    compteurs des recherches si fournis, horodatage, version.
    """
    rows: list[tuple[str, object]] = [
        ("nb_matches", review_stats.total_matches),
        ("nb_accepted", review_stats.accepted),
        ("nb_rejected", review_stats.rejected),
        ("nb_manual", review_stats.manual),
        ("nb_pending", review_stats.pending),
        ("progress", review_stats.progress),
        ("", ""),
        ("Confidence", ""),
    ]
    for bucket in review_stats.confidence_distribution:
        low, high = bucket.range
        rows.append((f"confidence_{low:.1f}_{high:.1f}", bucket.count))

    if lookup_stats is not None:
        rows.extend(
            [
                ("", ""),
                ("Lookups", ""),
                ("nb_rows", lookup_stats.total_rows),
                ("nb_lookup_fields", lookup_stats.total_fields),
                ("nb_exact", lookup_stats.exact_matches),
                ("nb_normalized", lookup_stats.normalized_matches),
                ("nb_fuzzy", lookup_stats.fuzzy_matches),
                ("nb_no_match", lookup_stats.no_matches),
                ("nb_derived_columns", lookup_stats.derived_columns),
                ("success_rate", round(lookup_stats.success_rate, 4)),
            ]
        )

    rows.extend(
        [
            ("", ""),
            ("timestamp", datetime.now().isoformat()),
            ("version", __version__),
        ]
    )
    return pd.DataFrame(rows, columns=["Key", "Value"])


def build_resolutions_df(resolutions: list[Resolution]) -> pd.DataFrame:
    """Une ligne par décision : match_id, row_id, field_name, status, value."""
    return pd.DataFrame(
        [
            {
                "match_id": r.match_id,
                "row_id": r.row_id,
                "field_name": r.field_name,
                "status": r.status,
                "value": r.value,
            }
            for r in resolutions
        ],
        columns=["match_id", "row_id", "field_name", "status", "value"],
    )


def print_report_console(review_stats: ReviewStats, lookup_stats: LookupStats | None = None) -> None:
    """Affiche un résumé en console."""
    print("\n=== ConcordLookup Report ===")
    if lookup_stats is not None:
        print(f"  Lignes:           {lookup_stats.total_rows}")
        print(f"  Exact:            {lookup_stats.exact_matches}")
        print(f"  Normalisé:        {lookup_stats.normalized_matches}")
        print(f"  Flou:             {lookup_stats.fuzzy_matches}")
        print(f"  Sans résultat:    {lookup_stats.no_matches}")
        print(f"  Taux de succès:   {lookup_stats.success_rate:.1%}")
    print(f"  À revoir:         {review_stats.total_matches}")
    print(f"  Acceptés:         {review_stats.accepted}")
    print(f"  Rejetés:          {review_stats.rejected}")
    print(f"  Manuels:          {review_stats.manual}")
    print(f"  En attente:       {review_stats.pending}")
    print(f"  Progression:      {review_stats.progress}%")
    print(f"  Version:          {__version__}")
    print("============================\n")
