"""Revue des correspondances floues."""

from concordlookup.review.schema import (
    FuzzyMatch,
    FuzzyMatchForReview,
    Resolution,
    ReviewEvent,
    ReviewFilter,
    ReviewState,
    ReviewStats,
)
from concordlookup.review.session import ReviewSession

__all__ = [
    "FuzzyMatch",
    "FuzzyMatchForReview",
    "Resolution",
    "ReviewEvent",
    "ReviewFilter",
    "ReviewSession",
    "ReviewState",
    "ReviewStats",
]
