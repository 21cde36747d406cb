"""Intent and slot matcher domain."""

from .parsing import find_json, humanize
from .schemas import (
    CONFIDENCE_FLOOR,
    CategoryMatch,
    CategoryMatches,
    ClarifyingQuestion,
    InputExtraction,
    JurisdictionDetection,
    MatcherResult,
)
from .service import IntentMatcher

__all__ = [
    "IntentMatcher",
    "CONFIDENCE_FLOOR",
    # Results
    "MatcherResult",
    "JurisdictionDetection",
    "CategoryMatch",
    "CategoryMatches",
    "InputExtraction",
    "ClarifyingQuestion",
    # Parsing
    "find_json",
    "humanize",
]
