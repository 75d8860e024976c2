"""Module de matching : spécification, scoring, sélection et étapes exacte/fuzzy."""

from relmatch.matching.engine import MatchEngine, MatchOutcome, match_relations
from relmatch.matching.options import MatchSpecification, parse_with_clause
from relmatch.matching.schema import MatchCandidate, MatchScores, MatchSet

__all__ = [
    "MatchCandidate",
    "MatchEngine",
    "MatchOutcome",
    "MatchScores",
    "MatchSet",
    "MatchSpecification",
    "match_relations",
    "parse_with_clause",
]
