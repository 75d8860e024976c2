"""Calcul des scores d'une paire d'enregistrements et projection vers la table fuzzy."""

from __future__ import annotations

from typing import Any

from relmatch.matching.context import (
    MATCH_DICE,
    MATCH_EXACT,
    MATCH_JARO,
    MATCH_JAROWINKLER,
    MatchContext,
)
from relmatch.matching.schema import MatchCandidate, MatchScores
from relmatch.normalize import composite_key, safe_str
from relmatch.similarity import METRICS


def score_strings(left_key: str, right_key: str) -> MatchScores:
    """Calcule les trois métriques sur deux clés composites."""
    return MatchScores(**{name: metric(left_key, right_key) for name, metric in METRICS.items()})


def score_pair(
    left_record: dict[str, Any],
    right_record: dict[str, Any],
    context: MatchContext,
) -> MatchCandidate:
    """
    Compare un enregistrement gauche à un enregistrement droit.

    Les valeurs absentes ou nulles sont traitées comme des chaînes vides. Les scores
    et les transpositions ne sont calculés que pour une paire non exacte.
    """
    trim = context.settings.trim_keys
    left_values = [safe_str(left_record.get(c)) for c in context.left_key_columns]
    right_values = [safe_str(right_record.get(c)) for c in context.right_key_columns]

    candidate = MatchCandidate(
        left_record=left_record,
        right_record=right_record,
        left_key=composite_key(left_values, trim=trim),
        right_key=composite_key(right_values, trim=trim),
    )

    for flag in context.exact_flags:
        candidate.partial_exact[flag.name] = (
            safe_str(left_record.get(flag.left_column)).strip() == safe_str(right_record.get(flag.right_column)).strip()
        )

    if candidate.is_exact:
        return candidate

    candidate.scores = score_strings(candidate.left_key, candidate.right_key)

    for t in context.transpositions:
        swapped = list(left_values)
        swapped[t.first_index], swapped[t.second_index] = swapped[t.second_index], swapped[t.first_index]
        candidate.transpositions[t.name] = (
            composite_key(swapped, trim=trim).strip() == candidate.right_key.strip()
        )

    return candidate


def _yes_no(flag: bool) -> str:
    return "yes" if flag else "no"


def to_output_row(candidate: MatchCandidate, context: MatchContext) -> dict[str, str]:
    """Projette un candidat retenu sur les colonnes de la table fuzzy."""
    row: dict[str, str] = {}
    for col in context.left_output_columns:
        row[col] = safe_str(candidate.left_record.get(col))
    for col in context.right_output_columns:
        row.setdefault(col, safe_str(candidate.right_record.get(col)))

    row[MATCH_EXACT] = _yes_no(candidate.is_exact)
    row[MATCH_DICE] = str(candidate.scores.dice)
    row[MATCH_JARO] = str(candidate.scores.jaro)
    row[MATCH_JAROWINKLER] = str(candidate.scores.jaro_winkler)
    for flag in context.exact_flags:
        row[flag.name] = _yes_no(candidate.partial_exact.get(flag.name, False))
    row[context.left_key_name] = candidate.left_key
    row[context.right_key_name] = candidate.right_key
    for t in context.transpositions:
        row[t.name] = _yes_no(candidate.transpositions.get(t.name, False))
    return row
