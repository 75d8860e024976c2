"""Génération du rapport et onglet REPORT."""

from __future__ import annotations

from datetime import datetime

import pandas as pd

from relmatch import __version__
from relmatch.config import EngineSettings
from relmatch.matching.engine import MatchOutcome
from relmatch.matching.options import MatchSpecification


def _display(attributes: frozenset[str] | None) -> str:
    if attributes is None:
        return "*"
    return ", ".join(sorted(attributes))


def build_report_df(
    outcome: MatchOutcome,
    spec: MatchSpecification,
    settings: EngineSettings,
) -> pd.DataFrame:
    """
    Construit le DataFrame pour l'onglet REPORT.

    Contient : volumes, nb exactes, nb fuzzy, partitions, paramètres, horodatage, version.
    """
    rows = [
        ("Metric", "Value"),
        ("nb_left_rows", outcome.left_count),
        ("nb_right_rows", outcome.right_count),
        ("nb_exact_matches", outcome.exact_count),
        ("nb_fuzzy_matches", outcome.fuzzy_count),
        ("nb_reduced_left", outcome.reduced_left_count),
        ("nb_reduced_right", outcome.reduced_right_count),
        ("nb_comparisons", outcome.comparisons),
        ("left_partitions", outcome.left_partitions),
        ("right_partitions", outcome.right_partitions),
        ("duration_seconds", round(outcome.duration_seconds, 3)),
        ("", ""),
        ("Parameters", ""),
        ("left_attributes", ", ".join(spec.left_attributes)),
        ("right_attributes", ", ".join(spec.right_attributes)),
        ("threshold", spec.threshold),
        ("suppress_second_best", spec.suppress_second_best),
        ("display_left", _display(spec.display_left.attributes)),
        ("display_right", _display(spec.display_right.attributes)),
        ("left_partition_size", settings.left_partition_size),
        ("right_partition_size", settings.right_partition_size),
        ("buffer_size", settings.buffer_size),
        ("hungry_left", settings.hungry_left),
        ("greedy_left", settings.greedy_left),
        ("selection_scope", settings.selection_scope),
    ]
    for i, t in enumerate(spec.transpositions):
        rows.append((f"transposition_{i}", f"{t.first}<->{t.second}"))

    rows.extend(
        [
            ("", ""),
            ("exact_relation", outcome.exact_relation),
            ("fuzzy_relation", outcome.fuzzy_relation),
            ("timestamp", datetime.now().isoformat()),
            ("version", __version__),
        ]
    )

    return pd.DataFrame(rows, columns=["Key", "Value"])


def print_report_console(outcome: MatchOutcome) -> None:
    """Affiche un résumé du rapport en console."""
    print("\n=== relmatch Report ===")
    print(f"  Lignes gauche:        {outcome.left_count}")
    print(f"  Lignes droite:        {outcome.right_count}")
    print(f"  Exactes:              {outcome.exact_count}  ({outcome.exact_relation})")
    print(f"  Fuzzy:                {outcome.fuzzy_count}  ({outcome.fuzzy_relation})")
    print(f"  Comparaisons:         {outcome.comparisons}")
    print(f"  Partitions (g x d):   {outcome.left_partitions} x {outcome.right_partitions}")
    print(f"  Durée:                {outcome.duration_seconds:.1f} s")
    print(f"  Version:              {__version__}")
    print(f"  Timestamp:            {datetime.now().isoformat()}")
    print("=======================\n")
