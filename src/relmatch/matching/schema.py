"""Schémas et types pour le matching."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class MatchScores:
    """Scores de similarité d'une paire, dans [0, 1]."""

    dice: float = 0.0
    jaro: float = 0.0
    jaro_winkler: float = 0.0

    @property
    def mean(self) -> float:
        return (self.dice + self.jaro + self.jaro_winkler) / 3

    def any_above(self, threshold: float) -> bool:
        """Au moins un score strictement supérieur au seuil."""
        return self.dice > threshold or self.jaro > threshold or self.jaro_winkler > threshold


@dataclass
class MatchCandidate:
    """Un enregistrement gauche comparé à un enregistrement droit."""

    left_record: dict[str, Any]
    right_record: dict[str, Any]
    left_key: str
    right_key: str
    partial_exact: dict[str, bool] = field(default_factory=dict)  # nom du drapeau -> égalité
    scores: MatchScores = field(default_factory=MatchScores)
    transpositions: dict[str, bool] = field(default_factory=dict)  # colonne swap_* -> match

    @property
    def is_exact(self) -> bool:
        # Sans drapeaux (clés de longueurs différentes), une paire n'est jamais exacte
        return bool(self.partial_exact) and all(self.partial_exact.values())

    def __repr__(self) -> str:
        return (
            f"MatchCandidate({self.left_key!r} ~ {self.right_key!r}, exact={self.is_exact}, "
            f"mean={self.scores.mean:.3f})"
        )


class MatchSet:
    """Candidats d'un enregistrement gauche contre un lot d'enregistrements droits."""

    def __init__(self) -> None:
        self.matches: list[MatchCandidate] = []

    def add(self, candidate: MatchCandidate) -> None:
        self.matches.append(candidate)

    def __iter__(self) -> Iterator[MatchCandidate]:
        return iter(self.matches)

    def __len__(self) -> int:
        return len(self.matches)

    def exact_matches(self) -> list[MatchCandidate]:
        return [m for m in self.matches if m.is_exact]

    def best_non_exact(self) -> MatchCandidate | None:
        """Candidat non exact de meilleure moyenne des trois scores ; le premier en cas d'égalité."""
        best: MatchCandidate | None = None
        for m in self.matches:
            if m.is_exact:
                continue
            if best is None or m.scores.mean > best.scores.mean:
                best = m
        return best

    def non_exact_matches(self, threshold: float) -> list[MatchCandidate]:
        """Candidats non exacts dont au moins un score dépasse strictement le seuil."""
        return [m for m in self.matches if not m.is_exact and m.scores.any_above(threshold)]

    def select(self, *, threshold: float, suppress_second_best: bool) -> list[MatchCandidate]:
        """
        Applique la politique de sélection :

        - s'il existe des candidats exacts, tous sont retenus ;
        - sinon, avec suppress_second_best, au plus le meilleur candidat ;
        - sinon, tous les candidats au-dessus du seuil.
        """
        exact = self.exact_matches()
        if exact:
            return exact
        if suppress_second_best:
            best = self.best_non_exact()
            return [best] if best is not None else []
        return self.non_exact_matches(threshold)
