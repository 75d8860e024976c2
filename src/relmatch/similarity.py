"""Métriques de similarité entre chaînes, toutes normalisées dans [0, 1]."""

from __future__ import annotations

from rapidfuzz.distance import Jaro, Prefix

PREFIX_WEIGHT = 0.1
MAX_PREFIX = 4


def jaro(s1: str, s2: str) -> float:
    """Similarité de Jaro, insensible à la casse."""
    return float(Jaro.similarity(s1, s2, processor=str.lower))


def jaro_winkler(s1: str, s2: str) -> float:
    """
    Similarité de Jaro-Winkler, insensible à la casse.

    j + 0.1 * min(préfixe commun, 4) * (1 - j). Le bonus de préfixe s'applique
    quel que soit le score de Jaro (pas de seuil de boost à 0.7).
    """
    j = jaro(s1, s2)
    prefix = min(int(Prefix.similarity(s1, s2, processor=str.lower)), MAX_PREFIX)
    return j + PREFIX_WEIGHT * prefix * (1.0 - j)


def _bigrams(s: str) -> set[str]:
    # Une chaîne de moins de 2 caractères est son propre unique bigramme
    if len(s) < 2:
        return {s}
    return {s[i - 1 : i + 1] for i in range(1, len(s))}


def dice(s1: str, s2: str) -> float:
    """
    Coefficient de Dice sur les ensembles de bigrammes de caractères.

    2 * |B1 ∩ B2| / (|B1| + |B2|). Deux chaînes vides donnent 1.0.
    """
    b1 = _bigrams(s1)
    b2 = _bigrams(s2)
    return 2.0 * len(b1 & b2) / (len(b1) + len(b2))


METRICS = {
    "dice": dice,
    "jaro": jaro,
    "jaro_winkler": jaro_winkler,
}
