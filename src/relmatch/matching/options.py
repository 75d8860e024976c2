"""Options de matching (type somme) et spécification immuable d'un match."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Union

from relmatch.config import ConfigError

# Seuil par défaut : tout candidat non exact est retenu (scores >= 0).
# Dangereux sur de gros volumes : la table fuzzy peut atteindre |gauche| x |droite| lignes.
DEFAULT_THRESHOLD = -1.0

WILDCARD = "*"


@dataclass(frozen=True)
class Threshold:
    value: float


@dataclass(frozen=True)
class SuppressSecondBest:
    pass


@dataclass(frozen=True)
class TranspositionCheck:
    """Détecte si permuter deux attributs de la clé gauche reproduit la clé droite ("legastodetect")."""

    first: str
    second: str

    @property
    def column_name(self) -> str:
        return f"swap_{self.first}_{self.second}_to_match"


@dataclass(frozen=True)
class DisplayLeft:
    """Attributs gauches à conserver en sortie ; None = tous (joker)."""

    attributes: frozenset[str] | None = None

    def allows(self, name: str) -> bool:
        return self.attributes is None or name.lower() in self.attributes


@dataclass(frozen=True)
class DisplayRight:
    """Attributs droits à conserver en sortie ; None = tous (joker)."""

    attributes: frozenset[str] | None = None

    def allows(self, name: str) -> bool:
        return self.attributes is None or name.lower() in self.attributes


MatchOption = Union[Threshold, SuppressSecondBest, TranspositionCheck, DisplayLeft, DisplayRight]


@dataclass(frozen=True)
class MatchSpecification:
    """
    Attributs clés gauche/droite et options d'un match.

    Validée à la construction, jamais modifiée ensuite.

    Raises:
        ConfigError: Liste d'attributs vide, attribut vide, option dupliquée
            ou contrôle de transposition sur un attribut absent de la clé gauche.
    """

    left_attributes: tuple[str, ...]
    right_attributes: tuple[str, ...]
    options: tuple[MatchOption, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "left_attributes", tuple(a.strip() for a in self.left_attributes))
        object.__setattr__(self, "right_attributes", tuple(a.strip() for a in self.right_attributes))
        object.__setattr__(self, "options", tuple(self.options))

        if not self.left_attributes:
            raise ConfigError("Liste d'attributs gauche vide")
        if not self.right_attributes:
            raise ConfigError("Liste d'attributs droite vide")
        if any(not a for a in self.left_attributes + self.right_attributes):
            raise ConfigError("Nom d'attribut vide dans la clé de matching")

        for kind in (Threshold, DisplayLeft, DisplayRight):
            if sum(1 for o in self.options if isinstance(o, kind)) > 1:
                raise ConfigError(f"Option {kind.__name__} dupliquée")

        left_lower = {a.lower() for a in self.left_attributes}
        for check in self.transpositions:
            for attr in (check.first, check.second):
                if attr.lower() not in left_lower:
                    raise ConfigError(
                        f"legastodetect: attribut {attr!r} absent de la clé gauche {list(self.left_attributes)}"
                    )

    @property
    def threshold(self) -> float:
        for o in self.options:
            if isinstance(o, Threshold):
                return o.value
        return DEFAULT_THRESHOLD

    @property
    def has_threshold(self) -> bool:
        return any(isinstance(o, Threshold) for o in self.options)

    @property
    def suppress_second_best(self) -> bool:
        return any(isinstance(o, SuppressSecondBest) for o in self.options)

    @property
    def transpositions(self) -> tuple[TranspositionCheck, ...]:
        return tuple(o for o in self.options if isinstance(o, TranspositionCheck))

    @property
    def display_left(self) -> DisplayLeft:
        for o in self.options:
            if isinstance(o, DisplayLeft):
                return o
        return DisplayLeft(frozenset())

    @property
    def display_right(self) -> DisplayRight:
        for o in self.options:
            if isinstance(o, DisplayRight):
                return o
        return DisplayRight(frozenset())

    @property
    def tracks_attribute_exactness(self) -> bool:
        """Les drapeaux d'exactitude par attribut n'existent que si les deux clés ont la même longueur."""
        return len(self.left_attributes) == len(self.right_attributes)

    @classmethod
    def build(
        cls,
        left_attributes: Iterable[str],
        right_attributes: Iterable[str],
        *,
        options: dict[str, Any] | None = None,
        with_clause: str | None = None,
    ) -> MatchSpecification:
        """Construit la spécification depuis un mapping d'options et/ou une clause WITH."""
        parsed: list[MatchOption] = []
        if options:
            parsed.extend(options_from_dict(options))
        if with_clause:
            parsed.extend(parse_with_clause(with_clause))
        return cls(tuple(left_attributes), tuple(right_attributes), tuple(parsed))


def _display_attributes(values: Iterable[str]) -> frozenset[str] | None:
    names = {str(v).strip().lower() for v in values if str(v).strip()}
    if WILDCARD in names:
        return None
    return frozenset(names)


def _as_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [v.strip() for v in value.split(",")]
    return [str(v) for v in value]


def _transposition(args: list[str]) -> TranspositionCheck:
    args = [a.strip() for a in args if a.strip()]
    if len(args) != 2:
        raise ConfigError(f"legastodetect attend exactement 2 attributs (got {len(args)})")
    return TranspositionCheck(args[0], args[1])


def _threshold(raw: Any) -> Threshold:
    try:
        return Threshold(float(raw))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"threshold invalide: {raw!r}") from e


def options_from_dict(d: dict[str, Any]) -> list[MatchOption]:
    """
    Options depuis un mapping JSON :
    {"threshold": 0.8, "suppress_second_best": true, "transpositions": [["a", "b"]],
     "display_left": ["*"], "display_right": ["id"]}.
    """
    known = {"threshold", "suppress_second_best", "transpositions", "display_left", "display_right"}
    unknown = set(d) - known
    if unknown:
        raise ConfigError(f"Options inconnues: {sorted(unknown)}. Valides: {sorted(known)}")

    options: list[MatchOption] = []
    if d.get("threshold") is not None:
        options.append(_threshold(d["threshold"]))
    if d.get("suppress_second_best"):
        options.append(SuppressSecondBest())
    for pair in d.get("transpositions", []):
        options.append(_transposition(_as_list(pair)))
    if "display_left" in d:
        options.append(DisplayLeft(_display_attributes(_as_list(d["display_left"]))))
    if "display_right" in d:
        options.append(DisplayRight(_display_attributes(_as_list(d["display_right"]))))
    return options


_OPTION_RE = re.compile(r"^\s*([a-z]+)\s*(?:\((.*)\))?\s*$", re.IGNORECASE | re.DOTALL)


def split_outer(text: str, sep: str = ",") -> list[str]:
    """Découpe sur sep en ignorant les séparateurs entre parenthèses."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise ConfigError(f"Parenthèse fermante inattendue dans: {text!r}")
        if ch == sep and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    if depth != 0:
        raise ConfigError(f"Parenthèse non fermée dans: {text!r}")
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def parse_with_clause(text: str) -> list[MatchOption]:
    """
    Analyse une clause WITH, par ex.
    "THRESHOLD(0.8), SUPPRESSSECONDBEST, LEGASTODETECT(prenom, nom), DISPLAYLEFT(*)".

    Raises:
        ConfigError: Mot-clé inconnu ou arguments invalides.
    """
    options: list[MatchOption] = []
    for token in split_outer(text):
        m = _OPTION_RE.match(token)
        if not m:
            raise ConfigError(f"Option illisible: {token!r}")
        keyword = m.group(1).lower()
        raw_args = m.group(2)
        args = split_outer(raw_args) if raw_args is not None else []

        if keyword == "threshold":
            if len(args) != 1:
                raise ConfigError("threshold attend un argument, par ex. threshold(0.85)")
            options.append(_threshold(args[0]))
        elif keyword == "suppresssecondbest":
            options.append(SuppressSecondBest())
        elif keyword == "legastodetect":
            options.append(_transposition(args))
        elif keyword == "displayleft":
            options.append(DisplayLeft(_display_attributes(args)))
        elif keyword == "displayright":
            options.append(DisplayRight(_display_attributes(args)))
        else:
            raise ConfigError(f"Option inconnue: {keyword!r}")
    return options
