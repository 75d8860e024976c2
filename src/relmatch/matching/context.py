"""Contexte immuable d'un run : noms de colonnes résolus une fois et partagés par les étapes."""

from __future__ import annotations

from dataclasses import dataclass

from relmatch.config import ConfigError, EngineSettings
from relmatch.matching.options import MatchSpecification
from relmatch.store import RelationRef

MATCH_EXACT = "match_exact"
MATCH_DICE = "match_dice"
MATCH_JARO = "match_jaro"
MATCH_JAROWINKLER = "match_jarowinkler"


@dataclass(frozen=True)
class ExactFlag:
    """Drapeau d'exactitude pour une paire d'attributs clés (colonnes préfixées)."""

    name: str
    left_column: str
    right_column: str


@dataclass(frozen=True)
class Transposition:
    """Contrôle de transposition résolu : positions des deux attributs dans la clé gauche."""

    name: str
    first_index: int
    second_index: int


@dataclass(frozen=True)
class MatchContext:
    """Tout ce que les étapes exacte et fuzzy doivent savoir, calculé une seule fois."""

    spec: MatchSpecification
    settings: EngineSettings
    left: RelationRef
    right: RelationRef
    target: str
    left_prefix: str
    right_prefix: str
    # attributs conservés (clés + display), noms d'origine, ordre du schéma
    left_columns: tuple[str, ...]
    right_columns: tuple[str, ...]
    # attributs clés, noms d'origine puis préfixés
    left_key_attributes: tuple[str, ...]
    right_key_attributes: tuple[str, ...]
    left_key_columns: tuple[str, ...]
    right_key_columns: tuple[str, ...]
    left_key_name: str
    right_key_name: str
    exact_flags: tuple[ExactFlag, ...]
    transpositions: tuple[Transposition, ...]

    @property
    def exact_relation(self) -> str:
        return f"{self.target}_exact_matches"

    @property
    def fuzzy_relation(self) -> str:
        return f"{self.target}_fuzzy_matches"

    @property
    def left_output_columns(self) -> tuple[str, ...]:
        return tuple(self.left_prefix + c for c in self.left_columns)

    @property
    def right_output_columns(self) -> tuple[str, ...]:
        return tuple(self.right_prefix + c for c in self.right_columns)

    @property
    def fuzzy_extra_columns(self) -> tuple[str, ...]:
        """Colonnes de diagnostic de la table fuzzy, dans l'ordre d'écriture."""
        return (
            MATCH_EXACT,
            MATCH_DICE,
            MATCH_JARO,
            MATCH_JAROWINKLER,
            *(f.name for f in self.exact_flags),
            self.left_key_name,
            self.right_key_name,
            *(t.name for t in self.transpositions),
        )

    @classmethod
    def build(
        cls,
        spec: MatchSpecification,
        left: RelationRef,
        right: RelationRef,
        target: str,
        settings: EngineSettings | None = None,
    ) -> MatchContext:
        """
        Résout les attributs de la spécification contre les schémas gauche et droite.

        Raises:
            ConfigError: Attribut clé introuvable, relation appariée avec elle-même.
        """
        settings = settings or EngineSettings()
        if left.name.lower() == right.name.lower():
            raise ConfigError(f"Impossible d'apparier la relation {left.name} avec elle-même")

        left_keys = tuple(_resolve(left, a) for a in spec.left_attributes)
        right_keys = tuple(_resolve(right, a) for a in spec.right_attributes)

        left_keys_lower = {a.lower() for a in left_keys}
        right_keys_lower = {a.lower() for a in right_keys}
        left_columns = tuple(
            a for a in left.attributes if a.lower() in left_keys_lower or spec.display_left.allows(a)
        )
        right_columns = tuple(
            a for a in right.attributes if a.lower() in right_keys_lower or spec.display_right.allows(a)
        )

        left_prefix = f"{left.name}_"
        right_prefix = f"{right.name}_"

        exact_flags: tuple[ExactFlag, ...] = ()
        if spec.tracks_attribute_exactness:
            exact_flags = tuple(
                ExactFlag(
                    name=f"match_exact_{_pair_name(lk, rk)}",
                    left_column=left_prefix + lk,
                    right_column=right_prefix + rk,
                )
                for lk, rk in zip(left_keys, right_keys)
            )

        lowered = [a.lower() for a in left_keys]
        transpositions = tuple(
            Transposition(
                name=check.column_name,
                first_index=lowered.index(check.first.lower()),
                second_index=lowered.index(check.second.lower()),
            )
            for check in spec.transpositions
        )

        return cls(
            spec=spec,
            settings=settings,
            left=left,
            right=right,
            target=target,
            left_prefix=left_prefix,
            right_prefix=right_prefix,
            left_columns=left_columns,
            right_columns=right_columns,
            left_key_attributes=left_keys,
            right_key_attributes=right_keys,
            left_key_columns=tuple(left_prefix + k for k in left_keys),
            right_key_columns=tuple(right_prefix + k for k in right_keys),
            left_key_name=f"{left.name}_match_key",
            right_key_name=f"{right.name}_match_key",
            exact_flags=exact_flags,
            transpositions=transpositions,
        )


def _resolve(relation: RelationRef, attribute: str) -> str:
    resolved = relation.resolve(attribute)
    if resolved is None:
        raise ConfigError(
            f"Attribut {attribute!r} introuvable dans {relation.name}. Attributs: {', '.join(relation.attributes)}"
        )
    return resolved


def _pair_name(left_attr: str, right_attr: str) -> str:
    # même nom X -> X, sinon X_Y
    if left_attr.strip().lower() == right_attr.strip().lower():
        return left_attr.strip()
    return f"{left_attr.strip()}_{right_attr.strip()}"
