"""Étape exacte : jointure sur clé composite normalisée et calcul des ensembles réduits."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from relmatch.matching.context import MatchContext
from relmatch.normalize import EXACT_KEY_SEPARATOR
from relmatch.store import RelationalStore, quote_identifier

logger = logging.getLogger(__name__)

# Caractères d'espacement retirés de la clé exacte : espace, tabulation, LF, CR
_WHITESPACE_CHARS = ("' '", "char(9)", "char(10)", "char(13)")


@dataclass(frozen=True)
class ExactOutcome:
    """Résultat de l'étape exacte."""

    relation: str
    row_count: int
    reduced_left: str
    reduced_right: str
    reduced_left_count: int
    reduced_right_count: int


def _stripped(column: str) -> str:
    expr = f"COALESCE({quote_identifier(column)}, '')"
    for ch in _WHITESPACE_CHARS:
        expr = f"replace({expr}, {ch}, '')"
    return expr


def key_expression(columns: Sequence[str]) -> str:
    """Expression SQL de la clé exacte : valeurs sans espaces, jointes par "_"."""
    return f" || '{EXACT_KEY_SEPARATOR}' || ".join(_stripped(c) for c in columns)


def material_expression(columns: Sequence[str]) -> str:
    """Expression SQL non vide si et seulement si la clé contient au moins un caractère utile."""
    return " || ".join(_stripped(c) for c in columns)


def _aliased(columns: Sequence[str], prefix: str) -> str:
    return ", ".join(f"{quote_identifier(c)} AS {quote_identifier(prefix + c)}" for c in columns)


class ExactStage:
    """
    Résout à moindre coût toutes les paires dont la clé complète est identique
    (espaces ignorés : "XY 123" = "X Y123" = "XY123"), avant le matching quadratique.
    """

    def __init__(self, store: RelationalStore, context: MatchContext) -> None:
        self.store = store
        self.context = context

    def _side(self, side: str) -> tuple[str, tuple[str, ...], tuple[str, ...], str, str]:
        """(relation, colonnes conservées, attributs clés, préfixe, nom de la colonne clé)."""
        ctx = self.context
        if side == "left":
            return ctx.left.name, ctx.left_columns, ctx.left_key_attributes, ctx.left_prefix, ctx.left_key_name
        return ctx.right.name, ctx.right_columns, ctx.right_key_attributes, ctx.right_prefix, ctx.right_key_name

    def _derived_relation(self, side: str, temporaries: list[str]) -> str:
        ctx = self.context
        relation, columns, keys, prefix, key_name = self._side(side)

        name = self.store.fresh_temporary_name(f"{ctx.target}_{side}_all_plus_key")
        temporaries.append(name)
        self.store.run_query(
            f"CREATE TABLE {quote_identifier(name)} AS "
            f"SELECT {key_expression(keys)} AS {quote_identifier(key_name)}, {_aliased(columns, prefix)} "
            f"FROM {quote_identifier(relation)} "
            f"WHERE {material_expression(keys)} <> ''"
        )
        self.store.create_index(name, key_name, f"{name}_{key_name}_index")
        return name

    def _reduced_set(
        self,
        side: str,
        exclude_matched: bool,
        temporaries: list[str],
    ) -> str:
        ctx = self.context
        relation, columns, keys, prefix, key_name = self._side(side)

        name = self.store.fresh_temporary_name(f"{ctx.target}_reduced_{side}")
        temporaries.append(name)
        sql = f"CREATE TABLE {quote_identifier(name)} AS SELECT {_aliased(columns, prefix)} FROM {quote_identifier(relation)}"
        if exclude_matched:
            sql += (
                f" WHERE {key_expression(keys)} NOT IN "
                f"(SELECT {quote_identifier(key_name)} FROM {quote_identifier(ctx.exact_relation)})"
            )
        self.store.run_query(sql)
        return name

    def run(self, temporaries: list[str]) -> ExactOutcome:
        """
        Construit la table des correspondances exactes et les ensembles réduits.

        Chaque relation intermédiaire est ajoutée à temporaries avant sa création,
        de sorte que l'appelant puisse tout supprimer même en cas d'échec.

        Raises:
            StoreOperationError: Toute erreur DDL/DML ; le run entier est alors abandonné.
        """
        ctx = self.context
        logger.info(
            "Recherche des correspondances exactes (espaces ignorés, XY 123 = X Y123 = XY123)..."
        )

        left_tmp = self._derived_relation("left", temporaries)
        right_tmp = self._derived_relation("right", temporaries)

        projected = [f"l.{quote_identifier(c)}" for c in ctx.left_output_columns]
        projected += [f"r.{quote_identifier(c)}" for c in ctx.right_output_columns]
        projected += [f"l.{quote_identifier(ctx.left_key_name)}", f"r.{quote_identifier(ctx.right_key_name)}"]

        self.store.drop_if_exists(ctx.exact_relation)
        self.store.run_query(
            f"CREATE TABLE {quote_identifier(ctx.exact_relation)} AS SELECT {', '.join(projected)} "
            f"FROM {quote_identifier(left_tmp)} l INNER JOIN {quote_identifier(right_tmp)} r "
            f"ON l.{quote_identifier(ctx.left_key_name)} = r.{quote_identifier(ctx.right_key_name)}"
        )
        exact_count = self.store.row_count(ctx.exact_relation)
        logger.info(
            f"Correspondances exactes: {exact_count} (relation gauche: {self.store.row_count(ctx.left.name)} lignes)"
        )

        reduced_left = self._reduced_set("left", not ctx.settings.hungry_left, temporaries)
        reduced_right = self._reduced_set("right", ctx.settings.greedy_left, temporaries)

        return ExactOutcome(
            relation=ctx.exact_relation,
            row_count=exact_count,
            reduced_left=reduced_left,
            reduced_right=reduced_right,
            reduced_left_count=self.store.row_count(reduced_left),
            reduced_right_count=self.store.row_count(reduced_right),
        )
