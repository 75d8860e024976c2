"""Étape fuzzy : boucle imbriquée sur les partitions des ensembles réduits, écriture bufferisée."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from relmatch.matching.context import MatchContext
from relmatch.matching.schema import MatchCandidate, MatchSet
from relmatch.matching.scorers import score_pair, to_output_row
from relmatch.partition import Partition, Partitioning
from relmatch.store import RelationalStore

logger = logging.getLogger(__name__)


@dataclass
class MatchBuffer:
    """Lignes en attente d'insertion et nombre de lignes déjà écrites pendant ce run."""

    rows: list[dict[str, str]] = field(default_factory=list)
    written: int = 0

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class FuzzyOutcome:
    """Résultat de l'étape fuzzy."""

    relation: str
    row_count: int
    left_partitions: int
    right_partitions: int
    comparisons: int


class _Progress:
    """Estimation du temps restant, journalisée à chaque couple de partitions."""

    def __init__(self, left: Partitioning, right: Partitioning) -> None:
        self.left = left
        self.right = right
        self.total = left.count_partitions() * right.count_partitions()
        self.done = 0
        self.started = time.monotonic()

    def step(self, lp: Partition, rp: Partition) -> None:
        remaining = ""
        if self.done:
            per_pair = (time.monotonic() - self.started) / self.done
            seconds = int(per_pair * (self.total - self.done))
            remaining = f" Reste {seconds // 3600}:{seconds // 60 % 60:02d}:{seconds % 60:02d} ({per_pair:.1f} s par partition droite)"
        logger.info(
            f"[{lp.first_record + 1}-{lp.last_record + 1} sur {self.left.count_elements()}] "
            f"({lp.number + 1}/{self.left.count_partitions()}) vs. "
            f"[{rp.first_record + 1}-{rp.last_record + 1} sur {self.right.count_elements()}] "
            f"({rp.number + 1}/{self.right.count_partitions()}).{remaining}"
        )
        self.done += 1


class FuzzyStage:
    """
    Compare chaque enregistrement gauche restant à chaque enregistrement droit restant,
    partition par partition, et écrit les candidats retenus dans la table fuzzy.

    La politique de sélection est appliquée par partition droite (selection_scope="partition",
    défaut) : "meilleur" et "au-dessus du seuil" sont locaux au lot droit parcouru. Avec
    selection_scope="global", tous les candidats d'un enregistrement gauche sont conservés
    sur l'ensemble du parcours droit avant sélection ; la mémoire croît alors avec
    taille_partition_gauche x nombre_de_lignes_droites.
    """

    def __init__(self, store: RelationalStore, context: MatchContext) -> None:
        self.store = store
        self.context = context
        self.columns: list[str] = []

    def prepare(self) -> list[str]:
        """(Re)crée la table fuzzy vide ; retourne ses colonnes."""
        ctx = self.context
        self.store.drop_if_exists(ctx.fuzzy_relation)
        self.columns = self.store.create_wide_relation(
            ctx.left_columns,
            ctx.right_columns,
            ctx.left_prefix,
            ctx.right_prefix,
            ctx.fuzzy_extra_columns,
            ctx.fuzzy_relation,
        )
        return self.columns

    def write(self, buffer: MatchBuffer, candidates: list[MatchCandidate]) -> MatchBuffer:
        """
        Ajoute les candidats retenus, projetés sur les colonnes de la table fuzzy.

        Le buffer est vidé dès qu'il dépasse buffer_size lignes ; retourne le buffer courant.
        """
        for candidate in candidates:
            row = to_output_row(candidate, self.context)
            buffer.rows.append({c: row.get(c, "") for c in self.columns})
            buffer = self._flush_if_full(buffer)
        return buffer

    def flush(self, buffer: MatchBuffer) -> MatchBuffer:
        """Insère le contenu du buffer et retourne un buffer vide."""
        written = buffer.written
        if buffer.rows:
            written += self.store.bulk_insert(self.context.fuzzy_relation, buffer.rows)
        return MatchBuffer(written=written)

    def _flush_if_full(self, buffer: MatchBuffer) -> MatchBuffer:
        if len(buffer) > self.context.settings.buffer_size:
            return self.flush(buffer)
        return buffer

    def _records(self, relation: str, partition: Partition) -> list[dict[str, Any]]:
        df = self.store.fetch_partition(relation, partition.first_record, partition.length)
        return df.to_dict("records")

    def _select(self, matches: MatchSet) -> list[MatchCandidate]:
        spec = self.context.spec
        return matches.select(threshold=spec.threshold, suppress_second_best=spec.suppress_second_best)

    def run(self, reduced_left: str, reduced_right: str) -> FuzzyOutcome:
        """
        Parcourt tous les couples (partition gauche, partition droite).

        Raises:
            StoreOperationError: Le run est abandonné ; les lignes déjà écrites restent
                dans la table fuzzy (pas de rollback).
        """
        ctx = self.context
        settings = ctx.settings
        if not self.columns:
            self.prepare()

        left_partitioning = Partitioning(self.store.row_count(reduced_left), settings.left_partition_size)
        right_partitioning = Partitioning(self.store.row_count(reduced_right), settings.right_partition_size)
        logger.info(
            f"Ensemble gauche divisé en {left_partitioning.count_partitions()} partition(s) "
            f"({left_partitioning.count_elements()} lignes), ensemble droit en "
            f"{right_partitioning.count_partitions()} partition(s) ({right_partitioning.count_elements()} lignes)."
        )

        global_scope = settings.selection_scope == "global"
        progress = _Progress(left_partitioning, right_partitioning)
        buffer = MatchBuffer()
        comparisons = 0

        for lp in left_partitioning:
            left_records = self._records(reduced_left, lp)
            pending = [MatchSet() for _ in left_records] if global_scope else []

            for rp in right_partitioning:
                progress.step(lp, rp)
                right_records = self._records(reduced_right, rp)
                comparisons += len(left_records) * len(right_records)

                for i, left_record in enumerate(left_records):
                    matches = pending[i] if global_scope else MatchSet()
                    for right_record in right_records:
                        matches.add(score_pair(left_record, right_record, ctx))
                    if not global_scope:
                        buffer = self.write(buffer, self._select(matches))

                if not global_scope:
                    buffer = self.flush(buffer)

            if global_scope:
                for matches in pending:
                    buffer = self.write(buffer, self._select(matches))
                buffer = self.flush(buffer)

        logger.info(f"Correspondances fuzzy écrites: {buffer.written} ({comparisons} comparaisons)")
        return FuzzyOutcome(
            relation=ctx.fuzzy_relation,
            row_count=buffer.written,
            left_partitions=left_partitioning.count_partitions(),
            right_partitions=right_partitioning.count_partitions(),
            comparisons=comparisons,
        )
