"""Orchestration d'un match : étape exacte, étape fuzzy, nettoyage."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from relmatch.config import EngineSettings, RelMatchError, StoreOperationError
from relmatch.matching.context import MatchContext
from relmatch.matching.exact import ExactStage
from relmatch.matching.fuzzy import FuzzyStage
from relmatch.matching.options import MatchSpecification
from relmatch.store import RelationalStore, RelationRef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchOutcome:
    """Résultat agrégé des deux étapes d'un match."""

    target: str
    exact_relation: str
    fuzzy_relation: str
    exact_count: int
    fuzzy_count: int
    left_count: int
    right_count: int
    reduced_left_count: int
    reduced_right_count: int
    left_partitions: int
    right_partitions: int
    comparisons: int
    duration_seconds: float


class MatchEngine:
    """
    Apparie deux relations du store. Une instance correspond à un seul run.

    Le seuil par défaut (-1) retient tous les candidats non exacts : sur de gros
    volumes, préciser un seuil ou suppress_second_best.
    """

    def __init__(
        self,
        store: RelationalStore,
        spec: MatchSpecification,
        left: str,
        right: str,
        target: str,
        settings: EngineSettings | None = None,
    ) -> None:
        self.store = store
        self.context = MatchContext.build(
            spec,
            RelationRef.from_store(store, left),
            RelationRef.from_store(store, right),
            target,
            settings,
        )
        self._done = False

    def run(self) -> MatchOutcome:
        """
        Exécute le match complet.

        Raises:
            RelMatchError: Si l'instance a déjà servi.
            StoreOperationError: Échec du store. Si l'échec survient pendant l'étape exacte,
                les deux tables de sortie sont supprimées ; pendant l'étape fuzzy, les lignes
                déjà écrites restent en place.
        """
        if self._done:
            raise RelMatchError("Une instance de MatchEngine ne sert qu'à un seul run")
        self._done = True

        ctx = self.context
        spec = ctx.spec
        if not spec.has_threshold and not spec.suppress_second_best:
            logger.warning(
                "Aucun seuil ni suppresssecondbest : tous les candidats non exacts seront écrits "
                "(jusqu'à |gauche| x |droite| lignes)."
            )

        started = time.monotonic()
        temporaries: list[str] = []
        fuzzy_stage = FuzzyStage(self.store, ctx)
        try:
            try:
                fuzzy_stage.prepare()
                exact = ExactStage(self.store, ctx).run(temporaries)
            except StoreOperationError:
                logger.error(f"Étape exacte en échec, abandon du match {ctx.target}")
                self._drop_all([ctx.exact_relation, ctx.fuzzy_relation])
                raise
            fuzzy = fuzzy_stage.run(exact.reduced_left, exact.reduced_right)
        finally:
            self._drop_all(temporaries)

        outcome = MatchOutcome(
            target=ctx.target,
            exact_relation=exact.relation,
            fuzzy_relation=fuzzy.relation,
            exact_count=exact.row_count,
            fuzzy_count=fuzzy.row_count,
            left_count=self.store.row_count(ctx.left.name),
            right_count=self.store.row_count(ctx.right.name),
            reduced_left_count=exact.reduced_left_count,
            reduced_right_count=exact.reduced_right_count,
            left_partitions=fuzzy.left_partitions,
            right_partitions=fuzzy.right_partitions,
            comparisons=fuzzy.comparisons,
            duration_seconds=time.monotonic() - started,
        )
        logger.info(
            f"Match {ctx.target} terminé: {outcome.exact_count} exactes, {outcome.fuzzy_count} fuzzy "
            f"en {outcome.duration_seconds:.1f} s"
        )
        return outcome

    def _drop_all(self, relations: list[str]) -> None:
        for name in relations:
            try:
                self.store.drop_if_exists(name)
            except StoreOperationError as e:
                logger.warning(f"Impossible de supprimer {name}: {e}")


def match_relations(
    store: RelationalStore,
    spec: MatchSpecification,
    left: str,
    right: str,
    target: str,
    settings: EngineSettings | None = None,
) -> MatchOutcome:
    """Raccourci : construit un MatchEngine et l'exécute."""
    return MatchEngine(store, spec, left, right, target, settings).run()
