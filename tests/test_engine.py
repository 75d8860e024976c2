"""Tests du moteur complet (étape exacte + étape fuzzy)."""

import logging
from collections.abc import Callable

import pandas as pd
import pytest

from relmatch.config import ConfigError, EngineSettings, RelMatchError, StoreOperationError
from relmatch.matching import MatchEngine, MatchSpecification, match_relations
from relmatch.store import SQLiteStore


def _spec(with_clause: str = "", attributes: tuple[str, ...] = ("name",)) -> MatchSpecification:
    return MatchSpecification.build(attributes, attributes, with_clause=with_clause)


def _tables(store: SQLiteStore) -> set[str]:
    return {r[0] for r in store.run_query("SELECT name FROM sqlite_master WHERE type = 'table'")}


@pytest.fixture
def customers(add_relation: Callable) -> tuple[str, str]:
    add_relation(
        "un",
        {
            "id": ["1", "2", "3", "4"],
            "first": ["Graciela", "Juan", "XY", "Ana"],
            "last": ["Ruta", "Perez", "1 23", "Lopez"],
        },
    )
    add_relation(
        "c",
        {
            "id": ["9", "10", "11", "12", "13"],
            "first": ["Gratiela", "Juan", "X Y", "Anna", "Graciela"],
            "last": ["Ruta", "Peres", "123", "Lopes", "Rutas"],
        },
    )
    return "un", "c"


def test_scenario_exact_pair_goes_to_exact_relation(store: SQLiteStore, graciela: tuple[str, str]) -> None:
    """Avec les réglages par défaut, la paire exacte retire l'enregistrement gauche du fuzzy."""
    outcome = match_relations(store, _spec("threshold(0.80), suppresssecondbest"), *graciela, "m")
    assert outcome.exact_relation == "m_exact_matches"
    assert outcome.exact_count == 1
    assert outcome.fuzzy_count == 0
    assert store.run_query("SELECT un_name, c_name FROM m_exact_matches") == [("Graciela Ruta", "Graciela Ruta")]


def test_scenario_variant_only(store: SQLiteStore, add_relation: Callable) -> None:
    """Sans copie exacte à droite, exactement une ligne fuzzy pour Graciela Ruta."""
    add_relation("un", {"id": ["1"], "name": ["Graciela Ruta"]})
    add_relation("c", {"id": ["10", "11"], "name": ["Gratiela Ruta", "Graciela Rutas"]})
    outcome = match_relations(store, _spec("threshold(0.80), suppresssecondbest"), "un", "c", "m")
    assert outcome.exact_count == 0
    assert outcome.fuzzy_count == 1
    rows = store.run_query("SELECT un_name, match_exact FROM m_fuzzy_matches WHERE un_name = 'Graciela Ruta'")
    assert rows == [("Graciela Ruta", "no")]


def test_scenario_hungry_left(store: SQLiteStore, graciela: tuple[str, str]) -> None:
    """hungry_left : la ligne gauche reste candidate et le fuzzy retient la paire exacte."""
    outcome = match_relations(
        store,
        _spec("threshold(0.80), suppresssecondbest, displayright(id)"),
        *graciela,
        "m",
        EngineSettings(hungry_left=True),
    )
    assert outcome.exact_count == 1
    assert outcome.fuzzy_count == 1
    rows = store.run_query("SELECT un_name, c_id, match_exact, match_exact_name FROM m_fuzzy_matches")
    assert rows == [("Graciela Ruta", "9", "yes", "yes")]


def test_exact_completeness(store: SQLiteStore, customers: tuple[str, str]) -> None:
    """Chaque paire égale aux espaces près est dans la table exacte une fois, jamais dans le fuzzy."""
    outcome = match_relations(store, _spec(attributes=("first", "last")), *customers, "m")
    assert outcome.exact_count == 1
    assert store.run_query("SELECT un_first, c_first FROM m_exact_matches") == [("XY", "X Y")]
    in_fuzzy = store.run_query("SELECT COUNT(*) FROM m_fuzzy_matches WHERE un_first = 'XY'")
    assert in_fuzzy == [(0,)]
    # seuil par défaut : tous les candidats non exacts des 3 lignes restantes
    assert outcome.fuzzy_count == 3 * 5


def test_threshold_monotonicity(store: SQLiteStore, customers: tuple[str, str]) -> None:
    counts = []
    for threshold in (-1, 0.3, 0.6, 0.8, 0.9, 0.95, 1.0):
        outcome = match_relations(
            store,
            _spec(f"threshold({threshold})", ("first", "last")),
            *customers,
            "m",
            EngineSettings(right_partition_size=2),
        )
        counts.append(outcome.fuzzy_count)
    assert counts == sorted(counts, reverse=True)
    assert counts[0] > counts[-1] == 0


@pytest.mark.parametrize("left_size, right_size", [(1, 1), (2, 3), (10000, 10000)])
def test_exact_relation_partition_invariance(
    store: SQLiteStore, customers: tuple[str, str], left_size: int, right_size: int
) -> None:
    match_relations(store, _spec(attributes=("first", "last")), *customers, "reference")
    reference = sorted(store.run_query("SELECT * FROM reference_exact_matches"))

    settings = EngineSettings(left_partition_size=left_size, right_partition_size=right_size)
    match_relations(store, _spec(attributes=("first", "last")), *customers, "m", settings)
    assert sorted(store.run_query("SELECT * FROM m_exact_matches")) == reference


def test_transposition_column(store: SQLiteStore, add_relation: Callable) -> None:
    add_relation("un", {"first": ["Ruta", "Juan"], "last": ["Graciela", "Perez"]})
    add_relation("c", {"first": ["Graciela"], "last": ["Ruta"]})
    match_relations(store, _spec("legastodetect(first, last)", ("first", "last")), "un", "c", "m")
    rows = store.run_query("SELECT un_first, swap_first_last_to_match FROM m_fuzzy_matches ORDER BY un_first")
    assert rows == [("Juan", "no"), ("Ruta", "yes")]


def test_temporaries_are_dropped(store: SQLiteStore, customers: tuple[str, str]) -> None:
    match_relations(store, _spec(attributes=("first", "last")), *customers, "m")
    assert _tables(store) == {"un", "c", "m_exact_matches", "m_fuzzy_matches"}


def test_engine_single_use(store: SQLiteStore, graciela: tuple[str, str]) -> None:
    engine = MatchEngine(store, _spec(), *graciela, "m")
    engine.run()
    with pytest.raises(RelMatchError, match="un seul run"):
        engine.run()


def test_engine_missing_relation(store: SQLiteStore, graciela: tuple[str, str]) -> None:
    with pytest.raises(ConfigError, match="Relation introuvable"):
        MatchEngine(store, _spec(), "un", "absente", "m")


def test_engine_warns_without_threshold(
    store: SQLiteStore, graciela: tuple[str, str], caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.WARNING, logger="relmatch.matching.engine"):
        match_relations(store, _spec(), *graciela, "m")
    assert "Aucun seuil" in caplog.text


def test_null_values_are_scored_as_empty(store: SQLiteStore, add_relation: Callable) -> None:
    add_relation("un", {"first": ["Graciela", None], "last": ["Ruta", "Perez"]})
    add_relation("c", {"first": ["Gratiela"], "last": ["Ruta"]})
    outcome = match_relations(store, _spec(attributes=("first", "last")), "un", "c", "m")
    assert outcome.fuzzy_count == 2
    keys = store.run_query("SELECT un_match_key FROM m_fuzzy_matches ORDER BY rowid")
    assert keys == [("Graciela*Ruta",), ("*Perez",)]


class _FailingIndexStore(SQLiteStore):
    def create_index(self, relation: str, column: str, index_name: str) -> None:
        raise StoreOperationError("index impossible")


class _FailingInsertStore(SQLiteStore):
    """Le deuxième flush échoue."""

    def __init__(self) -> None:
        super().__init__()
        self.inserts = 0

    def bulk_insert(self, relation, rows):
        self.inserts += 1
        if self.inserts > 1:
            raise StoreOperationError("insertion impossible")
        return super().bulk_insert(relation, rows)


def test_exact_stage_failure_drops_outputs() -> None:
    with _FailingIndexStore() as store:
        store.write_frame("un", pd.DataFrame({"name": ["a"]}))
        store.write_frame("c", pd.DataFrame({"name": ["b"]}))
        with pytest.raises(StoreOperationError, match="index impossible"):
            match_relations(store, _spec(), "un", "c", "m")
        assert _tables(store) == {"un", "c"}


def test_fuzzy_stage_failure_keeps_flushed_rows() -> None:
    with _FailingInsertStore() as store:
        store.write_frame("un", pd.DataFrame({"name": ["Graciela Ruta"]}))
        store.write_frame("c", pd.DataFrame({"name": ["Gratiela Ruta", "Graciela Rutas"]}))
        with pytest.raises(StoreOperationError, match="insertion impossible"):
            match_relations(store, _spec(), "un", "c", "m", EngineSettings(right_partition_size=1))
        assert store.row_count("m_fuzzy_matches") == 1
        assert _tables(store) == {"un", "c", "m_exact_matches", "m_fuzzy_matches"}
