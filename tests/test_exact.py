"""Tests de l'étape exacte."""

from collections.abc import Callable

from relmatch.config import EngineSettings
from relmatch.matching.context import MatchContext
from relmatch.matching.exact import ExactStage, key_expression, material_expression
from relmatch.matching.options import MatchSpecification
from relmatch.store import RelationRef, SQLiteStore


def _stage(store: SQLiteStore, with_clause: str = "", settings: EngineSettings | None = None) -> ExactStage:
    spec = MatchSpecification.build(["first", "last"], ["first", "last"], with_clause=with_clause)
    ctx = MatchContext.build(
        spec, RelationRef.from_store(store, "un"), RelationRef.from_store(store, "c"), "m", settings
    )
    return ExactStage(store, ctx)


def _people(add_relation: Callable) -> None:
    add_relation(
        "un",
        {
            "id": ["1", "2", "3", "4"],
            "first": ["Graciela", "XY", "Ana", None],
            "last": ["Ruta", "1 23", "Lopez", " "],
        },
    )
    add_relation(
        "c",
        {
            "id": ["9", "10", "11", "12"],
            "first": ["Graciela", "X Y", "Anna", None],
            "last": ["Ruta", "123", "Lopez", None],
        },
    )


def test_key_expressions(store: SQLiteStore) -> None:
    key, material = store.run_query(
        f"SELECT {key_expression(['a', 'b'])}, {material_expression(['a', 'b'])} "
        "FROM (SELECT ' X Y ' AS a, NULL AS b)"
    )[0]
    assert key == "XY_"
    assert material == "XY"


def test_exact_stage_whitespace_insensitive(store: SQLiteStore, add_relation: Callable) -> None:
    """XY 123 = X Y123 : les espaces sont ignorés dans la clé exacte."""
    _people(add_relation)
    temporaries: list[str] = []
    outcome = _stage(store).run(temporaries)

    assert outcome.relation == "m_exact_matches"
    assert outcome.row_count == 2
    rows = store.run_query("SELECT un_first, c_first, un_match_key, c_match_key FROM m_exact_matches ORDER BY un_first")
    assert rows == [
        ("Graciela", "Graciela", "Graciela_Ruta", "Graciela_Ruta"),
        ("XY", "X Y", "XY_123", "XY_123"),
    ]
    assert len(temporaries) == 4
    assert all(store.exists(t) for t in temporaries)


def test_exact_stage_output_columns(store: SQLiteStore, add_relation: Callable) -> None:
    _people(add_relation)
    _stage(store, "displayright(id)").run([])
    assert store.column_names("m_exact_matches") == [
        "un_first",
        "un_last",
        "c_id",
        "c_first",
        "c_last",
        "un_match_key",
        "c_match_key",
    ]


def test_exact_stage_no_key_material_never_joins(store: SQLiteStore, add_relation: Callable) -> None:
    """Deux clés vides (nulls, espaces) ne forment pas une correspondance exacte."""
    _people(add_relation)
    _stage(store).run([])
    keys = [r[0] for r in store.run_query("SELECT un_match_key FROM m_exact_matches")]
    assert "_" not in keys


def test_reduced_sets_default(store: SQLiteStore, add_relation: Callable) -> None:
    _people(add_relation)
    outcome = _stage(store).run([])
    # gauche : les lignes appariées sont retirées ; droite : tout est conservé
    assert outcome.reduced_left_count == 2
    assert outcome.reduced_right_count == 4
    remaining = [r[0] for r in store.run_query(f'SELECT un_first FROM "{outcome.reduced_left}" ORDER BY rowid')]
    assert remaining == ["Ana", None]
    assert store.column_names(outcome.reduced_left) == ["un_first", "un_last"]


def test_reduced_sets_hungry_and_greedy(store: SQLiteStore, add_relation: Callable) -> None:
    _people(add_relation)
    outcome = _stage(store, settings=EngineSettings(hungry_left=True, greedy_left=True)).run([])
    assert outcome.reduced_left_count == 4
    assert outcome.reduced_right_count == 2


def test_exact_stage_replaces_previous_output(store: SQLiteStore, add_relation: Callable) -> None:
    _people(add_relation)
    _stage(store).run([])
    outcome = _stage(store).run([])
    assert outcome.row_count == 2
