"""Fixtures communes : store SQLite en mémoire et relations de test."""

from collections.abc import Callable, Iterator

import pandas as pd
import pytest

from relmatch.store import SQLiteStore


@pytest.fixture
def store() -> Iterator[SQLiteStore]:
    with SQLiteStore() as s:
        yield s


@pytest.fixture
def add_relation(store: SQLiteStore) -> Callable[[str, dict[str, list]], str]:
    """Écrit un DataFrame construit depuis un dict de colonnes comme relation du store."""

    def _add(name: str, columns: dict[str, list]) -> str:
        store.write_frame(name, pd.DataFrame(columns))
        return name

    return _add


@pytest.fixture
def graciela(add_relation: Callable[[str, dict[str, list]], str]) -> tuple[str, str]:
    """Relation gauche un (1 ligne) et relation droite c (copie exacte + variante)."""
    add_relation("un", {"id": ["1"], "name": ["Graciela Ruta"]})
    add_relation("c", {"id": ["9", "10"], "name": ["Graciela Ruta", "Gratiela Ruta"]})
    return "un", "c"
