"""Accès au store relationnel : protocole consommé par le moteur et implémentation SQLite."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import pandas as pd

from relmatch.config import ConfigError, StoreOperationError
from relmatch.normalize import safe_str, sanitize_name

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    """Met un identifiant SQL entre guillemets doubles (les guillemets internes sont doublés)."""
    return '"' + str(name).replace('"', '""') + '"'


class RelationalStore(Protocol):
    """Opérations du store dont le moteur de matching a besoin."""

    def column_names(self, relation: str) -> list[str]: ...

    def column_index(self, relation: str) -> dict[str, int]: ...

    def exists(self, relation: str) -> bool: ...

    def run_query(self, sql: str, params: Sequence[Any] = ()) -> list[tuple[Any, ...]]: ...

    def bulk_insert(self, relation: str, rows: Sequence[Mapping[str, Any]]) -> int: ...

    def create_index(self, relation: str, column: str, index_name: str) -> None: ...

    def create_wide_relation(
        self,
        left_cols: Sequence[str],
        right_cols: Sequence[str],
        left_prefix: str,
        right_prefix: str,
        extra_cols: Sequence[str],
        output_name: str,
    ) -> list[str]: ...

    def row_count(self, relation: str) -> int: ...

    def fresh_temporary_name(self, hint: str | None = None) -> str: ...

    def drop_if_exists(self, relation: str) -> None: ...

    def fetch_partition(self, relation: str, offset: int, length: int) -> pd.DataFrame: ...


@dataclass(frozen=True)
class RelationRef:
    """Nom d'une relation et liste ordonnée de ses attributs."""

    name: str
    attributes: tuple[str, ...]

    @classmethod
    def from_store(cls, store: RelationalStore, name: str) -> RelationRef:
        """
        Lit le schéma de la relation dans le store.

        Raises:
            ConfigError: Si la relation n'existe pas.
        """
        if not store.exists(name):
            raise ConfigError(f"Relation introuvable: {name}")
        return cls(name=name, attributes=tuple(store.column_names(name)))

    def resolve(self, attribute: str) -> str | None:
        """Retourne le nom réel de l'attribut (comparaison insensible à la casse), ou None."""
        wanted = attribute.strip().lower()
        for a in self.attributes:
            if a.lower() == wanted:
                return a
        return None


class SQLiteStore:
    """Store relationnel SQLite (fichier ou mémoire). Toutes les valeurs sont du texte."""

    def __init__(self, path: str | Path = ":memory:") -> None:
        self.path = str(path)
        try:
            self.conn = sqlite3.connect(self.path)
        except sqlite3.Error as e:
            raise StoreOperationError(f"Impossible d'ouvrir la base {self.path}: {e}") from e

    def __enter__(self) -> SQLiteStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self.conn.close()

    @contextmanager
    def _cursor(self, sql: str) -> Iterator[sqlite3.Cursor]:
        cursor = self.conn.cursor()
        try:
            yield cursor
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            logger.error(f"Échec SQL: {e} [{sql}]")
            raise StoreOperationError(f"Erreur SQL: {e}") from e
        finally:
            cursor.close()

    def run_query(self, sql: str, params: Sequence[Any] = ()) -> list[tuple[Any, ...]]:
        """Exécute une requête et retourne toutes ses lignes (vide pour le DDL)."""
        logger.debug(f"SQL: {sql}")
        with self._cursor(sql) as cursor:
            cursor.execute(sql, tuple(params))
            return cursor.fetchall()

    def exists(self, relation: str) -> bool:
        rows = self.run_query(
            "SELECT 1 FROM sqlite_master WHERE type IN ('table', 'view') AND lower(name) = lower(?)",
            (relation,),
        )
        return bool(rows)

    def _relation_type(self, relation: str) -> str | None:
        rows = self.run_query(
            "SELECT type FROM sqlite_master WHERE type IN ('table', 'view') AND lower(name) = lower(?)",
            (relation,),
        )
        return rows[0][0] if rows else None

    def column_names(self, relation: str) -> list[str]:
        """
        Noms de colonnes dans l'ordre du schéma.

        Raises:
            StoreOperationError: Si la relation n'existe pas.
        """
        rows = self.run_query(f"PRAGMA table_info({quote_identifier(relation)})")
        if not rows:
            raise StoreOperationError(f"Relation introuvable: {relation}")
        return [r[1] for r in rows]

    def column_index(self, relation: str) -> dict[str, int]:
        return {name: i for i, name in enumerate(self.column_names(relation))}

    def row_count(self, relation: str) -> int:
        return int(self.run_query(f"SELECT COUNT(*) FROM {quote_identifier(relation)}")[0][0])

    def bulk_insert(self, relation: str, rows: Sequence[Mapping[str, Any]]) -> int:
        """Insère les lignes (dict colonne → valeur) ; les colonnes sont celles de la première ligne."""
        if not rows:
            return 0
        columns = list(rows[0].keys())
        placeholders = ", ".join("?" for _ in columns)
        sql = (
            f"INSERT INTO {quote_identifier(relation)} ({', '.join(quote_identifier(c) for c in columns)}) "
            f"VALUES ({placeholders})"
        )
        values = [tuple(None if r.get(c) is None else safe_str(r.get(c)) for c in columns) for r in rows]
        with self._cursor(sql) as cursor:
            cursor.executemany(sql, values)
        logger.debug(f"{len(values)} lignes insérées dans {relation}")
        return len(values)

    def create_index(self, relation: str, column: str, index_name: str) -> None:
        self.run_query(
            f"CREATE INDEX IF NOT EXISTS {quote_identifier(index_name)} "
            f"ON {quote_identifier(relation)} ({quote_identifier(column)})"
        )

    def create_wide_relation(
        self,
        left_cols: Sequence[str],
        right_cols: Sequence[str],
        left_prefix: str,
        right_prefix: str,
        extra_cols: Sequence[str],
        output_name: str,
    ) -> list[str]:
        """
        Crée une table TEXT avec une colonne par attribut gauche préfixé, par attribut droit
        préfixé et par colonne de diagnostic.

        Returns:
            Colonnes créées, dans l'ordre.
        """
        columns: list[str] = []
        seen: set[str] = set()
        candidates = [left_prefix + c for c in left_cols] + [right_prefix + c for c in right_cols] + list(extra_cols)
        for col in candidates:
            if col.lower() in seen:
                logger.warning(f"Colonne en double ignorée dans {output_name}: {col}")
                continue
            seen.add(col.lower())
            columns.append(col)
        column_defs = ", ".join(f"{quote_identifier(c)} TEXT" for c in columns)
        self.run_query(f"CREATE TABLE {quote_identifier(output_name)} ({column_defs})")
        return columns

    def fresh_temporary_name(self, hint: str | None = None) -> str:
        base = sanitize_name(hint) if hint else "tmp"
        while True:
            name = f"{base}_{uuid.uuid4().hex[:8]}"
            if not self.exists(name):
                return name

    def drop_if_exists(self, relation: str) -> None:
        kind = self._relation_type(relation)
        if kind == "view":
            self.run_query(f"DROP VIEW IF EXISTS {quote_identifier(relation)}")
        elif kind == "table":
            self.run_query(f"DROP TABLE IF EXISTS {quote_identifier(relation)}")

    def fetch_partition(self, relation: str, offset: int, length: int) -> pd.DataFrame:
        """Charge length lignes à partir de offset, dans l'ordre d'insertion pour une table."""
        order = " ORDER BY rowid" if self._relation_type(relation) == "table" else ""
        sql = f"SELECT * FROM {quote_identifier(relation)}{order} LIMIT ? OFFSET ?"
        return self.read_sql(sql, (length, offset))

    def read_relation(self, relation: str) -> pd.DataFrame:
        """Charge une relation entière (export)."""
        return self.read_sql(f"SELECT * FROM {quote_identifier(relation)}")

    def read_sql(self, sql: str, params: Sequence[Any] = ()) -> pd.DataFrame:
        try:
            return pd.read_sql_query(sql, self.conn, params=tuple(params))
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            raise StoreOperationError(f"Erreur SQL: {e}") from e

    def write_frame(self, relation: str, df: pd.DataFrame) -> int:
        """Remplace la relation par le contenu du DataFrame (toutes colonnes en TEXT)."""
        text_df = df.astype(object).where(df.notna(), None)
        try:
            text_df.to_sql(relation, self.conn, if_exists="replace", index=False, dtype="TEXT")
            self.conn.commit()
        except (sqlite3.Error, ValueError, pd.errors.DatabaseError) as e:
            raise StoreOperationError(f"Impossible d'écrire la relation {relation}: {e}") from e
        logger.info(f"Relation {relation} écrite ({len(df)} lignes)")
        return len(df)
