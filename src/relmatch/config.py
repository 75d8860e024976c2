"""Configuration et chargement du fichier config JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_PARTITION_SIZE = 10000
DEFAULT_BUFFER_SIZE = 5000
VALID_SELECTION_SCOPES = frozenset({"partition", "global"})


class RelMatchError(Exception):
    """Exception de base pour relmatch."""


class ConfigError(RelMatchError, ValueError):
    """Erreur de validation de la configuration ou de la spécification de matching."""


# Nom utilisé par l'API du moteur
ConfigurationError = ConfigError


class ConfigFileError(RelMatchError):
    """Erreur de chargement du fichier de configuration (fichier absent, JSON invalide)."""


class StoreOperationError(RelMatchError):
    """Échec d'une opération DDL/DML sur le store relationnel."""


@dataclass(frozen=True)
class EngineSettings:
    """Paramètres d'exécution du moteur (partitionnement, buffer, politiques)."""

    left_partition_size: int = DEFAULT_PARTITION_SIZE
    right_partition_size: int = DEFAULT_PARTITION_SIZE
    buffer_size: int = DEFAULT_BUFFER_SIZE
    # hungry_left: une ligne gauche déjà appariée exactement reste candidate au fuzzy
    hungry_left: bool = False
    # greedy_left: une ligne droite appariée exactement est retirée du fuzzy
    greedy_left: bool = False
    selection_scope: str = "partition"  # partition, global
    trim_keys: bool = False

    def __post_init__(self) -> None:
        if self.left_partition_size < 1:
            raise ConfigError(f"left_partition_size doit être >= 1 (got {self.left_partition_size})")
        if self.right_partition_size < 1:
            raise ConfigError(f"right_partition_size doit être >= 1 (got {self.right_partition_size})")
        if self.buffer_size < 1:
            raise ConfigError(f"buffer_size doit être >= 1 (got {self.buffer_size})")
        if self.selection_scope not in VALID_SELECTION_SCOPES:
            raise ConfigError(
                f"selection_scope invalide: {self.selection_scope!r}. Valides: {sorted(VALID_SELECTION_SCOPES)}"
            )

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> EngineSettings:
        partition_size = d.get("partition_size")
        try:
            left_size = int(d.get("left_partition_size", partition_size or DEFAULT_PARTITION_SIZE))
            right_size = int(d.get("right_partition_size", partition_size or DEFAULT_PARTITION_SIZE))
            buffer_size = int(d.get("buffer_size", DEFAULT_BUFFER_SIZE))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Paramètre moteur non entier: {e}") from e
        return cls(
            left_partition_size=left_size,
            right_partition_size=right_size,
            buffer_size=buffer_size,
            hungry_left=bool(d.get("hungry_left", False)),
            greedy_left=bool(d.get("greedy_left", False)),
            selection_scope=d.get("selection_scope", "partition"),
            trim_keys=bool(d.get("trim_keys", False)),
        )


@dataclass
class TableSource:
    """Fichier tableur à importer comme relation dans le store."""

    file: str = ""
    relation: str = ""
    sheet: str | None = None  # None = première feuille
    header_row: int = 1

    @classmethod
    def from_dict(cls, d: dict[str, Any], side: str) -> TableSource:
        relation = d.get("relation", "")
        file = d.get("file", "")
        if not relation:
            raise ConfigError(f"{side}.relation requis")
        try:
            header_row = int(d.get("header_row", 1))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{side}.header_row doit être un entier (got {d.get('header_row')!r})") from e
        if header_row < 1:
            raise ConfigError(f"{side}.header_row doit être >= 1 (got {header_row})")
        return cls(file=file, relation=relation, sheet=d.get("sheet"), header_row=header_row)


@dataclass
class Config:
    """Configuration principale d'un run relmatch."""

    left: TableSource = field(default_factory=TableSource)
    right: TableSource = field(default_factory=TableSource)
    left_attributes: list[str] = field(default_factory=list)
    right_attributes: list[str] = field(default_factory=list)
    # Options sous forme de mapping JSON ou de clause WITH textuelle
    options: dict[str, Any] = field(default_factory=dict)
    with_clause: str | None = None
    target: str = "match"
    database: str | None = None  # None = base en mémoire
    engine: EngineSettings = field(default_factory=EngineSettings)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Config:
        if "left" not in d or "right" not in d:
            raise ConfigError("left et right requis")
        left = TableSource.from_dict(d["left"], "left")
        right = TableSource.from_dict(d["right"], "right")

        left_attributes = d.get("left_attributes", [])
        right_attributes = d.get("right_attributes", left_attributes)
        if isinstance(left_attributes, str):
            left_attributes = [a.strip() for a in left_attributes.split(",")]
        if isinstance(right_attributes, str):
            right_attributes = [a.strip() for a in right_attributes.split(",")]
        if not left_attributes or not right_attributes:
            raise ConfigError("left_attributes et right_attributes requis")

        options = d.get("options", {})
        if not isinstance(options, dict):
            raise ConfigError("options doit être un objet JSON")

        target = d.get("target", "match")
        if not target or not str(target).strip():
            raise ConfigError("target ne peut pas être vide")

        return cls(
            left=left,
            right=right,
            left_attributes=list(left_attributes),
            right_attributes=list(right_attributes),
            options=options,
            with_clause=d.get("with"),
            target=str(target).strip(),
            database=d.get("database"),
            engine=EngineSettings.from_dict(d.get("engine", {})),
        )

    @classmethod
    def load(cls, path: str | Path) -> Config:
        """
        Charge la configuration depuis un fichier JSON.

        Raises:
            ConfigFileError: Si le fichier est absent ou le JSON invalide.
            ConfigError: Si la configuration est invalide.
        """
        path = Path(path).resolve()
        if not path.exists():
            raise ConfigFileError(f"Fichier de configuration introuvable: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                d = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigFileError(f"JSON invalide dans {path}: {e}") from e
        except OSError as e:
            raise ConfigFileError(f"Impossible de lire {path}: {e}") from e

        if not isinstance(d, dict):
            raise ConfigFileError(f"Fichier de configuration invalide: {path} doit contenir un objet JSON")

        config = cls.from_dict(d)
        config.resolve_paths(path.parent)
        return config

    def resolve_paths(self, base_dir: Path) -> None:
        """
        Résout les chemins relatifs par rapport au répertoire de base (ex. dossier du fichier config).

        Modifie left.file, right.file et database en place.
        """
        base = Path(base_dir)
        for source in (self.left, self.right):
            if source.file and not Path(source.file).is_absolute():
                source.file = str((base / source.file).resolve())
        if self.database and self.database != ":memory:" and not Path(self.database).is_absolute():
            self.database = str((base / self.database).resolve())
