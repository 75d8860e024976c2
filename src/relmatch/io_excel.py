"""I/O tableurs : import de fichiers comme relations du store, export des tables de sortie."""

from __future__ import annotations

import csv
import logging
from pathlib import Path

import pandas as pd

from relmatch.config import RelMatchError, TableSource
from relmatch.normalize import sanitize_name
from relmatch.store import SQLiteStore

logger = logging.getLogger(__name__)

# Formats supportés
SUPPORTED_INPUT_EXTENSIONS = (".xlsx", ".xls", ".ods", ".csv")
SUPPORTED_OUTPUT_EXTENSIONS = (".xlsx", ".ods", ".csv")


class TableFileError(RelMatchError):
    """Erreur de chargement ou d'écriture d'un fichier (fichier absent, feuille inexistante)."""


def _get_engine(path: Path) -> str | None:
    """Retourne le moteur pandas selon l'extension, ou None pour auto."""
    suffix = path.suffix.lower()
    if suffix == ".xlsx":
        return "openpyxl"
    if suffix == ".xls":
        return "xlrd"
    if suffix in (".ods", ".odt"):
        return "odf"
    return None


def _is_csv(path: Path) -> bool:
    return path.suffix.lower() == ".csv"


def _detect_csv_delimiter(path: Path, encoding: str, *, skip_rows: int = 0) -> str | None:
    try:
        with path.open("r", encoding=encoding, errors="replace") as f:
            for _ in range(skip_rows):
                if f.readline() == "":
                    return None
            sample_lines: list[str] = []
            for line in f:
                if line.strip() == "":
                    continue
                sample_lines.append(line)
                if len(sample_lines) >= 5:
                    break
        if not sample_lines:
            return None
        sample = "".join(sample_lines)
        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=[",", ";", "\t", "|"])
            return dialect.delimiter
        except csv.Error:
            first = sample_lines[0]
            counts = {d: first.count(d) for d in [",", ";", "\t", "|"]}
            best = max(counts, key=counts.get)  # type: ignore[arg-type]
            return best if counts[best] > 0 else None
    except OSError:
        return None


def list_sheets(filepath: str | Path) -> list[str]:
    """
    Liste les noms des feuilles d'un fichier tableur.

    Formats supportés : .xlsx, .xls, .ods, .csv (une seule "feuille" pour CSV).

    Raises:
        TableFileError: Si le fichier est absent ou illisible.
    """
    path = Path(filepath)
    if not path.exists():
        raise TableFileError(f"Fichier introuvable: {path}")
    if _is_csv(path):
        return ["(données)"]
    try:
        engine = _get_engine(path)
        xl = pd.ExcelFile(path, engine=engine) if engine else pd.ExcelFile(path)
        return [str(s) for s in xl.sheet_names]
    except ImportError as e:
        raise TableFileError(f"Moteur de lecture manquant pour {path.suffix}: {e}") from e
    except Exception as e:
        raise TableFileError(f"Impossible de lire le fichier {path}: {e}") from e


def _read_csv(path: Path, header_idx: int) -> pd.DataFrame:
    skiprows = range(header_idx) if header_idx > 0 else None
    for encoding in ("utf-8", "latin-1"):
        delimiter = _detect_csv_delimiter(path, encoding, skip_rows=header_idx) or ","
        try:
            return pd.read_csv(path, dtype=str, encoding=encoding, header=0, skiprows=skiprows, sep=delimiter)
        except UnicodeDecodeError:
            continue
        except pd.errors.ParserError:
            # Lignes invalides ignorées avec le moteur python
            try:
                return pd.read_csv(
                    path,
                    dtype=str,
                    encoding=encoding,
                    header=0,
                    skiprows=skiprows,
                    sep=delimiter,
                    engine="python",
                    on_bad_lines="warn",
                )
            except Exception as e:
                raise TableFileError(
                    f"Erreur CSV {path}: {e}. Vérifiez la ligne d'en-tête et le séparateur."
                ) from e
        except Exception as e:
            raise TableFileError(f"Erreur CSV {path}: {e}") from e
    raise TableFileError(f"Encodage non reconnu pour {path}")


def load_sheet(
    filepath: str | Path,
    sheet_name: str | None = None,
    *,
    header_row: int = 1,
) -> pd.DataFrame:
    """
    Charge une feuille dans un DataFrame en préservant le texte (dtype=str).

    Formats supportés : .xlsx, .xls, .ods, .csv.

    Args:
        filepath: Chemin vers le fichier.
        sheet_name: Nom de la feuille (None = première). Ignoré pour CSV.
        header_row: Numéro de ligne (1-based) contenant les en-têtes.

    Raises:
        TableFileError: Si le fichier est absent, illisible ou si la feuille n'existe pas.
    """
    path = Path(filepath)
    if not path.exists():
        raise TableFileError(f"Fichier introuvable: {path}")

    header_idx = max(header_row - 1, 0)
    if _is_csv(path):
        return _read_csv(path, header_idx)

    try:
        engine = _get_engine(path)
        xl = pd.ExcelFile(path, engine=engine) if engine else pd.ExcelFile(path)
    except ImportError as e:
        raise TableFileError(f"Moteur de lecture manquant pour {path.suffix}: {e}") from e
    except Exception as e:
        raise TableFileError(f"Impossible de lire le fichier {path}: {e}") from e

    if sheet_name is None:
        sheet_name = str(xl.sheet_names[0])
    elif sheet_name not in xl.sheet_names:
        sheets = [str(s) for s in xl.sheet_names]
        raise TableFileError(f"Feuille '{sheet_name}' introuvable dans {path}. Feuilles: {', '.join(sheets)}")

    try:
        return pd.read_excel(xl, sheet_name=sheet_name, dtype=str, header=header_idx)
    except Exception as e:
        raise TableFileError(f"Erreur feuille '{sheet_name}' dans {path}: {e}") from e


def sanitize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Renomme les colonnes en identifiants SQL simples, uniques (suffixe _2, _3... si collision)."""
    seen: dict[str, int] = {}
    names: list[str] = []
    for col in df.columns:
        name = sanitize_name(col)
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 1
        names.append(name)
    out = df.copy()
    out.columns = names
    return out


def import_table(store: SQLiteStore, source: TableSource) -> str:
    """
    Importe le fichier source dans le store sous le nom source.relation.

    Sans fichier, la relation doit déjà exister dans la base.

    Returns:
        Nom de la relation.
    """
    if not source.file:
        return source.relation
    df = sanitize_columns(load_sheet(source.file, source.sheet, header_row=source.header_row))
    store.write_frame(source.relation, df)
    return source.relation


def save_spreadsheet(
    filepath: str | Path,
    dataframes: dict[str, pd.DataFrame],
    *,
    index: bool = False,
) -> list[Path]:
    """
    Sauvegarde plusieurs DataFrames dans un fichier xlsx ou ods (une feuille par DataFrame),
    ou dans un CSV par DataFrame (<nom>_<feuille>.csv) pour une sortie .csv.

    Returns:
        Fichiers écrits.
    """
    path = Path(filepath)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        written = []
        for sheet_name, df in dataframes.items():
            out = path.with_name(f"{path.stem}_{sheet_name.lower()}.csv")
            df.to_csv(out, index=index, encoding="utf-8")
            written.append(out)
        return written

    if suffix == ".ods":
        engine = "odf"
    elif suffix == ".xlsx":
        engine = "openpyxl"
    else:
        raise TableFileError(f"Format de sortie non supporté: {suffix}")

    with pd.ExcelWriter(path, engine=engine) as writer:
        for sheet_name, df in dataframes.items():
            # Excel limite les noms de feuille à 31 caractères
            safe_name = str(sheet_name)[:31]
            df.to_excel(writer, sheet_name=safe_name, index=index)
    return [path]
