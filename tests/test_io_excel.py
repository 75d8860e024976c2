"""Tests du module I/O tableurs."""

from pathlib import Path

import pandas as pd

from relmatch.config import TableSource
from relmatch.io_excel import import_table, list_sheets, load_sheet, sanitize_columns, save_spreadsheet
from relmatch.store import SQLiteStore


def test_list_sheets(tmp_path: Path) -> None:
    path = tmp_path / "test.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        pd.DataFrame({"a": [1]}).to_excel(w, sheet_name="Feuille1", index=False)
        pd.DataFrame({"x": [1]}).to_excel(w, sheet_name="Feuille2", index=False)
    sheets = list_sheets(path)
    assert "Feuille1" in sheets
    assert "Feuille2" in sheets


def test_load_sheet_default_first(tmp_path: Path) -> None:
    path = tmp_path / "test.xlsx"
    pd.DataFrame({"col": ["a", "b"]}).to_excel(path, index=False, engine="openpyxl")
    df = load_sheet(path)
    assert len(df) == 2
    assert "col" in df.columns


def test_load_sheet_keeps_text(tmp_path: Path) -> None:
    """Les codes numériques restent du texte (zéros initiaux préservés)."""
    path = tmp_path / "codes.csv"
    path.write_text("code;nom\n00123;Dupont\n045;Martin\n", encoding="utf-8")
    df = load_sheet(path)
    assert df["code"].tolist() == ["00123", "045"]


def test_load_sheet_csv_header_row_and_latin1(tmp_path: Path) -> None:
    path = tmp_path / "clients.csv"
    path.write_bytes("Export du 01/01\nPrénom,Ville\nHélène,Nîmes\n".encode("latin-1"))
    df = load_sheet(path, header_row=2)
    assert list(df.columns) == ["Prénom", "Ville"]
    assert df["Ville"].tolist() == ["Nîmes"]


def test_sanitize_columns() -> None:
    df = sanitize_columns(pd.DataFrame([[1, 2, 3]], columns=["Prénom", "prenom", "Code Postal"]))
    assert list(df.columns) == ["prenom", "prenom_2", "code_postal"]


def test_import_table(tmp_path: Path) -> None:
    path = tmp_path / "clients.xlsx"
    pd.DataFrame({"ID": [9, 10], "Nom Client": ["Graciela Ruta", None]}).to_excel(
        path, index=False, engine="openpyxl"
    )
    with SQLiteStore() as store:
        name = import_table(store, TableSource(file=str(path), relation="c"))
        assert name == "c"
        assert store.column_names("c") == ["id", "nom_client"]
        assert store.run_query("SELECT id, nom_client FROM c ORDER BY rowid") == [
            ("9", "Graciela Ruta"),
            ("10", None),
        ]


def test_import_table_without_file_keeps_existing_relation() -> None:
    with SQLiteStore() as store:
        store.write_frame("un", pd.DataFrame({"name": ["a"]}))
        assert import_table(store, TableSource(relation="un")) == "un"
        assert store.row_count("un") == 1


def test_save_spreadsheet_xlsx(tmp_path: Path) -> None:
    path = tmp_path / "out.xlsx"
    written = save_spreadsheet(path, {"EXACT": pd.DataFrame({"a": [1]}), "FUZZY": pd.DataFrame({"b": [2]})})
    assert written == [path]
    xl = pd.ExcelFile(path, engine="openpyxl")
    assert xl.sheet_names == ["EXACT", "FUZZY"]
    xl.close()


def test_save_spreadsheet_csv(tmp_path: Path) -> None:
    path = tmp_path / "out.csv"
    written = save_spreadsheet(path, {"EXACT": pd.DataFrame({"a": [1]}), "REPORT": pd.DataFrame({"b": [2]})})
    assert [p.name for p in written] == ["out_exact.csv", "out_report.csv"]
    assert pd.read_csv(written[0])["a"].tolist() == [1]
