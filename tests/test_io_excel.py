"""Tests du module I/O : import des matériaux et du catalogue."""

from pathlib import Path

import pandas as pd
import pytest

from catmatch.io_excel import (
    ExcelFileError,
    IngestError,
    list_sheets,
    load_catalog_entries,
    load_materials,
    load_sheet,
    save_xlsx,
)


def test_list_sheets(tmp_path: Path) -> None:
    path = tmp_path / "test.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        pd.DataFrame({"a": [1]}).to_excel(w, sheet_name="Feuille1", index=False)
        pd.DataFrame({"x": [1]}).to_excel(w, sheet_name="Feuille2", index=False)
    sheets = list_sheets(path)
    assert "Feuille1" in sheets
    assert "Feuille2" in sheets


def test_list_sheets_csv(tmp_path: Path) -> None:
    path = tmp_path / "lista.csv"
    path.write_text("descricao\nCaneta\n", encoding="utf-8")
    assert list_sheets(path) == ["(dados)"]


def test_load_sheet_default_first(tmp_path: Path) -> None:
    path = tmp_path / "test.xlsx"
    pd.DataFrame({"col": ["a", "b"]}).to_excel(path, index=False, engine="openpyxl")
    df = load_sheet(path)
    assert len(df) == 2
    assert "col" in df.columns


def test_load_sheet_preserves_text(tmp_path: Path) -> None:
    path = tmp_path / "codes.csv"
    path.write_text("codigo;descricao\n000123;Caneta\n", encoding="utf-8")
    df = load_sheet(path)
    # Pas de conversion numérique : les zéros de tête sont conservés
    assert df["codigo"].iloc[0] == "000123"


def test_save_xlsx(tmp_path: Path) -> None:
    path = tmp_path / "out.xlsx"
    save_xlsx(path, {"Sheet1": pd.DataFrame({"a": [1]}), "Sheet2": pd.DataFrame({"b": [2]})})
    xl = pd.ExcelFile(path, engine="openpyxl")
    assert "Sheet1" in xl.sheet_names
    assert "Sheet2" in xl.sheet_names
    xl.close()


def test_load_materials_detects_columns(tmp_path: Path) -> None:
    path = tmp_path / "lista.xlsx"
    pd.DataFrame(
        {
            "Item": ["1", "2", "3"],
            "Descrição do material": ["Caneta azul", "Papel A4", "Grampeador"],
            "Quantidade": ["10", "5", "1"],
            "Unidade": ["un", "resma", "un"],
        }
    ).to_excel(path, index=False, engine="openpyxl")

    records = load_materials(path)
    assert [r.raw_description for r in records] == ["Caneta azul", "Papel A4", "Grampeador"]
    assert [r.sequence_index for r in records] == [0, 1, 2]
    assert records[1].quantity == "5"
    assert records[1].unit == "resma"
    # En-tête en ligne 1, premières données en ligne 2
    assert records[0].source_row == 2


def test_load_materials_skips_blank_rows(tmp_path: Path) -> None:
    path = tmp_path / "lista.csv"
    path.write_text("descricao,qtd\nCaneta,1\n,2\nLápis,3\n", encoding="utf-8")
    records = load_materials(path)
    assert [r.raw_description for r in records] == ["Caneta", "Lápis"]
    assert [r.sequence_index for r in records] == [0, 1]
    assert records[1].source_row == 4


def test_load_materials_semicolon_latin1(tmp_path: Path) -> None:
    path = tmp_path / "lista.csv"
    path.write_bytes("material;unidade\nLápis preto;un\nRégua 30cm;un\n".encode("latin-1"))
    records = load_materials(path)
    assert [r.raw_description for r in records] == ["Lápis preto", "Régua 30cm"]
    assert records[0].unit == "un"


def test_load_materials_txt(tmp_path: Path) -> None:
    path = tmp_path / "lista.txt"
    path.write_text("Caneta azul\n\nPapel A4\n", encoding="utf-8")
    records = load_materials(path)
    assert [r.raw_description for r in records] == ["Caneta azul", "Papel A4"]
    assert records[1].source_row == 3


def test_load_materials_explicit_column(tmp_path: Path) -> None:
    path = tmp_path / "lista.csv"
    path.write_text("a,b\nx,Caneta\ny,Papel\n", encoding="utf-8")
    records = load_materials(path, description_col="b")
    assert [r.raw_description for r in records] == ["Caneta", "Papel"]
    with pytest.raises(IngestError, match="introuvable"):
        load_materials(path, description_col="c")


def test_load_materials_unsupported_format(tmp_path: Path) -> None:
    path = tmp_path / "lista.pdf"
    path.write_bytes(b"%PDF-1.4")
    with pytest.raises(IngestError, match="Format non supporté"):
        load_materials(path)


def test_load_materials_too_large(tmp_path: Path) -> None:
    path = tmp_path / "lista.txt"
    path.write_text("Caneta azul\n" * 2000, encoding="utf-8")
    with pytest.raises(IngestError, match="trop volumineux"):
        load_materials(path, max_file_mb=0.01)


def test_load_materials_too_many_items(tmp_path: Path) -> None:
    path = tmp_path / "lista.txt"
    path.write_text("\n".join(f"Item {i}" for i in range(6)), encoding="utf-8")
    assert len(load_materials(path, max_items=6)) == 6
    with pytest.raises(IngestError, match="Trop de matériaux"):
        load_materials(path, max_items=5)


def test_load_materials_empty(tmp_path: Path) -> None:
    path = tmp_path / "lista.csv"
    path.write_text("descricao\n\n", encoding="utf-8")
    with pytest.raises(IngestError):
        load_materials(path)


def test_load_catalog_entries(tmp_path: Path) -> None:
    path = tmp_path / "catmat.xlsx"
    pd.DataFrame(
        {
            "Código": ["000100", "000200", ""],
            "Descrição": ["Caneta esferográfica azul", "Papel A4 75g/m²", "sans code"],
        }
    ).to_excel(path, index=False, engine="openpyxl")
    entries = load_catalog_entries(path)
    assert [e.catalog_id for e in entries] == ["000100", "000200"]
    assert entries[1].canonical_description == "Papel A4 75g/m²"


def test_load_catalog_entries_duplicate_id(tmp_path: Path) -> None:
    path = tmp_path / "catmat.csv"
    path.write_text("catmat,descricao\n1,Caneta\n1,Lápis\n", encoding="utf-8")
    with pytest.raises(IngestError, match="dupliqué"):
        load_catalog_entries(path)


def test_load_catalog_entries_missing_column(tmp_path: Path) -> None:
    path = tmp_path / "catmat.csv"
    path.write_text("foo,bar\n1,Caneta\n", encoding="utf-8")
    with pytest.raises(IngestError, match="identifiant"):
        load_catalog_entries(path)


def test_load_catalog_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ExcelFileError, match="introuvable"):
        load_catalog_entries(tmp_path / "absent.xlsx")
