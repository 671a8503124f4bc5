"""Test d'intégration du pipeline catmatch."""

import json
from pathlib import Path

import pandas as pd
import pytest

from catmatch.catalog import InMemoryCatalog
from catmatch.cli import cmd_run, main
from catmatch.io_excel import load_catalog_entries


@pytest.fixture
def files(tmp_path: Path) -> dict[str, Path]:
    lista = tmp_path / "lista.xlsx"
    catalog = tmp_path / "catmat.csv"
    pd.DataFrame(
        {
            "Item": ["1", "2", "3"],
            "Descrição": ["CANETA ESFEROGRÁFICA AZUL", "papel a4 75 g/m2", "Parafuso sextavado inox"],
            "Quantidade": ["10", "5", "100"],
        }
    ).to_excel(lista, index=False, engine="openpyxl")
    catalog.write_text(
        "codigo;descricao\n"
        "000100;Caneta esferográfica azul\n"
        "000200;Papel A4 75g/m²\n"
        "000300;Grampeador de mesa 26/6\n",
        encoding="utf-8",
    )
    return {"lista": lista, "catalog": catalog, "dir": tmp_path}


def test_full_pipeline(files: dict[str, Path], capsys: pytest.CaptureFixture[str]) -> None:
    """Import, matching, export de la revue et du mapping."""
    out = files["dir"] / "revue.xlsx"
    mapping = files["dir"] / "mapping.csv"
    config_path = files["dir"] / "config.json"
    config_path.write_text(json.dumps({"concurrency": 2, "thresholds": {"high": 0.9, "low": 0.6}}), encoding="utf-8")

    code = cmd_run(
        str(files["lista"]),
        str(files["catalog"]),
        str(out),
        config_path=str(config_path),
        mapping_path=str(mapping),
    )
    assert code == 0

    stdout = capsys.readouterr().out
    assert "=== catmatch Report ===" in stdout
    assert "000100" in stdout

    df = pd.read_csv(mapping, dtype=str, keep_default_na=False)
    assert df["sequence_index"].tolist() == ["0", "1", "2"]
    assert df["catmat_id"].iloc[0] == "000100"
    assert df["classification"].iloc[0] == "matched"
    assert df["catmat_id"].iloc[1] == "000200"
    assert df["classification"].iloc[1] == "matched"

    xl = pd.ExcelFile(out, engine="openpyxl")
    assert set(xl.sheet_names) == {"MATCHED", "PENDING", "NOT_FOUND", "LOG", "REPORT"}
    report = pd.read_excel(xl, sheet_name="REPORT", dtype=str)
    values = dict(zip(report["Key"], report["Value"]))
    assert values["nb_items"] == "3"
    assert values["nb_processed"] == "3"
    assert values["state"] == "completed"
    xl.close()


def test_main_run_quiet(files: dict[str, Path], capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["run", "-i", str(files["lista"]), "-k", str(files["catalog"]), "-q", "-w", "1"])
    assert code == 0
    out = capsys.readouterr().out
    # Pas de journal en direct, seulement le rapport
    assert "MATCH " not in out
    assert "Matériaux:        3" in out


def test_main_list_sheets(files: dict[str, Path], capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["list-sheets", str(files["lista"])]) == 0
    assert "Sheet1" in capsys.readouterr().out


def test_run_uses_published_catalog_version(files: dict[str, Path]) -> None:
    out = files["dir"] / "revue.xlsx"
    assert cmd_run(str(files["lista"]), str(files["catalog"]), str(out), quiet=True) == 0

    expected = InMemoryCatalog(load_catalog_entries(files["catalog"])).latest_version
    report = pd.read_excel(out, sheet_name="REPORT", dtype=str, engine="openpyxl")
    values = dict(zip(report["Key"], report["Value"]))
    assert values["catalog_version"] == expected
