"""Crée une liste de matériaux et un extrait de catalogue CATMAT de démonstration."""

import pandas as pd
from pathlib import Path

DATA_DIR = Path(__file__).parent / "data"
DATA_DIR.mkdir(exist_ok=True)

materiais = pd.DataFrame({
    "Item": ["1", "2", "3", "4", "5", "6"],
    "Descrição do material": [
        "Caneta esferográfica azul",
        "CANETA ESF. PRETA",
        "Papel A4 75g/m2 branco",
        "Grampeador de mesa",
        "Clips nº 2 cx c/ 100",
        "Parafuso sextavado inox M8",
    ],
    "Quantidade": ["50", "20", "10", "2", "5", "200"],
    "Unidade": ["un", "un", "resma", "un", "caixa", "un"],
})

catmat = pd.DataFrame({
    "Código": ["000100", "000101", "000200", "000300", "000400"],
    "Descrição": [
        "Caneta esferográfica azul",
        "Caneta esferográfica preta",
        "Papel A4 75g/m² branco",
        "Grampeador de mesa 26/6",
        "Clips galvanizado nº 2 caixa 100 unidades",
    ],
})

materiais.to_excel(DATA_DIR / "materiais.xlsx", index=False, engine="openpyxl")
catmat.to_csv(DATA_DIR / "catmat.csv", index=False, sep=";", encoding="utf-8")
print(f"Fichiers créés dans {DATA_DIR}")
print(f"  catmatch run -i {DATA_DIR / 'materiais.xlsx'} -k {DATA_DIR / 'catmat.csv'} -o revue.xlsx")
