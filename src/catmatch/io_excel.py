"""I/O tableurs : import des listes de matériaux et du catalogue, export xlsx."""

from __future__ import annotations

import csv
import logging
from pathlib import Path

import pandas as pd

from catmatch.config import CatmatchError, ValidationError
from catmatch.matching.schema import CatalogEntry, MaterialRecord
from catmatch.normalize import norm_text, safe_str

logger = logging.getLogger(__name__)

# Formats supportés
SUPPORTED_INPUT_EXTENSIONS = (".xlsx", ".xls", ".csv", ".txt")

MAX_FILE_MB = 10.0
MAX_ITEMS = 10_000

# Fragments d'en-têtes reconnus (normalisés, sans accents)
DESCRIPTION_HINTS = ("material", "descri", "nome", "item", "produto")
QUANTITY_HINTS = ("quant", "qtd", "qtde")
UNIT_HINTS = ("unid", "unit", "medida")
ID_HEADERS = ("id", "codigo", "cod", "catmat", "catalog_id", "codigo catmat", "item catmat")


class ExcelFileError(CatmatchError):
    """Erreur de chargement d'un fichier (fichier absent, feuille inexistante)."""


class IngestError(ValidationError):
    """Fichier lisible mais inutilisable : format, taille, colonnes ou lignes invalides."""


def _get_engine(path: Path) -> str | None:
    """Retourne le moteur pandas selon l'extension, ou None pour auto."""
    suffix = path.suffix.lower()
    if suffix == ".xlsx":
        return "openpyxl"
    if suffix == ".xls":
        return "xlrd"
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
    except OSError:
        return None
    if not sample_lines:
        return None
    sample = "".join(sample_lines)
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=[",", ";", "\t", "|"])
        return dialect.delimiter
    except csv.Error:
        first = sample_lines[0]
        counts = {d: first.count(d) for d in [",", ";", "\t", "|"]}
        best = max(counts, key=counts.get)
        return best if counts[best] > 0 else None


def list_sheets(filepath: str | Path) -> list[str]:
    """
    Liste les noms des feuilles d'un fichier tableur.

    Formats supportés : .xlsx, .xls, .csv et .txt (une seule "feuille").

    Raises:
        ExcelFileError: Si le fichier est absent ou illisible.
    """
    path = Path(filepath)
    if not path.exists():
        raise ExcelFileError(f"Fichier introuvable: {path}")
    if path.suffix.lower() in (".csv", ".txt"):
        return ["(dados)"]
    try:
        engine = _get_engine(path)
        xl = pd.ExcelFile(path, engine=engine) if engine else pd.ExcelFile(path)
        return list(xl.sheet_names)  # type: ignore[return-value]
    except ImportError as e:
        if path.suffix.lower() == ".xls":
            raise ExcelFileError(f"Format .xls requis: pip install xlrd. Détail: {e}") from e
        raise ExcelFileError(f"Impossible de lire {path}: {e}") from e
    except Exception as e:
        raise ExcelFileError(f"Impossible de lire le fichier {path}: {e}") from e


def _read_csv(path: Path, header_idx: int) -> pd.DataFrame:
    """Lit un CSV en texte : détection du séparateur, repli latin-1."""
    skip = range(header_idx) if header_idx > 0 else None
    last_error: Exception | None = None
    for encoding in ("utf-8", "latin-1"):
        delimiter = _detect_csv_delimiter(path, encoding, skip_rows=header_idx) or ","
        try:
            return pd.read_csv(path, dtype=str, encoding=encoding, header=0, skiprows=skip, sep=delimiter)
        except UnicodeDecodeError as e:
            last_error = e
            continue
        except pd.errors.ParserError:
            try:
                return pd.read_csv(
                    path,
                    dtype=str,
                    encoding=encoding,
                    header=0,
                    skiprows=skip,
                    sep=delimiter,
                    engine="python",
                    on_bad_lines="warn",
                )
            except Exception as e:
                raise ExcelFileError(
                    f"Erreur CSV {path}: {e}. Vérifiez la ligne d'en-tête et le séparateur."
                ) from e
        except pd.errors.EmptyDataError as e:
            raise IngestError(f"Fichier vide: {path}") from e
    raise ExcelFileError(f"Erreur CSV {path}: {last_error}")


def load_sheet(
    filepath: str | Path,
    sheet_name: str | None = None,
    *,
    header_row: int = 1,
) -> pd.DataFrame:
    """
    Charge une feuille dans un DataFrame en préservant le texte.

    Args:
        filepath: Chemin vers le fichier (.xlsx, .xls, .csv).
        sheet_name: Nom de la feuille (None = première). Ignoré pour CSV.
        header_row: Numéro de ligne (1-based) contenant les en-têtes.

    Returns:
        DataFrame chargé (toutes les colonnes en str).

    Raises:
        ExcelFileError: Si le fichier est absent, illisible ou si la feuille n'existe pas.
    """
    path = Path(filepath)
    if not path.exists():
        raise ExcelFileError(f"Fichier introuvable: {path}")

    header_idx = max(header_row - 1, 0)
    if _is_csv(path):
        return _read_csv(path, header_idx)

    try:
        engine = _get_engine(path)
        xl = pd.ExcelFile(path, engine=engine) if engine else pd.ExcelFile(path)
    except ImportError as e:
        if path.suffix.lower() == ".xls":
            raise ExcelFileError("Format .xls requis: pip install xlrd") from e
        raise ExcelFileError(f"Impossible de lire {path}: {e}") from e
    except Exception as e:
        raise ExcelFileError(f"Impossible de lire le fichier {path}: {e}") from e

    if sheet_name is None:
        sheet_name = xl.sheet_names[0]  # type: ignore[assignment]
    elif sheet_name not in xl.sheet_names:
        sheets = [str(s) for s in xl.sheet_names]
        raise ExcelFileError(
            f"Feuille '{sheet_name}' introuvable dans {path}. Feuilles: {', '.join(sheets)}"
        )

    try:
        return pd.read_excel(xl, sheet_name=sheet_name, dtype=str, header=header_idx)  # type: ignore[return-value]
    except Exception as e:
        raise ExcelFileError(f"Erreur feuille '{sheet_name}' dans {path}: {e}") from e


def _load_text_lines(path: Path) -> pd.DataFrame:
    """Fichier .txt : une description par ligne, sans en-tête."""
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        text = path.read_text(encoding="latin-1")
    return pd.DataFrame({"descricao": text.splitlines()})


def _find_column(columns: list[str], hints: tuple[str, ...]) -> str | None:
    """Première colonne dont l'en-tête contient un indice (indices par priorité)."""
    keys = [norm_text(c, remove_diacritics=True) for c in columns]
    for h in hints:
        for col, key in zip(columns, keys):
            if h in key:
                return col
    return None


def _check_file(path: Path, max_file_mb: float) -> None:
    if not path.exists():
        raise ExcelFileError(f"Fichier introuvable: {path}")
    if path.suffix.lower() not in SUPPORTED_INPUT_EXTENSIONS:
        raise IngestError(
            f"Format non supporté: {path.suffix or '(aucun)'}. Formats: {', '.join(SUPPORTED_INPUT_EXTENSIONS)}"
        )
    size_mb = path.stat().st_size / (1024 * 1024)
    if size_mb > max_file_mb:
        raise IngestError(f"Fichier trop volumineux: {size_mb:.1f} Mo (max {max_file_mb:g} Mo)")


def load_materials(
    filepath: str | Path,
    sheet_name: str | None = None,
    *,
    description_col: str | None = None,
    quantity_col: str | None = None,
    unit_col: str | None = None,
    header_row: int = 1,
    max_items: int = MAX_ITEMS,
    max_file_mb: float = MAX_FILE_MB,
) -> list[MaterialRecord]:
    """
    Importe une liste de matériaux depuis un tableur.

    La colonne description est détectée d'après son en-tête (material,
    descrição, nome, item...) à défaut d'être fournie, sinon la première
    colonne est utilisée. Les lignes sans description sont ignorées ; les
    sequence_index restent contigus dans l'ordre du fichier.

    Returns:
        Liste de MaterialRecord, non vide.

    Raises:
        ExcelFileError: Fichier absent ou illisible.
        IngestError: Format, taille ou nombre de lignes hors limites, colonne absente.
    """
    path = Path(filepath)
    _check_file(path, max_file_mb)

    if path.suffix.lower() == ".txt":
        df = _load_text_lines(path)
        first_data_row = 1
    else:
        df = load_sheet(path, sheet_name, header_row=header_row)
        first_data_row = header_row + 1

    columns = [str(c) for c in df.columns]
    if not columns:
        raise IngestError(f"Aucune colonne dans {path}")
    if description_col is None:
        description_col = _find_column(columns, DESCRIPTION_HINTS) or columns[0]
    elif description_col not in columns:
        raise IngestError(f"Colonne '{description_col}' introuvable. Colonnes: {', '.join(columns)}")
    if quantity_col is None:
        quantity_col = _find_column(columns, QUANTITY_HINTS)
    if unit_col is None:
        unit_col = _find_column(columns, UNIT_HINTS)
    df.columns = columns

    records: list[MaterialRecord] = []
    skipped = 0
    for pos, row in enumerate(df.itertuples(index=False)):
        values = dict(zip(columns, row))
        description = safe_str(values.get(description_col)).strip()
        if not description:
            skipped += 1
            continue
        quantity = safe_str(values.get(quantity_col)).strip() if quantity_col else ""
        unit = safe_str(values.get(unit_col)).strip() if unit_col else ""
        records.append(
            MaterialRecord(
                sequence_index=len(records),
                raw_description=description,
                quantity=quantity or None,
                unit=unit or None,
                source_row=first_data_row + pos,
            )
        )
        if len(records) > max_items:
            raise IngestError(f"Trop de matériaux dans {path.name}: plus de {max_items}")

    if not records:
        raise IngestError(f"Aucun matériau dans {path} (colonne '{description_col}')")
    if skipped:
        logger.info("%s: %d ligne(s) sans description ignorée(s)", path.name, skipped)
    logger.info("%s: %d matériaux importés (colonne '%s')", path.name, len(records), description_col)
    return records


def load_catalog_entries(
    filepath: str | Path,
    sheet_name: str | None = None,
    *,
    id_col: str | None = None,
    description_col: str | None = None,
) -> list[CatalogEntry]:
    """
    Charge des entrées CATMAT depuis un tableur (code + description).

    Par défaut : colonne nommée id, código ou catmat, puis colonne
    description détectée comme pour load_materials.

    Raises:
        ExcelFileError: Fichier absent ou illisible.
        IngestError: Colonnes absentes ou identifiants dupliqués.
    """
    df = load_sheet(filepath, sheet_name)
    columns = [str(c) for c in df.columns]
    df.columns = columns
    if id_col is None:
        id_col = next((c for c in columns if norm_text(c, remove_diacritics=True) in ID_HEADERS), None)
    if description_col is None:
        description_col = _find_column([c for c in columns if c != id_col], DESCRIPTION_HINTS)
    for label, col in (("identifiant", id_col), ("description", description_col)):
        if col is None or col not in columns:
            raise IngestError(f"Colonne {label} introuvable dans {filepath}. Colonnes: {', '.join(columns)}")

    entries: list[CatalogEntry] = []
    seen: set[str] = set()
    for catalog_id, description in zip(df[id_col], df[description_col]):
        cid = safe_str(catalog_id).strip()
        desc = safe_str(description).strip()
        if not cid or not desc:
            continue
        if cid in seen:
            raise IngestError(f"Identifiant catalogue dupliqué: {cid}")
        seen.add(cid)
        entries.append(CatalogEntry(catalog_id=cid, canonical_description=desc))
    if not entries:
        raise IngestError(f"Catalogue vide: {filepath}")
    return entries


def save_xlsx(
    filepath: str | Path,
    dataframes: dict[str, pd.DataFrame],
    *,
    header: bool = True,
    index: bool = False,
) -> None:
    """
    Sauvegarde plusieurs DataFrames dans un fichier xlsx (une feuille par DataFrame).

    Args:
        filepath: Chemin de sortie.
        dataframes: Dict {nom_feuille: DataFrame}.
    """
    with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
        for sheet_name, df in dataframes.items():
            # Excel limite les noms de feuille à 31 caractères
            safe_name = str(sheet_name)[:31]
            df.to_excel(writer, sheet_name=safe_name, index=index, header=header)
