"""Interface en ligne de commande catmatch."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from catmatch import __version__
from catmatch.catalog import InMemoryCatalog
from catmatch.config import CatmatchError, EngineConfig
from catmatch.engine import MatchingEngine
from catmatch.io_excel import list_sheets, load_catalog_entries, load_materials
from catmatch.jobs.events import ProcessingEvent
from catmatch.jobs.state import InvalidStateTransition
from catmatch.report import build_mapping_csv, export_review, print_report_console

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_LABELS = {
    "matched": "MATCH",
    "pending": "REVUE",
    "not_found": "ABSENT",
}


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT)


def format_event(event: ProcessingEvent, processed: int, total: int) -> str:
    """Ligne du journal de traitement en direct."""
    label = _LABELS[event.classification.value]
    line = f"[{event.logged_at:%H:%M:%S}] {processed}/{total} {label:<6} {event.raw_description}"
    if event.best_candidate is not None:
        c = event.best_candidate
        line += f" → {c.catalog_id} {c.description} ({c.score:.0%})"
    if event.error:
        line += f" [erreur: {event.error_message}]"
    return line


def cmd_list_sheets(filepath: str) -> int:
    """Liste les feuilles d'un fichier tableur."""
    sheets = list_sheets(filepath)
    print(f"Feuilles dans {filepath}:")
    for s in sheets:
        print(f"  - {s}")
    return 0


def cmd_run(
    input_path: str,
    catalog_path: str,
    output_path: str | None = None,
    *,
    config_path: str | None = None,
    mapping_path: str | None = None,
    sheet: str | None = None,
    description_col: str | None = None,
    workers: int | None = None,
    high: float | None = None,
    low: float | None = None,
    quiet: bool = False,
) -> int:
    """Importe les matériaux, exécute le job de matching et exporte la revue."""
    config = EngineConfig.load(config_path) if config_path else EngineConfig()
    overrides: dict[str, object] = {}
    if workers is not None:
        overrides["concurrency"] = workers
    if high is not None:
        overrides["high_threshold"] = high
    if low is not None:
        overrides["low_threshold"] = low
    if overrides:
        config = dataclasses.replace(config, **overrides)

    records = load_materials(
        input_path,
        sheet,
        description_col=description_col,
        max_items=config.max_items,
        max_file_mb=config.max_file_mb,
    )
    catalog = InMemoryCatalog(method=config.method)
    version = catalog.publish(load_catalog_entries(catalog_path))

    engine = MatchingEngine(catalog, config)
    job_id = engine.create_job(records, version, name=Path(input_path).name)
    engine.start(job_id)

    total = len(records)
    try:
        for processed, event in enumerate(engine.subscribe_events(job_id), start=1):
            if not quiet:
                print(format_event(event, processed, total))
    except KeyboardInterrupt:
        print("\nAnnulation demandée: fin des matériaux en cours...")
        try:
            engine.cancel(job_id)
        except InvalidStateTransition:
            pass  # déjà terminé
        engine.wait(job_id)

    job = engine.get_job(job_id)
    print_report_console(job)

    partition = engine.get_review_partition(job_id)
    if mapping_path:
        results = list(partition.matched + partition.pending + partition.not_found)
        build_mapping_csv(results, mapping_path)
        print(f"Mapping écrit: {mapping_path}")

    if output_path:
        export_review(output_path, job)
        print(f"Fichier de revue: {output_path}")

    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="catmatch",
        description="Standardisation de matériaux contre le catalogue CATMAT (fuzzy matching)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commandes")

    # list-sheets
    p_list = subparsers.add_parser("list-sheets", help="Lister les feuilles d'un tableur")
    p_list.add_argument("file", help="Fichier xlsx/xls/csv")

    # run
    p_run = subparsers.add_parser("run", help="Exécuter le matching")
    p_run.add_argument("--input", "-i", required=True, help="Liste de matériaux (csv, txt, xls, xlsx)")
    p_run.add_argument("--catalog", "-k", required=True, help="Catalogue CATMAT (colonnes code + description)")
    p_run.add_argument("--config", "-c", help="Fichier config JSON")
    p_run.add_argument("--output", "-o", help="Classeur xlsx de revue")
    p_run.add_argument("--mapping", "-m", help="Chemin pour mapping.csv")
    p_run.add_argument("--sheet", help="Feuille à lire (défaut: première)")
    p_run.add_argument("--column", help="Colonne description (défaut: détection)")
    p_run.add_argument("--workers", "-w", type=int, help="Nombre de workers")
    p_run.add_argument("--high", type=float, help="Seuil d'acceptation automatique (0-1)")
    p_run.add_argument("--low", type=float, help="Seuil minimal de revue manuelle (0-1)")
    p_run.add_argument("--quiet", "-q", action="store_true", help="Ne pas afficher le journal en direct")
    p_run.add_argument("--verbose", "-v", action="count", default=0, help="Logs détaillés (-vv: debug)")

    args = parser.parse_args(argv)

    try:
        if args.command == "list-sheets":
            return cmd_list_sheets(args.file)

        if args.command == "run":
            _configure_logging(args.verbose)
            return cmd_run(
                args.input,
                args.catalog,
                args.output,
                config_path=args.config,
                mapping_path=args.mapping,
                sheet=args.sheet,
                description_col=args.column,
                workers=args.workers,
                high=args.high,
                low=args.low,
                quiet=args.quiet,
            )
    except CatmatchError as e:
        print(f"Erreur: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
