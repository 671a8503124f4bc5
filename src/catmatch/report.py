"""Génération du rapport, des onglets de revue et du mapping CSV."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import pandas as pd

from catmatch import __version__
from catmatch.io_excel import save_xlsx
from catmatch.jobs.controller import Job
from catmatch.jobs.events import JobStats, ProcessingEvent
from catmatch.jobs.review import ReviewPartition, build_review_partition
from catmatch.matching.schema import MaterialRecord, MatchResult

RESULT_COLUMNS = [
    "sequence_index",
    "linha",
    "descricao",
    "quantidade",
    "unidade",
    "classificacao",
    "catmat_id",
    "catmat_descricao",
    "score",
    "erro",
    "explicacao",
]


def results_to_dataframe(
    results: Sequence[MatchResult],
    records: Sequence[MaterialRecord],
) -> pd.DataFrame:
    """Une ligne par résultat, avec les colonnes d'origine du matériau."""
    by_index = {r.sequence_index: r for r in records}
    rows = []
    for res in results:
        rec = by_index.get(res.sequence_index)
        best = res.best_candidate
        rows.append(
            {
                "sequence_index": res.sequence_index,
                "linha": rec.source_row if rec else None,
                "descricao": rec.raw_description if rec else "",
                "quantidade": rec.quantity if rec else None,
                "unidade": rec.unit if rec else None,
                "classificacao": res.classification.value,
                "catmat_id": best.catalog_id if best else "",
                "catmat_descricao": best.description if best else "",
                "score": round(best.score, 4) if best else None,
                "erro": res.error,
                "explicacao": res.explanation,
            }
        )
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def events_to_dataframe(events: Sequence[ProcessingEvent]) -> pd.DataFrame:
    """Journal de traitement dans l'ordre d'émission."""
    rows = []
    for ev in events:
        best = ev.best_candidate
        rows.append(
            {
                "horario": ev.logged_at.strftime("%H:%M:%S"),
                "sequence_index": ev.sequence_index,
                "descricao": ev.raw_description,
                "classificacao": ev.classification.value,
                "catmat_id": best.catalog_id if best else "",
                "catmat_descricao": best.description if best else "",
                "confianca": round(best.score * 100) if best else None,
                "erro": ev.error_message or "",
            }
        )
    return pd.DataFrame(
        rows,
        columns=[
            "horario",
            "sequence_index",
            "descricao",
            "classificacao",
            "catmat_id",
            "catmat_descricao",
            "confianca",
            "erro",
        ],
    )


def _partition(job: Job) -> ReviewPartition:
    if job.review is not None:
        return job.review
    return build_review_partition(dict(job.results), (r.sequence_index for r in job.records))


def build_report_df(job: Job) -> pd.DataFrame:
    """
    Construit le DataFrame pour l'onglet REPORT.

    Contient : nb matériaux, nb traités, nb matched/pending/not_found, nb
    erreurs, taux de match, paramètres, horodatage, version.
    """
    stats = job.stats
    rate = 100.0 * stats.matched_count / stats.processed_count if stats.processed_count else 0.0
    rows = [
        ("job_id", job.job_id),
        ("name", job.name),
        ("state", job.state.value),
        ("", ""),
        ("Metric", "Value"),
        ("nb_items", job.total_items),
        ("nb_processed", stats.processed_count),
        ("nb_matched", stats.matched_count),
        ("nb_pending", stats.pending_count),
        ("nb_not_found", stats.not_found_count),
        ("nb_errors", stats.error_count),
        ("nb_unprocessed", len(_partition(job).unprocessed)),
        ("match_rate_pct", round(rate, 1)),
        ("", ""),
        ("Parameters", ""),
        ("catalog_version", job.catalog_version),
        ("high_threshold", job.thresholds.high),
        ("low_threshold", job.thresholds.low),
        ("concurrency", job.concurrency),
        ("", ""),
        ("created_at", job.created_at.isoformat()),
        ("finished_at", job.finished_at.isoformat() if job.finished_at else ""),
        ("timestamp", datetime.now().isoformat()),
        ("version", __version__),
    ]
    return pd.DataFrame(rows, columns=["Key", "Value"])


def export_review(filepath: str | Path, job: Job) -> None:
    """
    Écrit le classeur de revue : MATCHED, PENDING, NOT_FOUND, LOG, REPORT.

    Le job doit être terminé ou annulé : seule la partition figée est exportée.
    """
    partition = _partition(job)
    sheets = {
        "MATCHED": results_to_dataframe(partition.matched, job.records),
        "PENDING": results_to_dataframe(partition.pending, job.records),
        "NOT_FOUND": results_to_dataframe(partition.not_found, job.records),
        "LOG": events_to_dataframe(job.events),
        "REPORT": build_report_df(job),
    }
    save_xlsx(filepath, sheets)


def build_mapping_csv(
    results: Sequence[MatchResult],
    output_path: str | Path,
) -> None:
    """
    Génère mapping.csv avec sequence_index, catmat_id, score, classification, explanation.
    """
    rows = []
    for r in sorted(results, key=lambda x: x.sequence_index):
        rows.append(
            {
                "sequence_index": r.sequence_index,
                "catmat_id": r.best_candidate.catalog_id if r.best_candidate else "",
                "score": r.score if r.score is not None else "",
                "classification": r.classification.value,
                "error": r.error,
                "explanation": r.explanation,
            }
        )
    df = pd.DataFrame(
        rows,
        columns=["sequence_index", "catmat_id", "score", "classification", "error", "explanation"],
    )
    df.to_csv(output_path, index=False, encoding="utf-8")


def print_report_console(job: Job) -> None:
    """Affiche un résumé du rapport en console."""
    stats: JobStats = job.stats
    print("\n=== catmatch Report ===")
    print(f"  Job:              {job.job_id}")
    print(f"  État:             {job.state.value}")
    print(f"  Matériaux:        {job.total_items}")
    print(f"  Traités:          {stats.processed_count}")
    print(f"  Auto-acceptés:    {stats.matched_count}")
    print(f"  Revue manuelle:   {stats.pending_count}")
    print(f"  Non trouvés:      {stats.not_found_count}")
    print(f"  Erreurs:          {stats.error_count}")
    print(f"  Version:          {__version__}")
    print(f"  Timestamp:        {datetime.now().isoformat()}")
    print("======================\n")
