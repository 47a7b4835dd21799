"""Report generation for import sessions (CSV, HTML, summary)."""

import csv
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader

from roster_import import DedupCandidate, DedupDecision, ImportSession, ParsedPlayerRow
from roster_import.decisions import get_action_counts, get_progress_counts
from roster_import.matching import get_confidence_level, group_by_confidence

log = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent / 'templates'

CSV_COLUMNS = [
    'Row',
    'Rank',
    'SNo',
    'Name',
    'Rating',
    'DoB',
    'Gender',
    'State',
    'Club',
    'FIDE_ID',
    'Unrated',
    'Action',
    'Existing_ID',
    'Existing_Name',
    'Score',
    'Confidence',
    'Reason',
    'Changes',
    'Issues',
]


def _decision_to_row(
    decision: DedupDecision,
    row: Optional[ParsedPlayerRow],
    candidate: Optional[DedupCandidate],
) -> dict:
    """Convert a decision and its row to a flat dict for CSV/HTML output."""
    best = candidate.best_match if candidate else None
    existing = best.existing if best else None
    issues = list(row.issues) if row else []
    if best:
        issues.extend(best.issues)
    return {
        'Row': str(decision.row),
        'Rank': '' if row is None or row.rank is None else str(row.rank),
        'SNo': '' if row is None or row.sno is None else str(row.sno),
        'Name': row.name if row else '',
        'Rating': '' if row is None or row.rating is None else str(row.rating),
        'DoB': (row.dob or row.dob_raw or '') if row else '',
        'Gender': (row.gender or '') if row else '',
        'State': (row.state or '') if row else '',
        'Club': (row.club or '') if row else '',
        'FIDE_ID': (row.fide_id or '') if row else '',
        'Unrated': ('ja' if row.unrated else 'nein') if row else '',
        'Action': decision.action,
        'Existing_ID': decision.existing_id or '',
        'Existing_Name': existing.name if existing else '',
        'Score': f'{best.score:.4f}' if best else '',
        'Confidence': get_confidence_level(best.score) if best else '',
        'Reason': best.reason if best else '',
        'Changes': ', '.join(sorted(decision.payload)) if decision.payload else '',
        'Issues': ', '.join(issues),
        # Set of issue codes for targeted cell highlighting in HTML
        '_issues': set(issues),
    }


def _report_rows(
    decisions: Sequence[DedupDecision],
    rows: Sequence[ParsedPlayerRow],
    candidates: Sequence[DedupCandidate] = (),
) -> list[dict]:
    by_index = {r.original_index: r for r in rows}
    by_row = {c.row: c for c in candidates}
    return [_decision_to_row(d, by_index.get(d.row), by_row.get(d.row)) for d in decisions]


def write_csv_report(
    decisions: Sequence[DedupDecision],
    rows: Sequence[ParsedPlayerRow],
    output_path: Path,
    candidates: Sequence[DedupCandidate] = (),
) -> None:
    """Write the resolved decisions as a CSV report.

    Uses UTF-8 with BOM (utf-8-sig) and semicolon delimiter for
    compatibility with German Excel.

    Args:
        decisions: Resolved decisions, one per row.
        rows: Parsed rows the decisions refer to.
        output_path: Path for the output CSV file.
        candidates: Dedup candidates, for the match columns.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', newline='', encoding='utf-8-sig') as f:
        writer = csv.DictWriter(
            f, fieldnames=CSV_COLUMNS, delimiter=';', extrasaction='ignore',
        )
        writer.writeheader()
        for report_row in _report_rows(decisions, rows, candidates):
            writer.writerow(report_row)

    log.info("CSV-Report geschrieben: %s (%d Zeilen)", output_path, len(decisions))


def write_html_report(
    session: ImportSession,
    output_path: Path,
    roster_name: str = '',
) -> None:
    """Write an import session as an HTML report using Jinja2.

    Args:
        session: Import session after finalize().
        output_path: Path for the output HTML file.
        roster_name: Name of the roster file (for the report title).
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=True,
    )
    template = env.get_template('report.html')

    html = template.render(
        roster_name=roster_name,
        detected=session.detected,
        rows=_report_rows(session.decisions, session.extraction.rows, session.dedup.candidates),
        stats=_compute_stats(session),
        columns=CSV_COLUMNS,
    )

    output_path.write_text(html, encoding='utf-8')
    log.info("HTML-Report geschrieben: %s", output_path)


def _compute_stats(session: ImportSession) -> dict:
    """Compute summary statistics from an import session."""
    candidates = session.dedup.candidates
    grouped = group_by_confidence(candidates)
    actions = get_action_counts(session.decisions)
    progress = get_progress_counts(candidates, session.overrides)

    all_issues = []
    for row in session.extraction.rows:
        all_issues.extend(row.issues)

    return {
        'total': len(session.extraction.rows),
        'skipped_rows': len(session.extraction.skipped_rows),
        'matched': session.dedup.summary.matched_candidates,
        'high': len(grouped.high),
        'medium': len(grouped.medium),
        'low': len(grouped.low),
        'create': actions['create'],
        'update': actions['update'],
        'skip': actions['skip'],
        'resolved': progress['resolved'],
        'needs_review': progress['total'],
        'federation_as_state': all_issues.count('FEDERATION_AS_STATE'),
        'dob_inferred': all_issues.count('DOB_INFERRED'),
        'rank_autofilled': all_issues.count('RANK_AUTOFILLED'),
        'gender_overridden': all_issues.count('GENDER_OVERRIDDEN_BY_LABEL'),
        'gender_source': session.extraction.gender_source or '-',
        'conflicts': len(session.conflicts),
    }


def print_summary(session: ImportSession, roster_name: str = '') -> None:
    """Print a summary of an import session to stdout.

    Args:
        session: Import session after finalize().
        roster_name: Name of the roster file.
    """
    stats = _compute_stats(session)
    detected = session.detected

    print(f"\n=== Import-Report: {roster_name} ===")
    print(f"Header:                    Blatt '{detected.sheet_name}', Zeile {detected.header_row_index + 1} "
          f"(Score {detected.confidence})")
    print(f"Spieler gelesen:           {stats['total']:>5}")
    print(f"Fusszeilen uebersprungen:  {stats['skipped_rows']:>5}")
    print(f"Duplikate in der Datei:    {stats['conflicts']:>5}")
    print(f"Mit Treffer:               {stats['matched']:>5}")
    print(f"  - hohe Sicherheit:       {stats['high']:>5}")
    print(f"  - mittlere Sicherheit:   {stats['medium']:>5}")
    print(f"  - niedrige Sicherheit:   {stats['low']:>5}")
    print(f"Manuell entschieden:       {stats['resolved']:>5} / {stats['needs_review']}")
    print("---")
    print(f"Neu anlegen (create):      {stats['create']:>5}")
    print(f"Aktualisieren (update):    {stats['update']:>5}")
    print(f"Ueberspringen (skip):      {stats['skip']:>5}")
    print("---")
    print(f"Verband als Bundesland:    {stats['federation_as_state']:>5}")
    print(f"Geburtsdatum ergaenzt:     {stats['dob_inferred']:>5}")
    print(f"Rang aufgefuellt:          {stats['rank_autofilled']:>5}")
    print(f"Geschlecht per Label:      {stats['gender_overridden']:>5}")
    print()
