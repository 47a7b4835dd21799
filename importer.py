"""roster-import – CLI-Tool zum Import von Turnier-Teilnehmerlisten mit Dubletten-Abgleich."""

import argparse
import logging
import sys
from pathlib import Path

from roster_import.extract import PRESETS
from roster_import.header_detect import DEFAULT_MAX_SCAN_ROWS
from roster_import.merge import MergePolicy
from roster_import.normalizers import ImportConfig
from roster_import.pipeline import finalize, prepare_import
from roster_import.reader import read_decisions, read_existing_players, read_workbook
from roster_import.reporter import print_summary, write_csv_report, write_html_report


def _column_override(value: str) -> tuple[str, str]:
    field_name, sep, header = value.partition('=')
    if not sep or not field_name.strip() or not header.strip():
        raise argparse.ArgumentTypeError(f"Erwartet feld=Spalte, erhalten: {value!r}")
    return field_name.strip(), header.strip()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        description='Import einer Teilnehmerliste (xlsx/csv) mit Abgleich gegen bestehende Spieler.',
        prog='importer.py',
    )
    parser.add_argument(
        '--roster', required=True, type=Path,
        help='Pfad zur Teilnehmerliste (.xlsx, .xlsm, .csv, .tsv)',
    )
    parser.add_argument(
        '--existing', type=Path,
        help='CSV mit bereits gespeicherten Spielern des Turniers (Spalten id, name, ...)',
    )
    parser.add_argument(
        '--decisions', type=Path,
        help='JSON-Datei mit manuellen Entscheidungen {"Zeile": "create|update|skip"}',
    )
    parser.add_argument(
        '--output', required=True, type=Path,
        help='Pfad fuer die Report-Ausgabe (CSV)',
    )
    parser.add_argument(
        '--html', action='store_true',
        help='Zusaetzlich einen HTML-Report erzeugen',
    )
    parser.add_argument(
        '--summary', action='store_true',
        help='Zusammenfassung auf stdout ausgeben',
    )
    parser.add_argument(
        '--max-scan-rows', type=int, default=DEFAULT_MAX_SCAN_ROWS,
        help=f'Zeilen pro Blatt fuer die Header-Suche (Standard: {DEFAULT_MAX_SCAN_ROWS})',
    )
    parser.add_argument(
        '--preset', choices=sorted(PRESETS),
        help='Spalten-Voreinstellung fuer ein bekanntes Exportformat',
    )
    parser.add_argument(
        '--column', action='append', type=_column_override, default=[], metavar='FELD=SPALTE',
        help='Spalte manuell zuordnen, z.B. gender=__EMPTY_COL_4 (mehrfach moeglich)',
    )
    parser.add_argument(
        '--no-empty-unrated', action='store_true',
        help='Leere Wertung nicht als "unrated" behandeln',
    )
    parser.add_argument(
        '--no-infer-unrated', action='store_true',
        help='"unrated" nicht aus fehlender Wertung ableiten',
    )
    parser.add_argument(
        '--overwrite-conflicts', action='store_true',
        help='Abweichende Werte bestehender Spieler ueberschreiben (statt nur leere Felder zu fuellen)',
    )
    parser.add_argument(
        '--allow-dob-overwrite', action='store_true',
        help='Vorhandenes Geburtsdatum darf ueberschrieben werden',
    )
    parser.add_argument(
        '--keep-lower-rating', action='store_true',
        help='Hoehere Wertung aus der Datei nicht uebernehmen',
    )
    return parser


def run(args: argparse.Namespace) -> None:
    """Import one roster file and write the reports."""
    workbook = read_workbook(args.roster)
    existing = read_existing_players(args.existing) if args.existing else []
    overrides = read_decisions(args.decisions) if args.decisions else {}

    config = ImportConfig(
        treat_empty_as_unrated=not args.no_empty_unrated,
        infer_from_missing_rating=not args.no_infer_unrated,
    )
    policy = MergePolicy(
        fill_blanks=not args.overwrite_conflicts,
        prefer_newer_rating=not args.keep_lower_rating,
        never_overwrite_dob=not args.allow_dob_overwrite,
    )
    preset = PRESETS[args.preset] if args.preset else None

    session = prepare_import(
        workbook, existing,
        mapping=dict(args.column),
        config=config,
        policy=policy,
        preset=preset,
        max_rows_to_scan=args.max_scan_rows,
    )
    finalize(session, overrides)

    write_csv_report(session.decisions, session.extraction.rows, args.output, session.dedup.candidates)

    if args.html:
        html_path = args.output.with_suffix('.html')
        write_html_report(session, html_path, args.roster.stem)

    if args.summary:
        print_summary(session, args.roster.name)


def main() -> None:
    """Main entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(levelname)s: %(message)s',
    )

    parser = build_parser()
    args = parser.parse_args()

    if args.max_scan_rows < 1:
        parser.error('--max-scan-rows muss mindestens 1 sein.')

    try:
        run(args)
    except (ValueError, FileNotFoundError) as exc:
        logging.error("%s", exc)
        sys.exit(1)


if __name__ == '__main__':
    main()
