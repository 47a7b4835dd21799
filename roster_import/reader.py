"""Workbook, existing-player and decision readers."""

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any

from openpyxl import load_workbook

from roster_import import ACTIONS, ExistingPlayer, InvalidDecisionError
from roster_import.normalizers import clean_text, fide_id_or_none, normalize_whitespace, to_int

log = logging.getLogger(__name__)

Workbook = dict[str, list[list[Any]]]

EXCEL_SUFFIXES = ('.xlsx', '.xlsm')
TEXT_SUFFIXES = ('.csv', '.tsv', '.txt')
DELIMITERS = '\t;,'

EXISTING_REQUIRED_COLS = {'id', 'name'}


def detect_encoding(path: Path) -> str:
    """Detect file encoding by checking for BOM bytes.

    Args:
        path: Path to the text file.

    Returns:
        Encoding string suitable for open().
    """
    with open(path, 'rb') as f:
        bom = f.read(2)
    if bom == b'\xff\xfe':
        return 'utf-16-le'
    return 'utf-8-sig'


def _read_text(path: Path) -> str:
    with open(path, 'r', encoding=detect_encoding(path)) as f:
        content = f.read()
    # utf-16-le keeps the BOM as a character
    return content.lstrip('\ufeff')


def detect_delimiter(sample: str) -> str:
    """Pick the delimiter of a delimited text file.

    Tries csv.Sniffer first and falls back to the candidate that occurs
    most often in the first line.
    """
    try:
        return csv.Sniffer().sniff(sample, delimiters=DELIMITERS).delimiter
    except csv.Error:
        first_line = sample.splitlines()[0] if sample else ''
        return max(DELIMITERS, key=first_line.count)


def _read_excel(path: Path) -> Workbook:
    wb = load_workbook(path, read_only=True, data_only=True)
    try:
        workbook: Workbook = {}
        for ws in wb.worksheets:
            workbook[ws.title] = [list(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()
    return workbook


def _read_delimited(path: Path) -> Workbook:
    content = _read_text(path)
    delimiter = '\t' if path.suffix.lower() == '.tsv' else detect_delimiter(content[:4096])
    rows = [list(row) for row in csv.reader(io.StringIO(content), delimiter=delimiter)]
    return {path.stem: rows}


def read_workbook(path: str | Path) -> Workbook:
    """Read a roster file into a workbook mapping.

    Excel files yield every sheet in order. Delimited text files yield a
    single sheet named after the file stem; UTF-16LE (with BOM) and UTF-8
    are handled automatically.

    Args:
        path: Path to the roster file.

    Returns:
        Mapping of sheet name -> rows of raw cell values.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file type is not supported.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Datei nicht gefunden: {path}")

    suffix = path.suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        workbook = _read_excel(path)
    elif suffix in TEXT_SUFFIXES:
        workbook = _read_delimited(path)
    else:
        raise ValueError(
            f"Nicht unterstuetztes Dateiformat: {path.suffix or '(ohne Endung)'} "
            f"(erlaubt: {', '.join(EXCEL_SUFFIXES + TEXT_SUFFIXES)})"
        )

    log.info(
        "%s gelesen: %d Blatt/Blaetter, %d Zeilen",
        path.name, len(workbook), sum(len(rows) for rows in workbook.values()),
    )
    return workbook


def read_existing_players(path: str | Path) -> list[ExistingPlayer]:
    """Read the tournament's stored players from a CSV export.

    The columns ``id`` and ``name`` are required; ``dob``, ``rating``,
    ``fide_id``, ``city``, ``state``, ``club``, ``gender``, ``disability``,
    ``special_notes`` and ``federation`` are picked up when present.

    Args:
        path: Path to the CSV file.

    Returns:
        List of ExistingPlayer objects.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If required columns are missing.
    """
    path = Path(path)
    content = _read_text(path)
    delimiter = detect_delimiter(content[:4096])
    reader = csv.DictReader(io.StringIO(content), delimiter=delimiter)

    if reader.fieldnames is None:
        raise ValueError(f"Datei {path} ist leer oder hat keine Header-Zeile.")
    actual_cols = {normalize_whitespace(c).lower() for c in reader.fieldnames}
    missing = EXISTING_REQUIRED_COLS - actual_cols
    if missing:
        raise ValueError(
            f"Fehlende Spalten in {path}: {', '.join(sorted(missing))}"
        )

    players: list[ExistingPlayer] = []
    for row_num, row in enumerate(reader, start=2):
        cleaned = {normalize_whitespace(k).lower(): v for k, v in row.items() if k is not None}
        player_id = clean_text(cleaned.get('id'))
        name = clean_text(cleaned.get('name'))
        if not player_id or not name:
            log.warning("Zeile %d in %s uebersprungen: id oder name fehlt", row_num, path)
            continue
        players.append(ExistingPlayer(
            id=player_id,
            name=name,
            dob=clean_text(cleaned.get('dob')),
            rating=to_int(cleaned.get('rating')),
            fide_id=fide_id_or_none(cleaned.get('fide_id')),
            city=clean_text(cleaned.get('city')),
            state=clean_text(cleaned.get('state')),
            club=clean_text(cleaned.get('club')),
            gender=clean_text(cleaned.get('gender')),
            disability=clean_text(cleaned.get('disability')),
            special_notes=clean_text(cleaned.get('special_notes')),
            federation=clean_text(cleaned.get('federation')),
        ))

    log.info("%d bestehende Spieler gelesen aus %s", len(players), path)
    return players


def read_decisions(path: str | Path) -> dict[int, str]:
    """Read operator overrides from a JSON object of row -> action.

    Raises:
        FileNotFoundError: If the file does not exist.
        InvalidDecisionError: If the file is not an object of row numbers
            to action strings.
    """
    path = Path(path)
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise InvalidDecisionError(f"Entscheidungsdatei {path} ist kein gueltiges JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise InvalidDecisionError(f"Entscheidungsdatei {path} muss ein JSON-Objekt sein.")

    overrides: dict[int, str] = {}
    for key, action in data.items():
        try:
            row = int(key)
        except ValueError as exc:
            raise InvalidDecisionError(f"Ungueltige Zeilennummer in {path}: {key!r}") from exc
        if not isinstance(action, str) or action.strip().lower() not in ACTIONS:
            raise InvalidDecisionError(f"Zeile {row}: unbekannte Aktion {action!r}")
        overrides[row] = action.strip().lower()

    log.info("%d Entscheidungen gelesen aus %s", len(overrides), path)
    return overrides
