"""Multi-sheet header row detection for roster workbooks.

Pairing-tool exports put a title block, tournament details and sometimes
whole extra sheets above the player table. Every row within the scan depth
of every sheet is scored against a small vocabulary of header labels and
the best-scoring row wins.
"""

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from roster_import import DetectedHeader, HeaderCandidate, HeaderNotFoundError

log = logging.getLogger(__name__)

DEFAULT_MAX_SCAN_ROWS = 25
HEADER_SCORE_THRESHOLD = 15

CORE_FIELDS = ('rank', 'name', 'sno', 'rtg', 'irtg', 'rating', 'birth', 'dob')
SECONDARY_FIELDS = ('fide', 'gender', 'fed', 'club', 'state', 'city')

CORE_WEIGHT = 10
SECONDARY_WEIGHT = 3
EXACT_BONUS = 5
YEAR_PENALTY = 20
LARGE_NUMBER_PENALTY = 10
SPARSE_PENALTY = 15

_YEAR_RE = re.compile(r'^\d{4}$')
# Same prefix rule as a spreadsheet's "parse leading number"
_LEADING_NUMBER_RE = re.compile(r'^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)')
_NON_ALNUM_RE = re.compile(r'[^a-z0-9_]', re.IGNORECASE)
_WHITESPACE_RE = re.compile(r'\s+')

EMPTY_COLUMN_PREFIX = '__EMPTY_COL_'


def _cell_text(cell: Any) -> str:
    if cell is None:
        return ''
    if isinstance(cell, float) and cell.is_integer():
        return str(int(cell))
    return str(cell)


def normalize_cell(cell: Any) -> str:
    """Normalize a cell for vocabulary matching.

    Trims, collapses whitespace (NBSP included) to ``_``, drops everything
    that is not alphanumeric or ``_`` and lower-cases.
    """
    text = _WHITESPACE_RE.sub('_', _cell_text(cell).strip())
    return _NON_ALNUM_RE.sub('', text).lower()


def _leading_number(cell: Any) -> float | None:
    if isinstance(cell, bool):
        return None
    if isinstance(cell, (int, float)):
        return float(cell)
    match = _LEADING_NUMBER_RE.match(_cell_text(cell))
    return float(match.group(1)) if match else None


def score_header_row(row: Sequence[Any]) -> int:
    """Score a row for how likely it is to be the header row.

    Args:
        row: Raw cell values.

    Returns:
        Integer score; higher means more header-like.
    """
    normalized = [normalize_cell(cell) for cell in row]

    score = 0

    core_hits = [f for f in CORE_FIELDS if any(f in cell for cell in normalized)]
    score += len(core_hits) * CORE_WEIGHT

    secondary_hits = [f for f in SECONDARY_FIELDS if any(f in cell for cell in normalized)]
    score += len(secondary_hits) * SECONDARY_WEIGHT

    # Data rows carry birth years and ratings; header rows do not
    if any(_YEAR_RE.match(cell) for cell in normalized):
        score -= YEAR_PENALTY

    numbers = [_leading_number(cell) for cell in row]
    if any(num is not None and num > 100 for num in numbers):
        score -= LARGE_NUMBER_PENALTY

    non_empty = sum(1 for cell in row if _cell_text(cell).strip() != '')
    if non_empty < 3:
        score -= SPARSE_PENALTY

    if 'rank' in normalized:
        score += EXACT_BONUS
    if 'sno' in normalized or 'startno' in normalized:
        score += EXACT_BONUS
    if 'rtg' in normalized:
        score += EXACT_BONUS

    return score


def with_unique_headers(row: Sequence[Any]) -> list[str]:
    """Make header labels unique.

    The first occurrence of a label keeps it; later ones get `` (2)``,
    `` (3)`` and so on. Empty cells get a positional placeholder. Without
    this, a second ``Name`` column silently overwrites the first when rows
    are keyed by header.

    Args:
        row: Raw header cells.

    Returns:
        Finalized labels, one per cell.
    """
    seen: dict[str, int] = {}
    emitted: set[str] = set()
    headers: list[str] = []
    for idx, cell in enumerate(row):
        base = _cell_text(cell).strip() or f'{EMPTY_COLUMN_PREFIX}{idx}'
        count = seen.get(base, 0) + 1
        label = base if count == 1 else f'{base} ({count})'
        # a literal "Name (2)" or placeholder-like label may already hold the slot
        while label in emitted:
            count += 1
            label = f'{base} ({count})'
        seen[base] = count
        emitted.add(label)
        headers.append(label)
    return headers


def detect_header_row(
    sheets: Mapping[str, Sequence[Sequence[Any]]],
    max_rows_to_scan: int = DEFAULT_MAX_SCAN_ROWS,
) -> DetectedHeader:
    """Detect the header row across all sheets of a workbook.

    Candidates are ranked by score; ties go to the earlier sheet, then the
    lower row index.

    Args:
        sheets: Sheet name -> rows of raw cells, in workbook order.
        max_rows_to_scan: Rows to inspect at the top of each sheet.

    Returns:
        DetectedHeader for the best candidate, with the top 3 candidates.

    Raises:
        HeaderNotFoundError: If no row scores above the threshold.
    """
    ranked: list[tuple[int, int, int, HeaderCandidate]] = []

    for sheet_idx, (sheet_name, rows) in enumerate(sheets.items()):
        if not rows:
            continue
        for row_idx, row in enumerate(rows[:max_rows_to_scan]):
            if not row or len(row) < 3:
                continue
            score = score_header_row(row)
            if score <= HEADER_SCORE_THRESHOLD:
                continue
            candidate = HeaderCandidate(
                sheet_name=sheet_name,
                row_index=row_idx,
                score=score,
                headers=with_unique_headers(row),
            )
            ranked.append((-score, sheet_idx, row_idx, candidate))

    if not ranked:
        raise HeaderNotFoundError(
            'Keine Header-Zeile gefunden. Bitte pruefen, ob die Datei Spalten '
            'fuer Rang (Rank) und Name enthaelt.'
        )

    ranked.sort(key=lambda item: item[:3])
    candidates = [item[3] for item in ranked]
    best = candidates[0]

    log.info(
        "Header erkannt: Blatt '%s', Zeile %d, Score %d (%d Blaetter, %d Kandidaten)",
        best.sheet_name, best.row_index + 1, best.score, len(sheets), len(candidates),
    )
    log.debug("Header-Spalten: %s", best.headers[:10])

    return DetectedHeader(
        sheet_name=best.sheet_name,
        header_row_index=best.row_index,
        headers=best.headers,
        confidence=best.score,
        candidate_rows=candidates[:3],
    )
