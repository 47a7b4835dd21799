"""Duplicate detection inside a single roster file."""

import logging
import re
import unicodedata
from collections.abc import Sequence

from roster_import import IntraFileConflict, ParsedPlayerRow

log = logging.getLogger(__name__)


def norm_name(raw: str | None) -> str:
    """Lower-case, strip accents and keep letters and spaces only.

    Names shorter than three characters are too weak to key on and
    normalize to ``''``.
    """
    if not raw:
        return ''
    decomposed = unicodedata.normalize('NFD', raw.lower())
    stripped = ''.join(ch for ch in decomposed if unicodedata.category(ch) != 'Mn')
    letters = re.sub(r'[^a-z\s]', ' ', stripped)
    normalized = re.sub(r'\s+', ' ', letters).strip()
    return normalized if len(normalized) >= 3 else ''


def _name_dob_key(row: ParsedPlayerRow) -> str:
    name = norm_name(row.name)
    if not name or not row.dob:
        return ''
    return f'{name}::{row.dob}'


def _name_dob_reason(a: ParsedPlayerRow, b: ParsedPlayerRow) -> str | None:
    if a.fide_id and b.fide_id:
        if a.fide_id != b.fide_id:
            return None
        return 'Same name + DOB (same FIDE ID)'
    if a.fide_id or b.fide_id:
        return 'Same name + DOB (one record missing FIDE ID)'
    return 'Same name + DOB'


def find_intra_file_conflicts(rows: Sequence[ParsedPlayerRow]) -> list[IntraFileConflict]:
    """Detect duplicates within one file.

    Keys are checked in order FIDE id, name + DOB, start number; a row
    reported under one key is not checked against the later ones. Rows with
    the same name and DOB but different FIDE ids are different players.

    Args:
        rows: Parsed rows of one import.

    Returns:
        Conflicts in file order.
    """
    conflicts: list[IntraFileConflict] = []
    by_fide: dict[str, ParsedPlayerRow] = {}
    by_name_dob: dict[str, ParsedPlayerRow] = {}
    by_sno: dict[str, ParsedPlayerRow] = {}

    for row in rows:
        if row.fide_id:
            first = by_fide.get(row.fide_id)
            if first:
                conflicts.append(IntraFileConflict(
                    'fide', row.fide_id, 'Same FIDE ID', first.original_index, row.original_index,
                ))
                continue
            by_fide[row.fide_id] = row

        name_dob = _name_dob_key(row)
        if name_dob:
            first = by_name_dob.get(name_dob)
            if first:
                reason = _name_dob_reason(first, row)
                if reason:
                    conflicts.append(IntraFileConflict(
                        'name_dob', name_dob, reason, first.original_index, row.original_index,
                    ))
                    continue
            else:
                by_name_dob[name_dob] = row

        if row.sno is not None and row.sno > 0:
            sno = str(row.sno)
            first = by_sno.get(sno)
            if first:
                conflicts.append(IntraFileConflict(
                    'sno', sno, 'Duplicate serial number', first.original_index, row.original_index,
                ))
                continue
            by_sno[sno] = row

    if conflicts:
        log.warning("%d Duplikate innerhalb der Datei gefunden", len(conflicts))
    return conflicts
