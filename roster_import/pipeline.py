"""End-to-end import: header detection, extraction, dedup and resolution."""

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Optional

from roster_import import ExistingPlayer, ImportSession
from roster_import.conflicts import find_intra_file_conflicts
from roster_import.decisions import resolve_decisions, validate_overrides
from roster_import.extract import ImportPreset, extract_rows
from roster_import.header_detect import DEFAULT_MAX_SCAN_ROWS, detect_header_row
from roster_import.matching import run_dedup_pass
from roster_import.merge import MergePolicy
from roster_import.normalizers import ImportConfig

log = logging.getLogger(__name__)


def prepare_import(
    workbook: Mapping[str, Sequence[Sequence[Any]]],
    existing_players: Sequence[ExistingPlayer],
    mapping: Optional[Mapping[str, str]] = None,
    config: Optional[ImportConfig] = None,
    policy: Optional[MergePolicy] = None,
    preset: Optional[ImportPreset] = None,
    max_rows_to_scan: int = DEFAULT_MAX_SCAN_ROWS,
) -> ImportSession:
    """Run everything up to the operator's review.

    The session holds the default decisions; call finalize() with the
    operator's overrides to get the decisions for persistence.

    Raises:
        HeaderNotFoundError: No header row in the scanned rows.
        ColumnMappingError: Rank or name could not be mapped.
        EmptyRosterError: No data rows under the header.
    """
    detected = detect_header_row(workbook, max_rows_to_scan)
    extraction = extract_rows(workbook, detected, mapping, config, preset)
    dedup = run_dedup_pass(extraction.rows, existing_players, policy)
    return ImportSession(
        detected=detected,
        extraction=extraction,
        dedup=dedup,
        decisions=list(dedup.decisions),
        conflicts=find_intra_file_conflicts(extraction.rows),
    )


def finalize(session: ImportSession, overrides: Optional[Mapping[int, str]] = None) -> ImportSession:
    """Apply operator overrides and store the resolved decisions on the session.

    Raises:
        InvalidDecisionError: An override is not valid for its row.
    """
    overrides = dict(overrides or {})
    validate_overrides(session.dedup.candidates, overrides)
    session.overrides = overrides
    session.decisions = resolve_decisions(session.dedup.candidates, overrides)
    log.info("%d Entscheidungen festgelegt (%d manuell)", len(session.decisions), len(overrides))
    return session
