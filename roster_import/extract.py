"""Row extraction: map raw sheet rows to typed player records."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from roster_import import (
    ColumnMappingError,
    DetectedHeader,
    EmptyRosterError,
    ExtractionResult,
    ParsedPlayerRow,
)
from roster_import.gender import analyze_gender_columns, infer_gender_for_row, is_headerless
from roster_import.normalizers import (
    ImportConfig,
    clean_text,
    extract_state_from_ident,
    fide_id_or_none,
    fill_single_gap_ranks,
    infer_unrated,
    is_blank,
    merge_title_and_name,
    normalize_dob,
    normalize_for_matching,
    normalize_gr_column,
    normalize_rating,
    to_int,
)

log = logging.getLogger(__name__)

REQUIRED_FIELDS = ('rank', 'name')

# Field order decides which field claims a header first.
# Rank and start number stay separate: Swiss-Manager exports have both.
HEADER_ALIASES: dict[str, list[str]] = {
    'rank': ['rank', 'rk', 'final_rank', 'position', 'pos'],
    'sno': ['sno', 's_no', 'sno.', 'start_no', 'startno', 'seed', 'seeding', 'sr_no', 'srno'],
    # Rtg is preferred over IRtg/NRtg when both are present
    'rating': ['rtg', 'irtg', 'nrtg', 'rating', 'elo', 'fide_rating', 'std', 'standard'],
    'name': ['name', 'player_name', 'player', 'playername', 'participant'],
    'full_name': ['full_name', 'full name', 'fullname', 'name.1', 'name_1', 'name1', 'name (2)', 'name (full)'],
    'dob': ['birth', 'dob', 'date_of_birth', 'birth_date', 'birthdate', 'd.o.b', 'd_o_b'],
    'gender': ['gender', 'sex', 'g', 'm/f', 'boy/girl', 'b/g'],
    'state': ['state', 'province', 'region', 'st', 'association'],
    'city': ['city', 'town', 'location', 'place'],
    'club': ['club', 'chess_club', 'organization', 'academy', 'team'],
    'fide_id': ['fide-no.', 'fide_no', 'fide-no', 'fideno', 'fide_id', 'fideid', 'fide', 'id'],
    'ident': ['ident', 'player-id', 'player_id', 'pid', 'id_no'],
    'federation': ['federation', 'country', 'nat', 'nationality', 'fide_fed'],
    'fed_code': ['fed', 'fed.', 'fid'],
    'gr': ['gr'],
    'type': ['type'],
    'title': ['title', '[title]'],
    'disability': ['disability', 'disability_type', 'pwd', 'ph', 'physically_handicapped', 'special_category'],
    'special_notes': ['special_notes', 'notes', 'remarks', 'special_needs', 'accommodations', 'comments'],
    'unrated': ['unrated', 'urated', 'u_r', 'u-rated', 'u/r', 'not_rated'],
}


@dataclass
class ImportPreset:
    """Column alias overrides for a known export format."""

    id: str
    name: str
    header_row_hint: Optional[int] = None   # shown in diagnostics only
    field_aliases: dict[str, list[str]] = field(default_factory=dict)


SWISS_MANAGER = ImportPreset(
    id='swiss-manager',
    name='Swiss-Manager Interim Ranking',
    header_row_hint=18,
    field_aliases={
        'rank': ['rank', 'rk', 'position', 'pos'],
        'sno': ['sno', 's_no', 'sno.', 'start_no', 'seed', 'sr_no'],
        'name': ['name', 'player_name', 'player'],
        'rating': ['rtg', 'rating', 'std', 'elo', 'irtg', 'nrtg'],
        'fide_id': ['fide-no.', 'fide_no', 'fideno', 'fide_id'],
        'dob': ['birth', 'dob', 'date_of_birth'],
        'gender': ['gender', 'sex'],
    },
)

PRESETS = {SWISS_MANAGER.id: SWISS_MANAGER}


def _alias_table(preset: Optional[ImportPreset]) -> dict[str, list[str]]:
    aliases = dict(HEADER_ALIASES)
    if preset:
        aliases.update(preset.field_aliases)
    return {f: [normalize_for_matching(a) for a in variants] for f, variants in aliases.items()}


def auto_map_columns(
    headers: Sequence[str],
    preset: Optional[ImportPreset] = None,
) -> dict[str, str]:
    """Map canonical fields to header labels.

    For each field (in alias-table order) the unclaimed header matching the
    highest-priority alias wins; ties go to the leftmost header.

    Args:
        headers: Finalized header labels.
        preset: Optional alias overrides.

    Returns:
        Field name -> header label.
    """
    normalized = [
        None if is_headerless(h) else normalize_for_matching(h) for h in headers
    ]
    claimed: set[int] = set()
    mapping: dict[str, str] = {}

    for field_name, aliases in _alias_table(preset).items():
        best_idx, best_rank = None, len(aliases)
        for idx, key in enumerate(normalized):
            if key is None or idx in claimed or key not in aliases:
                continue
            rank = aliases.index(key)
            if rank < best_rank:
                best_idx, best_rank = idx, rank
        if best_idx is not None:
            mapping[field_name] = headers[best_idx]
            claimed.add(best_idx)

    return mapping


def resolve_mapping(
    headers: Sequence[str],
    explicit: Optional[Mapping[str, str]] = None,
    preset: Optional[ImportPreset] = None,
) -> dict[str, str]:
    """Combine auto-mapping with explicit user remapping.

    Raises:
        ColumnMappingError: If an explicit header does not exist or a
            required field stays unmapped.
    """
    mapping = auto_map_columns(headers, preset)

    for field_name, header in (explicit or {}).items():
        if header not in headers:
            raise ColumnMappingError(
                f"Spalte '{header}' fuer Feld '{field_name}' nicht in der Header-Zeile."
            )
        for other in [f for f, h in mapping.items() if h == header]:
            del mapping[other]
        mapping[field_name] = header

    missing = [f for f in REQUIRED_FIELDS if f not in mapping]
    if missing:
        raise ColumnMappingError(
            f"Pflichtspalten nicht zugeordnet: {', '.join(missing)}. "
            "Bitte Spalten manuell zuordnen."
        )
    return mapping


def _keyed_rows(
    rows: Sequence[Sequence[Any]],
    headers: Sequence[str],
    start: int,
) -> list[tuple[int, dict[str, Any]]]:
    """Key data rows by header label, skipping fully blank rows."""
    keyed: list[tuple[int, dict[str, Any]]] = []
    for offset, raw in enumerate(rows[start:]):
        cells = list(raw or [])
        if all(is_blank(c) for c in cells):
            continue
        record = {h: (cells[i] if i < len(cells) else None) for i, h in enumerate(headers)}
        keyed.append((start + offset + 1, record))
    return keyed


def _is_footer_row(rank: Optional[int], name: Optional[str]) -> bool:
    return rank is None and not name


def extract_rows(
    workbook: Mapping[str, Sequence[Sequence[Any]]],
    detected: DetectedHeader,
    mapping: Optional[Mapping[str, str]] = None,
    config: Optional[ImportConfig] = None,
    preset: Optional[ImportPreset] = None,
) -> ExtractionResult:
    """Turn the rows under the detected header into ParsedPlayerRow records.

    Args:
        workbook: Sheet name -> rows of raw cells.
        detected: Result of detect_header_row.
        mapping: Explicit field -> header overrides (including gender).
        config: Value normalization options.
        preset: Optional alias overrides for a known export format.

    Returns:
        ExtractionResult with typed rows, the final mapping and skipped
        footer rows.

    Raises:
        EmptyRosterError: If there are no data rows under the header.
        ColumnMappingError: If rank or name cannot be mapped.
    """
    config = config or ImportConfig()
    headers = detected.headers
    sheet_rows = workbook[detected.sheet_name]

    keyed = _keyed_rows(sheet_rows, headers, detected.header_row_index + 1)
    if not keyed:
        raise EmptyRosterError(
            'Keine Datenzeilen unter der Header-Zeile gefunden. '
            'Die Spielerdaten muessen direkt auf die Header-Zeile folgen.'
        )

    final_mapping = resolve_mapping(headers, mapping, preset)
    explicit_gender = (mapping or {}).get('gender')
    gender_columns = analyze_gender_columns(
        headers, [record for _, record in keyed], explicit_column=explicit_gender,
    )

    def cell(record: Mapping[str, Any], field_name: str) -> Any:
        header = final_mapping.get(field_name)
        return record.get(header) if header else None

    rows: list[ParsedPlayerRow] = []
    skipped: list[int] = []
    gender_sources: set[str] = set()

    for source_row, record in keyed:
        rank = to_int(cell(record, 'rank'))
        name = clean_text(cell(record, 'name'))
        if _is_footer_row(rank, name):
            skipped.append(source_row)
            continue

        issues: list[str] = []

        if 'title' in final_mapping:
            name = merge_title_and_name(cell(record, 'title'), name) or None

        rating = normalize_rating(cell(record, 'rating'), config.strip_commas_from_rating)

        dob_result = normalize_dob(cell(record, 'dob'))
        if dob_result.inferred:
            issues.append('DOB_INFERRED')

        fide_id = fide_id_or_none(cell(record, 'fide_id'))

        state = clean_text(cell(record, 'state'))
        if state is None and 'ident' in final_mapping:
            extraction = extract_state_from_ident(cell(record, 'ident'))
            state = extraction.code
            issues.extend(extraction.issues)

        disability = clean_text(cell(record, 'disability'))
        gr_disability, group_label = normalize_gr_column(cell(record, 'gr'))
        if gr_disability:
            disability = gr_disability
        type_label = clean_text(cell(record, 'type'))

        gender = infer_gender_for_row(record, gender_columns, type_label, group_label)
        issues.extend(gender.issues)
        if gender.source:
            gender_sources.add(gender.source)

        raw_unrated = cell(record, 'unrated') if 'unrated' in final_mapping else None

        rows.append(ParsedPlayerRow(
            original_index=len(rows) + len(skipped) + 1,
            source_row=source_row,
            rank=rank,
            sno=to_int(cell(record, 'sno')),
            name=name or '',
            full_name=clean_text(cell(record, 'full_name')),
            rating=rating,
            dob=dob_result.dob,
            dob_raw=dob_result.dob_raw,
            gender=gender.gender,
            state=state,
            city=clean_text(cell(record, 'city')),
            club=clean_text(cell(record, 'club')),
            fide_id=fide_id,
            federation=clean_text(cell(record, 'federation')) or clean_text(cell(record, 'fed_code')),
            disability=disability,
            special_notes=clean_text(cell(record, 'special_notes')),
            group_label=group_label,
            type_label=type_label,
            unrated=infer_unrated(rating, fide_id, raw_unrated, config),
            issues=issues,
        ))

    for idx in fill_single_gap_ranks([r.rank for r in rows]):
        prev = rows[idx - 1]
        rows[idx] = replace(
            rows[idx], rank=prev.rank + 1, issues=rows[idx].issues + ['RANK_AUTOFILLED'],
        )

    if skipped:
        log.info("%d Fusszeilen ohne Rang und Name uebersprungen", len(skipped))
    log.info(
        "%d Spieler aus Blatt '%s' extrahiert (%d Spalten zugeordnet)",
        len(rows), detected.sheet_name, len(final_mapping),
    )

    return ExtractionResult(
        rows=rows,
        mapping=final_mapping,
        skipped_rows=skipped,
        gender_source=_summarize_gender_source(gender_sources),
    )


def _summarize_gender_source(sources: set[str]) -> Optional[str]:
    for source in ('gender_column', 'fs_column', 'headerless_after_name', 'type_label', 'group_label'):
        if source in sources:
            return source
    return None
