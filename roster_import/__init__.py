"""Core module for roster-import."""

from dataclasses import dataclass, field
from typing import Any, Optional

ACTIONS = ('create', 'update', 'skip')


class RosterImportError(ValueError):
    """Base class for all errors raised by the import pipeline."""


class HeaderNotFoundError(RosterImportError):
    """No row in the workbook looks like a header row."""


class ColumnMappingError(RosterImportError):
    """Required columns could not be mapped to header labels."""


class EmptyRosterError(RosterImportError):
    """The detected header row has no data rows beneath it."""


class InvalidDecisionError(RosterImportError):
    """An operator override violates the resolver's input contract."""


@dataclass(frozen=True)
class HeaderCandidate:
    """A row that scored above the header threshold."""

    sheet_name: str
    row_index: int        # 0-based within the sheet
    score: int
    headers: list[str]


@dataclass(frozen=True)
class DetectedHeader:
    """The winning header candidate plus diagnostics."""

    sheet_name: str
    header_row_index: int
    headers: list[str]
    confidence: int
    candidate_rows: list[HeaderCandidate] = field(default_factory=list)


@dataclass(frozen=True)
class ParsedPlayerRow:
    """Canonical player record produced by the row extractor."""

    original_index: int   # 1-based position among data rows
    name: str
    rank: Optional[int] = None
    sno: Optional[int] = None
    full_name: Optional[str] = None
    rating: Optional[int] = None
    dob: Optional[str] = None       # YYYY-MM-DD
    dob_raw: Optional[str] = None
    gender: Optional[str] = None    # M, F, Other
    state: Optional[str] = None
    city: Optional[str] = None
    club: Optional[str] = None
    fide_id: Optional[str] = None
    federation: Optional[str] = None
    disability: Optional[str] = None
    special_notes: Optional[str] = None
    group_label: Optional[str] = None
    type_label: Optional[str] = None
    unrated: bool = False
    source_row: Optional[int] = None  # 1-based row number in the sheet
    issues: list[str] = field(default_factory=list)


@dataclass
class ExistingPlayer:
    """A player already stored for the tournament."""

    id: str
    name: str
    dob: Optional[str] = None
    rating: Optional[int] = None
    fide_id: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    club: Optional[str] = None
    gender: Optional[str] = None
    disability: Optional[str] = None
    special_notes: Optional[str] = None
    federation: Optional[str] = None


@dataclass
class MergeResult:
    """Field-level diff between an incoming row and an existing player."""

    changes: dict[str, Any] = field(default_factory=dict)
    changed_fields: list[str] = field(default_factory=list)


@dataclass
class DedupMatch:
    """An existing player scored against one incoming row."""

    existing: ExistingPlayer
    score: float          # 0.0 – 1.0
    reason: str
    merge: MergeResult
    issues: list[str] = field(default_factory=list)


@dataclass
class DedupCandidate:
    """An incoming row with its scored matches and default action."""

    row: int
    incoming: ParsedPlayerRow
    matches: list[DedupMatch] = field(default_factory=list)
    best_match: Optional[DedupMatch] = None
    default_action: str = 'create'


@dataclass(frozen=True)
class DedupDecision:
    """Finalized create/update/skip instruction for one row."""

    row: int
    action: str
    existing_id: Optional[str] = None
    payload: Optional[dict[str, Any]] = None

    def as_dict(self) -> dict[str, Any]:
        """Return the record handed to the persistence layer."""
        out: dict[str, Any] = {'row': self.row, 'action': self.action}
        if self.existing_id is not None:
            out['existing_id'] = self.existing_id
        if self.payload is not None:
            out['payload'] = dict(self.payload)
        return out


@dataclass
class DedupSummary:
    """Counts of default actions after a dedup pass."""

    total_candidates: int
    matched_candidates: int
    default_creates: int
    default_updates: int
    default_skips: int
    score_threshold: float


@dataclass
class DedupPassResult:
    """Everything a dedup pass produces."""

    candidates: list[DedupCandidate]
    decisions: list[DedupDecision]
    summary: DedupSummary


@dataclass
class GroupedCandidates:
    """Matched candidates bucketed by confidence tier."""

    high: list[DedupCandidate] = field(default_factory=list)
    medium: list[DedupCandidate] = field(default_factory=list)
    low: list[DedupCandidate] = field(default_factory=list)


@dataclass
class IntraFileConflict:
    """Two rows of the same file that look like the same player."""

    key_kind: str        # fide, name_dob, sno
    key: str
    reason: str
    first_row: int       # original_index of the earlier row
    second_row: int


@dataclass
class ExtractionResult:
    """Typed rows plus the column mapping used to build them."""

    rows: list[ParsedPlayerRow]
    mapping: dict[str, str]
    skipped_rows: list[int] = field(default_factory=list)  # footer rows, by sheet row number
    gender_source: Optional[str] = None


@dataclass
class ImportSession:
    """State of one import attempt, from header detection to decisions."""

    detected: DetectedHeader
    extraction: ExtractionResult
    dedup: DedupPassResult
    decisions: list[DedupDecision] = field(default_factory=list)
    overrides: dict[int, str] = field(default_factory=dict)
    conflicts: list[IntraFileConflict] = field(default_factory=list)
