"""Gender inference as an ordered chain of strategies.

Each strategy looks at one kind of column and either returns a confident
value (``'M'``, ``'F'``, ``'Other'``) or None for "no opinion". The first
confident strategy wins. Female markers in type/group labels (``FMG``,
``F14``, ``Girls``) are applied last and override a male value.
"""

import logging
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from roster_import.header_detect import EMPTY_COLUMN_PREFIX
from roster_import.normalizers import normalize_for_matching, normalize_gender

log = logging.getLogger(__name__)

GENDER_ALIASES = ('gender', 'sex', 'g', 'm/f', 'boy/girl', 'b/g')
FS_ALIAS = 'fs'
NAME_ALIASES = (
    'name', 'player_name', 'full_name', 'full name', 'fullname',
    'name.1', 'name_1', 'name (2)', 'player', 'playername', 'participant',
)
RATING_ALIASES = ('rtg', 'irtg', 'nrtg', 'rating', 'elo', 'std')

# Only these single letters count when probing a headerless column, so a
# column of initials ("K.") is not mistaken for gender.
STRICT_GENDER_LETTERS = frozenset({'f', 'm', 'b', 'g'})
HEADERLESS_SAMPLE_LIMIT = 500

FS_FEMALE_EXACT = frozenset({'F', 'G', 'W', 'GIRL', 'GIRLS'})
FS_FEMALE_TITLE_PREFIXES = ('WFM', 'WIM', 'WGM', 'WCM')
NON_GENDER_TITLES = frozenset({'FM', 'IM', 'GM', 'CM', 'AGM', 'AFM', 'NM', 'AM'})
HEADERLESS_MALE = frozenset({'M', 'B', 'BOY', 'BOYS'})

_FMG_RE = re.compile(r'FMG', re.IGNORECASE)
_F_AGE_RE = re.compile(r'^F\d{1,2}$')
FEMALE_LABEL_TOKENS = frozenset({'GIRL', 'GIRLS'})
_LABEL_SPLIT_RE = re.compile(r'[\s,;|/]+')


_NORMALIZED_GENDER = {normalize_for_matching(a) for a in GENDER_ALIASES}
_NORMALIZED_NAMES = {normalize_for_matching(a) for a in NAME_ALIASES}
_NORMALIZED_RATINGS = {normalize_for_matching(a) for a in RATING_ALIASES}


@dataclass
class GenderColumns:
    """Columns each strategy reads from."""

    gender_column: Optional[str] = None
    fs_column: Optional[str] = None
    headerless_column: Optional[str] = None


@dataclass
class GenderInference:
    """Outcome of the chain for one row."""

    gender: Optional[str] = None
    source: Optional[str] = None
    label_sources: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)


def is_headerless(header: str) -> bool:
    """Return True for an empty label or a positional placeholder."""
    return header.strip() == '' or header.startswith(EMPTY_COLUMN_PREFIX)


def find_headerless_gender_column(
    headers: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
) -> Optional[str]:
    """Find a headerless gender column between the name and rating columns.

    Swiss-Manager rankings look like ``Rank | SNo | Name | Name | <blank> |
    Rtg``, where the blank-headed column holds ``F`` or nothing. The
    search region starts after the last name column and ends at the first
    rating column (or the end of the row). Each headerless column in that
    region is scored by how many of its values are a strict single gender
    letter; the highest non-zero count wins.

    Args:
        headers: Finalized header labels.
        rows: Data rows keyed by header label.

    Returns:
        The header label of the column, or None.
    """
    if not headers or not rows:
        return None

    normalized = [normalize_for_matching(h) for h in headers]

    last_name_idx = -1
    for idx, key in enumerate(normalized):
        if key in _NORMALIZED_NAMES:
            last_name_idx = idx
    if last_name_idx == -1:
        return None

    first_rating_idx = next(
        (idx for idx, key in enumerate(normalized) if key in _NORMALIZED_RATINGS), -1,
    )
    end = first_rating_idx if first_rating_idx > last_name_idx else len(headers)

    candidates = [h for h in headers[last_name_idx + 1:end] if is_headerless(h)]
    if not candidates:
        return None

    matches = dict.fromkeys(candidates, 0)
    for row in rows[:HEADERLESS_SAMPLE_LIMIT]:
        for column in candidates:
            value = row.get(column)
            if value is None:
                continue
            text = str(value).strip().lower()
            if len(text) == 1 and text in STRICT_GENDER_LETTERS:
                matches[column] += 1

    best_column, best_count = None, 0
    for column, count in matches.items():
        if count > best_count:
            best_column, best_count = column, count
    if best_column:
        log.info("Geschlechtsspalte ohne Header erkannt: %s (%d Treffer)", best_column, best_count)
    return best_column


def analyze_gender_columns(
    headers: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    explicit_column: Optional[str] = None,
) -> GenderColumns:
    """Work out which columns the strategies should read.

    An explicit user mapping replaces all column detection.
    """
    if explicit_column:
        return GenderColumns(gender_column=explicit_column)

    columns = GenderColumns()
    for header in headers:
        key = normalize_for_matching(header)
        if key == FS_ALIAS:
            if columns.fs_column is None:
                columns.fs_column = header
        elif key in _NORMALIZED_GENDER and columns.gender_column is None:
            columns.gender_column = header

    columns.headerless_column = find_headerless_gender_column(headers, rows)
    return columns


def _fs_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    upper = str(value).strip().upper()
    if not upper:
        return None
    if upper in FS_FEMALE_EXACT:
        return 'F'
    # FM/IM/GM and friends are titles, not gender
    if upper.split(' ')[0] in NON_GENDER_TITLES:
        return None
    if upper.startswith(FS_FEMALE_TITLE_PREFIXES):
        return 'F'
    return None


def explicit_column_strategy(row: Mapping[str, Any], columns: GenderColumns) -> Optional[str]:
    if not columns.gender_column:
        return None
    return normalize_gender(row.get(columns.gender_column))


def fs_column_strategy(row: Mapping[str, Any], columns: GenderColumns) -> Optional[str]:
    if not columns.fs_column:
        return None
    return _fs_value(row.get(columns.fs_column))


def headerless_column_strategy(row: Mapping[str, Any], columns: GenderColumns) -> Optional[str]:
    if not columns.headerless_column:
        return None
    value = row.get(columns.headerless_column)
    female = _fs_value(value)
    if female:
        return female
    if value is not None and str(value).strip().upper() in HEADERLESS_MALE:
        return 'M'
    return None


GenderStrategy = Callable[[Mapping[str, Any], GenderColumns], Optional[str]]

STRATEGIES: tuple[tuple[str, GenderStrategy], ...] = (
    ('gender_column', explicit_column_strategy),
    ('fs_column', fs_column_strategy),
    ('headerless_after_name', headerless_column_strategy),
)


def has_female_marker(label: Optional[str]) -> bool:
    """True if a type/group label marks a female category."""
    for token in _LABEL_SPLIT_RE.split(str(label or '').strip()):
        upper = token.upper()
        if not upper:
            continue
        if _FMG_RE.search(upper) or _F_AGE_RE.match(upper) or upper in FEMALE_LABEL_TOKENS:
            return True
    return False


def infer_gender_for_row(
    row: Mapping[str, Any],
    columns: GenderColumns,
    type_label: Optional[str] = None,
    group_label: Optional[str] = None,
) -> GenderInference:
    """Run the strategy chain for one row.

    Args:
        row: Data row keyed by header label.
        columns: Output of analyze_gender_columns.
        type_label: Value of the Type column, if any.
        group_label: Value of the Gr column, if any.

    Returns:
        GenderInference with the value, winning source and issue codes.
    """
    result = GenderInference()

    for source, strategy in STRATEGIES:
        value = strategy(row, columns)
        if value:
            result.gender = value
            result.source = source
            break

    if has_female_marker(type_label):
        result.label_sources.append('type_label')
    if has_female_marker(group_label):
        result.label_sources.append('group_label')

    if result.label_sources:
        if result.gender == 'M':
            result.issues.append('GENDER_OVERRIDDEN_BY_LABEL')
        if result.gender != 'F':
            result.gender = 'F'
            result.source = result.label_sources[0]

    return result
