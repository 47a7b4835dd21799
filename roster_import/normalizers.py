"""Pure converters from raw spreadsheet cells to canonical player values."""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Optional

log = logging.getLogger(__name__)

# Matches any sequence of whitespace (including Unicode whitespace like NBSP)
_WHITESPACE_RE = re.compile(r'\s+')
_RATING_STRIP_RE = re.compile(r'[,\s]')
_LEADING_CODE_RE = re.compile(r'^([A-Z]{2})(?=\d)')
_TWO_UPPER_RE = re.compile(r'^[A-Z]{2}$')

# Two-letter codes that are also national federations; a leading code from
# this set is ambiguous between "state" and "federation".
FEDERATION_CODES = frozenset({'IN', 'US', 'GB', 'CN', 'RU', 'FR', 'DE', 'ES', 'IT', 'BR'})

UNRATED_TRUE = frozenset({'y', 'yes', 'true', '1', 'u', 'ur', 'unrated'})
UNRATED_FALSE = frozenset({'n', 'no', 'false', '0', 'r', 'rated'})
UNRATED_EMPTY = frozenset({'', '-', 'na', 'n/a', 'n.a.'})

MALE_TOKENS = frozenset({'M', 'MALE', 'BOY', 'BOYS'})
FEMALE_TOKENS = frozenset({'F', 'FEMALE', 'GIRL', 'GIRLS'})
OTHER_TOKENS = frozenset({'OTHER', 'X'})

# Excel's day zero (accounts for the 1900 leap-year bug)
_EXCEL_EPOCH = date(1899, 12, 30)


@dataclass
class ImportConfig:
    """Options for the row extractor's value normalization."""

    treat_empty_as_unrated: bool = True
    infer_from_missing_rating: bool = True
    strip_commas_from_rating: bool = True


@dataclass
class StateExtraction:
    """State code pulled from an identifier, with any ambiguity flags."""

    code: Optional[str]
    issues: list[str] = field(default_factory=list)


@dataclass
class DobResult:
    """Normalized date of birth."""

    dob: Optional[str]
    dob_raw: Optional[str]
    inferred: bool = False
    reason: Optional[str] = None


def normalize_whitespace(value: str) -> str:
    """Collapse any run of whitespace into one space and strip the ends."""
    return _WHITESPACE_RE.sub(' ', value).strip()


def normalize_for_matching(header: str) -> str:
    """Lower-case a header label, drop punctuation and join words with ``_``."""
    text = re.sub(r'[^\w\s]', '', str(header).lower().strip())
    return _WHITESPACE_RE.sub('_', text)


def is_blank(value: Any) -> bool:
    """True for None, empty strings and NaN cells."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ''


def clean_text(value: Any) -> Optional[str]:
    """Whitespace-normalized string, or None for blank cells."""
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return normalize_whitespace(str(value)) or None


def _round_half_up(num: float) -> int:
    return int(math.floor(num + 0.5))


def to_int(raw: Any) -> Optional[int]:
    """Parse a rank or start number; anything non-numeric becomes None."""
    if is_blank(raw) or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return _round_half_up(raw) if math.isfinite(raw) else None
    text = str(raw).strip().rstrip('.')
    try:
        num = float(text)
    except ValueError:
        return None
    return _round_half_up(num) if math.isfinite(num) else None


def normalize_rating(raw: Any, strip_commas: bool = True) -> Optional[int]:
    """Normalize a rating cell.

    Thousands separators and inner whitespace are stripped when
    ``strip_commas`` is set. Zero, negative and unparseable values all
    normalize to None: zero is not a valid rating.

    Args:
        raw: Raw cell value (number or text).
        strip_commas: Remove ``,`` and whitespace before parsing.

    Returns:
        Rounded positive rating, or None.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        num = float(raw)
    else:
        text = str(raw).strip()
        if strip_commas:
            text = _RATING_STRIP_RE.sub('', text)
        if text == '' or text == '0':
            return None
        try:
            num = float(text)
        except ValueError:
            return None
    if not math.isfinite(num) or num <= 0:
        return None
    return _round_half_up(num)


def normalize_gender(raw: Any) -> Optional[str]:
    """Map explicit gender tokens to M, F or Other; None for anything else."""
    if is_blank(raw):
        return None
    token = str(raw).strip().upper()
    if token in MALE_TOKENS:
        return 'M'
    if token in FEMALE_TOKENS:
        return 'F'
    if token in OTHER_TOKENS:
        return 'Other'
    return None


def _explicit_unrated(raw: Any, config: ImportConfig) -> Optional[bool]:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return raw
    token = str(raw).strip().lower()
    if token in UNRATED_TRUE:
        return True
    if token in UNRATED_FALSE:
        return False
    if config.treat_empty_as_unrated and token in UNRATED_EMPTY:
        return True
    return None


def infer_unrated(
    rating: Optional[int],
    fide_id: Optional[str],
    unrated: Any,
    config: ImportConfig,
) -> bool:
    """Decide whether a player is unrated.

    A positive rating always wins. Otherwise a recognized explicit
    ``unrated`` value takes precedence over inference; without one, a
    missing rating means unrated when either option allows it
    (``treat_empty_as_unrated`` only when no FIDE id is present).

    Args:
        rating: Normalized rating (None when absent).
        fide_id: Normalized FIDE id (None when absent).
        unrated: Raw value of the unrated column, None if unmapped.
        config: Inference options.

    Returns:
        True if the player should be treated as unrated.
    """
    if rating is not None and rating > 0:
        return False

    explicit = _explicit_unrated(unrated, config)
    if explicit is not None:
        return explicit

    has_fide_id = bool(fide_id and fide_id.strip())
    if config.treat_empty_as_unrated and not has_fide_id:
        return True
    return config.infer_from_missing_rating


def extract_state_from_ident(ident: Any) -> StateExtraction:
    """Extract a two-letter state code from an identifier string.

    Handles slash-delimited identifiers (``IND/KA/1234`` -> ``KA``) and
    leading-code identifiers (``MH123456`` -> ``MH``). A leading code that
    is also a national federation code is still returned but flagged with
    ``FEDERATION_AS_STATE`` for manual confirmation.

    Args:
        ident: Raw identifier cell.

    Returns:
        StateExtraction with the code (or None) and issue codes.
    """
    text = '' if ident is None else str(ident).strip()
    if not text:
        return StateExtraction(code=None)

    upper = text.upper()

    parts = upper.split('/')
    if len(parts) >= 2:
        candidate = parts[1].strip()
        if _TWO_UPPER_RE.match(candidate):
            return StateExtraction(code=candidate)

    leading = _LEADING_CODE_RE.match(upper)
    if leading:
        code = leading.group(1)
        if code in FEDERATION_CODES:
            log.warning(
                "Ident '%s' sieht nach Foederation (%s) aus, nicht nach Bundesstaat. Bitte pruefen.",
                text, code,
            )
            return StateExtraction(code=code, issues=['FEDERATION_AS_STATE'])
        return StateExtraction(code=code)

    return StateExtraction(code=None)


def digits_only(raw: Any) -> Optional[str]:
    """Keep only the digits of a cell (``'12345678.'`` -> ``'12345678'``)."""
    if raw is None:
        return None
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    digits = re.sub(r'\D+', '', str(raw))
    return digits or None


def fide_id_or_none(raw: Any) -> Optional[str]:
    """Digits-only FIDE id when it has 6–10 digits, else None."""
    digits = digits_only(raw)
    if digits and 6 <= len(digits) <= 10:
        return digits
    return None


def merge_title_and_name(title: Any, name: Any) -> str:
    """Prefix a title to a name (``'IM'`` + ``'A. Player'`` -> ``'IM A. Player'``)."""
    t = clean_text(title) or ''
    n = clean_text(name) or ''
    if t and n:
        return f'{t} {n}'
    return n or t


def normalize_gr_column(raw: Any) -> tuple[Optional[str], Optional[str]]:
    """Split a Swiss-Manager ``Gr`` cell into (disability, group_label).

    The trimmed raw value is always kept as the group label; any label
    containing ``PC`` marks the player as physically challenged.
    """
    label = clean_text(raw)
    if label is None:
        return None, None
    if 'PC' in label.upper():
        return 'PC', label
    return None, label


def _iso(d: date) -> str:
    return d.strftime('%Y-%m-%d')


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def normalize_dob(raw: Any) -> DobResult:
    """Normalize a date-of-birth cell to ``YYYY-MM-DD``.

    Accepts date objects, Excel serial numbers, ISO dates, ``DD/MM/YYYY``
    and ``DD.MM.YYYY``. Year-only and year-month values are completed to
    the first day and flagged as inferred. Unparseable input keeps its raw
    text with ``dob=None``.
    """
    if is_blank(raw):
        return DobResult(dob=None, dob_raw=None)

    if isinstance(raw, datetime):
        iso = _iso(raw.date())
        return DobResult(dob=iso, dob_raw=iso)
    if isinstance(raw, date):
        iso = _iso(raw)
        return DobResult(dob=iso, dob_raw=iso)

    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        if float(raw).is_integer() and 1900 <= raw <= 2100:
            return _year_only(int(raw), str(int(raw)))
        if 0 < raw < 2958466:
            d = _EXCEL_EPOCH + timedelta(days=int(raw))
            iso = _iso(d)
            return DobResult(dob=iso, dob_raw=iso)
        return DobResult(dob=None, dob_raw=str(raw))

    text = normalize_whitespace(str(raw))

    m = re.match(r'^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})(?:[T ].*)?$', text)
    if m:
        d = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if d:
            return DobResult(dob=_iso(d), dob_raw=text)
        return DobResult(dob=None, dob_raw=text)

    m = re.match(r'^(\d{1,2})[-/.](\d{1,2})[-/.](\d{4})$', text)
    if m:
        d = _safe_date(int(m.group(3)), int(m.group(2)), int(m.group(1)))
        if d:
            return DobResult(dob=_iso(d), dob_raw=text)
        return DobResult(dob=None, dob_raw=text)

    m = re.match(r'^(\d{4})[-/.](\d{1,2})$', text) or re.match(r'^(\d{1,2})[-/.](\d{4})$', text)
    if m:
        first, second = m.group(1), m.group(2)
        year, month = (int(first), int(second)) if len(first) == 4 else (int(second), int(first))
        d = _safe_date(year, month, 1)
        if d:
            return DobResult(dob=_iso(d), dob_raw=text, inferred=True, reason='Year and month only; day set to 01')
        return DobResult(dob=None, dob_raw=text)

    if re.match(r'^\d{4}$', text):
        return _year_only(int(text), text)

    if re.match(r'^\d+(\.\d+)?$', text):
        return normalize_dob(float(text))

    return DobResult(dob=None, dob_raw=text)


def _year_only(year: int, raw: str) -> DobResult:
    d = _safe_date(year, 1, 1)
    if d is None:
        return DobResult(dob=None, dob_raw=raw)
    return DobResult(dob=_iso(d), dob_raw=raw, inferred=True, reason='Year only; date set to 01-01')


def fill_single_gap_ranks(ranks: list[Optional[int]]) -> list[int]:
    """Return indexes whose missing rank can be filled from neighbours.

    A rank is fillable when it is missing (or zero) and the ranks directly
    before and after it differ by exactly two.
    """
    fillable: list[int] = []
    for i in range(1, len(ranks) - 1):
        prev, cur, nxt = ranks[i - 1], ranks[i], ranks[i + 1]
        if (cur is None or cur == 0) and prev is not None and nxt is not None:
            if nxt - prev == 2:
                fillable.append(i)
    return fillable
