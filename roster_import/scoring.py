"""Confidence scoring and issue detection for dedup matches."""

import re
import unicodedata

from rapidfuzz.distance import JaroWinkler

from roster_import import ExistingPlayer, ParsedPlayerRow

WEIGHTS: dict[str, float] = {
    'name': 0.45,
    'name_similar': 0.30,
    'fide_id': 0.40,
    'dob': 0.25,
    'birth_year': 0.10,
    'rating_close': 0.10,
    'rating_near': 0.05,
}

FUZZY_NAME_THRESHOLD = 0.92
RATING_CLOSE = 25
RATING_NEAR = 50


def normalize_candidate_name(name: str) -> str:
    """Normalize a name for identity comparison.

    Removes accents via NFKD decomposition, lower-cases, turns punctuation
    into spaces and collapses whitespace.

    Args:
        name: Raw name string.

    Returns:
        Normalized name.
    """
    decomposed = unicodedata.normalize('NFKD', name or '')
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    cleaned = re.sub(r'[^a-z0-9\s]', ' ', stripped.lower())
    return re.sub(r'\s+', ' ', cleaned).strip()


def name_similarity(a: str, b: str) -> float:
    """Jaro-Winkler similarity of two names after normalization."""
    na, nb = normalize_candidate_name(a), normalize_candidate_name(b)
    if not na or not nb:
        return 0.0
    if na == nb:
        return 1.0
    return JaroWinkler.similarity(na, nb)


def _birth_year_matches(incoming: ParsedPlayerRow, existing: ExistingPlayer) -> bool:
    return bool(
        incoming.dob_raw and existing.dob
        and incoming.dob_raw.startswith(existing.dob[:4])
    )


def score_candidate(incoming: ParsedPlayerRow, existing: ExistingPlayer) -> float:
    """Score how likely an existing player is the incoming row's player.

    An equal normalized name earns the full name weight, a near-equal one
    (Jaro-Winkler >= FUZZY_NAME_THRESHOLD) the smaller similar-name weight.
    FIDE id, date of birth (or just the birth year) and a close rating add
    on top. The score is capped at 1.0.

    Args:
        incoming: Parsed row from the roster file.
        existing: Stored player.

    Returns:
        Score between 0.0 and 1.0.
    """
    if not incoming.name or not existing.name:
        return 0.0

    score = 0.0

    similarity = name_similarity(incoming.name, existing.name)
    if similarity == 1.0:
        score += WEIGHTS['name']
    elif similarity >= FUZZY_NAME_THRESHOLD:
        score += WEIGHTS['name_similar']

    if incoming.fide_id and existing.fide_id and incoming.fide_id == existing.fide_id:
        score += WEIGHTS['fide_id']

    if incoming.dob and existing.dob:
        if incoming.dob == existing.dob:
            score += WEIGHTS['dob']
        elif _birth_year_matches(incoming, existing):
            score += WEIGHTS['birth_year']

    if incoming.rating is not None and existing.rating is not None:
        diff = abs(incoming.rating - existing.rating)
        if diff <= RATING_CLOSE:
            score += WEIGHTS['rating_close']
        elif diff <= RATING_NEAR:
            score += WEIGHTS['rating_near']

    return round(min(1.0, score), 4)


def match_reason(incoming: ParsedPlayerRow, existing: ExistingPlayer) -> str:
    """Human-readable reason for the strongest signal behind a match."""
    if incoming.fide_id and existing.fide_id and incoming.fide_id == existing.fide_id:
        return 'Matched on FIDE ID'
    if incoming.dob and existing.dob and incoming.dob == existing.dob:
        return 'Matched on name + DOB'
    if normalize_candidate_name(incoming.name) == normalize_candidate_name(existing.name):
        return 'Matched on normalized name'
    return 'Matched on similar name'


def detect_issues(incoming: ParsedPlayerRow, existing: ExistingPlayer) -> list[str]:
    """Detect disagreements between an incoming row and its match.

    Args:
        incoming: Parsed row from the roster file.
        existing: Stored player.

    Returns:
        List of issue codes.
    """
    issues: list[str] = []

    if normalize_candidate_name(incoming.name) != normalize_candidate_name(existing.name):
        issues.append('NAME_FUZZY')

    if incoming.fide_id and existing.fide_id and incoming.fide_id != existing.fide_id:
        issues.append('FIDE_MISMATCH')

    if incoming.dob and existing.dob and incoming.dob != existing.dob:
        issues.append('DOB_MISMATCH')

    if incoming.rating is not None and existing.rating is not None:
        if abs(incoming.rating - existing.rating) > RATING_NEAR:
            issues.append('RATING_MISMATCH')

    if incoming.gender and existing.gender and incoming.gender.upper() != existing.gender.upper():
        issues.append('GENDER_MISMATCH')

    return issues
