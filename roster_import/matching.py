"""Dedup matching of parsed rows against a tournament's existing players."""

import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import Optional

from rapidfuzz.distance import JaroWinkler

from roster_import import (
    DedupCandidate,
    DedupDecision,
    DedupMatch,
    DedupPassResult,
    DedupSummary,
    ExistingPlayer,
    GroupedCandidates,
    ParsedPlayerRow,
)
from roster_import.merge import MergePolicy, apply_merge_policy
from roster_import.scoring import (
    FUZZY_NAME_THRESHOLD,
    detect_issues,
    match_reason,
    normalize_candidate_name,
    score_candidate,
)

log = logging.getLogger(__name__)

# A best match at or above this score defaults to update/skip instead of create
SCORE_THRESHOLD = 0.45

HIGH_CONFIDENCE = 0.70
MEDIUM_CONFIDENCE = 0.50


def _build_fide_index(players: Sequence[ExistingPlayer]) -> dict[str, list[ExistingPlayer]]:
    """Build a hash index on FIDE id."""
    index: dict[str, list[ExistingPlayer]] = defaultdict(list)
    for p in players:
        if p.fide_id:
            index[p.fide_id].append(p)
    return dict(index)


def _build_name_index(players: Sequence[ExistingPlayer]) -> dict[str, list[ExistingPlayer]]:
    """Build a hash index on normalized name."""
    index: dict[str, list[ExistingPlayer]] = defaultdict(list)
    for p in players:
        key = normalize_candidate_name(p.name)
        if key:
            index[key].append(p)
    return dict(index)


def _lookup_candidates(
    incoming: ParsedPlayerRow,
    existing_players: Sequence[ExistingPlayer],
    fide_index: dict[str, list[ExistingPlayer]],
    name_index: dict[str, list[ExistingPlayer]],
) -> list[ExistingPlayer]:
    """Collect plausible existing players for one row.

    Stage 1 looks up the FIDE id, stage 2 the normalized name, stage 3
    scans every stored name with Jaro-Winkler. Each player appears once,
    in the order first found.
    """
    found: dict[str, ExistingPlayer] = {}

    if incoming.fide_id:
        for p in fide_index.get(incoming.fide_id, []):
            found.setdefault(p.id, p)

    key = normalize_candidate_name(incoming.name)
    if key:
        for p in name_index.get(key, []):
            found.setdefault(p.id, p)

        for p in existing_players:
            if p.id in found:
                continue
            other = normalize_candidate_name(p.name)
            if other and JaroWinkler.similarity(key, other) >= FUZZY_NAME_THRESHOLD:
                found[p.id] = p

    return list(found.values())


def _default_action(best: Optional[DedupMatch]) -> str:
    if best is None or best.score < SCORE_THRESHOLD:
        return 'create'
    return 'update' if best.merge.changed_fields else 'skip'


def _default_decision(candidate: DedupCandidate) -> DedupDecision:
    best = candidate.best_match
    if candidate.default_action == 'update' and best:
        return DedupDecision(
            row=candidate.row, action='update',
            existing_id=best.existing.id, payload=dict(best.merge.changes),
        )
    if candidate.default_action == 'skip' and best:
        return DedupDecision(row=candidate.row, action='skip', existing_id=best.existing.id)
    return DedupDecision(row=candidate.row, action='create')


def run_dedup_pass(
    incoming_rows: Sequence[ParsedPlayerRow],
    existing_players: Sequence[ExistingPlayer],
    policy: Optional[MergePolicy] = None,
) -> DedupPassResult:
    """Score every incoming row against the tournament's existing players.

    For each row the plausible existing players are scored, sorted by
    score (stable, so lookup order breaks ties) and the best one becomes
    the candidate's best match. The default action is update when the
    best score reaches SCORE_THRESHOLD and the merge diff is non-empty,
    skip when it reaches the threshold with nothing to change, and create
    otherwise.

    Args:
        incoming_rows: Parsed rows of one import.
        existing_players: Players already stored for the tournament.
        policy: Merge rules for the update payloads.

    Returns:
        DedupPassResult with one candidate and one default decision per row.
    """
    policy = policy or MergePolicy()
    fide_index = _build_fide_index(existing_players)
    name_index = _build_name_index(existing_players)

    candidates: list[DedupCandidate] = []
    decisions: list[DedupDecision] = []

    for incoming in incoming_rows:
        matches: list[DedupMatch] = []
        for existing in _lookup_candidates(incoming, existing_players, fide_index, name_index):
            score = score_candidate(incoming, existing)
            if score <= 0:
                continue
            matches.append(DedupMatch(
                existing=existing,
                score=score,
                reason=match_reason(incoming, existing),
                merge=apply_merge_policy(incoming, existing, policy),
                issues=detect_issues(incoming, existing),
            ))

        matches.sort(key=lambda m: m.score, reverse=True)
        best = matches[0] if matches else None

        candidate = DedupCandidate(
            row=incoming.original_index,
            incoming=incoming,
            matches=matches,
            best_match=best,
            default_action=_default_action(best),
        )
        candidates.append(candidate)
        decisions.append(_default_decision(candidate))

    summary = DedupSummary(
        total_candidates=len(candidates),
        matched_candidates=sum(1 for c in candidates if c.best_match),
        default_creates=sum(1 for d in decisions if d.action == 'create'),
        default_updates=sum(1 for d in decisions if d.action == 'update'),
        default_skips=sum(1 for d in decisions if d.action == 'skip'),
        score_threshold=SCORE_THRESHOLD,
    )

    log.info(
        "Dedup abgeschlossen: %d Zeilen, %d mit Treffer (create=%d, update=%d, skip=%d)",
        summary.total_candidates, summary.matched_candidates,
        summary.default_creates, summary.default_updates, summary.default_skips,
    )
    return DedupPassResult(candidates=candidates, decisions=decisions, summary=summary)


def get_confidence_level(score: float) -> str:
    """Bucket a match score: high >= 0.70, medium >= 0.50, else low."""
    if score >= HIGH_CONFIDENCE:
        return 'high'
    if score >= MEDIUM_CONFIDENCE:
        return 'medium'
    return 'low'


def group_by_confidence(candidates: Sequence[DedupCandidate]) -> GroupedCandidates:
    """Group matched candidates by the confidence of their best match.

    Candidates without a best match are left out; they default to create.
    """
    grouped = GroupedCandidates()
    for candidate in candidates:
        if candidate.best_match is None:
            continue
        level = get_confidence_level(candidate.best_match.score)
        getattr(grouped, level).append(candidate)
    return grouped
