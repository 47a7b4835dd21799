"""Turning dedup candidates and operator overrides into final decisions."""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from roster_import import (
    ACTIONS,
    DedupCandidate,
    DedupDecision,
    InvalidDecisionError,
    ParsedPlayerRow,
)

log = logging.getLogger(__name__)


def resolve_decisions(
    candidates: Sequence[DedupCandidate],
    overrides: Mapping[int, str] | None = None,
) -> list[DedupDecision]:
    """Resolve one decision per candidate.

    The operator's override for a row wins over the candidate's default
    action. Update and skip carry the best match's id, update also its
    merge diff. Create never carries an id, even when a weak match exists.

    Args:
        candidates: Candidates from the dedup pass.
        overrides: Row index -> action chosen by the operator.

    Returns:
        Decisions in candidate order.
    """
    overrides = overrides or {}
    decisions: list[DedupDecision] = []

    for candidate in candidates:
        action = overrides.get(candidate.row, candidate.default_action)
        best = candidate.best_match

        if action == 'update' and best:
            decisions.append(DedupDecision(
                row=candidate.row, action=action,
                existing_id=best.existing.id, payload=dict(best.merge.changes),
            ))
        elif action == 'skip' and best:
            decisions.append(DedupDecision(row=candidate.row, action=action, existing_id=best.existing.id))
        else:
            decisions.append(DedupDecision(row=candidate.row, action=action))

    log.debug("%d Entscheidungen aufgeloest (%d manuell)", len(decisions), len(overrides))
    return decisions


def get_progress_counts(
    candidates: Sequence[DedupCandidate],
    decisions: Mapping[int, str],
) -> dict[str, int]:
    """Count matched rows and how many of them the operator has decided.

    Any recorded decision counts, an explicit create included.
    """
    matched = [c for c in candidates if c.best_match]
    resolved = sum(1 for c in matched if c.row in decisions)
    return {'resolved': resolved, 'total': len(matched)}


def get_action_counts(decisions: Mapping[int, str] | Sequence[DedupDecision]) -> dict[str, int]:
    """Tally create/update/skip.

    Accepts either an override mapping (row -> action) or a list of
    resolved decisions.

    Raises:
        InvalidDecisionError: An action is not one of create, update, skip.
    """
    if isinstance(decisions, Mapping):
        actions = list(decisions.values())
    else:
        actions = [d.action for d in decisions]

    counts = {action: 0 for action in ACTIONS}
    for action in actions:
        if action not in counts:
            raise InvalidDecisionError(f"Unbekannte Aktion: {action!r}")
        counts[action] += 1
    return counts


def validate_overrides(
    candidates: Sequence[DedupCandidate],
    overrides: Mapping[int, str],
) -> None:
    """Check operator overrides before resolving them.

    Args:
        candidates: Candidates from the dedup pass.
        overrides: Row index -> action chosen by the operator.

    Raises:
        InvalidDecisionError: Unknown action, unknown row, or update/skip
            for a row that has no existing player to point at.
    """
    by_row = {c.row: c for c in candidates}

    for row, action in overrides.items():
        if action not in ACTIONS:
            raise InvalidDecisionError(
                f"Zeile {row}: unbekannte Aktion {action!r} (erlaubt: {', '.join(ACTIONS)})"
            )
        candidate = by_row.get(row)
        if candidate is None:
            raise InvalidDecisionError(f"Zeile {row}: nicht in diesem Import enthalten")
        if action != 'create' and candidate.best_match is None:
            raise InvalidDecisionError(
                f"Zeile {row}: '{action}' ohne passenden bestehenden Spieler"
            )


def build_persistence_payload(
    rows: Sequence[ParsedPlayerRow],
    decisions: Sequence[DedupDecision],
) -> list[dict[str, Any]]:
    """Pair each decision with the row it refers to.

    Create records carry the whole parsed row, update records the merge
    diff, skip records only the id.

    Raises:
        InvalidDecisionError: A decision refers to a row that was not parsed.
    """
    by_index = {r.original_index: r for r in rows}
    payload: list[dict[str, Any]] = []

    for decision in decisions:
        row = by_index.get(decision.row)
        if row is None:
            raise InvalidDecisionError(f"Zeile {decision.row}: keine geparste Zeile vorhanden")

        record = decision.as_dict()
        if decision.action == 'create':
            record['player'] = _player_fields(row)
        payload.append(record)

    return payload


def _player_fields(row: ParsedPlayerRow) -> dict[str, Any]:
    return {
        'rank': row.rank,
        'sno': row.sno,
        'name': row.name,
        'full_name': row.full_name,
        'rating': row.rating,
        'dob': row.dob,
        'dob_raw': row.dob_raw,
        'gender': row.gender,
        'state': row.state,
        'city': row.city,
        'club': row.club,
        'fide_id': row.fide_id,
        'federation': row.federation,
        'disability': row.disability,
        'special_notes': row.special_notes,
        'group_label': row.group_label,
        'type_label': row.type_label,
        'unrated': row.unrated,
    }
