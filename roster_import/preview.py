"""Limiting what a caller without full-results access sees of allocations."""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

# Categories with at most this many filled prizes reveal a single winner
SMALL_CATEGORY_PRIZES = 5
PREVIEW_SHARE = 0.5


@dataclass
class CategoryPreview:
    """Winner counts for one prize category in the preview."""

    category_id: str
    category_name: str | None
    total_winners: int
    visible_winners: int
    hidden_winners: int


@dataclass
class ReviewPreview:
    """What the review page may show."""

    coverage: list[Mapping[str, Any]]
    winners: list[Mapping[str, Any]]
    conflicts: list[Any]
    unfilled: list[Any]
    category_preview: list[CategoryPreview] = field(default_factory=list)
    hidden_winner_count: int = 0


@dataclass
class ExportAccess:
    """Which allocation exports may be downloaded."""

    can_download_coverage: bool
    can_download_rca: bool


def visible_count(total_winners: int) -> int:
    """Number of winners shown for a category with ``total_winners`` filled prizes."""
    if total_winners <= SMALL_CATEGORY_PRIZES:
        return min(total_winners, 1)
    return math.ceil(total_winners * PREVIEW_SHARE)


def apply_review_preview_limit(
    can_view_full_results: bool,
    coverage: Sequence[Mapping[str, Any]],
    winners: Sequence[Mapping[str, Any]],
    conflicts: Sequence[Any],
    unfilled: Sequence[Any],
) -> ReviewPreview:
    """Restrict winner identities for callers without full access.

    Coverage entries are grouped by ``category_id`` (falling back to
    ``category_name``, then ``'unknown'``). Per category the first N filled
    prizes stay visible and winners of all other prizes are dropped.
    Coverage, conflicts and unfilled pass through unchanged.

    Args:
        can_view_full_results: Caller is entitled to everything.
        coverage: Coverage entries with ``category_id``, ``category_name``,
            ``prize_id`` and ``is_unfilled``.
        winners: Winner records with ``prize_id``.
        conflicts: Allocation conflicts.
        unfilled: Unfilled prizes.

    Returns:
        ReviewPreview with the visible winners and per-category counts.
    """
    if can_view_full_results:
        return ReviewPreview(
            coverage=list(coverage),
            winners=list(winners),
            conflicts=list(conflicts),
            unfilled=list(unfilled),
        )

    categories: dict[str, tuple[str | None, list[str]]] = {}
    for entry in coverage:
        key = entry.get('category_id') or entry.get('category_name') or 'unknown'
        if key not in categories:
            categories[key] = (entry.get('category_name'), [])
        prize_id = entry.get('prize_id')
        if not entry.get('is_unfilled') and prize_id:
            categories[key][1].append(prize_id)

    visible_prizes: set[str] = set()
    category_preview: list[CategoryPreview] = []

    for key, (name, prize_ids) in categories.items():
        total = len(prize_ids)
        visible = visible_count(total)
        visible_prizes.update(prize_ids[:visible])
        category_preview.append(CategoryPreview(
            category_id=key,
            category_name=name,
            total_winners=total,
            visible_winners=visible,
            hidden_winners=max(0, total - visible),
        ))

    shown = [w for w in winners if w.get('prize_id') in visible_prizes]

    return ReviewPreview(
        coverage=list(coverage),
        winners=shown,
        conflicts=list(conflicts),
        unfilled=list(unfilled),
        category_preview=category_preview,
        hidden_winner_count=len(winners) - len(shown),
    )


def can_download_allocation_exports(
    exports_enabled: bool,
    can_view_full_results: bool,
    has_coverage: bool,
    has_rca_data: bool,
) -> ExportAccess:
    """Gate coverage and RCA downloads."""
    can_coverage = exports_enabled and can_view_full_results and has_coverage
    return ExportAccess(
        can_download_coverage=can_coverage,
        can_download_rca=can_coverage and has_rca_data,
    )
