"""Tests for roster_import.preview module."""

import pytest

from roster_import.preview import (
    apply_review_preview_limit,
    can_download_allocation_exports,
    visible_count,
)


def _coverage(category: str, prizes: int, unfilled: int = 0) -> list[dict]:
    entries = [
        {'category_id': category, 'category_name': category.upper(), 'prize_id': f'{category}-{i}', 'is_unfilled': False}
        for i in range(prizes)
    ]
    entries += [
        {'category_id': category, 'category_name': category.upper(), 'prize_id': f'{category}-u{i}', 'is_unfilled': True}
        for i in range(unfilled)
    ]
    return entries


def _winners(coverage: list[dict]) -> list[dict]:
    return [{'prize_id': e['prize_id'], 'player_id': f"pl-{e['prize_id']}"} for e in coverage if not e['is_unfilled']]


class TestVisibleCount:
    """Tests for the per-category reveal rule."""

    @pytest.mark.parametrize('total,visible', [(0, 0), (1, 1), (5, 1), (6, 3), (7, 4), (10, 5)])
    def test_rule(self, total, visible):
        assert visible_count(total) == visible


class TestApplyReviewPreviewLimit:
    """Tests for restricted review access."""

    def test_three_small_categories(self):
        coverage = _coverage('a', 1) + _coverage('b', 1) + _coverage('c', 1)
        winners = _winners(coverage)
        preview = apply_review_preview_limit(False, coverage, winners, [], [])
        assert len(preview.winners) == 3
        assert preview.hidden_winner_count == 0
        assert [(c.category_id, c.visible_winners, c.hidden_winners) for c in preview.category_preview] == [
            ('a', 1, 0), ('b', 1, 0), ('c', 1, 0),
        ]

    def test_small_category_shows_one(self):
        coverage = _coverage('u10', 4)
        preview = apply_review_preview_limit(False, coverage, _winners(coverage), [], [])
        assert [w['prize_id'] for w in preview.winners] == ['u10-0']
        assert preview.category_preview[0].hidden_winners == 3
        assert preview.hidden_winner_count == 3

    def test_large_category_shows_half(self):
        coverage = _coverage('open', 7)
        preview = apply_review_preview_limit(False, coverage, _winners(coverage), [], [])
        assert [w['prize_id'] for w in preview.winners] == ['open-0', 'open-1', 'open-2', 'open-3']
        assert preview.hidden_winner_count == 3

    def test_unfilled_do_not_count(self):
        coverage = _coverage('girls', 6, unfilled=4)
        preview = apply_review_preview_limit(False, coverage, _winners(coverage), [], [])
        assert preview.category_preview[0].total_winners == 6
        assert preview.category_preview[0].visible_winners == 3

    def test_conflicts_and_unfilled_pass_through(self):
        coverage = _coverage('a', 2)
        conflicts = [{'impacted_prizes': ['a-1']}]
        unfilled = [{'prize_id': 'a-9'}]
        preview = apply_review_preview_limit(False, coverage, _winners(coverage), conflicts, unfilled)
        assert preview.conflicts == conflicts
        assert preview.unfilled == unfilled
        assert preview.coverage == coverage

    def test_grouping_falls_back_to_name_then_unknown(self):
        coverage = [
            {'category_name': 'Open', 'prize_id': 'x1', 'is_unfilled': False},
            {'prize_id': 'y1', 'is_unfilled': False},
        ]
        preview = apply_review_preview_limit(False, coverage, [], [], [])
        assert [c.category_id for c in preview.category_preview] == ['Open', 'unknown']

    def test_full_access_passes_everything(self):
        coverage = _coverage('open', 10)
        winners = _winners(coverage)
        preview = apply_review_preview_limit(True, coverage, winners, [], [])
        assert preview.winners == winners
        assert preview.category_preview == []
        assert preview.hidden_winner_count == 0


class TestExportAccess:
    """Tests for download gating."""

    def test_all_granted(self):
        access = can_download_allocation_exports(True, True, True, True)
        assert access.can_download_coverage and access.can_download_rca

    def test_rca_needs_data(self):
        access = can_download_allocation_exports(True, True, True, False)
        assert access.can_download_coverage
        assert not access.can_download_rca

    @pytest.mark.parametrize('flags', [(False, True, True, True), (True, False, True, True), (True, True, False, True)])
    def test_missing_requirement_blocks_both(self, flags):
        access = can_download_allocation_exports(*flags)
        assert not access.can_download_coverage
        assert not access.can_download_rca
