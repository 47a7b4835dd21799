"""Tests for roster_import.merge module."""

from roster_import import ExistingPlayer, ParsedPlayerRow
from roster_import.merge import MergePolicy, apply_merge_policy


def _row(**kwargs) -> ParsedPlayerRow:
    defaults = dict(original_index=1, name='Rao Priya')
    defaults.update(kwargs)
    return ParsedPlayerRow(**defaults)


def _existing(**kwargs) -> ExistingPlayer:
    defaults = dict(id='p-2', name='Rao Priya')
    defaults.update(kwargs)
    return ExistingPlayer(**defaults)


class TestApplyMergePolicy:
    """Tests for field-level merge diffs."""

    def test_blanks_filled(self):
        result = apply_merge_policy(_row(state='MH', club='Pune CC'), _existing(), MergePolicy())
        assert result.changes == {'state': 'MH', 'club': 'Pune CC'}
        assert result.changed_fields == ['state', 'club']

    def test_conflicts_kept_by_default(self):
        result = apply_merge_policy(_row(club='Pune CC'), _existing(club='Mumbai CC'), MergePolicy())
        assert result.changes == {}

    def test_conflicts_overwritten_when_not_fill_only(self):
        policy = MergePolicy(fill_blanks=False)
        result = apply_merge_policy(_row(club='Pune CC'), _existing(club='Mumbai CC'), policy)
        assert result.changes == {'club': 'Pune CC'}

    def test_higher_rating_taken(self):
        result = apply_merge_policy(_row(rating=1990), _existing(rating=1950), MergePolicy())
        assert result.changes == {'rating': 1990}

    def test_lower_rating_ignored(self):
        result = apply_merge_policy(_row(rating=1900), _existing(rating=1950), MergePolicy())
        assert result.changed_fields == []

    def test_keep_lower_rating_policy(self):
        policy = MergePolicy(prefer_newer_rating=False)
        assert apply_merge_policy(_row(rating=1990), _existing(rating=1950), policy).changes == {}
        assert apply_merge_policy(_row(rating=1990), _existing(), policy).changes == {'rating': 1990}

    def test_dob_never_overwritten(self):
        row = _row(dob='2010-01-01', dob_raw='2010')
        result = apply_merge_policy(row, _existing(dob='2010-03-01'), MergePolicy())
        assert 'dob' not in result.changes

    def test_dob_filled_with_raw(self):
        row = _row(dob='2010-01-01', dob_raw='2010')
        result = apply_merge_policy(row, _existing(), MergePolicy())
        assert result.changes == {'dob': '2010-01-01', 'dob_raw': '2010'}
        assert result.changed_fields == ['dob']

    def test_dob_overwrite_allowed(self):
        policy = MergePolicy(never_overwrite_dob=False)
        row = _row(dob='2010-03-02', dob_raw='02/03/2010')
        result = apply_merge_policy(row, _existing(dob='2010-03-01'), policy)
        assert result.changes['dob'] == '2010-03-02'

    def test_blank_incoming_never_clears(self):
        result = apply_merge_policy(_row(), _existing(state='MH', rating=1950), MergePolicy(fill_blanks=False))
        assert result.changes == {}
