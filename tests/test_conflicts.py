"""Tests for roster_import.conflicts module."""

from roster_import import ParsedPlayerRow
from roster_import.conflicts import find_intra_file_conflicts, norm_name


def _row(**kwargs) -> ParsedPlayerRow:
    """Create a ParsedPlayerRow with defaults."""
    defaults = dict(original_index=1, name='Sharma Arjun', rank=1)
    defaults.update(kwargs)
    return ParsedPlayerRow(**defaults)


class TestNormName:
    """Tests for conflict name keys."""

    def test_accents_and_punctuation(self):
        assert norm_name('Rao-Priyá') == 'rao priya'

    def test_too_short(self):
        assert norm_name('Al') == ''


class TestFindIntraFileConflicts:
    """Tests for duplicates within one file."""

    def test_same_fide_id(self):
        rows = [
            _row(original_index=1, fide_id='25012345'),
            _row(original_index=2, name='Other Name', fide_id='25012345'),
        ]
        conflicts = find_intra_file_conflicts(rows)
        assert len(conflicts) == 1
        assert conflicts[0].key_kind == 'fide'
        assert (conflicts[0].first_row, conflicts[0].second_row) == (1, 2)

    def test_same_name_and_dob(self):
        rows = [
            _row(original_index=1, dob='2008-05-14'),
            _row(original_index=2, name='SHARMA  arjun', dob='2008-05-14'),
        ]
        conflicts = find_intra_file_conflicts(rows)
        assert [c.key_kind for c in conflicts] == ['name_dob']
        assert conflicts[0].reason == 'Same name + DOB'

    def test_name_dob_with_one_fide_id(self):
        rows = [
            _row(original_index=1, dob='2008-05-14', fide_id='25012345'),
            _row(original_index=2, dob='2008-05-14'),
        ]
        conflicts = find_intra_file_conflicts(rows)
        assert conflicts[0].reason == 'Same name + DOB (one record missing FIDE ID)'

    def test_different_fide_ids_are_different_players(self):
        rows = [
            _row(original_index=1, dob='2008-05-14', fide_id='25012345'),
            _row(original_index=2, dob='2008-05-14', fide_id='25099999'),
        ]
        assert find_intra_file_conflicts(rows) == []

    def test_duplicate_start_number(self):
        rows = [
            _row(original_index=1, sno=7),
            _row(original_index=2, name='Iyer Meera', sno=7),
        ]
        conflicts = find_intra_file_conflicts(rows)
        assert [c.key_kind for c in conflicts] == ['sno']

    def test_clean_roster(self):
        rows = [
            _row(original_index=1, sno=1),
            _row(original_index=2, name='Iyer Meera', sno=2),
        ]
        assert find_intra_file_conflicts(rows) == []
