"""Tests for roster_import.reader module."""

import json

import pytest

from roster_import import ExistingPlayer, InvalidDecisionError
from roster_import.header_detect import detect_header_row
from roster_import.reader import (
    detect_delimiter,
    detect_encoding,
    read_decisions,
    read_existing_players,
    read_workbook,
)


class TestDetectEncoding:
    """Tests for encoding detection."""

    def test_utf16le_bom(self, tmp_path):
        f = tmp_path / 'roster.csv'
        f.write_bytes('\ufeffRank\tName'.encode('utf-16-le'))
        assert detect_encoding(f) == 'utf-16-le'

    def test_utf8_fallback(self, tmp_path):
        f = tmp_path / 'test.csv'
        f.write_text('hello', encoding='utf-8')
        assert detect_encoding(f) == 'utf-8-sig'


class TestDetectDelimiter:
    """Tests for delimiter sniffing."""

    def test_semicolon(self):
        assert detect_delimiter('Rank;Name;Rtg\n1;Rao Priya;1987\n') == ';'

    def test_tab(self):
        assert detect_delimiter('Rank\tName\tRtg\n1\tRao Priya\t1987\n') == '\t'

    def test_comma(self):
        assert detect_delimiter('Rank,Name,Rtg\n1,Rao Priya,1987\n') == ','


class TestReadWorkbook:
    """Tests for reading roster files."""

    def test_xlsx_sheets_in_order(self, ranking_xlsx):
        workbook = read_workbook(ranking_xlsx)
        assert list(workbook) == ['Ranking', 'Notes']

    def test_xlsx_header_detectable(self, ranking_xlsx):
        workbook = read_workbook(ranking_xlsx)
        detected = detect_header_row(workbook)
        assert detected.sheet_name == 'Ranking'
        assert detected.header_row_index == 3
        assert detected.headers[4] == '__EMPTY_COL_4'

    def test_xlsx_values(self, ranking_xlsx):
        row = read_workbook(ranking_xlsx)['Ranking'][4]
        assert row[:3] == [1, 3, 'Sharma Arjun']
        assert row[5] == 2105

    def test_utf16_csv(self, tmp_path):
        f = tmp_path / 'roster.csv'
        content = 'Rank\tName\tRtg\n1\tRao Priyá\t1987\n'
        f.write_bytes(b'\xff\xfe' + content.encode('utf-16-le'))
        workbook = read_workbook(f)
        assert workbook == {'roster': [['Rank', 'Name', 'Rtg'], ['1', 'Rao Priyá', '1987']]}

    def test_semicolon_csv_with_bom(self, tmp_path):
        f = tmp_path / 'export.csv'
        f.write_text('Rank;Name;Rtg\n1;Rao Priya;1987\n', encoding='utf-8-sig')
        assert read_workbook(f)['export'][0] == ['Rank', 'Name', 'Rtg']

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_workbook(tmp_path / 'missing.xlsx')

    def test_unsupported_format(self, tmp_path):
        f = tmp_path / 'roster.pdf'
        f.write_bytes(b'%PDF')
        with pytest.raises(ValueError, match='Nicht unterstuetztes Dateiformat'):
            read_workbook(f)


class TestReadExistingPlayers:
    """Tests for reading the stored players."""

    def test_reads_players(self, tmp_path):
        f = tmp_path / 'existing.csv'
        f.write_text(
            'id,name,dob,rating,fide_id,state\n'
            'p-1,Sharma Arjun,2008-05-14,2090,25012345,KA\n'
            'p-2,Rao  Priya,,,,\n',
            encoding='utf-8',
        )
        players = read_existing_players(f)
        assert players == [
            ExistingPlayer(id='p-1', name='Sharma Arjun', dob='2008-05-14', rating=2090,
                           fide_id='25012345', state='KA'),
            ExistingPlayer(id='p-2', name='Rao Priya'),
        ]

    def test_header_case_insensitive(self, tmp_path):
        f = tmp_path / 'existing.csv'
        f.write_text('ID;Name;Club\np-1;Rao Priya;Pune CC\n', encoding='utf-8')
        assert read_existing_players(f)[0].club == 'Pune CC'

    def test_missing_columns(self, tmp_path):
        f = tmp_path / 'existing.csv'
        f.write_text('name,rating\nRao Priya,1987\n', encoding='utf-8')
        with pytest.raises(ValueError, match='Fehlende Spalten'):
            read_existing_players(f)

    def test_rows_without_id_skipped(self, tmp_path):
        f = tmp_path / 'existing.csv'
        f.write_text('id,name\n,Rao Priya\np-2,Iyer Meera\n', encoding='utf-8')
        assert [p.id for p in read_existing_players(f)] == ['p-2']


class TestReadDecisions:
    """Tests for reading operator overrides."""

    def test_reads_overrides(self, tmp_path):
        f = tmp_path / 'decisions.json'
        f.write_text(json.dumps({'1': 'skip', '3': 'Update'}), encoding='utf-8')
        assert read_decisions(f) == {1: 'skip', 3: 'update'}

    def test_unknown_action(self, tmp_path):
        f = tmp_path / 'decisions.json'
        f.write_text(json.dumps({'1': 'merge'}), encoding='utf-8')
        with pytest.raises(InvalidDecisionError):
            read_decisions(f)

    def test_not_an_object(self, tmp_path):
        f = tmp_path / 'decisions.json'
        f.write_text('["skip"]', encoding='utf-8')
        with pytest.raises(InvalidDecisionError):
            read_decisions(f)

    def test_bad_row_number(self, tmp_path):
        f = tmp_path / 'decisions.json'
        f.write_text(json.dumps({'first': 'skip'}), encoding='utf-8')
        with pytest.raises(InvalidDecisionError, match='Zeilennummer'):
            read_decisions(f)
