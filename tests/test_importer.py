"""Tests for the importer CLI."""

import json

import pytest

from importer import build_parser, run


class TestBuildParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        args = build_parser().parse_args(['--roster', 'r.xlsx', '--output', 'out.csv'])
        assert args.max_scan_rows == 25
        assert args.column == []
        assert args.preset is None

    def test_column_overrides(self):
        args = build_parser().parse_args([
            '--roster', 'r.xlsx', '--output', 'out.csv',
            '--column', 'gender=__EMPTY_COL_4', '--column', 'name=Name (2)',
        ])
        assert dict(args.column) == {'gender': '__EMPTY_COL_4', 'name': 'Name (2)'}

    def test_bad_column_override(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(['--roster', 'r.xlsx', '--output', 'o.csv', '--column', 'gender'])

    def test_roster_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(['--output', 'out.csv'])


class TestRun:
    """End-to-end runs on the ranking workbook."""

    def test_writes_reports(self, ranking_xlsx, tmp_path, capsys):
        existing = tmp_path / 'existing.csv'
        existing.write_text(
            'id,name,dob,rating,state,federation\n'
            'p-1,Sharma Arjun,2008-05-14,2090,KA,IND\n',
            encoding='utf-8',
        )
        decisions = tmp_path / 'decisions.json'
        decisions.write_text(json.dumps({'1': 'skip'}), encoding='utf-8')
        out = tmp_path / 'report.csv'

        args = build_parser().parse_args([
            '--roster', str(ranking_xlsx), '--existing', str(existing),
            '--decisions', str(decisions), '--output', str(out), '--html', '--summary',
        ])
        run(args)

        assert out.exists()
        assert out.with_suffix('.html').exists()
        lines = out.read_text(encoding='utf-8-sig').splitlines()
        assert len(lines) == 5
        assert lines[1].split(';')[11] == 'skip'
        assert 'Import-Report: ranking.xlsx' in capsys.readouterr().out

    def test_without_existing_players_everything_creates(self, ranking_xlsx, tmp_path):
        out = tmp_path / 'report.csv'
        run(build_parser().parse_args(['--roster', str(ranking_xlsx), '--output', str(out)]))
        lines = out.read_text(encoding='utf-8-sig').splitlines()[1:]
        assert {line.split(';')[11] for line in lines} == {'create'}
