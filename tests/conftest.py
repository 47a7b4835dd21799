"""Shared test fixtures."""

from pathlib import Path

import pytest
from openpyxl import Workbook

from roster_import import ExistingPlayer

RANKING_HEADER = ['Rank', 'SNo', 'Name', 'Name', '', 'Rtg', 'Fed', 'Ident', 'Birth', 'Gr', 'Type']

RANKING_ROWS = [
    ['Chess Open 2024', None, None],
    ['Final Ranking after 9 Rounds', None, None],
    [],
    RANKING_HEADER,
    [1, 3, 'Sharma Arjun', 'Arjun Sharma', '', 2105, 'IND', 'IND/KA/1234', '2008/05/14', '', 'U16'],
    [2, 1, 'Rao Priya', 'Priya Rao', 'F', 1987, 'IND', 'MH123456', '2010', 'PC', 'FMG'],
    [None, 2, 'Khan Imran', 'Imran Khan', '', 0, 'IND', 'US123456', '', '', ''],
    [4, 4, 'Iyer Meera', 'Meera Iyer', 'F', '1,523', 'IND', '', '14/02/2012', '', 'U14 Girls'],
    ['Chief Arbiter: IA Rao', None, None, None, None, None, None, None, None, None, None],
]


@pytest.fixture(scope='session')
def ranking_workbook() -> dict:
    """Swiss-Manager style ranking: title rows, header in row 4, footer."""
    return {
        'Ranking': [list(row) for row in RANKING_ROWS],
        'Notes': [['Generated by Swiss-Manager']],
    }


@pytest.fixture(scope='session')
def existing_players() -> list[ExistingPlayer]:
    """Players already stored for the tournament."""
    return [
        ExistingPlayer(
            id='p-1', name='Sharma Arjun', dob='2008-05-14', rating=2090,
            state='KA', federation='IND',
        ),
        ExistingPlayer(
            id='p-2', name='Rao Priya', dob='2010-03-01', rating=1990, gender='F',
            state='MH', disability='PC', federation='IND',
        ),
        ExistingPlayer(id='p-3', name='Khan Imraan'),
        ExistingPlayer(id='p-4', name='Someone Else', rating=1500),
    ]


@pytest.fixture(scope='session')
def ranking_xlsx(tmp_path_factory) -> Path:
    """The ranking workbook written as a real .xlsx file."""
    path = tmp_path_factory.mktemp('xlsx') / 'ranking.xlsx'
    wb = Workbook()
    ws = wb.active
    ws.title = 'Ranking'
    for row in RANKING_ROWS:
        ws.append([None if cell == '' else cell for cell in row])
    notes = wb.create_sheet('Notes')
    notes.append(['Generated by Swiss-Manager'])
    wb.save(path)
    return path
