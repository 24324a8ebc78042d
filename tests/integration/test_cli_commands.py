"""
Integration tests for the Flask CLI commands.
"""

import os
import pytest

from openpyxl import load_workbook

from architrack.services.itemized_statement_service import create_itemized_statement


@pytest.fixture
def statement_id(session, project, quantity_table):
    return create_itemized_statement(session, project.id, 'Phase 1', quantity_table.id).id


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def test_init_db(runner, session):
    result = runner.invoke(args=['init-db'])

    assert result.exit_code == 0
    assert 'Database tables created' in result.output


def test_export_spreadsheet(runner, statement_id, tmp_path):
    result = runner.invoke(args=[
        'export-statement', str(statement_id),
        '--output-dir', str(tmp_path),
        '--filter', 'unit=m2',
    ])

    assert result.exit_code == 0, result.output
    files = os.listdir(tmp_path)
    assert len(files) == 1
    assert files[0].startswith('Phase 1_') and files[0].endswith('.xlsx')
    assert load_workbook(tmp_path / files[0]).active.max_row == 3
    assert 'Exported 2 rows' in result.output


def test_export_clipboard_to_stdout(runner, statement_id):
    result = runner.invoke(args=[
        'export-statement', str(statement_id),
        '--format', 'clipboard',
        '--sort-column', 'quantity', '--sort-direction', 'desc',
    ])

    assert result.exit_code == 0
    lines = result.output.rstrip('\n').split('\n')
    assert lines[0].startswith('Category\t')
    assert [line.split('\t')[2] for line in lines[1:]] == ['Wall', 'Panel', 'Footing']


def test_export_unknown_statement(runner, session, tmp_path):
    result = runner.invoke(args=['export-statement', '999', '--output-dir', str(tmp_path)])

    assert result.exit_code == 1
    assert os.listdir(tmp_path) == []


def test_bad_filter(runner, statement_id):
    result = runner.invoke(args=['export-statement', str(statement_id), '--filter', 'quantity=1'])

    assert result.exit_code == 2
