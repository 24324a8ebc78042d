"""
Flask CLI commands for itemized statements.

Commands:
- flask init-db: Create all tables
- flask export-statement: Write a statement export to disk
"""

import click
from flask import current_app

from architrack.database import create_all, get_session
from architrack.exceptions import ArchitrackError
from architrack.services.export_service import write_spreadsheet_file, render_clipboard_text, build_export_filename
from architrack.services.itemized_statement_service import select_statement_rows
from architrack.services.query_service import FilterState, QueryState, SortState, FILTER_COLUMNS, SORT_COLUMNS


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables for every model."""
        create_all()
        click.echo(click.style('Database tables created', fg='green'))

    @app.cli.command('export-statement')
    @click.argument('statement_id', type=int)
    @click.option('--format', 'export_format', type=click.Choice(['spreadsheet', 'clipboard']),
                  default='spreadsheet', show_default=True)
    @click.option('--output-dir', default=None, help='Target directory (defaults to EXPORT_DIR)')
    @click.option('--filter', 'filters', multiple=True, metavar='COLUMN=TEXT',
                  help=f'Substring filter, repeatable. Columns: {", ".join(FILTER_COLUMNS)}')
    @click.option('--sort-column', type=click.Choice(SORT_COLUMNS), default=None)
    @click.option('--sort-direction', type=click.Choice(['asc', 'desc']), default='asc', show_default=True)
    def export_statement(statement_id, export_format, output_dir, filters, sort_column, sort_direction):
        """Export all filtered and sorted rows of a statement."""
        mapping = {}
        for raw in filters:
            column, sep, value = raw.partition('=')
            if not sep:
                raise click.BadParameter(f'expected COLUMN=TEXT, got {raw!r}', param_hint='--filter')
            mapping[column.strip()] = value

        try:
            state = QueryState(
                filters=FilterState.from_mapping(mapping),
                sort=SortState(sort_column, sort_direction)
            )
        except ValueError as e:
            raise click.BadParameter(str(e))

        session = get_session()
        try:
            statement, rows = select_statement_rows(session, statement_id, state)

            if export_format == 'clipboard':
                # Clipboard text goes to stdout so it can be piped into a copy tool
                click.echo(render_clipboard_text(rows))
                return

            directory = output_dir or current_app.config['EXPORT_DIR']
            path = write_spreadsheet_file(rows, directory, build_export_filename(statement.name))
        except ArchitrackError as e:
            click.echo(click.style(f'Export failed: {e.message}', fg='red'), err=True)
            raise SystemExit(1)
        finally:
            session.remove()

        click.echo(click.style(f'Exported {len(rows)} rows to {path}', fg='green'))
