"""
CLI commands for extraction run and suggestion query logs.
"""

import click
from datetime import datetime, timedelta
from tabulate import tabulate
from db import Database
from db.models import ExtractionRun, SuggestionQuery
from sqlalchemy import func, desc


def _format_duration(seconds):
    if seconds is None:
        return 'N/A'
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    return f"{seconds:.2f}s"


@click.group()
@click.option('--db', 'db_path', default=None, help='Run log database (default: RUN_LOG_DB_PATH)')
@click.pass_context
def runs(ctx, db_path):
    """Inspect extraction run and suggestion query logs."""
    ctx.ensure_object(dict)
    ctx.obj['db_path'] = db_path


@runs.command()
@click.option('--limit', default=20, help='Number of recent runs to show (default: 20)')
@click.option('--success/--errors', default=None, help='Filter by success/error status')
@click.pass_context
def extractions(ctx, limit, success):
    """List recent extraction runs."""
    db = Database(ctx.obj['db_path'])
    session = db.get_session()

    try:
        query = session.query(ExtractionRun).order_by(desc(ExtractionRun.started_at))
        if success is not None:
            query = query.filter(ExtractionRun.success == (1 if success else 0))

        entries = query.limit(limit).all()

        if not entries:
            click.echo(click.style("No extraction runs found.", fg='yellow'))
            return

        table_data = []
        for entry in entries:
            status = click.style('✓', fg='green') if entry.success else click.style('✗', fg='red')
            table_data.append([
                entry.run_id[:12],
                status,
                entry.pages if entry.pages is not None else 'N/A',
                entry.keyword_rows if entry.keyword_rows is not None else 'N/A',
                _format_duration(entry.duration_seconds),
                entry.started_at.strftime('%Y-%m-%d %H:%M:%S'),
                entry.output_path
            ])

        click.echo()
        click.echo(tabulate(
            table_data,
            headers=['Run', '✓', 'Pages', 'Rows', 'Duration', 'Started', 'Output'],
            tablefmt='simple'
        ))
        click.echo()

        failed = [e for e in entries if not e.success and e.error_message]
        for entry in failed:
            click.echo(click.style(f"✗ {entry.run_id[:12]}: {entry.error_message}", fg='red'))

        click.echo(click.style(f"Showing {len(entries)} most recent run(s)", fg='cyan'))
        click.echo()

    finally:
        session.close()
        db.dispose()


@runs.command()
@click.option('--limit', default=20, help='Number of recent queries to show (default: 20)')
@click.option('--status', type=click.Choice(['success', 'empty_query', 'timeout', 'cancelled', 'error']),
              default=None, help='Filter by status')
@click.pass_context
def queries(ctx, limit, status):
    """List recent suggestion queries."""
    db = Database(ctx.obj['db_path'])
    session = db.get_session()

    try:
        query = session.query(SuggestionQuery).order_by(desc(SuggestionQuery.started_at))
        if status:
            query = query.filter(SuggestionQuery.status == status)

        entries = query.limit(limit).all()

        if not entries:
            click.echo(click.style("No suggestion queries found.", fg='yellow'))
            return

        status_colors = {'success': 'green', 'empty_query': 'yellow', 'timeout': 'red', 'cancelled': 'red', 'error': 'red'}
        table_data = []
        for entry in entries:
            raw_query = entry.raw_query if len(entry.raw_query) <= 40 else entry.raw_query[:39] + '…'
            table_data.append([
                entry.id,
                click.style(entry.status, fg=status_colors.get(entry.status, 'white')),
                raw_query,
                entry.result_count if entry.result_count is not None else 'N/A',
                _format_duration(entry.duration_seconds),
                entry.started_at.strftime('%Y-%m-%d %H:%M:%S')
            ])

        click.echo()
        click.echo(tabulate(
            table_data,
            headers=['ID', 'Status', 'Query', 'Results', 'Duration', 'Started'],
            tablefmt='simple'
        ))
        click.echo()
        click.echo(click.style(f"Showing {len(entries)} most recent quer{'y' if len(entries) == 1 else 'ies'}", fg='cyan'))
        click.echo()

    finally:
        session.close()
        db.dispose()


@runs.command()
@click.option('--days', default=7, help='Number of days to include in stats (default: 7)')
@click.pass_context
def stats(ctx, days):
    """Show statistics of extraction runs and suggestion queries."""
    db = Database(ctx.obj['db_path'])
    session = db.get_session()

    try:
        cutoff_date = datetime.utcnow() - timedelta(days=days)

        # Extraction runs
        total_runs = session.query(ExtractionRun).filter(
            ExtractionRun.started_at >= cutoff_date
        ).count()
        successful_runs = session.query(ExtractionRun).filter(
            ExtractionRun.started_at >= cutoff_date,
            ExtractionRun.success == 1
        ).count()
        run_totals = session.query(
            func.sum(ExtractionRun.pages).label('pages'),
            func.sum(ExtractionRun.keyword_rows).label('rows'),
            func.avg(ExtractionRun.duration_seconds).label('avg_duration')
        ).filter(
            ExtractionRun.started_at >= cutoff_date,
            ExtractionRun.success == 1
        ).first()

        # Suggestion queries
        total_queries = session.query(SuggestionQuery).filter(
            SuggestionQuery.started_at >= cutoff_date
        ).count()
        avg_query_duration = session.query(
            func.avg(SuggestionQuery.duration_seconds)
        ).filter(
            SuggestionQuery.started_at >= cutoff_date,
            SuggestionQuery.duration_seconds.isnot(None)
        ).scalar()
        queries_by_status = session.query(
            SuggestionQuery.status,
            func.count(SuggestionQuery.id).label('count')
        ).filter(
            SuggestionQuery.started_at >= cutoff_date
        ).group_by(SuggestionQuery.status).order_by(desc('count')).all()

        click.echo(click.style(f"\nRun Log Statistics (Last {days} days)", fg='cyan', bold=True))
        click.echo(click.style("=" * 50, fg='cyan'))
        click.echo()

        click.echo(click.style("Extraction Runs:", fg='yellow', bold=True))
        run_table = [
            ['Total Runs', click.style(str(total_runs), fg='green')],
            ['Successful', click.style(str(successful_runs), fg='green')],
            ['Failed', click.style(str(total_runs - successful_runs), fg='red')],
            ['Pages Extracted', click.style(f"{run_totals.pages or 0:,}", fg='cyan')],
            ['Keyword Rows', click.style(f"{run_totals.rows or 0:,}", fg='cyan')],
            ['Avg Duration', click.style(_format_duration(run_totals.avg_duration), fg='blue')]
        ]
        click.echo(tabulate(run_table, tablefmt='plain'))
        click.echo()

        click.echo(click.style("Suggestion Queries:", fg='yellow', bold=True))
        query_table = [
            ['Total Queries', click.style(str(total_queries), fg='green')],
            ['Avg Duration', click.style(_format_duration(avg_query_duration), fg='blue')]
        ]
        click.echo(tabulate(query_table, tablefmt='plain'))
        click.echo()

        if queries_by_status:
            click.echo(click.style("Queries by Status:", fg='yellow', bold=True))
            status_table = [[status, count] for status, count in queries_by_status]
            click.echo(tabulate(status_table, headers=['Status', 'Queries'], tablefmt='simple'))
            click.echo()

    finally:
        session.close()
        db.dispose()
