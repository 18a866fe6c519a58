"""
Keyword suggestion commands.
"""

import click
from tabulate import tabulate

import settings
from db.dataset import PersistenceError
from domain.cooccurrence import QueryCancelled, QueryTimeout
from domain.suggestions import SuggestionService


def truncate_keyword(keyword: str, width: int) -> str:
    """Shorten a keyword for display, marking the cut with an ellipsis."""
    if width <= 0 or len(keyword) <= width:
        return keyword
    return keyword[:max(1, width - 1)] + '…'


def render_results(results, display_limit: int, keyword_width: int) -> str:
    """Render suggestion results as a table for the terminal."""
    shown = results[:display_limit]
    table = [
        [i, truncate_keyword(r.keyword, keyword_width), r.count]
        for i, r in enumerate(shown, start=1)
    ]
    return tabulate(table, headers=['#', 'Keyword', 'Pages'], tablefmt='simple')


def _run_query(service, query, display_limit, keyword_width) -> bool:
    """Run one query and print it. Returns False on a failed query."""
    try:
        results = service.suggest(query)
    except QueryCancelled as e:
        click.echo(click.style(f"✗ {e}", fg="yellow"))
        return False
    except QueryTimeout as e:
        click.echo(click.style(f"✗ {e}. Try fewer or rarer keywords, or a larger --timeout.", fg="yellow"))
        return False

    if not results:
        click.echo(click.style("No related keywords found", fg="yellow"))
        return True

    click.echo(render_results(results, display_limit, keyword_width))
    if len(results) > display_limit:
        click.echo(f"\n... {len(results) - display_limit} more (showing first {display_limit})")
    return True


@click.command()
@click.argument('query', required=False)
@click.option('--dataset', '-d', default=None, help='Dataset path (default: DATASET_PATH)')
@click.option('--limit', '-l', type=click.IntRange(min=0), default=None, help='Maximum results (default: SUGGEST_LIMIT)')
@click.option('--display-limit', type=click.IntRange(min=0), default=None, help='Rows to print (default: DISPLAY_LIMIT)')
@click.option('--timeout', '-t', type=float, default=None, help='Query time budget in seconds (default: QUERY_TIMEOUT)')
@click.option('--interactive', '-i', is_flag=True, help='Prompt for queries until an empty line')
@click.option('--db', 'db_path', default=None, help='Run log database (default: RUN_LOG_DB_PATH)')
@click.option('--no-log', is_flag=True, help='Do not record queries in the run log database')
def suggest(query, dataset, limit, display_limit, timeout, interactive, db_path, no_log):
    """
    Suggest keywords that co-occur with QUERY (comma-separated).

    Examples:
        kwmine suggest "math, algebra"
        kwmine suggest "python" --limit 50 --timeout 5
        kwmine suggest --interactive
    """
    service = SuggestionService(
        dataset or settings.DATASET_PATH,
        limit=settings.SUGGEST_LIMIT if limit is None else limit,
        timeout_seconds=settings.QUERY_TIMEOUT if timeout is None else timeout,
        log_queries=not no_log,
        log_db_path=db_path
    )
    display_limit = settings.DISPLAY_LIMIT if display_limit is None else display_limit
    keyword_width = settings.DISPLAY_KEYWORD_WIDTH

    if not interactive and query is None:
        click.echo(click.style("✗ Provide a QUERY or use --interactive", fg="red"))
        raise SystemExit(2)

    try:
        if not interactive:
            if not _run_query(service, query, display_limit, keyword_width):
                raise SystemExit(1)
            return

        click.echo(f"Dataset: {click.style(str(service.location), fg='cyan')}")
        click.echo("Enter comma-separated keywords (empty line to quit)\n")
        while True:
            line = click.prompt('keywords', default='', show_default=False)
            if not line.strip():
                break
            _run_query(service, line, display_limit, keyword_width)
            click.echo()

    except PersistenceError as e:
        click.echo(click.style(f"✗ {e}", fg="red"))
        if settings.DEBUG:
            raise
        raise SystemExit(1)
