"""
Dataset inspection commands.
"""

import click
from tabulate import tabulate

import settings
from db.dataset import DatasetReader, PersistenceError, dataset_stats


@click.group()
def dataset():
    """Inspect the persisted keyword dataset."""
    pass


@dataset.command()
@click.option('--dataset', '-d', 'location', default=None, help='Dataset path (default: DATASET_PATH)')
@click.option('--top', type=int, default=10, help='Number of most frequent keywords to show (default: 10)')
def stats(location, top):
    """
    Show dataset statistics.

    Example:
        kwmine dataset stats
        kwmine dataset stats --top 25
    """
    location = location or settings.DATASET_PATH

    try:
        stats_data = dataset_stats(location, top=top)
    except PersistenceError as e:
        click.echo(click.style(f"✗ {e}", fg="red"))
        raise SystemExit(1)

    size_bytes = stats_data['file_size_bytes']
    if size_bytes < 1024:
        size_str = f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        size_str = f"{size_bytes / 1024:.2f} KB"
    else:
        size_str = f"{size_bytes / (1024 * 1024):.2f} MB"

    metadata = stats_data['metadata']
    click.echo(click.style(f"\nDataset: {location}", fg='cyan', bold=True))
    click.echo(click.style("=" * 50, fg='cyan'))
    overview_table = [
        ['Rows', click.style(f"{stats_data['rows']:,}", fg='green')],
        ['Pages', click.style(f"{stats_data['pages']:,}", fg='green')],
        ['Distinct keywords', click.style(f"{stats_data['keywords']:,}", fg='green')],
        ['File size', click.style(size_str, fg='blue')],
        ['Run ID', metadata.get('kwmine.run_id', '(unknown)')],
        ['Created at', metadata.get('kwmine.created_at', '(unknown)')],
        ['Case fold', metadata.get('kwmine.case_fold', 'false')],
        ['Strip accents', metadata.get('kwmine.strip_accents', 'false')],
    ]
    click.echo(tabulate(overview_table, tablefmt='plain'))
    click.echo()

    if stats_data['top_keywords']:
        click.echo(click.style("Top keywords:", fg='yellow', bold=True))
        click.echo(tabulate(stats_data['top_keywords'], headers=['Keyword', 'Rows'], tablefmt='simple'))
        click.echo()


@dataset.command()
@click.option('--dataset', '-d', 'location', default=None, help='Dataset path (default: DATASET_PATH)')
@click.option('--rows', '-n', type=int, default=20, help='Number of rows to show (default: 20)')
def head(location, rows):
    """
    Show the first rows of the dataset.

    Example:
        kwmine dataset head -n 50
    """
    location = location or settings.DATASET_PATH

    try:
        with DatasetReader(location) as reader:
            shown = []
            for batch in reader.iter_batches(batch_size=max(1, rows)):
                shown.extend(zip(batch.column(0).to_pylist(), batch.column(1).to_pylist()))
                if len(shown) >= rows:
                    break
            total = reader.num_rows
    except PersistenceError as e:
        click.echo(click.style(f"✗ {e}", fg="red"))
        raise SystemExit(1)

    if not shown:
        click.echo(click.style("Dataset is empty", fg="yellow"))
        return

    click.echo(tabulate(shown[:rows], headers=['page_id', 'keyword'], tablefmt='simple'))
    click.echo(f"\nShowing {min(rows, len(shown))} of {total:,} rows")
