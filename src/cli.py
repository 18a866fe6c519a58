#!/usr/bin/env python3
"""
CLI for the keyword co-occurrence pipeline.
"""

import click
from importlib.metadata import version
from commands import dataset, extract, runs, suggest


@click.group()
@click.version_option(version=version("kwmine"))
def cli():
    """kwmine CLI - Extract keywords from crawl archives and suggest related keywords."""
    pass


# Register commands
cli.add_command(extract.extract)
cli.add_command(suggest.suggest)
cli.add_command(dataset.dataset)
cli.add_command(runs.runs)


if __name__ == "__main__":
    cli()
