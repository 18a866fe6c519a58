"""
Extraction command: archives -> persisted keyword dataset.
"""

import uuid
import click

import settings
from db.dataset import PersistenceError
from extractors import PARSERS, load_extractor
from processors.executors import POLICIES
from processors.extraction import ExtractionPipeline
from processors.keywords import KeywordNormalizer
from processors.logging import log_extraction_run
from readers.archive import RECORD_MODES, ArchiveReader


@click.command()
@click.argument('sources', nargs=-1, required=True)
@click.option('--output', '-o', default=None, help='Dataset path (default: DATASET_PATH)')
@click.option('--partitions', '-p', type=int, default=None, help='Number of partitions (default: EXTRACT_PARTITIONS)')
@click.option('--workers', '-w', type=int, default=None, help='Parallel workers (default: EXTRACT_WORKERS)')
@click.option('--policy', type=click.Choice(POLICIES), default=None, help='Worker pool type (default: EXTRACT_POLICY)')
@click.option('--match', 'match_filter', default=None, help='Regex records must match to be scanned (default: ARCHIVE_MATCH_FILTER)')
@click.option('--record-mode', type=click.Choice(RECORD_MODES), default=None, help='One record per line or per WARC record')
@click.option('--tag', default=None, help='Tag name to extract from (default: meta)')
@click.option('--attribute', default=None, help="Value of the tag's name attribute (default: keywords)")
@click.option('--parser', type=click.Choice(sorted(PARSERS)), default=None, help='Extractor implementation')
@click.option('--case-fold/--no-case-fold', default=None, help='Lowercase keywords')
@click.option('--strip-accents/--no-strip-accents', default=None, help='Remove accents from keywords')
@click.option('--db', 'db_path', default=None, help='Run log database (default: RUN_LOG_DB_PATH)')
@click.option('--no-log', is_flag=True, help='Do not record the run in the run log database')
def extract(sources, output, partitions, workers, policy, match_filter, record_mode,
            tag, attribute, parser, case_fold, strip_accents, db_path, no_log):
    """
    Extract keywords from crawl archives and save the dataset.

    The previous dataset at the output path is replaced atomically when the
    run succeeds, and left untouched when it fails.

    Examples:
        kwmine extract crawl/*.warc.gz
        kwmine extract crawl/ -o data/keywords.parquet -p 16 -w 8
        kwmine extract dump.warc.gz --record-mode document --parser soup
    """
    output = output or settings.DATASET_PATH
    params = {
        'partitions': partitions or settings.EXTRACT_PARTITIONS,
        'workers': workers or settings.EXTRACT_WORKERS,
        'policy': policy or settings.EXTRACT_POLICY,
        'match_filter': settings.ARCHIVE_MATCH_FILTER if match_filter is None else match_filter,
        'record_mode': record_mode or settings.ARCHIVE_RECORD_MODE,
        'parser': parser or settings.EXTRACT_PARSER,
    }
    normalizer = KeywordNormalizer(
        case_fold=settings.KEYWORD_CASE_FOLD if case_fold is None else case_fold,
        strip_accents=settings.KEYWORD_STRIP_ACCENTS if strip_accents is None else strip_accents,
    )

    try:
        reader = ArchiveReader(
            sources,
            partitions=params['partitions'],
            match_filter=params['match_filter'],
            record_mode=params['record_mode']
        )
        archive_partitions = reader.partitions()
        extractor = load_extractor(
            params['parser'],
            tag=tag or settings.EXTRACT_TAG,
            attribute=attribute or settings.EXTRACT_ATTRIBUTE
        )
    except (ValueError, FileNotFoundError) as e:
        click.echo(click.style(f"✗ {e}", fg="red"))
        raise SystemExit(1)

    files = sum(len(p.paths) for p in archive_partitions)
    click.echo(f"Extracting keywords to: {click.style(output, fg='cyan', bold=True)}\n")
    click.echo(f"  Files: {click.style(str(files), fg='yellow')}")
    click.echo(f"  Partitions: {click.style(str(len(archive_partitions)), fg='yellow')}")
    click.echo(f"  Workers: {click.style(str(params['workers']), fg='yellow')} ({params['policy']})")
    click.echo(f"  Match filter: {click.style(params['match_filter'] or 'NONE', fg='yellow')}")
    click.echo(f"  Normalizer: {click.style(repr(normalizer), fg='yellow')}")
    click.echo()

    pipeline = ExtractionPipeline(
        extractor=extractor,
        normalizer=normalizer,
        workers=params['workers'],
        policy=params['policy']
    )
    run_id = uuid.uuid4().hex

    try:
        with log_extraction_run(
            run_id, output, list(sources), params, db_path=db_path, enabled=not no_log
        ) as run_log:
            result = pipeline.run(archive_partitions, output, run_id=run_id, progress=click.echo)
            run_log.set_result(result)
    except (PersistenceError, RuntimeError, OSError) as e:
        click.echo(click.style(f"✗ Extraction failed: {e}", fg="red"))
        if settings.DEBUG:
            raise
        raise SystemExit(1)

    click.echo()
    click.echo(click.style("Extraction completed!", fg="green", bold=True))
    click.echo(f"  Run ID: {click.style(result['run_id'], fg='cyan')}")
    click.echo(f"  Records scanned: {click.style(str(result['records_scanned']), fg='cyan')}")
    click.echo(f"  Pages: {click.style(str(result['pages']), fg='green')}")
    click.echo(f"  Keyword rows: {click.style(str(result['keyword_rows']), fg='green')}")
    click.echo(f"  Dataset saved to: {click.style(result['output_path'], fg='cyan')}")
