import logging
import sys

import click

from .batch import read_gsfiles
from .codec import write_table
from .config import show_config
from .io import gsfile_exists, list_gsfile, read_gsfile

logger = logging.getLogger(__name__)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug messages.")
def cli(verbose: bool):
    """
    Read, write and cache delimited files on Google Cloud Storage.
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)


@cli.command()
def config():
    """Show the gcloud path and cache directory in use"""
    click.echo(show_config())


@cli.command()
@click.argument("patterns", nargs=-1, required=True)
def ls(patterns):
    """List objects matching PATTERNS"""
    for path in list_gsfile(list(patterns)):
        click.echo(path)


@cli.command()
@click.argument("path")
def exists(path: str):
    """Exit with status 0 if PATH exists, 1 otherwise"""
    sys.exit(0 if gsfile_exists(path) else 1)


@cli.command()
@click.argument("path")
@click.option("--extra-pipe-cmd", default=None, help="Shell filter for the contents.")
@click.option("--sep", default=None, help="Input delimiter, detected if omitted.")
def cat(path: str, extra_pipe_cmd: str, sep: str):
    """Read PATH through the cache and print it as TSV"""
    df = read_gsfile(path, extra_pipe_cmd=extra_pipe_cmd, sep=sep)
    df.to_csv(sys.stdout, sep="\t", index=False)


@cli.command()
@click.argument("patterns", nargs=-1, required=True)
@click.option(
    "--combine", type=click.Choice(["rows", "cols"]), default="rows", show_default=True
)
@click.option("-o", "--output", default=None, help="Write the table here.")
@click.option("-j", "--jobs", default=1, show_default=True, help="Reader workers.")
def fetch(patterns, combine: str, output: str, jobs: int):
    """Download every object matching PATTERNS and combine them"""
    df = read_gsfiles(list(patterns), combine=combine, parallel=jobs)
    if output is None:
        df.to_csv(sys.stdout, sep="\t", index=False)
    else:
        write_table(df, output)
        logger.info(f"Wrote {len(df)} rows to {output}")
