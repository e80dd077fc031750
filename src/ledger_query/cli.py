"""Click CLI entry point for the ledger command.

Handles argument parsing, config loading, and error display. All business
logic is delegated to ``search``, ``bulk``, ``client`` and ``config``.
Each tool command reads a JSON request (a file path or ``-`` for stdin),
prints the JSON result, and exits 0 on success or 1 otherwise.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

import click

from ledger_query import __version__


def _configure_logging(verbose: bool, debug: bool) -> None:
    """Set up logging based on verbosity flags."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        force=True,
    )


def _read_request(stream) -> object:
    """Decode the JSON request body, or exit with an error."""
    try:
        return json.loads(stream.read())
    except json.JSONDecodeError as exc:
        click.echo(f"Error: request is not valid JSON: {exc}", err=True)
        sys.exit(1)


def _parse(parser, data):
    """Run a request parser, or exit with the validation message."""
    from ledger_query.errors import ValidationError

    try:
        return parser(data)
    except ValidationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def _load_settings():
    """Load ``config.toml`` from the working directory, or exit."""
    from ledger_query.config import load_config

    try:
        return load_config(Path.cwd())
    except FileNotFoundError as exc:
        click.echo(
            f"Error: {exc}. Run 'ledger init' to create a configuration file.",
            err=True,
        )
        sys.exit(1)
    except Exception as exc:
        click.echo(f"Error loading configuration: {exc}", err=True)
        sys.exit(1)


def _open_client(config):
    """Build a :class:`LedgerClient` from *config*, or exit if no token is set."""
    from ledger_query.client import LedgerClient

    token = os.environ.get(config.access_token_env, "")
    if not token:
        click.echo(
            f"Error: access token not found in environment variable "
            f"'{config.access_token_env}'",
            err=True,
        )
        sys.exit(1)
    return LedgerClient(base_url=config.base_url, access_token=token, timeout=config.timeout)


def _emit(result) -> None:
    """Print *result* as JSON and exit with its status."""
    click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    sys.exit(0 if result.success else 1)


_verbose_option = click.option(
    "--verbose", is_flag=True, default=False, help="Progress output on stderr."
)
_debug_option = click.option(
    "--debug", is_flag=True, default=False, help="Developer-level diagnostics."
)
_dry_run_option = click.option(
    "--dry-run", is_flag=True, default=False, help="Preview the targets without writing."
)


@click.group()
@click.version_option(version=__version__, prog_name="ledger-query")
def cli() -> None:
    """Search and bulk-edit records in a remote personal-finance ledger."""


@cli.command()
@click.argument("request_file", type=click.File("r", encoding="utf-8"))
@_verbose_option
@_debug_option
def search(request_file, verbose: bool, debug: bool) -> None:
    """Search records in a date range. REQUEST_FILE is a JSON path or '-'."""
    _configure_logging(verbose, debug)

    from ledger_query.inputs import parse_search_request
    from ledger_query.search import search as run_search

    request = _parse(parse_search_request, _read_request(request_file))
    config = _load_settings()

    with _open_client(config) as client:
        result = run_search(request, client.fetch_page, config.fetch_options())
    _emit(result)


@cli.command("bulk-update")
@click.argument("request_file", type=click.File("r", encoding="utf-8"))
@_dry_run_option
@_verbose_option
@_debug_option
def bulk_update(request_file, dry_run: bool, verbose: bool, debug: bool) -> None:
    """Update every record matching the criteria. REQUEST_FILE is a JSON path or '-'."""
    _configure_logging(verbose, debug)

    from ledger_query.bulk import bulk_update as run_bulk_update
    from ledger_query.inputs import parse_bulk_update_request

    request = _parse(parse_bulk_update_request, _read_request(request_file))
    if dry_run:
        request = replace(request, dry_run=True)
    config = _load_settings()

    with _open_client(config) as client:
        result = run_bulk_update(
            request,
            client.fetch_page,
            client.mutate,
            config.fetch_options(),
            write_delay=config.write_delay_seconds,
        )
    _emit(result)


@cli.command("bulk-delete")
@click.argument("request_file", type=click.File("r", encoding="utf-8"))
@_dry_run_option
@_verbose_option
@_debug_option
def bulk_delete(request_file, dry_run: bool, verbose: bool, debug: bool) -> None:
    """Delete every record matching the criteria. REQUEST_FILE is a JSON path or '-'."""
    _configure_logging(verbose, debug)

    from ledger_query.bulk import bulk_delete as run_bulk_delete
    from ledger_query.inputs import parse_bulk_delete_request

    request = _parse(parse_bulk_delete_request, _read_request(request_file))
    if dry_run:
        request = replace(request, dry_run=True)
    config = _load_settings()

    with _open_client(config) as client:
        result = run_bulk_delete(
            request,
            client.fetch_page,
            client.mutate,
            config.fetch_options(),
            write_delay=config.write_delay_seconds,
        )
    _emit(result)


@cli.command()
@click.option(
    "--dir", "target_dir", default=".", type=click.Path(), help="Directory to initialize."
)
@click.option("--base-url", default=None, help="Root URL of the ledger API.")
def init(target_dir: str, base_url: str | None) -> None:
    """Write a default config.toml."""
    from ledger_query.config import initialize

    target = Path(target_dir).resolve()

    try:
        path = initialize(target, base_url=base_url)
    except Exception as exc:
        click.echo(f"Error initializing configuration: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Configuration ready at {path}")
