from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

from .core.errors import ConfigurationError
from .workflows.check_config import (
    FragmentRule,
    RunConfig,
    default_backoff_ms,
    default_concurrency,
    default_max_retries,
    default_min_jitter_ms,
    default_output_path,
    default_requests_per_second,
    default_timeout_ms,
    default_user_agent,
)
from .workflows.id_loader import load_identifiers
from .workflows.pipeline import run_check_sync

logger = logging.getLogger(__name__)

app = typer.Typer(add_help_option=False, no_args_is_help=False, add_completion=False)

EXIT_USAGE = 2


def _usage() -> str:
    return """textcheck - check a text marker on one page per identifier

Usage:
  textcheck check --file <ids.xlsx|ids.csv> --base <URL> --text <MARKER> [options]

Required:
  --file <PATH>        Spreadsheet (.xlsx/.xlsm) or one-ID-per-line UTF-8 text/CSV file.
  --base <URL>         Base URL; each request goes to <base>=<id>.
  --text <MARKER>      Text expected inside the designated fragment.

Options:
  --col <A>            Spreadsheet column holding the IDs (default: A).
  --sheet <NAME>       Spreadsheet sheet (default: first sheet).
  --concurrency <N>    Concurrent workers (default: 2).
  --rps <R>            Requests per second per worker (default: 0.5).
  --mindelay <MS>      Random extra delay per request, 0..MS ms (default: 1000).
  --retries <N>        Retries after a failed request (default: 2).
  --timeout <MS>       Per-request timeout in ms (default: 15000).
  --backoff <MS>       First retry backoff in ms, doubled per retry (default: 400).
  --outfile <PATH>     Results CSV, appended to if present (default: resultados.csv).
  --match-label <L>    Label written for matching rows (default: SI).
  --fragment-tag <T>   Tag holding the fragment (default: h3).
  --fragment-attr <S>  Attribute signature of that tag (default: class=mb-1 text-center).
  --dry-run            Load IDs and validate options without fetching.
  --json               Print the run summary as JSON.
  -v, --verbose        Log every result.

Example:
  textcheck check --file=numeros.xlsx --col=A --base=https://app.udeki.com/login?id \\
      --text="Bienvenido a Udeki" --concurrency=1 --rps=1 --outfile=resultados.csv
"""


def _fail_usage(message: str) -> None:
    typer.echo(f"error: {message}\n", err=True)
    typer.echo(_usage(), err=True)
    raise typer.Exit(code=EXIT_USAGE)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show usage."),
) -> None:
    if help or ctx.invoked_subcommand is None:
        typer.echo(_usage())
        raise typer.Exit(code=0)


@app.command("check", add_help_option=True)
def check(
    file: Optional[Path] = typer.Option(None, "--file", help="Spreadsheet or text file with IDs."),
    col: str = typer.Option("A", "--col", help="Spreadsheet column holding the IDs."),
    sheet: Optional[str] = typer.Option(None, "--sheet", help="Spreadsheet sheet name (default: first)."),
    base: Optional[str] = typer.Option(None, "--base", help="Base URL; requests go to <base>=<id>."),
    text: Optional[str] = typer.Option(None, "--text", help="Marker text expected in the fragment."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", help="Concurrent workers."),
    rps: Optional[float] = typer.Option(None, "--rps", help="Requests per second per worker."),
    mindelay: Optional[int] = typer.Option(None, "--mindelay", help="Max random extra delay (ms)."),
    outfile: Optional[Path] = typer.Option(None, "--outfile", help="Results CSV path."),
    retries: Optional[int] = typer.Option(None, "--retries", help="Retries after a failed request."),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Per-request timeout (ms)."),
    backoff: Optional[int] = typer.Option(None, "--backoff", help="First retry backoff (ms)."),
    match_label: str = typer.Option("SI", "--match-label", help="Label for matching rows."),
    fragment_tag: str = typer.Option("h3", "--fragment-tag", help="Tag holding the fragment."),
    fragment_attr: str = typer.Option("class=mb-1 text-center", "--fragment-attr", help="Attribute signature name=value."),
    user_agent: Optional[str] = typer.Option(None, "--user-agent", help="User-Agent header."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate inputs without fetching."),
    json_out: bool = typer.Option(False, "--json", help="Print the run summary as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every result."),
) -> None:
    """Fetch <base>=<id> for every ID and record whether the marker is present."""

    load_dotenv(override=False)
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")

    missing = [flag for flag, value in (("--file", file), ("--base", base), ("--text", text)) if not value]
    if missing:
        _fail_usage(f"missing required option(s): {', '.join(missing)}")

    try:
        config = RunConfig(
            base_url=base or "",
            expected_marker=text or "",
            output_path=outfile if outfile is not None else default_output_path(),
            concurrency=concurrency if concurrency is not None else default_concurrency(),
            requests_per_second=rps if rps is not None else default_requests_per_second(),
            min_jitter_ms=mindelay if mindelay is not None else default_min_jitter_ms(),
            max_retries=retries if retries is not None else default_max_retries(),
            timeout_ms=timeout if timeout is not None else default_timeout_ms(),
            base_backoff_ms=backoff if backoff is not None else default_backoff_ms(),
            user_agent=user_agent or default_user_agent(),
            fragment_rule=FragmentRule.parse(fragment_tag, fragment_attr),
            match_label=match_label,
        )
        ids = load_identifiers(file, column=col, sheet=sheet)
    except ConfigurationError as exc:
        _fail_usage(str(exc))

    logger.info("Scan configured:\n%s\n", config.describe(file))
    if dry_run:
        typer.echo(f"dry-run: {len(ids)} IDs, first URL: {config.url_for(ids[0]) if ids else '-'}")
        raise typer.Exit(code=0)

    try:
        summary = run_check_sync(ids, config)
    except Exception as exc:
        typer.echo(f"fatal: {exc}", err=True)
        raise typer.Exit(code=3)

    if json_out:
        sys.stdout.write(json.dumps(summary.to_dict(), ensure_ascii=False) + "\n")
    else:
        typer.echo(
            f"Done. {summary.written} rows ({summary.matched} {config.match_label}, "
            f"{summary.not_matched} NO, {summary.errors} ERROR). Results saved to {config.output_path}"
        )
    raise typer.Exit(code=0)
