"""CLI entry point for venue reconciliation.

Usage:
    venue-recon vendors

    # Map raw vendor records to canonical CSV
    venue-recon map skiddle venues.json -o mapped.csv

    # Match a payload ({"inputRecords": [...], "latestCsv": "..."})
    venue-recon match skiddle payload.json

    # Match bare records against a reference CSV, write both partitions
    venue-recon match skiddle venues.json --reference Liverpool.csv -o out/
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from dotenv import find_dotenv, load_dotenv

# Load .env by walking upward from the CWD.
_dotenv_path = find_dotenv(usecwd=True)
if _dotenv_path:
    load_dotenv(_dotenv_path)

from venue_recon.config import Settings, load_field_maps
from venue_recon.errors import ReconError
from venue_recon.mapper import FieldMapper
from venue_recon.reconcile import ReconcilePayload, Reconciler
from venue_recon.reference import FileReferenceStore, InlineReference

log = logging.getLogger(__name__)

ZERO_MATCH_FILENAME = "zero_match.csv"
HAS_MATCH_FILENAME = "has_match.csv"


def _configure_logging(quiet: bool, settings: Settings) -> None:
    level = logging.WARNING if quiet else getattr(logging, settings.log_level)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def _load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ReconError as e:
        raise click.ClickException(str(e))


def _build_reconciler(settings: Settings, max_workers: int | None = None) -> Reconciler:
    try:
        registry = load_field_maps(settings.fieldmap_dir)
    except ReconError as e:
        raise click.ClickException(str(e))
    workers = max_workers if max_workers is not None else settings.max_workers
    return Reconciler(FieldMapper(registry), max_workers=workers)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise click.ClickException(f"Failed to read {path}: {e}")
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON in {path}: {e}")


def _payload_from_file(path: Path) -> ReconcilePayload:
    """Accept a full payload object or a bare list of raw records."""
    data = _read_json(path)
    if isinstance(data, list):
        return ReconcilePayload(input_records=data)
    try:
        return ReconcilePayload.from_dict(data)
    except ReconError as e:
        raise click.ClickException(str(e))


def _reference_provider(reference: Path | None, settings: Settings):
    if reference is not None:
        return FileReferenceStore(reference)
    if settings.reference_csv is not None:
        return FileReferenceStore(settings.reference_csv)
    return None


@click.group()
def main():
    """Map vendor venue records and match them to a reference table."""


@main.command()
def vendors():
    """List supported vendor ids."""
    reconciler = _build_reconciler(_load_settings())
    for vendor_id in reconciler.mapper.vendors():
        click.echo(vendor_id)


@main.command("map")
@click.argument("vendor")
@click.argument("input_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--reference",
    "-r",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Reference CSV whose header seeds the output column order",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write CSV here instead of stdout",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress verbose output")
def map_cmd(
    vendor: str,
    input_json: Path,
    reference: Path | None,
    output: Path | None,
    quiet: bool,
):
    """Map raw VENDOR records in INPUT_JSON to canonical CSV."""
    settings = _load_settings()
    _configure_logging(quiet, settings)
    reconciler = _build_reconciler(settings)
    payload = _payload_from_file(input_json)

    provider = FileReferenceStore(reference) if reference is not None else None
    try:
        csv_text = reconciler.map_only(vendor, payload.input_records, provider)
    except ReconError as e:
        raise click.ClickException(str(e))

    if output is None:
        click.echo(csv_text, nl=False)
    else:
        output.write_text(csv_text, encoding="utf-8")
        log.info("Saved to: %s", output)


@main.command("match")
@click.argument("vendor")
@click.argument("input_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--reference",
    "-r",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Reference CSV (default: payload latestCsv, then VENUE_RECON_REFERENCE_CSV)",
)
@click.option(
    "--output-dir",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help=f"Write {ZERO_MATCH_FILENAME} and {HAS_MATCH_FILENAME} here instead of printing JSON",
)
@click.option(
    "--max-workers",
    type=click.IntRange(min=1),
    default=None,
    help="Threads used for matching (default: VENUE_RECON_MAX_WORKERS or 1)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress verbose output")
def match_cmd(
    vendor: str,
    input_json: Path,
    reference: Path | None,
    output_dir: Path | None,
    max_workers: int | None,
    quiet: bool,
):
    """Match VENDOR records in INPUT_JSON against the reference table."""
    settings = _load_settings()
    _configure_logging(quiet, settings)
    reconciler = _build_reconciler(settings, max_workers)
    payload = _payload_from_file(input_json)

    provider = _reference_provider(reference, settings)
    try:
        if reference is not None:
            result = reconciler.reconcile(vendor, payload.input_records, provider)
        else:
            result = reconciler.reconcile_payload(vendor, payload, fallback=provider)
    except ReconError as e:
        raise click.ClickException(str(e))

    if output_dir is None:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    (output_dir / ZERO_MATCH_FILENAME).write_text(result.zero_match_csv, encoding="utf-8")
    (output_dir / HAS_MATCH_FILENAME).write_text(result.has_match_csv, encoding="utf-8")
    click.echo(f"zero match: {result.zero_match_count}")
    click.echo(f"has match:  {result.has_match_count}")
    log.info("Saved to: %s", output_dir)


if __name__ == "__main__":
    main()
