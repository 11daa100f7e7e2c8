"""
bucketsync CLI

Implements the maintenance verbs on top of the Operations facade:
- connect: Write, read back and delete a test object in a bucket
- republish: Run a full publishing pass for a collection
- repair-metadata: Re-apply content types of published objects (resumable)
- orphans: Audit, export or delete stored objects no resource refers to
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .cli_context import CLIContext
from .operations import PARTIAL_FAILURE_EXIT_CODE, Operations, OpsConfig, run_and_exit
from .operations.printers import (
    print_orphan_report,
    print_progress,
    print_publish_report,
    print_repair_progress,
    print_repair_report,
)

app = typer.Typer(name="bucketsync", help="Publish and maintain resources in Google Cloud Storage buckets")

_CONFIG_HELP = "YAML file configuring storages, targets and collections"
_CATALOG_HELP = "YAML resource catalog (required)"


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
) -> None:
    """Publish and maintain resources in Google Cloud Storage buckets."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _operations(config: Path, catalog: Optional[Path]) -> Operations:
    context = CLIContext.from_env()
    return Operations(
        OpsConfig(config_path=config, catalog_path=catalog),
        client=context.client,
        settings=context.settings,
    )


@app.command()
def connect(
    bucket: str = typer.Argument(..., help="Bucket to test against")
) -> None:
    """Check credentials and bucket access with a test object."""

    def _connect() -> None:
        context = CLIContext.from_env()
        ops = Operations(OpsConfig(), client=context.client, settings=context.settings)
        ops.connect(bucket, progress=print_progress)
        print_progress("OK")

    run_and_exit(_connect)


@app.command()
def republish(
    collection: str = typer.Argument(..., help="Collection to publish"),
    config: Path = typer.Option(Path("bucketsync.yaml"), "--config", "-c", envvar="BUCKETSYNC_CONFIG", help=_CONFIG_HELP),
    catalog: Optional[Path] = typer.Option(None, "--catalog", envvar="BUCKETSYNC_CATALOG", help=_CATALOG_HELP),
) -> None:
    """Publish every resource of a collection and remove obsolete objects."""

    def _republish() -> None:
        ops = _operations(config, catalog)
        report = ops.republish(collection)
        print_publish_report(collection, report, ops.messages)
        if not report.ok:
            raise typer.Exit(code=PARTIAL_FAILURE_EXIT_CODE)

    run_and_exit(_republish)


@app.command("repair-metadata")
def repair_metadata(
    collection: str = typer.Argument(..., help="Collection to repair"),
    resume_from: Optional[str] = typer.Option(None, "--resume-from", help="SHA1 to resume at (inclusive)"),
    config: Path = typer.Option(Path("bucketsync.yaml"), "--config", "-c", envvar="BUCKETSYNC_CONFIG", help=_CONFIG_HELP),
    catalog: Optional[Path] = typer.Option(None, "--catalog", envvar="BUCKETSYNC_CATALOG", help=_CATALOG_HELP),
) -> None:
    """Re-apply the content type of every published object, ordered by SHA1."""

    def _repair() -> None:
        if resume_from is not None and len(resume_from) != 40:
            raise ValueError(f"--resume-from must be a 40 character SHA1, got {resume_from!r}")
        ops = _operations(config, catalog)
        report = ops.repair_metadata(
            collection,
            resume_from=resume_from.lower() if resume_from else None,
            progress=print_repair_progress,
        )
        print_repair_report(collection, report)
        if not report.ok:
            raise typer.Exit(code=PARTIAL_FAILURE_EXIT_CODE)

    run_and_exit(_repair)


@app.command()
def orphans(
    storage: str = typer.Argument(..., help="Storage to audit"),
    export: Optional[Path] = typer.Option(None, "--export", help="Write orphan keys to this file"),
    delete: bool = typer.Option(False, "--delete", help="Delete the orphans"),
    config: Path = typer.Option(Path("bucketsync.yaml"), "--config", "-c", envvar="BUCKETSYNC_CONFIG", help=_CONFIG_HELP),
    catalog: Optional[Path] = typer.Option(None, "--catalog", envvar="BUCKETSYNC_CATALOG", help=_CATALOG_HELP),
) -> None:
    """Find stored objects that no resource refers to."""

    def _orphans() -> None:
        ops = _operations(config, catalog)
        report = ops.orphans(storage, export_path=export, delete=delete)
        print_orphan_report(report, export_path=str(export) if export else None, deleted=delete)
        if not report.ok:
            raise typer.Exit(code=PARTIAL_FAILURE_EXIT_CODE)

    run_and_exit(_orphans)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
