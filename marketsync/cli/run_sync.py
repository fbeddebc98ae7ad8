# marketsync/cli/run_sync.py
import asyncio
import sys

import click

from marketsync.core.enums import SyncDirection
from marketsync.core.exceptions import SyncError
from marketsync.core.logging_config import configure_logging
from marketsync.services.sync_runner import run_standalone_sync


@click.command()
@click.option(
    "--direction",
    type=click.Choice([d.value for d in SyncDirection]),
    default=SyncDirection.PUSH.value,
    show_default=True,
    help="push: local stock is published. pull: marketplace stock is adopted locally.",
)
def run_sync(direction):
    """Run one stock reconciliation pass against Mercado Libre"""
    configure_logging()

    try:
        report = asyncio.run(run_standalone_sync(direction))
    except SyncError as e:
        click.echo(f"Sync failed: {e}", err=True)
        sys.exit(2)

    click.echo(f"\nSync run {report.sync_run_id} ({report.direction.value}): {report.status.value}")
    click.echo(f"Synced: {report.synced}")
    click.echo(f"Unchanged: {report.unchanged}")
    click.echo(f"Total: {report.total}")
    if report.errors:
        click.echo(f"Errors ({len(report.errors)}):")
        for error in report.errors:
            click.echo(f"  - {error}")
        sys.exit(1)


if __name__ == "__main__":
    run_sync()
