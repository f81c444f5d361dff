"""``flask reconcile`` - check and fix registration counts.

Exit codes:
  0 - no issues found, or all issues fixed
  1 - issues found and not fixed (run with --fix)
  2 - completed with errors
  3 - invalid options or the run itself failed
"""
import logging

import click
from flask.cli import with_appcontext

from compreg.registration import (
    ReconciliationConfigError,
    ReconciliationEngine,
    ReconciliationOptions,
    exit_code_for,
    format_report,
)
from compreg.registration.reconciliation import EXIT_FAILURE, EXIT_OK

logger = logging.getLogger(__name__)


@click.command("reconcile")
@click.option("--dry-run", "-d", "dry_run", is_flag=True, help="Check for discrepancies without making changes.")
@click.option("--fix", "-f", "auto_fix", is_flag=True, help="Fix the discrepancies that are found.")
@click.option("--event", "event_id", type=int, default=None, help="Check a single event by id.")
@click.option("--verbose", "-v", is_flag=True, help="Always print the detailed report.")
@click.option("--no-orphans", "skip_orphans", is_flag=True, help="Skip the orphaned registration pass.")
@with_appcontext
def reconcile_command(dry_run, auto_fix, event_id, verbose, skip_orphans):
    """Reconcile event registration counts with the registrations ledger."""
    try:
        options = ReconciliationOptions.build(
            dry_run=dry_run,
            auto_fix=auto_fix,
            event_id=event_id,
            include_orphaned=not skip_orphans,
        )
    except ReconciliationConfigError as exc:
        click.echo(f"Invalid options: {exc}", err=True)
        raise SystemExit(EXIT_FAILURE)

    click.echo("Configuration:")
    click.echo(f"  Mode: {options.mode}")
    click.echo(f"  Scope: {'Single event (%s)' % event_id if event_id else 'All events'}")

    try:
        report = ReconciliationEngine().run(options)
    except Exception as exc:
        logger.exception("Reconciliation failed")
        click.echo(f"Reconciliation failed: {exc}", err=True)
        raise SystemExit(EXIT_FAILURE)

    if verbose or report.has_issues or report.errors:
        click.echo("=" * 60)
        click.echo(format_report(report))
        click.echo("=" * 60)

    code = exit_code_for(report)
    if report.errors:
        click.echo("Reconciliation completed with errors")
    elif code == EXIT_OK and report.has_issues:
        click.echo("Issues found and resolved")
    elif code == EXIT_OK:
        click.echo("All registration counts are accurate!")
    else:
        click.echo("Issues found - run with --fix to resolve them")
    raise SystemExit(code)


def register_commands(app):
    app.cli.add_command(reconcile_command)
