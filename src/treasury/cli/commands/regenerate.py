"""Regenerate command."""

import click
from treasury.client.throttle import RegenerationThrottle, cache_key
from treasury.cli.error_handling import parse_or_exit
from treasury.domain.generation import RecurrenceGenerator
from treasury.utils.date_parser import parse_date


@click.command("regenerate")
@click.option("--owner", envvar="TREASURY_OWNER", help="Only regenerate recurrences of this owner")
@click.option("--company", help="Only regenerate recurrences of this company")
@click.option(
    "--months-ahead",
    type=click.IntRange(1, 24),
    help="Override each recurrence's generation window (months)",
)
@click.option("--as-of", help="Reference date (YYYY-MM-DD or relative like 'today'); defaults to today")
@click.option("--throttle", is_flag=True, help="Skip when this scope already ran within the last hour")
@click.option("--force", is_flag=True, help="Run even when the throttle would skip")
@click.pass_context
def regenerate(
    ctx,
    owner: str | None,
    company: str | None,
    months_ahead: int | None,
    as_of: str | None,
    throttle: bool,
    force: bool,
) -> None:
    """Generate upcoming transactions for all active recurrences.

    Safe to run repeatedly: occurrences that already have a transaction are
    skipped. Suitable for a daily cron entry; use --throttle for interactive
    refreshes.

    Examples:
        treasury regenerate
        treasury regenerate --company acme --months-ahead 12
        treasury regenerate --owner alice --throttle
    """
    db = ctx.obj["db"]
    as_of_date = parse_or_exit(ctx, parse_date, as_of, "date") if as_of else None

    key = cache_key(owner, company)
    limiter = RegenerationThrottle() if throttle else None
    if limiter is not None and not limiter.should_run(key, force=force):
        click.echo(f"Skipped: {key} already ran at {limiter.last_run(key):%Y-%m-%d %H:%M} UTC")
        return

    summary = RecurrenceGenerator(db).regenerate_all(
        owner_id=owner,
        company_id=company,
        months_ahead=months_ahead,
        as_of=as_of_date,
    )
    if limiter is not None:
        limiter.mark_run(key)

    click.echo(
        f"Processed {summary.recurrences_processed} recurrence(s): "
        f"{summary.total_generated} generated, {summary.total_skipped} skipped"
    )
    for detail in summary.details:
        if detail.generated_count:
            click.echo(
                f"  Recurrence {detail.recurrence_id}: {detail.generated_count} generated, "
                f"{detail.skipped_count} skipped"
            )

    for error in summary.errors:
        click.echo(f"Error: {error}", err=True)
    if summary.errors:
        ctx.exit(1)


def register_commands(cli: click.Group) -> None:
    """Register regenerate command with main CLI."""
    cli.add_command(regenerate)
