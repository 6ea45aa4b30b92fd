"""Recurrence management commands."""

import click
from treasury.cli.error_handling import handle_domain_error, parse_or_exit
from treasury.domain.entities import (
    Certainty,
    Direction,
    Frequency,
    RecurrenceStatus,
    RecurrenceTemplate,
)
from treasury.domain.recurrence import RecurrenceService
from treasury.utils.amount_parser import parse_amount
from treasury.utils.date_parser import parse_date

FREQUENCY_CHOICES = [f.value for f in Frequency if f != Frequency.NONE]
DAY_OF_WEEK_HELP = "Day of week, 0=Sunday .. 6=Saturday (WEEKLY, BIWEEKLY)"


def _format_template_line(template: RecurrenceTemplate) -> str:
    next_date = template.next_occurrence_date or "-"
    return (
        f"{template.id:>5}  {template.name[:30]:<30}  {template.direction.value:<7}  "
        f"{template.base_amount:>12,.2f}  {template.frequency.value:<9}  "
        f"{template.status.value:<7}  {next_date}"
    )


@click.group()
def recurrence_group():
    """Manage recurring income and expenses."""
    pass


@recurrence_group.command("create")
@click.option("--owner", envvar="TREASURY_OWNER", required=True, help="Owner ID")
@click.option("--company", required=True, help="Company ID")
@click.option(
    "--type",
    "direction",
    type=click.Choice([d.value for d in Direction], case_sensitive=False),
    required=True,
    help="INCOME or EXPENSE",
)
@click.option("--name", required=True, help="Recurrence name")
@click.option("--amount", required=True, help="Amount of each occurrence (e.g., 1500.00)")
@click.option(
    "--frequency",
    type=click.Choice(FREQUENCY_CHOICES, case_sensitive=False),
    required=True,
    help="Recurrence frequency",
)
@click.option("--start", required=True, help="Start date (YYYY-MM-DD or relative like 'today')")
@click.option("--end", help="Optional end date")
@click.option("--day-of-month", type=click.IntRange(1, 31), help="Day of month (MONTHLY, QUARTERLY, YEARLY)")
@click.option("--day-of-week", type=click.IntRange(0, 6), help=DAY_OF_WEEK_HELP)
@click.option("--months-ahead", type=click.IntRange(1, 24), default=6, help="Generation window in months (default: 6)")
@click.option("--category", default="", help="Category label")
@click.option("--third-party-id", help="Counterparty ID")
@click.option("--third-party-name", default="", help="Counterparty name")
@click.option("--account", help="Account ID")
@click.option(
    "--certainty",
    type=click.Choice([c.value for c in Certainty], case_sensitive=False),
    default="HIGH",
    help="Confidence tier (default: HIGH)",
)
@click.option("--notes", default="", help="Notes")
@click.option("--paused", is_flag=True, help="Create paused (no transactions generated)")
@click.pass_context
def create_recurrence(
    ctx,
    owner: str,
    company: str,
    direction: str,
    name: str,
    amount: str,
    frequency: str,
    start: str,
    end: str | None,
    day_of_month: int | None,
    day_of_week: int | None,
    months_ahead: int,
    category: str,
    third_party_id: str | None,
    third_party_name: str,
    account: str | None,
    certainty: str,
    notes: str,
    paused: bool,
) -> None:
    """Create a recurrence and generate its upcoming transactions.

    Examples:
        treasury recurrence create --owner alice --company acme --type EXPENSE \\
            --name Rent --amount 1200 --frequency MONTHLY --start 2025-01-01 --day-of-month 5
        treasury recurrence create --owner alice --company acme --type INCOME \\
            --name Retainer --amount 300 --frequency WEEKLY --start today --day-of-week 1
    """
    service = RecurrenceService(ctx.obj["db"])

    base_amount = parse_or_exit(ctx, parse_amount, amount, "amount")
    start_date = parse_or_exit(ctx, parse_date, start, "start date")
    end_date = parse_or_exit(ctx, parse_date, end, "end date") if end else None

    try:
        template_id, result = service.create_template(
            owner_id=owner,
            company_id=company,
            direction=direction.upper(),
            name=name,
            base_amount=base_amount,
            frequency=frequency.upper(),
            start_date=start_date,
            day_of_month=day_of_month,
            day_of_week=day_of_week,
            end_date=end_date,
            generate_months_ahead=months_ahead,
            category=category,
            third_party_id=third_party_id,
            third_party_name=third_party_name,
            account_id=account,
            certainty=certainty.upper(),
            notes=notes,
            status=RecurrenceStatus.PAUSED if paused else RecurrenceStatus.ACTIVE,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"Created recurrence '{name}' (ID: {template_id}): "
        f"{result.generated_count} transaction(s) generated"
    )


@recurrence_group.command("list")
@click.option("--owner", envvar="TREASURY_OWNER", help="Filter by owner")
@click.option("--company", help="Filter by company")
@click.option(
    "--status",
    type=click.Choice([s.value for s in RecurrenceStatus], case_sensitive=False),
    help="Filter by status",
)
@click.option(
    "--type",
    "direction",
    type=click.Choice([d.value for d in Direction], case_sensitive=False),
    help="Filter by INCOME or EXPENSE",
)
@click.pass_context
def list_recurrences(
    ctx, owner: str | None, company: str | None, status: str | None, direction: str | None
) -> None:
    """List recurrences ordered by name."""
    service = RecurrenceService(ctx.obj["db"])
    templates = service.list_templates(
        owner_id=owner,
        company_id=company,
        status=status.upper() if status else None,
        direction=direction.upper() if direction else None,
    )

    if not templates:
        click.echo("No recurrences found.")
        return

    click.echo(f"{'ID':>5}  {'Name':<30}  {'Type':<7}  {'Amount':>12}  {'Frequency':<9}  {'Status':<7}  Next")
    click.echo("-" * 96)
    for template in templates:
        click.echo(_format_template_line(template))


@recurrence_group.command("show")
@click.argument("template_id", type=int)
@click.pass_context
def show_recurrence(ctx, template_id: int) -> None:
    """Show a recurrence and its linked transactions."""
    db = ctx.obj["db"]
    service = RecurrenceService(db)
    try:
        template = service.require_template(template_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Recurrence {template.id}: {template.name}")
    click.echo(f"  Owner / company: {template.owner_id} / {template.company_id}")
    click.echo(f"  Type: {template.direction.value}  Amount: {template.base_amount:,.2f}")
    anchor = ""
    if template.day_of_month is not None:
        anchor = f" on day {template.day_of_month}"
    elif template.day_of_week is not None:
        anchor = f" on weekday {template.day_of_week}"
    click.echo(f"  Schedule: {template.frequency.value}{anchor} from {template.start_date}"
               f"{f' to {template.end_date}' if template.end_date else ''}")
    click.echo(f"  Status: {template.status.value}  Window: {template.generate_months_ahead} month(s)")
    click.echo(f"  Last generated: {template.last_generated_date or '-'}  "
               f"Next: {template.next_occurrence_date or '-'}")
    if template.third_party_name:
        click.echo(f"  Third party: {template.third_party_name}")

    transactions = db.list_transactions_by_recurrence(template_id)
    click.echo(f"  Transactions: {len(transactions)}")
    for txn in transactions:
        marker = " *" if txn.overridden_from_recurrence else ""
        click.echo(f"    {txn.id:>5}  {txn.due_date}  {txn.amount:>12,.2f}  {txn.status.value}{marker}")


@recurrence_group.command("update")
@click.argument("template_id", type=int)
@click.option("--name", help="Recurrence name")
@click.option("--amount", help="Amount of each occurrence")
@click.option("--frequency", type=click.Choice(FREQUENCY_CHOICES, case_sensitive=False), help="Recurrence frequency")
@click.option("--start", help="Start date")
@click.option("--end", help="End date")
@click.option("--clear-end", is_flag=True, help="Remove the end date")
@click.option("--day-of-month", type=click.IntRange(1, 31), help="Day of month")
@click.option("--day-of-week", type=click.IntRange(0, 6), help=DAY_OF_WEEK_HELP)
@click.option("--months-ahead", type=click.IntRange(1, 24), help="Generation window in months")
@click.option("--category", help="Category label")
@click.option("--third-party-name", help="Counterparty name")
@click.option("--certainty", type=click.Choice([c.value for c in Certainty], case_sensitive=False), help="Confidence tier")
@click.option("--notes", help="Notes")
@click.pass_context
def update_recurrence(
    ctx,
    template_id: int,
    name: str | None,
    amount: str | None,
    frequency: str | None,
    start: str | None,
    end: str | None,
    clear_end: bool,
    day_of_month: int | None,
    day_of_week: int | None,
    months_ahead: int | None,
    category: str | None,
    third_party_name: str | None,
    certainty: str | None,
    notes: str | None,
) -> None:
    """Update a recurrence.

    Changing the schedule or amount replaces future pending transactions
    that were not edited by hand.

    Examples:
        treasury recurrence update 1 --amount 1300
        treasury recurrence update 1 --frequency QUARTERLY --day-of-month 10
    """
    if end and clear_end:
        click.echo("Error: Use either --end or --clear-end, not both", err=True)
        ctx.exit(1)

    changes = {}
    if name is not None:
        changes["name"] = name
    if amount is not None:
        changes["base_amount"] = parse_or_exit(ctx, parse_amount, amount, "amount")
    if frequency is not None:
        changes["frequency"] = frequency.upper()
    if start is not None:
        changes["start_date"] = parse_or_exit(ctx, parse_date, start, "start date")
    if end is not None:
        changes["end_date"] = parse_or_exit(ctx, parse_date, end, "end date")
    if clear_end:
        changes["end_date"] = None
    if day_of_month is not None:
        changes["day_of_month"] = day_of_month
    if day_of_week is not None:
        changes["day_of_week"] = day_of_week
    if months_ahead is not None:
        changes["generate_months_ahead"] = months_ahead
    if category is not None:
        changes["category"] = category
    if third_party_name is not None:
        changes["third_party_name"] = third_party_name
    if certainty is not None:
        changes["certainty"] = certainty.upper()
    if notes is not None:
        changes["notes"] = notes

    if not changes:
        click.echo("Nothing to update.")
        return

    try:
        outcome = RecurrenceService(ctx.obj["db"]).update_template(template_id, **changes)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Updated recurrence {template_id}")
    if outcome.regenerated:
        generated = outcome.generation.generated_count if outcome.generation else 0
        click.echo(f"  Replaced {outcome.deleted_count} future transaction(s), {generated} generated")


@recurrence_group.command("pause")
@click.argument("template_id", type=int)
@click.pass_context
def pause_recurrence(ctx, template_id: int) -> None:
    """Pause a recurrence and delete its future pending transactions."""
    try:
        deleted = RecurrenceService(ctx.obj["db"]).pause_template(template_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Paused recurrence {template_id} ({deleted} future transaction(s) deleted)")


@recurrence_group.command("resume")
@click.argument("template_id", type=int)
@click.pass_context
def resume_recurrence(ctx, template_id: int) -> None:
    """Resume a paused recurrence and generate its upcoming transactions."""
    try:
        result = RecurrenceService(ctx.obj["db"]).resume_template(template_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Resumed recurrence {template_id} ({result.generated_count} transaction(s) generated)")


@recurrence_group.command("end")
@click.argument("template_id", type=int)
@click.pass_context
def end_recurrence(ctx, template_id: int) -> None:
    """End a recurrence and delete its future pending transactions."""
    try:
        deleted = RecurrenceService(ctx.obj["db"]).end_template(template_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Ended recurrence {template_id} ({deleted} future transaction(s) deleted)")


@recurrence_group.command("delete")
@click.argument("template_id", type=int)
@click.option(
    "--delete-transactions",
    is_flag=True,
    help="Delete linked transactions instead of keeping them unlinked",
)
@click.option(
    "--include-completed",
    is_flag=True,
    help="With --delete-transactions, also delete completed and cancelled ones",
)
@click.pass_context
def delete_recurrence(ctx, template_id: int, delete_transactions: bool, include_completed: bool) -> None:
    """Delete a recurrence.

    By default its transactions stay in the ledger, unlinked from the
    recurrence.

    Examples:
        treasury recurrence delete 1
        treasury recurrence delete 1 --delete-transactions
    """
    service = RecurrenceService(ctx.obj["db"])

    template = service.get_template(template_id)
    if template is None:
        click.echo(f"Error: Recurrence {template_id} not found", err=True)
        ctx.exit(1)

    if not click.confirm(f"Are you sure you want to delete recurrence '{template.name}' (ID: {template_id})?"):
        click.echo("Deletion cancelled.")
        return

    try:
        affected = service.delete_template(
            template_id,
            delete_transactions=delete_transactions,
            pending_only=not include_completed,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    action = "deleted" if delete_transactions else "unlinked"
    click.echo(f"Deleted recurrence {template_id} ({affected} transaction(s) {action})")


@recurrence_group.command("preview")
@click.argument("template_id", type=int)
@click.option("--as-of", help="Reference date (defaults to today)")
@click.option("--months-ahead", type=click.IntRange(1, 24), help="Override the generation window")
@click.pass_context
def preview_recurrence(ctx, template_id: int, as_of: str | None, months_ahead: int | None) -> None:
    """Show the dates the next generation run would consider."""
    as_of_date = parse_or_exit(ctx, parse_date, as_of, "date") if as_of else None
    try:
        dates = RecurrenceService(ctx.obj["db"]).preview(
            template_id, as_of=as_of_date, months_ahead=months_ahead
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not dates:
        click.echo("No upcoming occurrences.")
        return
    for occurrence in dates:
        click.echo(occurrence.isoformat())


@recurrence_group.command("set-amount")
@click.argument("template_id", type=int)
@click.option("--amount", required=True, help="New amount of each occurrence")
@click.option("--effective", help="First day of the new amount (defaults to today)")
@click.option("--reason", default="", help="Why the amount changed")
@click.option(
    "--keep-transactions",
    is_flag=True,
    help="Leave already generated transactions at their current amount",
)
@click.pass_context
def set_amount(
    ctx, template_id: int, amount: str, effective: str | None, reason: str, keep_transactions: bool
) -> None:
    """Change the amount of a recurrence from a given day on.

    The change is kept as a new version in the recurrence's amount history.
    Pending transactions due from that day on take the new amount, except
    the ones edited by hand.

    Examples:
        treasury recurrence set-amount 1 --amount 1350 --effective 2025-07-01 --reason "Lease renewal"
    """
    new_amount = parse_or_exit(ctx, parse_amount, amount, "amount")
    effective_from = parse_or_exit(ctx, parse_date, effective, "effective date") if effective else None

    try:
        change = RecurrenceService(ctx.obj["db"]).change_amount(
            template_id,
            new_amount,
            effective_from=effective_from,
            change_reason=reason,
            update_transactions=not keep_transactions,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    version = change.version
    click.echo(
        f"Recurrence {template_id} amount set to {version.amount:,.2f} from "
        f"{version.effective_from} (version {version.version_number}, "
        f"{change.updated_count} transaction(s) updated)"
    )


@recurrence_group.command("versions")
@click.argument("template_id", type=int)
@click.pass_context
def list_versions(ctx, template_id: int) -> None:
    """Show the amount history of a recurrence."""
    try:
        versions = RecurrenceService(ctx.obj["db"]).list_versions(template_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not versions:
        click.echo("No amount changes recorded.")
        return

    click.echo(f"{'Ver':>3}  {'Amount':>12}  {'From':<10}  {'To':<10}  Reason")
    click.echo("-" * 60)
    for version in versions:
        until = version.effective_to.isoformat() if version.effective_to else "-"
        click.echo(
            f"{version.version_number:>3}  {version.amount:>12,.2f}  "
            f"{version.effective_from.isoformat():<10}  {until:<10}  {version.change_reason}"
        )


@recurrence_group.command("revert-amount")
@click.argument("template_id", type=int)
@click.pass_context
def revert_amount(ctx, template_id: int) -> None:
    """Drop the latest amount version of a recurrence.

    The previous amount applies again to future generation; transactions
    already updated keep their amount.
    """
    if not click.confirm(f"Drop the latest amount version of recurrence {template_id}?"):
        click.echo("Revert cancelled.")
        return

    try:
        restored = RecurrenceService(ctx.obj["db"]).revert_amount(template_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if restored is None:
        click.echo(f"Reverted recurrence {template_id}; no earlier version remains")
    else:
        click.echo(
            f"Reverted recurrence {template_id} to version {restored.version_number} "
            f"({restored.amount:,.2f})"
        )


def register_commands(cli: click.Group) -> None:
    """Register recurrence commands with main CLI."""
    cli.add_command(recurrence_group, name="recurrence")
