"""Transaction management commands."""

import click
from treasury.cli.error_handling import handle_domain_error, parse_or_exit
from treasury.domain.entities import (
    Certainty,
    Direction,
    Frequency,
    TransactionStatus,
)
from treasury.domain.transaction import TransactionService
from treasury.utils.amount_parser import parse_amount
from treasury.utils.date_parser import parse_date


@click.group()
def transaction_group():
    """Manage ledger transactions."""
    pass


@transaction_group.command("add")
@click.option("--owner", envvar="TREASURY_OWNER", required=True, help="Owner ID")
@click.option("--company", required=True, help="Company ID")
@click.option(
    "--type",
    "direction",
    type=click.Choice([d.value for d in Direction], case_sensitive=False),
    required=True,
    help="INCOME or EXPENSE",
)
@click.option("--amount", required=True, help="Transaction amount (e.g., 250.00)")
@click.option("--due", required=True, help="Due date (YYYY-MM-DD or relative like 'today', '+10 days')")
@click.option("--description", default="", help="Transaction description")
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
@click.option(
    "--recurrence",
    type=click.Choice([f.value for f in Frequency], case_sensitive=False),
    default="NONE",
    help="Repeat with this frequency (default: NONE)",
)
@click.option("--until", help="Last date of the recurring series")
@click.option("--installments", type=click.IntRange(min=2), help="Number of occurrences of the recurring series")
@click.pass_context
def add_transaction(
    ctx,
    owner: str,
    company: str,
    direction: str,
    amount: str,
    due: str,
    description: str,
    category: str,
    third_party_id: str | None,
    third_party_name: str,
    account: str | None,
    certainty: str,
    notes: str,
    recurrence: str,
    until: str | None,
    installments: int | None,
) -> None:
    """Add a transaction, optionally starting a recurring series.

    Examples:
        treasury transaction add --owner alice --company acme --type EXPENSE \\
            --amount 80 --due 2025-03-10 --description "Office supplies"
        treasury transaction add --owner alice --company acme --type EXPENSE \\
            --amount 450 --due 2025-03-15 --description "Loan" --recurrence MONTHLY --installments 12
    """
    if recurrence.upper() == Frequency.NONE.value and (until or installments):
        click.echo("Error: --until and --installments require --recurrence", err=True)
        ctx.exit(1)

    txn_amount = parse_or_exit(ctx, parse_amount, amount, "amount")
    due_date = parse_or_exit(ctx, parse_date, due, "due date")
    end_date = parse_or_exit(ctx, parse_date, until, "end date") if until else None

    try:
        txn_id, result = TransactionService(ctx.obj["db"]).create_transaction(
            owner_id=owner,
            company_id=company,
            direction=direction.upper(),
            amount=txn_amount,
            due_date=due_date,
            description=description,
            category=category,
            third_party_id=third_party_id,
            third_party_name=third_party_name,
            account_id=account,
            notes=notes,
            certainty=certainty.upper(),
            recurrence=recurrence.upper(),
            recurrence_end_date=end_date,
            installments=installments,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Created transaction {txn_id}")
    if result is not None:
        click.echo(
            f"Started recurrence {result.recurrence_id}: "
            f"{result.generated_count} more transaction(s) generated"
        )


@transaction_group.command("list")
@click.option("--owner", envvar="TREASURY_OWNER", help="Filter by owner")
@click.option("--company", help="Filter by company")
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'this month')")
@click.option("--end-date", help="End date (YYYY-MM-DD or relative like '+3 months')")
@click.option(
    "--status",
    type=click.Choice([s.value for s in TransactionStatus], case_sensitive=False),
    help="Filter by status",
)
@click.option("--recurrence-id", type=int, help="Only transactions of this recurrence")
@click.pass_context
def list_transactions(
    ctx,
    owner: str | None,
    company: str | None,
    start_date: str | None,
    end_date: str | None,
    status: str | None,
    recurrence_id: int | None,
) -> None:
    """List transactions ordered by due date."""
    start = parse_or_exit(ctx, parse_date, start_date, "start date") if start_date else None
    end = parse_or_exit(ctx, parse_date, end_date, "end date") if end_date else None

    try:
        transactions = TransactionService(ctx.obj["db"]).list_transactions(
            owner_id=owner,
            company_id=company,
            start_date=start,
            end_date=end,
            status=status.upper() if status else None,
            recurrence_id=recurrence_id,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not transactions:
        click.echo("No transactions found.")
        return

    click.echo(f"{'ID':>5}  {'Due':<10}  {'Type':<7}  {'Amount':>12}  {'Status':<9}  {'Recurrence':<10}  Description")
    click.echo("-" * 100)
    for txn in transactions:
        linked = str(txn.recurrence_id) if txn.recurrence_id is not None else "-"
        click.echo(
            f"{txn.id:>5}  {txn.due_date.isoformat():<10}  {txn.direction.value:<7}  "
            f"{txn.amount:>12,.2f}  {txn.status.value:<9}  {linked:<10}  {txn.description}"
        )
    click.echo(f"\nTotal: {len(transactions)} transaction(s)")


@transaction_group.command("update")
@click.argument("transaction_id", type=int)
@click.option("--amount", help="Transaction amount")
@click.option("--due", help="Due date")
@click.option("--description", help="Transaction description")
@click.option("--category", help="Category label")
@click.option("--notes", help="Notes")
@click.option(
    "--status",
    type=click.Choice([s.value for s in TransactionStatus], case_sensitive=False),
    help="Settlement status",
)
@click.pass_context
def update_transaction(
    ctx,
    transaction_id: int,
    amount: str | None,
    due: str | None,
    description: str | None,
    category: str | None,
    notes: str | None,
    status: str | None,
) -> None:
    """Update a transaction.

    Changing the amount or due date of a recurrence instance keeps it from
    being replaced when the recurrence is regenerated.

    Examples:
        treasury transaction update 7 --amount 475.00
    """
    changes = {}
    if amount is not None:
        changes["amount"] = parse_or_exit(ctx, parse_amount, amount, "amount")
    if due is not None:
        changes["due_date"] = parse_or_exit(ctx, parse_date, due, "due date")
    if description is not None:
        changes["description"] = description
    if category is not None:
        changes["category"] = category
    if notes is not None:
        changes["notes"] = notes
    if status is not None:
        changes["status"] = status.upper()

    if not changes:
        click.echo("Nothing to update.")
        return

    try:
        TransactionService(ctx.obj["db"]).update_transaction(transaction_id, **changes)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated transaction {transaction_id}")


@transaction_group.command("pay")
@click.argument("transaction_id", type=int)
@click.option("--date", "paid_on", help="Payment date (defaults to today)")
@click.pass_context
def pay_transaction(ctx, transaction_id: int, paid_on: str | None) -> None:
    """Mark a transaction as completed."""
    paid_date = parse_or_exit(ctx, parse_date, paid_on, "payment date") if paid_on else None
    try:
        TransactionService(ctx.obj["db"]).mark_paid(transaction_id, paid_date)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Marked transaction {transaction_id} as completed")


@transaction_group.command("delete")
@click.argument("transaction_id", type=int)
@click.pass_context
def delete_transaction(ctx, transaction_id: int) -> None:
    """Delete a transaction.

    Examples:
        treasury transaction delete 1
    """
    service = TransactionService(ctx.obj["db"])

    txn = service.get_transaction(transaction_id)
    if txn is None:
        click.echo(f"Error: Transaction {transaction_id} not found", err=True)
        ctx.exit(1)

    if not click.confirm(f"Are you sure you want to delete transaction {transaction_id}?"):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_transaction(transaction_id)
    except ValueError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Deleted transaction {transaction_id}")


@transaction_group.command("migrate-recurrences")
@click.option("--owner", envvar="TREASURY_OWNER", required=True, help="Owner whose transactions are migrated")
@click.pass_context
def migrate_recurrences(ctx, owner: str) -> None:
    """Create recurrences for recurring transactions that have none.

    Each such transaction becomes the first instance of a new recurrence
    anchored on its due date, and the upcoming occurrences are generated.

    Examples:
        treasury transaction migrate-recurrences --owner alice
    """
    report = TransactionService(ctx.obj["db"]).migrate_recurring_transactions(owner)
    click.echo(
        f"Migrated {report.processed} transaction(s): {report.recurrences_created} "
        f"recurrence(s) created, {report.transactions_generated} transaction(s) generated"
    )
    for error in report.errors:
        click.echo(f"Error: {error}", err=True)
    if report.errors:
        ctx.exit(1)


def register_commands(cli: click.Group) -> None:
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")
