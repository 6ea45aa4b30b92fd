"""Duplicate cleanup command."""

import click
from treasury.domain.duplicates import DuplicateCleanupService


@click.command("cleanup-duplicates")
@click.option("--owner", envvar="TREASURY_OWNER", required=True, help="Owner whose records are cleaned")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def cleanup_duplicates(ctx, owner: str, yes: bool) -> None:
    """Delete duplicated transactions and recurrences of an owner.

    Transactions with the same company, type, amount, description and due
    day are duplicates; recurrences with the same company, name, type and
    frequency are duplicates. The oldest record of each group is kept.

    Examples:
        treasury cleanup-duplicates --owner alice
    """
    if not yes and not click.confirm(f"Delete duplicated records of '{owner}'?"):
        click.echo("Cleanup cancelled.")
        return

    report = DuplicateCleanupService(ctx.obj["db"]).cleanup(owner)
    click.echo(
        f"Transactions: {report.transactions_deleted} deleted of "
        f"{report.transactions_analyzed} analyzed"
    )
    click.echo(
        f"Recurrences: {report.templates_deleted} deleted of "
        f"{report.templates_analyzed} analyzed"
    )


def register_commands(cli: click.Group) -> None:
    """Register cleanup-duplicates command with main CLI."""
    cli.add_command(cleanup_duplicates)
