"""Main CLI entry point."""

import click
from treasury.database.factories import create_sqlite_database
from treasury.logging_config import configure_logging

# Import and register all commands at module level
from treasury.cli.commands import (
    cleanup,
    recurrence,
    regenerate,
    transaction,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides TREASURY_DB_PATH environment variable)",
    envvar="TREASURY_DB_PATH",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level for diagnostics on stderr (overrides TREASURY_LOG_LEVEL)",
    envvar="TREASURY_LOG_LEVEL",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str | None):
    """Treasury - Cash-flow ledger with recurring obligations.

    Keep expected income and expenses per company and let recurrence
    templates (payroll, rent, subscriptions, loan installments) generate
    their upcoming transactions.
    """
    ctx.ensure_object(dict)

    if log_level:
        configure_logging(log_level)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db


# Register all commands
regenerate.register_commands(cli)
recurrence.register_commands(cli)
transaction.register_commands(cli)
cleanup.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
