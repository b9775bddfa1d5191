"""Main CLI entry point."""

import click

from ledgerlink.config import ConfigError, Settings
from ledgerlink.database.factories import create_sqlite_database
from ledgerlink.logging_config import setup_logging

# Import and register all commands at module level
from ledgerlink.cli.commands import (
    account,
    client,
    gl,
    journal,
    reconcile,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides LEDGERLINK_DB_PATH environment variable)",
    envvar="LEDGERLINK_DB_PATH",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    envvar="LEDGERLINK_LOG_LEVEL",
    help="Log level for messages on stderr (default WARNING)",
)
@click.option("--log-json", is_flag=True, help="Emit log records as JSON lines")
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str | None, log_json: bool):
    """Ledgerlink - general-ledger import and reconciliation.

    Import extracted general-ledger rows into a client's books, map their
    accounts to the chart of accounts, validate journal entries and match
    bank transactions to outstanding bills and invoices.
    """
    ctx.ensure_object(dict)

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
    if db_path:
        settings.database_path = db_path
    if log_level:
        settings.log_level = log_level.upper()
    setup_logging(settings.log_level, json_format=log_json)
    ctx.obj["settings"] = settings

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_sqlite_database(database_path=settings.database_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
client.register_commands(cli)
account.register_commands(cli)
gl.register_commands(cli)
journal.register_commands(cli)
reconcile.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
