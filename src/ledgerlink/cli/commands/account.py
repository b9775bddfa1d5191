"""Chart-of-accounts commands."""

import click
from ledgerlink.cli.error_handling import handle_domain_error, resolve_client
from ledgerlink.domain.account import AccountService
from ledgerlink.domain.entities import AccountType


@click.group()
def account_group():
    """Manage a client's chart of accounts."""
    pass


@account_group.command("create")
@click.argument("name", metavar="ACCOUNT_NAME")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--number", help="Account number (unique per client)")
@click.option(
    "--type",
    "account_type",
    type=click.Choice([t.value for t in AccountType], case_sensitive=False),
    default=AccountType.EXPENSE.value,
    show_default=True,
    help="Account type",
)
@click.pass_context
def create_account(ctx, name: str, client_ref: str, number: str | None, account_type: str):
    """Create a new chart-of-accounts entry.

    Examples:
        ledgerlink account create "Cash" --client Acme --number 1000 --type asset
        ledgerlink account create "Office Supplies" --client 1 --number 6100
    """
    client_id = resolve_client(ctx, client_ref)
    service = AccountService(ctx.obj["db"])

    try:
        account_id = service.create_account(
            client_id=client_id, name=name, account_type=account_type.lower(), number=number
        )
        label = f"{number} {name}" if number else name
        click.echo(f"Created account '{label}' (ID: {account_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@account_group.command("list")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--all", "include_inactive", is_flag=True, help="Include deactivated accounts")
@click.pass_context
def list_accounts(ctx, client_ref: str, include_inactive: bool):
    """List a client's chart of accounts."""
    client_id = resolve_client(ctx, client_ref)
    service = AccountService(ctx.obj["db"])

    accounts = service.list_accounts(client_id, include_inactive=include_inactive)
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 70)
    for acc in accounts:
        status = "" if acc.is_active else " (inactive)"
        click.echo(
            f"ID: {acc.id:3d} | {acc.number or '':8s} | {acc.name:30s} | {acc.account_type.value}{status}"
        )


@account_group.command("deactivate")
@click.argument("account", metavar="ACCOUNT")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.pass_context
def deactivate_account(ctx, account: str, client_ref: str):
    """Deactivate an account.

    ACCOUNT can be an account number, name or ID. Deactivated accounts are
    ignored when resolving imported account references.
    """
    client_id = resolve_client(ctx, client_ref)
    service = AccountService(ctx.obj["db"])

    try:
        acc = service.find_account(client_id, account)
        service.deactivate_account(acc.id)
        click.echo(f"Deactivated account '{acc.label}'")
    except ValueError as e:
        handle_domain_error(ctx, e)


@account_group.command("delete")
@click.argument("account", metavar="ACCOUNT")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_account(ctx, account: str, client_ref: str, yes: bool):
    """Delete an account that has no journal lines.

    Accounts with posted lines can only be deactivated.
    """
    client_id = resolve_client(ctx, client_ref)
    service = AccountService(ctx.obj["db"])

    try:
        acc = service.find_account(client_id, account)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not yes and not click.confirm(f"Are you sure you want to delete account '{acc.label}' (ID: {acc.id})?"):
        click.echo("Deletion cancelled.")
        return

    try:
        service.delete_account(acc.id)
        click.echo(f"Deleted account '{acc.label}'")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
