"""Client management commands."""

import click
from ledgerlink.domain.client import ClientService


@click.group()
def client_group():
    """Manage clients."""
    pass


@client_group.command("create")
@click.argument("name", metavar="CLIENT_NAME")
@click.pass_context
def create_client(ctx, name: str):
    """Create a new client.

    Examples:
        ledgerlink client create "Acme Holdings"
    """
    service = ClientService(ctx.obj["db"])

    try:
        client_id = service.create_client(name)
        click.echo(f"Created client '{name}' (ID: {client_id})")
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)


@client_group.command("list")
@click.pass_context
def list_clients(ctx):
    """List all clients."""
    service = ClientService(ctx.obj["db"])

    clients = service.list_clients()
    if not clients:
        click.echo("No clients found.")
        return

    click.echo("\nClients:")
    click.echo("-" * 40)
    for c in clients:
        click.echo(f"ID: {c.id:3d} | {c.name}")


def register_commands(cli):
    """Register client commands with main CLI."""
    cli.add_command(client_group, name="client")
