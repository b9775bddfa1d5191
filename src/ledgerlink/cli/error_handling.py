"""CLI error handling helpers."""

import click

from ledgerlink.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError | FileNotFoundError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def resolve_client(ctx: click.Context, client: str) -> int:
    """Resolve a client given by ID or name, exiting if unknown."""
    db = ctx.obj["db"]
    ref = client.strip()
    if ref.isdigit() and db.get_client(int(ref)) is not None:
        return int(ref)
    for c in db.list_clients():
        if c.name.casefold() == ref.casefold():
            return c.id
    click.echo(f"Error: Client '{client}' not found", err=True)
    ctx.exit(1)
