"""Bank reconciliation commands."""

import click
from ledgerlink.cli.error_handling import handle_domain_error, resolve_client
from ledgerlink.domain.gl_file import read_bank_file
from ledgerlink.domain.reconciliation import ReconciliationService
from ledgerlink.utils.amount_parser import parse_amount
from ledgerlink.utils.date_parser import parse_date


def _service(ctx) -> ReconciliationService:
    settings = ctx.obj.get("settings")
    return ReconciliationService(ctx.obj["db"], config=settings.matching if settings else None)


@click.group(invoke_without_command=True)
@click.option("--client", "client_ref", help="Client name or ID (suggest matches)")
@click.pass_context
def reconcile_group(ctx, client_ref: str | None):
    """Match bank transactions to outstanding bills and invoices.

    Without a subcommand, prints the best bill or invoice for every stored
    bank transaction of the client.

    Examples:
        ledgerlink reconcile --client Acme
        ledgerlink reconcile bank-import statement.csv --client Acme
    """
    if ctx.invoked_subcommand is not None:
        return
    if not client_ref:
        click.echo("Error: --client is required", err=True)
        ctx.exit(1)

    client_id = resolve_client(ctx, client_ref)
    try:
        matches = _service(ctx).match_bank_transactions(client_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    if not matches:
        click.echo("No bank transactions found.")
        return

    click.echo("\nSuggested matches:")
    click.echo("-" * 80)
    for m in matches:
        txn = m.transaction
        head = f"{txn.id:4d} | {str(txn.date or ''):10s} | {(txn.description or '')[:30]:30s} | {txn.amount:>10}"
        if m.result is None:
            click.echo(f"{head} | no match")
            continue
        others = len(m.result.all_matches) - 1
        extra = f" (+{others} more)" if others else ""
        click.echo(f"{head} | {m.counterpart_kind} {m.result.counterpart_id} score {m.result.score}{extra}")


@reconcile_group.command("bank-import")
@click.argument("csv_file", type=click.Path(exists=True))
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--dayfirst", is_flag=True, help="Read ambiguous dates as day/month/year")
@click.pass_context
def bank_import(ctx, csv_file: str, client_ref: str, dayfirst: bool):
    """Store bank transactions from a statement CSV.

    Columns: date, description, debit (money in), credit (money out), reference.
    """
    client_id = resolve_client(ctx, client_ref)
    try:
        read = read_bank_file(csv_file, dayfirst=dayfirst)
        ids = _service(ctx).add_bank_transactions(client_id, read.records)
    except (ValueError, FileNotFoundError) as e:
        handle_domain_error(ctx, e)

    for error in read.errors:
        click.echo(f"Warning: {error}", err=True)
    click.echo(f"Stored {len(ids)} bank transactions")


@reconcile_group.command("contact")
@click.argument("name")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--company", help="Company name")
@click.pass_context
def add_contact(ctx, name: str, client_ref: str, company: str | None):
    """Add a vendor or customer contact."""
    client_id = resolve_client(ctx, client_ref)
    try:
        contact_id = _service(ctx).add_contact(client_id, name, company_name=company)
        click.echo(f"Created contact '{name}' (ID: {contact_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


def _document_options(func):
    func = click.option("--contact", "contact_id", type=int, help="Contact ID")(func)
    func = click.option("--number", help="Document number")(func)
    func = click.option("--date", "doc_date", help="Document date (YYYY-MM-DD)")(func)
    func = click.option("--client", "client_ref", required=True, help="Client name or ID")(func)
    func = click.argument("amount")(func)
    return func


@reconcile_group.command("bill")
@_document_options
@click.pass_context
def add_bill(ctx, amount: str, client_ref: str, doc_date: str | None, number: str | None, contact_id: int | None):
    """Record an outstanding bill."""
    client_id = resolve_client(ctx, client_ref)
    try:
        bill_id = _service(ctx).add_bill(
            client_id,
            parse_amount(amount),
            contact_id=contact_id,
            bill_number=number,
            bill_date=parse_date(doc_date) if doc_date else None,
        )
        click.echo(f"Created bill {bill_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@reconcile_group.command("invoice")
@_document_options
@click.pass_context
def add_invoice(ctx, amount: str, client_ref: str, doc_date: str | None, number: str | None, contact_id: int | None):
    """Record an outstanding invoice."""
    client_id = resolve_client(ctx, client_ref)
    try:
        invoice_id = _service(ctx).add_invoice(
            client_id,
            parse_amount(amount),
            contact_id=contact_id,
            invoice_number=number,
            invoice_date=parse_date(doc_date) if doc_date else None,
        )
        click.echo(f"Created invoice {invoice_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@reconcile_group.command("link")
@click.argument("transaction_id", type=int)
@click.argument("document_id", type=int)
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.pass_context
def link(ctx, transaction_id: int, document_id: int, client_ref: str):
    """Settle a bill or invoice with a bank transaction and mark it paid.

    Money in settles an invoice, money out a bill.

    Examples:
        ledgerlink reconcile link 4 1 --client Acme
    """
    client_id = resolve_client(ctx, client_ref)
    try:
        kind = _service(ctx).link_match(client_id, transaction_id, document_id)
        click.echo(f"Linked bank transaction {transaction_id} to {kind} {document_id} (paid)")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register reconciliation commands with main CLI."""
    cli.add_command(reconcile_group, name="reconcile")
