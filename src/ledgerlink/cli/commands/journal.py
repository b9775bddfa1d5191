"""Journal entry commands."""

from decimal import Decimal

import click
from ledgerlink.cli.error_handling import handle_domain_error, resolve_client
from ledgerlink.domain.account import AccountService
from ledgerlink.domain.errors import JournalEntryRejected
from ledgerlink.domain.journal import JournalService
from ledgerlink.domain.journal_validator import (
    JournalEntryCandidate,
    JournalLineCandidate,
    entry_totals,
    validate_journal_entry,
)
from ledgerlink.utils.amount_parser import parse_amount
from ledgerlink.utils.date_parser import try_parse_date


def _entry_options(func):
    func = click.option("--reference", help="Reference number")(func)
    func = click.option(
        "--credit",
        "credits",
        multiple=True,
        metavar="ACCOUNT=AMOUNT",
        help="Credit line (repeatable)",
    )(func)
    func = click.option(
        "--debit",
        "debits",
        multiple=True,
        metavar="ACCOUNT=AMOUNT",
        help="Debit line (repeatable)",
    )(func)
    func = click.option("--date", "entry_date", help="Entry date (YYYY-MM-DD)")(func)
    func = click.option("--description", default="", help="Entry description")(func)
    func = click.option("--client", "client_ref", required=True, help="Client name or ID")(func)
    return func


def _build_candidate(
    ctx, client_id: int, description: str, entry_date: str | None, debits, credits, reference
) -> JournalEntryCandidate:
    service = AccountService(ctx.obj["db"])
    lines = []
    for side, pairs in (("debit", debits), ("credit", credits)):
        for pair in pairs:
            account_ref, sep, amount_str = pair.rpartition("=")
            if not sep or not account_ref:
                raise click.BadParameter(f"'{pair}' is not ACCOUNT=AMOUNT", param_hint=f"--{side}")
            account = service.find_account(client_id, account_ref)
            amount = parse_amount(amount_str)
            lines.append(
                JournalLineCandidate(
                    account_id=account.id,
                    debit_amount=amount if side == "debit" else Decimal("0"),
                    credit_amount=amount if side == "credit" else Decimal("0"),
                )
            )
    return JournalEntryCandidate(
        description=description,
        entry_date=try_parse_date(entry_date),
        reference_number=reference,
        lines=tuple(lines),
    )


@click.group()
def journal_group():
    """Create and inspect journal entries."""
    pass


@journal_group.command("add")
@_entry_options
@click.pass_context
def add_entry(ctx, client_ref, description, entry_date, debits, credits, reference):
    """Post a balanced journal entry.

    Examples:
        ledgerlink journal add --client Acme --description "Supplies" \\
            --date 2024-03-01 --debit 6100=120.00 --credit 1000=120.00
    """
    client_id = resolve_client(ctx, client_ref)

    try:
        candidate = _build_candidate(ctx, client_id, description, entry_date, debits, credits, reference)
        entry_id = JournalService(ctx.obj["db"]).create_entry(client_id, candidate)
    except JournalEntryRejected as e:
        for error in e.errors:
            click.echo(f"Error: {error.message}", err=True)
        ctx.exit(1)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Created journal entry {entry_id}")


@journal_group.command("validate")
@_entry_options
@click.pass_context
def validate_entry(ctx, client_ref, description, entry_date, debits, credits, reference):
    """Check a journal entry without posting it."""
    client_id = resolve_client(ctx, client_ref)

    try:
        candidate = _build_candidate(ctx, client_id, description, entry_date, debits, credits, reference)
    except ValueError as e:
        handle_domain_error(ctx, e)

    debit_total, credit_total, difference = entry_totals(candidate)
    click.echo(f"Debits: {debit_total}  Credits: {credit_total}  Difference: {difference}")
    errors = validate_journal_entry(candidate)
    if not errors:
        click.echo("Journal entry is valid")
        return
    for error in errors:
        click.echo(f"Error: {error.message}", err=True)
    ctx.exit(1)


@journal_group.command("list")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--session", "session_id", type=int, help="Only entries of this import session")
@click.option("--lines", "show_lines", is_flag=True, help="Show entry lines")
@click.pass_context
def list_entries(ctx, client_ref: str, session_id: int | None, show_lines: bool):
    """List a client's journal entries."""
    client_id = resolve_client(ctx, client_ref)
    db = ctx.obj["db"]
    entries = JournalService(db).list_entries(client_id, session_id=session_id)
    if not entries:
        click.echo("No journal entries found.")
        return

    accounts = {a.id: a for a in db.list_accounts(client_id, include_inactive=True)}
    click.echo("\nJournal entries:")
    click.echo("-" * 80)
    for entry in entries:
        ref = f" [{entry.reference_number}]" if entry.reference_number else ""
        click.echo(
            f"ID: {entry.id:4d} | {entry.entry_date} | {entry.description[:40]:40s} | "
            f"{entry.total_debits:>12}{ref}"
        )
        if show_lines:
            for line in entry.lines:
                account = accounts.get(line.account_id)
                label = account.label if account else str(line.account_id)
                click.echo(f"       {label:30s} Dr {line.debit_amount:>12}  Cr {line.credit_amount:>12}")


def register_commands(cli):
    """Register journal commands with main CLI."""
    cli.add_command(journal_group, name="journal")
