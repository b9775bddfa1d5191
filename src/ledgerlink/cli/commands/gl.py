"""General-ledger import commands."""

import json
from datetime import timedelta

import click
from ledgerlink.cli.error_handling import handle_domain_error, resolve_client
from ledgerlink.domain.account import AccountService
from ledgerlink.domain.api import progress_to_dict
from ledgerlink.domain.entities import AccountMapping, MappingAction
from ledgerlink.domain.gl_file import read_gl_file
from ledgerlink.domain.import_session import ImportSessionService


def _service(ctx) -> ImportSessionService:
    return ImportSessionService(ctx.obj["db"], settings=ctx.obj.get("settings"))


def _session_id(ctx, service: ImportSessionService, client_id: int, session_id: int | None) -> int:
    """Explicit session, or the client's active one."""
    if session_id is not None:
        return session_id
    session = service.get_active_session(client_id)
    if session is None:
        click.echo(f"Error: Client {client_id} has no import in progress", err=True)
        ctx.exit(1)
    return session.id


def _echo_summary(summary) -> None:
    click.echo(f"  Transactions:      {summary.total_transactions}")
    click.echo(f"  Distinct accounts: {summary.total_unique_accounts}")
    click.echo(f"  Exact matches:     {summary.exact_matches}")
    click.echo(f"  Fuzzy matches:     {summary.fuzzy_matches}")
    click.echo(f"  New accounts:      {summary.new_accounts_needed}")
    click.echo(f"  Unresolvable:      {summary.unresolvable_accounts}")
    click.echo(f"  Match rate:        {summary.match_rate}%")
    balance = "balanced" if summary.is_balanced else "NOT balanced"
    click.echo(f"  Debits / credits:  {summary.total_debits} / {summary.total_credits} ({balance})")


def _echo_analyses(service: ImportSessionService, analyses) -> None:
    click.echo("\nAccounts:")
    click.echo("-" * 80)
    for a in analyses:
        mapping = service.resolver.default_mapping(a)
        target = f" -> {a.matched_account.label}" if a.matched_account else ""
        auto = "auto" if service.resolver.is_auto_accepted(a) else f"suggest {mapping.action.value}"
        click.echo(
            f"{a.account_ref:25s} | {a.match_type.value:7s} | {a.confidence:3d}% | "
            f"{a.transaction_count:4d} rows | {auto}{target}"
        )
        if a.error:
            click.echo(f"    {a.error}")
        for s in a.similar_accounts:
            click.echo(f"    similar: {s.account.label} (ID: {s.account.id}, {s.similarity}%)")


@click.group()
def gl_group():
    """Import general-ledger files."""
    pass


@gl_group.command("analyze")
@click.argument("csv_file", type=click.Path(exists=True))
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--dayfirst", is_flag=True, help="Read ambiguous dates as day/month/year")
@click.pass_context
def analyze(ctx, csv_file: str, client_ref: str, dayfirst: bool):
    """Analyze a general-ledger CSV and start an import session.

    The file needs an 'account' column; date, description, debit, credit,
    reference and account_name are used when present.

    Examples:
        ledgerlink gl analyze ledger.csv --client Acme
    """
    client_id = resolve_client(ctx, client_ref)
    service = _service(ctx)

    try:
        read = read_gl_file(csv_file, dayfirst=dayfirst)
        for error in read.errors:
            click.echo(f"Warning: {error}", err=True)
        result = service.analyze(client_id, read.records, file_name=click.format_filename(csv_file))
    except (ValueError, FileNotFoundError) as e:
        handle_domain_error(ctx, e)

    click.echo(f"\nImport session {result.session_id} ({result.session.stage.value}):")
    _echo_summary(result.summary)
    _echo_analyses(service, result.account_analysis)
    if result.summary.ready_to_import:
        click.echo("\nAll accounts matched. Run 'ledgerlink gl import' to post the entries.")
    else:
        click.echo("\nMap the remaining accounts with 'ledgerlink gl map' or import with --accept-defaults.")


@gl_group.command("validate")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--session", "session_id", type=int, help="Session ID (default: active session)")
@click.pass_context
def validate(ctx, client_ref: str, session_id: int | None):
    """Re-check a session's accounts against the current chart of accounts."""
    client_id = resolve_client(ctx, client_ref)
    service = _service(ctx)
    session_id = _session_id(ctx, service, client_id, session_id)

    try:
        summary, analyses = service.validate_accounts(client_id, session_id)
        mappings = service.get_mappings(client_id, session_id)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"\nImport session {session_id}:")
    _echo_summary(summary)
    _echo_analyses(service, analyses)
    if mappings:
        click.echo("\nMappings:")
        for m in mappings:
            target = f" -> account {m.target_account_id}" if m.target_account_id else ""
            notes = f" ({m.notes})" if m.notes else ""
            click.echo(f"  {m.account_ref}: {m.action.value}{target}{notes}")


@gl_group.command("map")
@click.argument("account_ref", metavar="ACCOUNT_REF")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--session", "session_id", type=int, help="Session ID (default: active session)")
@click.option(
    "--action",
    type=click.Choice([a.value for a in MappingAction]),
    required=True,
    help="map to an existing account, create a new one, or skip the rows",
)
@click.option("--account", "target", help="Target account number, name or ID (for --action map)")
@click.option("--notes", default="", help="Notes kept with the mapping")
@click.pass_context
def map_account(
    ctx,
    account_ref: str,
    client_ref: str,
    session_id: int | None,
    action: str,
    target: str | None,
    notes: str,
):
    """Decide what to do with one account reference of the file.

    Examples:
        ledgerlink gl map "Office Suplies" --client Acme --action map --account 6100
        ledgerlink gl map "Misc" --client Acme --action create
    """
    client_id = resolve_client(ctx, client_ref)
    service = _service(ctx)
    session_id = _session_id(ctx, service, client_id, session_id)

    try:
        target_id = None
        if action == MappingAction.MAP.value:
            if not target:
                click.echo("Error: --account is required with --action map", err=True)
                ctx.exit(1)
            target_id = AccountService(ctx.obj["db"]).find_account(client_id, target).id
        mappings = service.update_mappings(
            client_id,
            session_id,
            [AccountMapping(account_ref=account_ref, action=MappingAction(action), target_account_id=target_id, notes=notes)],
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Mapped '{account_ref}': {action}")
    session = service.get_session(client_id, session_id)
    click.echo(f"Session {session_id} is {session.stage.value} ({len(mappings)} accounts mapped)")


@gl_group.command("import")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--session", "session_id", type=int, help="Session ID (default: active session)")
@click.option("--no-create-missing", is_flag=True, help="Skip rows whose account would have to be created")
@click.option("--accept-defaults", is_flag=True, help="Use the suggested mapping for unmapped accounts")
@click.option("--allow-duplicates", is_flag=True, help="Post rows an earlier import already posted")
@click.pass_context
def import_gl(
    ctx,
    client_ref: str,
    session_id: int | None,
    no_create_missing: bool,
    accept_defaults: bool,
    allow_duplicates: bool,
):
    """Post the session's rows as journal entries."""
    client_id = resolve_client(ctx, client_ref)
    service = _service(ctx)
    session_id = _session_id(ctx, service, client_id, session_id)

    try:
        result = service.start_import(
            client_id,
            session_id,
            create_missing_accounts=not no_create_missing,
            accept_defaults=accept_defaults,
            skip_duplicates=not allow_duplicates,
        )
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"\nImport {result.status.value}:")
    click.echo(f"  Imported: {result.successful} entries")
    click.echo(f"  Skipped: {result.skipped} rows")
    click.echo(f"  {result.message}")
    if result.errors:
        click.echo(f"  Errors: {len(result.errors)}")
        for error in result.errors:
            click.echo(f"    {error}", err=True)


@gl_group.command("progress")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--json", "as_json", is_flag=True, help="Print the progress record as JSON")
@click.pass_context
def progress(ctx, client_ref: str, as_json: bool):
    """Show the progress of the client's latest import."""
    client_id = resolve_client(ctx, client_ref)
    snapshot = _service(ctx).progress.snapshot(client_id)

    if as_json:
        click.echo(json.dumps(progress_to_dict(snapshot)))
        return

    if snapshot.session_id is None:
        click.echo("No imports yet.")
        return
    state = "running" if snapshot.is_active else snapshot.status
    click.echo(f"Session {snapshot.session_id}: {state}")
    click.echo(f"  {snapshot.progress}/{snapshot.total} rows ({snapshot.percentage}%)")
    click.echo(f"  Imported: {snapshot.imported}, skipped: {snapshot.skipped}")
    if snapshot.current_entry:
        click.echo(f"  Current: {snapshot.current_entry}")
    if snapshot.estimated_time_remaining:
        click.echo(f"  Remaining: {snapshot.estimated_time_remaining}")


@gl_group.command("sessions")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.pass_context
def list_sessions(ctx, client_ref: str):
    """List the client's import sessions, newest first."""
    client_id = resolve_client(ctx, client_ref)
    sessions = _service(ctx).list_sessions(client_id)
    if not sessions:
        click.echo("No import sessions found.")
        return

    for s in sessions:
        created = s.created_at.strftime("%Y-%m-%d %H:%M")
        error = f" - {s.error_message}" if s.error_message else ""
        click.echo(f"ID: {s.id:3d} | {created} | {s.status.value:10s} | {s.file_name or ''}{error}")


@gl_group.command("cancel")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--session", "session_id", type=int, help="Session ID (default: active session)")
@click.pass_context
def cancel(ctx, client_ref: str, session_id: int | None):
    """Cancel an import; entries already posted are kept."""
    client_id = resolve_client(ctx, client_ref)
    service = _service(ctx)
    session_id = _session_id(ctx, service, client_id, session_id)

    try:
        service.cancel(client_id, session_id)
        click.echo(f"Cancelled import session {session_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@gl_group.command("reject")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--session", "session_id", type=int, help="Session ID (default: active session)")
@click.pass_context
def reject(ctx, client_ref: str, session_id: int | None):
    """Discard a staged import before it runs."""
    client_id = resolve_client(ctx, client_ref)
    service = _service(ctx)
    session_id = _session_id(ctx, service, client_id, session_id)

    try:
        service.reject(client_id, session_id)
        click.echo(f"Rejected import session {session_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@gl_group.command("fail-stalled")
@click.option("--client", "client_ref", required=True, help="Client name or ID")
@click.option("--minutes", type=click.IntRange(min=1), required=True, help="Minutes without progress")
@click.pass_context
def fail_stalled(ctx, client_ref: str, minutes: int):
    """Mark imports that stopped making progress as failed."""
    client_id = resolve_client(ctx, client_ref)
    failed = _service(ctx).fail_stalled(client_id, timedelta(minutes=minutes))
    if not failed:
        click.echo("No stalled imports.")
        return
    for s in failed:
        click.echo(f"Marked import session {s.id} as failed")


def register_commands(cli):
    """Register general-ledger commands with main CLI."""
    cli.add_command(gl_group, name="gl")
