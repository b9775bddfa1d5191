"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class JournalEntryRejected(ValidationError):
    """A journal entry failed double-entry validation.

    ``errors`` holds every rule violation, not just the first one.
    """

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(
            "Journal entry rejected: " + "; ".join(e.message for e in self.errors)
        )


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class DependencyError(DomainError):
    """Operation blocked due to dependent domain data."""


class ActiveSessionError(ConflictError):
    """The client already has an import in progress."""


class StaleSessionError(ConflictError):
    """The targeted import session is already terminal."""


class SessionLockedError(ConflictError):
    """Mappings can no longer change because the import has started."""


class SessionFailure(DomainError):
    """Unrecoverable failure while an import session was running."""


def client_not_found(client_id: int) -> str:
    """Return message for missing client."""
    return f"Client {client_id} not found"


def account_not_found(account_id: int) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def session_not_found(session_id: int, client_id: int) -> str:
    """Return message for a session that is missing or owned by another client."""
    return f"Import session {session_id} not found for client {client_id}"


def stale_session(session_id: int, status: str) -> str:
    """Return message for an operation on a terminal session."""
    return f"Import session {session_id} is already {status}; start a new import"


def active_session_exists(session_id: int, client_id: int) -> str:
    """Return message when a client already has a running import."""
    return (
        f"Client {client_id} already has an import in progress "
        f"(session {session_id}); wait for it or cancel it first"
    )


def duplicate_account(field: str, value: str, client_id: int) -> str:
    """Return message for a chart-of-accounts uniqueness violation."""
    return f"Account with {field} '{value}' already exists for client {client_id}"


def account_delete_blocked(account_id: int, line_count: int) -> str:
    """Return message when an account has posted journal lines."""
    return (
        f"Cannot delete account {account_id}: it has {line_count} journal "
        f"line{'s' if line_count != 1 else ''}. Deactivate it instead."
    )


def unmapped_accounts(refs: list[str]) -> str:
    """Return message for account references without a mapping decision."""
    return f"No mapping decision for account(s): {', '.join(refs)}"
