"""Chart-of-accounts domain service."""

import logging
from typing import Optional

from ledgerlink.config import ImportConfig
from ledgerlink.database.base import Database
from ledgerlink.domain.entities import Account as AccountEntity, AccountType
from ledgerlink.domain.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
    account_delete_blocked,
    account_not_found,
    client_not_found,
    duplicate_account,
)

logger = logging.getLogger(__name__)


class AccountService:
    """Service for managing a client's chart of accounts."""

    def __init__(self, db: Database):
        """Initialize account service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_account(
        self,
        client_id: int,
        name: str,
        account_type: AccountType | str,
        number: Optional[str] = None,
    ) -> int:
        """Create a new chart-of-accounts entry.

        Args:
            client_id: Owning client
            name: Account name, unique per client
            account_type: One of asset, liability, equity, income, expense
            number: Optional account number, unique per client when set

        Returns:
            Account ID

        Raises:
            NotFoundError: If the client does not exist
            ValidationError: If the name is blank or the type unknown
            ConflictError: If the name or number already exists for the client
        """
        if self.db.get_client(client_id) is None:
            raise NotFoundError(client_not_found(client_id))

        name = (name or "").strip()
        number = (number or "").strip() or None
        if not name:
            raise ValidationError("Account name is required")
        try:
            account_type = AccountType(account_type)
        except ValueError:
            valid = ", ".join(t.value for t in AccountType)
            raise ValidationError(f"Invalid account type '{account_type}'. Use one of: {valid}")

        # Inactive accounts still hold their name and number
        for acc in self.db.list_accounts(client_id, include_inactive=True):
            if acc.name.casefold() == name.casefold():
                raise ConflictError(duplicate_account("name", name, client_id))
            if number is not None and acc.number == number:
                raise ConflictError(duplicate_account("number", number, client_id))

        account_id = self.db.create_account(
            client_id=client_id, name=name, account_type=account_type, number=number
        )
        logger.info(
            "Created account %s", number or name,
            extra={"client_id": client_id, "account_id": account_id},
        )
        return account_id

    def get_account(self, account_id: int) -> Optional[AccountEntity]:
        """Get account by ID.

        Args:
            account_id: Account ID

        Returns:
            Account entity or None if not found
        """
        return self.db.get_account(account_id)

    def list_accounts(self, client_id: int, include_inactive: bool = False) -> list[AccountEntity]:
        """List a client's chart of accounts.

        Args:
            client_id: Owning client
            include_inactive: Also return deactivated accounts

        Returns:
            List of account entities ordered by number, then name
        """
        return self.db.list_accounts(client_id, include_inactive=include_inactive)

    def find_account(self, client_id: int, ref: str) -> AccountEntity:
        """Find a client's account by number, name or ID, in that order.

        Raises:
            NotFoundError: If nothing matches
        """
        ref = (ref or "").strip()
        accounts = self.db.list_accounts(client_id, include_inactive=True)
        for acc in accounts:
            if acc.number == ref:
                return acc
        for acc in accounts:
            if acc.name.casefold() == ref.casefold():
                return acc
        if ref.isdigit():
            for acc in accounts:
                if acc.id == int(ref):
                    return acc
        raise NotFoundError(f"Account '{ref}' not found for client {client_id}")

    def deactivate_account(self, account_id: int) -> None:
        """Deactivate an account so it is no longer matched or posted to.

        Raises:
            NotFoundError: If the account does not exist
        """
        if self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))
        self.db.set_account_active(account_id, False)

    def delete_account(self, account_id: int) -> None:
        """Delete an account.

        Args:
            account_id: Account ID to delete

        Raises:
            NotFoundError: If the account does not exist
            DependencyError: If journal lines were posted to it
        """
        if self.db.get_account(account_id) is None:
            raise NotFoundError(account_not_found(account_id))

        line_count = self.db.get_account_line_count(account_id)
        if line_count > 0:
            raise DependencyError(account_delete_blocked(account_id, line_count))

        self.db.delete_account(account_id)

    def get_or_create_clearing_account(self, client_id: int, config: Optional[ImportConfig] = None) -> AccountEntity:
        """Return the client's import clearing account, creating it on first use.

        An existing but deactivated clearing account is reactivated.

        Raises:
            ConflictError: If the clearing number is taken by an account with another name
        """
        config = config or ImportConfig()
        account = self.db.get_account_by_number(client_id, config.clearing_account_number)
        if account is not None:
            if account.name.strip().casefold() != config.clearing_account_name.strip().casefold():
                raise ConflictError(
                    f"Account {account.number} is '{account.name}', not the import clearing account "
                    f"'{config.clearing_account_name}'; set LEDGERLINK_CLEARING_ACCOUNT_NUMBER to a free number"
                )
            if not account.is_active:
                self.db.set_account_active(account.id, True)
                account = self.db.get_account(account.id)
            return account

        account_id = self.create_account(
            client_id=client_id,
            name=config.clearing_account_name,
            account_type=AccountType.EQUITY,
            number=config.clearing_account_number,
        )
        return self.db.get_account(account_id)
