"""Client domain service."""

from typing import Optional

from ledgerlink.database.base import Database
from ledgerlink.domain.entities import Client as ClientEntity
from ledgerlink.domain.errors import ConflictError, NotFoundError, ValidationError, client_not_found


class ClientService:
    """Service for managing the firm's clients."""

    def __init__(self, db: Database):
        """Initialize client service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_client(self, name: str) -> int:
        """Create a new client.

        Args:
            name: Client name

        Returns:
            Client ID

        Raises:
            ValidationError: If the name is blank
            ConflictError: If a client with the same name exists
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Client name is required")

        for client in self.db.list_clients():
            if client.name.casefold() == name.casefold():
                raise ConflictError(f"Client with name '{name}' already exists")

        return self.db.create_client(name=name)

    def get_client(self, client_id: int) -> Optional[ClientEntity]:
        """Get client by ID."""
        return self.db.get_client(client_id)

    def require_client(self, client_id: int) -> ClientEntity:
        """Get client by ID or raise NotFoundError."""
        client = self.db.get_client(client_id)
        if client is None:
            raise NotFoundError(client_not_found(client_id))
        return client

    def list_clients(self) -> list[ClientEntity]:
        """List all clients."""
        return self.db.list_clients()
