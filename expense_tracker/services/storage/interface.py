"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for each record collection.
This allows us to:
1. Keep the HTTP layer unaware of spreadsheet row numbers
2. Use fakes for testing
3. Swap Google Sheets for a real database later

The interface is intentionally small: list, create, update, delete.
"""

from abc import ABC, abstractmethod

from expense_tracker.models.records import (
    SavingsGoal,
    SavingsGoalCreate,
    SavingsGoalPatch,
    Transaction,
    TransactionCreate,
)


class TransactionStorageInterface(ABC):
    """Abstract interface for the transaction ledger."""

    @abstractmethod
    async def list_transactions(self) -> list[Transaction]:
        """
        List every transaction in storage order (oldest first).

        Rows that predate identifier support are given one as a side effect.

        Raises:
            StoreError: If the backend read or the identifier write fails
        """
        pass

    @abstractmethod
    async def create_transaction(self, data: TransactionCreate) -> Transaction:
        """
        Append a new transaction.

        The store assigns the identifier and the creation timestamp.

        Returns:
            The stored transaction

        Raises:
            StoreError: If the append fails
        """
        pass

    @abstractmethod
    async def update_transaction(
        self,
        transaction_id: str,
        data: TransactionCreate,
    ) -> Transaction:
        """
        Overwrite a transaction's fields, keeping its identifier and timestamp.

        Raises:
            NotFoundError: If no row carries this identifier
            StoreError: If the backend call fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> None:
        """
        Remove a transaction's row, shifting later rows up.

        Raises:
            NotFoundError: If no row carries this identifier
            StoreError: If the backend call fails
        """
        pass


class SavingsStorageInterface(ABC):
    """Abstract interface for savings goals."""

    @abstractmethod
    async def list_goals(self) -> list[SavingsGoal]:
        """
        List every savings goal in storage order.

        Returns an empty list if the savings tab has not been created yet.
        """
        pass

    @abstractmethod
    async def create_goal(self, data: SavingsGoalCreate) -> SavingsGoal:
        """
        Append a new goal under the caller's identifier.

        Raises:
            DuplicateError: If the identifier is already taken
            StoreError: If the backend call fails
        """
        pass

    @abstractmethod
    async def update_goal(self, goal_id: str, patch: SavingsGoalPatch) -> SavingsGoal:
        """
        Merge a patch into a goal and overwrite its whole row.

        Values echoed back unchanged are accepted as stored, even when the
        row was typed in by hand and would not pass request validation.

        Returns:
            The merged goal with a fresh last-updated timestamp

        Raises:
            NotFoundError: If no row carries this identifier
            InvalidRecordError: If a changed value is invalid
            StoreError: If the backend call fails
        """
        pass

    @abstractmethod
    async def delete_goal(self, goal_id: str) -> None:
        """
        Remove a goal's row, shifting later rows up.

        Raises:
            NotFoundError: If no row carries this identifier
            StoreError: If the backend call fails
        """
        pass


class StoreError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StoreError):
    """Identifier does not resolve to a row."""
    pass


class DuplicateError(StoreError):
    """Attempted to insert a record under an identifier already in use."""
    pass


class CredentialError(StoreError):
    """No usable service account credentials could be built."""
    pass


class InvalidRecordError(StoreError):
    """A requested change would store an invalid value."""
    pass
