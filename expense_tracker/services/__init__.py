"""Services package."""

from expense_tracker.services.storage import (
    CredentialError,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsSavingsStorage,
    GoogleSheetsTransactionStorage,
    NotFoundError,
    SavingsStorageInterface,
    StoreError,
    TransactionStorageInterface,
    create_storage,
)

__all__ = [
    "CredentialError",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsSavingsStorage",
    "GoogleSheetsTransactionStorage",
    "NotFoundError",
    "SavingsStorageInterface",
    "StoreError",
    "TransactionStorageInterface",
    "create_storage",
]
