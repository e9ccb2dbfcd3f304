"""Wiring for the storage components."""

from typing import Optional

from expense_tracker.config import GoogleSheetsSettings
from expense_tracker.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsSavingsStorage,
    GoogleSheetsTransactionStorage,
    SheetLocator,
)


def create_storage(
    settings: Optional[GoogleSheetsSettings] = None,
    client: Optional[GoogleSheetsClient] = None,
) -> tuple[GoogleSheetsTransactionStorage, GoogleSheetsSavingsStorage]:
    """
    Build both record stores over one shared Sheets client.

    Nothing touches the network here; credentials are resolved on first use.

    Returns:
        (transaction_storage, savings_storage)
    """
    client = client or GoogleSheetsClient(settings)
    locator = SheetLocator(client)
    return (
        GoogleSheetsTransactionStorage(client, locator),
        GoogleSheetsSavingsStorage(client, locator),
    )
