"""Select and open the configured tabular store."""

from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache

from config import GOOGLE_SERVICE_ACCOUNT_JSON, GOOGLE_SPREADSHEET_ID, STORE_BACKEND
from store.base import TabularStore
from store.exceptions import StoreUnavailable


@lru_cache(maxsize=1)
def _google_store():
    from store.google import GoogleSheetStore
    return GoogleSheetStore.from_service_account(GOOGLE_SPREADSHEET_ID, GOOGLE_SERVICE_ACCOUNT_JSON)


@contextmanager
def store_scope() -> Iterator[TabularStore]:
    """Open the configured store for the duration of one unit of work."""
    if STORE_BACKEND == "google":
        yield _google_store()
        return
    if STORE_BACKEND != "sql":
        raise StoreUnavailable(f"Unknown STORE_BACKEND '{STORE_BACKEND}'.", operation="connect")

    from db.session import session_scope
    from store.sql import SqlSheetStore
    with session_scope() as session:
        yield SqlSheetStore(session)


def get_store() -> Iterator[TabularStore]:
    """Dependency-injectable store for FastAPI routes."""
    with store_scope() as store:
        yield store
