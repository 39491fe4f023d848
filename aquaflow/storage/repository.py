"""
Repository pattern for data access.

Persists the customer collection and the application state in a SQLite
key-value table. Writes always replace whole values: load the collection,
compute a new one, write it back.
"""

import json
from typing import Any, Dict, List, Optional

from aquaflow.core.state import AppState
from aquaflow.utils.logger import get_logger

from .db import DEFAULT_DB_PATH, get_connection
from .models import Customer
from .seed import initial_customers

logger = get_logger(__name__)

CUSTOMERS_KEY = "aquaflow_customers"
STATE_KEY = "aquaflow_state"


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the kv_store table if it doesn't exist.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)
        conn.commit()
    finally:
        conn.close()


class AppRepository:
    """Repository for the customer collection and application state.

    Values are stored as JSON documents under fixed keys. Every save
    replaces the whole document inside a single transaction.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def initialize_schema(self) -> None:
        initialize_schema(self.db_path)

    def get_value(self, key: str) -> Optional[Any]:
        """Read and decode the JSON value stored under ``key``, or None."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return json.loads(row[0])

    def put_values(self, values: Dict[str, Any]) -> None:
        """Replace several keys atomically.

        Args:
            values: Mapping of key to JSON-serialisable value
        """
        if not values:
            return

        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN TRANSACTION")
            for key, value in values.items():
                conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                    (key, json.dumps(value)),
                )
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.debug("Saved keys %s to %s", sorted(values), self.db_path)

    def load_customers(self) -> List[Customer]:
        """Load the customer collection.

        Falls back to the demo customers when nothing has been saved yet.
        """
        data = self.get_value(CUSTOMERS_KEY)
        if data is None:
            logger.debug("No customers stored in %s, using demo customers", self.db_path)
            return initial_customers()
        customers = [Customer.from_dict(item) for item in data]
        logger.debug("Loaded %d customers from %s", len(customers), self.db_path)
        return customers

    def save_customers(self, customers: List[Customer]) -> None:
        self.put_values({CUSTOMERS_KEY: [c.to_dict() for c in customers]})

    def load_state(self) -> AppState:
        """Load the full application state, customers included."""
        customers = self.load_customers()
        data = self.get_value(STATE_KEY) or {}
        return AppState.from_dict(data, customers=customers)

    def save_state(self, state: AppState) -> None:
        """Persist customers and view state in one transaction."""
        self.put_values({
            CUSTOMERS_KEY: [c.to_dict() for c in state.customers],
            STATE_KEY: state.to_dict(),
        })


# Global repository instance
_default_repository: Optional[AppRepository] = None


def get_repository(db_path: str = DEFAULT_DB_PATH) -> AppRepository:
    """Get a repository instance.

    Returns the cached instance when the path matches, otherwise creates
    a new one for ``db_path``.

    Args:
        db_path: Path to SQLite database file

    Returns:
        An instance of AppRepository
    """
    global _default_repository
    if _default_repository is None or _default_repository.db_path != db_path:
        _default_repository = AppRepository(db_path)
    return _default_repository
