import json
import logging
import re
import sqlite3
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from config import settings

logger = logging.getLogger(__name__)

# Default database file. Tests and callers can pass their own path to DocumentStore.
DATABASE_FILE = settings.database_file

AUTHORS = "authors"
BOOKS = "books"
COLLECTIONS = (AUTHORS, BOOKS)

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_SORT_ORDERS = {"asc": "ASC", "ascending": "ASC", "desc": "DESC", "descending": "DESC"}


class StoreFailure(Exception):
    """Raised when the underlying database read or write fails."""


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite file backing the document store."""
    conn = sqlite3.connect(db_file or DATABASE_FILE)
    conn.row_factory = sqlite3.Row
    return conn


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the collection tables and their indexes if they do not exist."""
    conn = get_db_connection(db_file)
    try:
        conn.execute("PRAGMA journal_mode=WAL;")
        for kind in COLLECTIONS:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {kind} (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
        # Fan-out lookups (books of an author) and the default list orderings
        conn.execute("CREATE INDEX IF NOT EXISTS idx_books_author ON books(json_extract(data, '$.author'))")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(json_extract(data, '$.title'))")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_authors_family_name ON authors(json_extract(data, '$.family_name'))")
        conn.commit()
    finally:
        conn.close()


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialize the database, creating the collections when needed."""
    try:
        create_tables(db_file)
    except sqlite3.Error as e:
        raise StoreFailure(f"Could not initialize database: {e}") from e


class DocumentStore:
    """Schemaless document storage for the catalog collections.

    Each collection is a table of JSON documents keyed by an opaque identifier
    generated on save. Every call opens its own connection, so a single store
    instance can be shared by concurrent requests and worker threads.
    """

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file or DATABASE_FILE
        initialize_database(self.db_file)

    # ------------------------- Reads ------------------------- #
    def find_all(
        self,
        kind: str,
        filter: Optional[Dict[str, Any]] = None,
        projection: Optional[Sequence[str]] = None,
        sort: Optional[Sequence[Tuple[str, str]]] = None,
    ) -> List[Dict[str, Any]]:
        """Return every document of ``kind`` matching ``filter`` (equality on top-level fields)."""
        where, params = self._where_clause(filter)
        order = self._order_clause(sort)
        sql = f"SELECT id, data FROM {self._table(kind)}{where}{order}"
        rows = self._fetch(sql, params)
        return [self._document(row, projection) for row in rows]

    def find_by_id(self, kind: str, doc_id: str) -> Optional[Dict[str, Any]]:
        rows = self._fetch(f"SELECT id, data FROM {self._table(kind)} WHERE id = ?", [doc_id])
        return self._document(rows[0]) if rows else None

    def find_by_ids(self, kind: str, ids: Iterable[str]) -> List[Dict[str, Any]]:
        """Return the documents whose identity is in ``ids``; unknown ids are ignored."""
        ids = [i for i in dict.fromkeys(ids) if i]
        if not ids:
            return []
        placeholders = ", ".join("?" for _ in ids)
        rows = self._fetch(f"SELECT id, data FROM {self._table(kind)} WHERE id IN ({placeholders})", ids)
        return [self._document(row) for row in rows]

    def count(self, kind: str, filter: Optional[Dict[str, Any]] = None) -> int:
        where, params = self._where_clause(filter)
        rows = self._fetch(f"SELECT COUNT(*) FROM {self._table(kind)}{where}", params)
        return rows[0][0]

    # ------------------------- Writes ------------------------- #
    def save(self, kind: str, document: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new document and return it with its assigned ``id``."""
        table = self._table(kind)
        doc = dict(document)
        doc_id = doc.pop("id", None) or uuid.uuid4().hex
        self._execute(f"INSERT INTO {table} (id, data) VALUES (?, ?)", [doc_id, self._dumps(doc)])
        logger.debug(f"Saved {kind} document {doc_id}")
        return {"id": doc_id, **doc}

    def update_by_id(self, kind: str, doc_id: str, document: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Replace the document stored under ``doc_id``. Returns None if it does not exist."""
        table = self._table(kind)
        doc = {k: v for k, v in document.items() if k != "id"}
        rowcount = self._execute(f"UPDATE {table} SET data = ? WHERE id = ?", [self._dumps(doc), doc_id])
        if rowcount == 0:
            return None
        return {"id": doc_id, **doc}

    def remove_by_id(self, kind: str, doc_id: str) -> bool:
        rowcount = self._execute(f"DELETE FROM {self._table(kind)} WHERE id = ?", [doc_id])
        return rowcount > 0

    # ------------------------- Helpers ------------------------- #
    @staticmethod
    def _table(kind: str) -> str:
        if kind not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {kind!r}")
        return kind

    @staticmethod
    def _check_field(field: str) -> str:
        if not _FIELD_RE.match(field):
            raise ValueError(f"Invalid field name: {field!r}")
        return field

    def _field_expr(self, field: str) -> str:
        # Literal path so the query matches the expression indexes in create_tables
        return f"json_extract(data, '$.{self._check_field(field)}')"

    def _where_clause(self, filter: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
        if not filter:
            return "", []
        clauses = []
        params: List[Any] = []
        for field, value in filter.items():
            if field == "id":
                clauses.append("id = ?")
            else:
                clauses.append(f"{self._field_expr(field)} = ?")
            params.append(value)
        return " WHERE " + " AND ".join(clauses), params

    def _order_clause(self, sort: Optional[Sequence[Tuple[str, str]]]) -> str:
        if not sort:
            return ""
        terms = []
        for field, direction in sort:
            order = _SORT_ORDERS.get(str(direction).lower())
            if order is None:
                raise ValueError(f"Invalid sort direction: {direction!r}")
            terms.append(f"{self._field_expr(field)} {order}")
        return " ORDER BY " + ", ".join(terms)

    @staticmethod
    def _document(row: sqlite3.Row, projection: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        data = json.loads(row["data"])
        if projection is not None:
            data = {k: data[k] for k in projection if k in data}
        return {"id": row["id"], **data}

    @staticmethod
    def _dumps(document: Dict[str, Any]) -> str:
        return json.dumps(document, ensure_ascii=False, default=str)

    def _fetch(self, sql: str, params: Sequence[Any]) -> List[sqlite3.Row]:
        try:
            conn = get_db_connection(self.db_file)
        except sqlite3.Error as e:
            raise StoreFailure(f"Could not connect to database: {e}") from e
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreFailure(f"Read failed: {e}") from e
        finally:
            conn.close()

    def _execute(self, sql: str, params: Sequence[Any]) -> int:
        try:
            conn = get_db_connection(self.db_file)
        except sqlite3.Error as e:
            raise StoreFailure(f"Could not connect to database: {e}") from e
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
            return cursor.rowcount
        except sqlite3.Error as e:
            raise StoreFailure(f"Write failed: {e}") from e
        finally:
            conn.close()
