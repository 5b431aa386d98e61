from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Union

from database import ConnectionProvider, DatabaseError

logger = logging.getLogger(__name__)

AVAILABLE_TEXT = "Available"
UNAVAILABLE_TEXT = "Not Available"


@dataclass
class Book:
    title: str
    author: str
    available: bool = True
    id: Optional[int] = None

    @property
    def status(self) -> str:
        return AVAILABLE_TEXT if self.available else UNAVAILABLE_TEXT

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Book":
        return cls(
            id=int(row["id"]),
            title=row["title"],
            author=row["author"],
            available=bool(row["isAvailable"]),
        )


# --------------------------------------------------------------------------- #
# Operation results
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class Ok:
    value: Any = None
    ok = True

    def __bool__(self) -> bool:
        return True

    @property
    def message(self) -> str:
        return "OK"


@dataclass(frozen=True)
class NotFound:
    ok = False

    def __bool__(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return "No book with that id exists."


@dataclass(frozen=True)
class Duplicate:
    ok = False

    def __bool__(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return "Book already exists in the library."


@dataclass(frozen=True)
class Failure:
    reason: str
    ok = False

    def __bool__(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return self.reason


Result = Union[Ok, NotFound, Duplicate, Failure]

ErrorReporter = Callable[[str], None]


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BookRepository:
    """Data access for the ``books`` table.

    Every call opens its own connection, runs one statement and closes it.
    Database errors are logged, handed to ``on_error`` and turned into a
    ``Failure`` (or an empty/false value for queries); they never escape.
    """

    def __init__(self, provider: ConnectionProvider, on_error: Optional[ErrorReporter] = None):
        self.provider = provider
        self.on_error = on_error

    def _report(self, action: str, error: Exception) -> str:
        message = f"Error {action}: {error}"
        logger.error(message)
        if self.on_error is not None:
            self.on_error(message)
        return message

    # --------------------------------------------------------------------- #
    # Queries
    # --------------------------------------------------------------------- #
    def exists(self, title: str, author: str) -> bool:
        try:
            with self.provider.connect() as conn:
                row = conn.execute(
                    "SELECT COUNT(*) FROM books WHERE title = ? AND author = ?",
                    (title, author),
                ).fetchone()
        except (sqlite3.Error, DatabaseError) as error:
            self._report("checking book existence", error)
            return False
        return row[0] > 0

    def list_all(self) -> List[Book]:
        try:
            with self.provider.connect() as conn:
                rows = conn.execute("SELECT * FROM books ORDER BY id").fetchall()
        except (sqlite3.Error, DatabaseError) as error:
            self._report("retrieving books", error)
            return []
        return [Book.from_row(row) for row in rows]

    def search(self, term: str) -> List[Book]:
        """Books whose title or author contains ``term``, ignoring case.

        A blank term is the same as :meth:`list_all`.
        """
        if not term or not term.strip():
            return self.list_all()
        pattern = f"%{_escape_like(term.casefold())}%"
        try:
            with self.provider.connect() as conn:
                rows = conn.execute(
                    """
                    SELECT * FROM books
                    WHERE casefold(title) LIKE ? ESCAPE '\\'
                       OR casefold(author) LIKE ? ESCAPE '\\'
                    ORDER BY id
                    """,
                    (pattern, pattern),
                ).fetchall()
        except (sqlite3.Error, DatabaseError) as error:
            self._report("searching books", error)
            return []
        return [Book.from_row(row) for row in rows]

    def get_by_id(self, book_id: int) -> Optional[Book]:
        try:
            with self.provider.connect() as conn:
                row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
        except (sqlite3.Error, DatabaseError) as error:
            self._report("retrieving book", error)
            return None
        return Book.from_row(row) if row else None

    def count(self) -> int:
        try:
            with self.provider.connect() as conn:
                row = conn.execute("SELECT COUNT(*) FROM books").fetchone()
        except (sqlite3.Error, DatabaseError) as error:
            self._report("counting books", error)
            return 0
        return int(row[0])

    # --------------------------------------------------------------------- #
    # Mutations
    # --------------------------------------------------------------------- #
    def insert(self, book: Book) -> Result:
        if self.exists(book.title, book.author):
            logger.info("Skipped duplicate book %r by %r", book.title, book.author)
            return Duplicate()
        try:
            with self.provider.connect() as conn:
                cursor = conn.execute(
                    "INSERT INTO books(title, author, isAvailable) VALUES (?, ?, ?)",
                    (book.title, book.author, book.available),
                )
                book_id = cursor.lastrowid
        except (sqlite3.Error, DatabaseError) as error:
            return Failure(self._report("adding book", error))
        logger.info("Added book %d: %r by %r", book_id, book.title, book.author)
        return Ok(int(book_id))

    def update_availability(self, book_id: int, available: bool) -> Result:
        try:
            with self.provider.connect() as conn:
                cursor = conn.execute(
                    "UPDATE books SET isAvailable = ? WHERE id = ?",
                    (available, book_id),
                )
                changed = cursor.rowcount
        except (sqlite3.Error, DatabaseError) as error:
            return Failure(self._report("updating book availability", error))
        if changed == 0:
            return NotFound()
        return Ok(book_id)

    def delete(self, book_id: int) -> Result:
        try:
            with self.provider.connect() as conn:
                cursor = conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
                changed = cursor.rowcount
        except (sqlite3.Error, DatabaseError) as error:
            return Failure(self._report("deleting book", error))
        if changed == 0:
            return NotFound()
        logger.info("Deleted book %d", book_id)
        return Ok(book_id)
