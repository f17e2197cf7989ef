from __future__ import annotations

from typing import Any, Mapping, Union

from author import Author
from config import settings


class Book:
    """A single title in the catalog, referencing its Author by identity.

    ``author`` holds the referenced Author's id as stored. After a join it holds
    the resolved Author, or None when the referenced Author no longer exists.
    """

    def __init__(self, title: str, summary: str, isbn: str, author: Union[str, Author, None] = None,
                 id: str | None = None) -> None:
        self.id = id
        self.title = title
        self.summary = summary
        self.isbn = isbn
        self.author = author

    @property
    def author_id(self) -> str | None:
        if isinstance(self.author, Author):
            return self.author.id
        return self.author

    @property
    def url(self) -> str:
        return f"{settings.catalog_prefix}/book/{self.id}"

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} (ISBN: {self.isbn})"

    def __repr__(self) -> str:
        return f"Book(id={self.id!r}, title={self.title!r}, author={self.author_id!r})"

    def __eq__(self, other: Any) -> bool:
        """Compare books by identity and user-supplied fields, not by join state."""
        if not isinstance(other, Book):
            return NotImplemented
        return (
            self.id == other.id
            and self.title == other.title
            and self.summary == other.summary
            and self.isbn == other.isbn
            and self.author_id == other.author_id
        )

    def __hash__(self) -> int:
        return hash((self.id, self.title, self.isbn))

    @classmethod
    def from_form(cls, values: Mapping[str, Any], book_id: str | None = None) -> "Book":
        """Build a candidate Book from sanitized form values, keeping ``book_id`` on update."""
        return cls(
            title=values.get("title") or "",
            summary=values.get("summary") or "",
            isbn=values.get("isbn") or "",
            author=values.get("author") or None,
            id=book_id,
        )

    def to_document(self) -> dict:
        """Fields persisted in the books collection; the author is stored as a bare reference."""
        return {
            "title": self.title,
            "summary": self.summary,
            "isbn": self.isbn,
            "author": self.author_id,
        }

    @staticmethod
    def from_document(data: Mapping[str, Any]) -> "Book":
        # Projected reads may omit any of the user fields
        return Book(
            title=data.get("title", ""),
            summary=data.get("summary", ""),
            isbn=data.get("isbn", ""),
            author=data.get("author"),
            id=data.get("id"),
        )

    def to_dict(self) -> dict:
        author = self.author.to_dict() if isinstance(self.author, Author) else self.author
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "isbn": self.isbn,
            "author": author,
            "url": self.url,
        }
