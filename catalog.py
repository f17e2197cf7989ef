import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from author import Author
from book import Book
from database import AUTHORS, BOOKS, DocumentStore

logger = logging.getLogger(__name__)


class EntityNotFound(LookupError):
    """The primary entity of a read or update does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found")
        self.kind = kind
        self.entity_id = entity_id


# ------------------------- Repositories ------------------------- #
class AuthorRepository:
    """Author access over the document store.

    Store calls are blocking, so each one runs in a worker thread. That lets
    independent reads of one request be awaited together.
    """

    DEFAULT_SORT: Sequence[Tuple[str, str]] = (("family_name", "asc"),)

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def list(self, sort: Optional[Sequence[Tuple[str, str]]] = DEFAULT_SORT) -> List[Author]:
        docs = await asyncio.to_thread(self.store.find_all, AUTHORS, None, None, sort)
        return [Author.from_document(d) for d in docs]

    async def get(self, author_id: str) -> Optional[Author]:
        doc = await asyncio.to_thread(self.store.find_by_id, AUTHORS, author_id)
        return Author.from_document(doc) if doc else None

    async def get_many(self, author_ids: Sequence[str]) -> Dict[str, Author]:
        docs = await asyncio.to_thread(self.store.find_by_ids, AUTHORS, author_ids)
        return {d["id"]: Author.from_document(d) for d in docs}

    async def count(self) -> int:
        return await asyncio.to_thread(self.store.count, AUTHORS)

    async def create(self, author: Author) -> Author:
        doc = await asyncio.to_thread(self.store.save, AUTHORS, author.to_document())
        return Author.from_document(doc)

    async def update(self, author_id: str, author: Author) -> Optional[Author]:
        doc = await asyncio.to_thread(self.store.update_by_id, AUTHORS, author_id, author.to_document())
        return Author.from_document(doc) if doc else None

    async def remove(self, author_id: str) -> bool:
        return await asyncio.to_thread(self.store.remove_by_id, AUTHORS, author_id)


class BookRepository:
    """Book access over the document store, with on-read author resolution."""

    DEFAULT_SORT: Sequence[Tuple[str, str]] = (("title", "asc"),)

    def __init__(self, store: DocumentStore, authors: AuthorRepository) -> None:
        self.store = store
        self.authors = authors

    async def list(self, projection: Optional[Sequence[str]] = None,
                   sort: Optional[Sequence[Tuple[str, str]]] = DEFAULT_SORT) -> List[Book]:
        docs = await asyncio.to_thread(self.store.find_all, BOOKS, None, projection, sort)
        return [Book.from_document(d) for d in docs]

    async def by_author(self, author_id: str, projection: Optional[Sequence[str]] = None) -> List[Book]:
        """Books whose ``author`` reference points at ``author_id``."""
        docs = await asyncio.to_thread(
            self.store.find_all, BOOKS, {"author": author_id}, projection, self.DEFAULT_SORT
        )
        return [Book.from_document(d) for d in docs]

    async def get(self, book_id: str) -> Optional[Book]:
        doc = await asyncio.to_thread(self.store.find_by_id, BOOKS, book_id)
        return Book.from_document(doc) if doc else None

    async def count(self) -> int:
        return await asyncio.to_thread(self.store.count, BOOKS)

    async def create(self, book: Book) -> Book:
        doc = await asyncio.to_thread(self.store.save, BOOKS, book.to_document())
        return Book.from_document(doc)

    async def update(self, book_id: str, book: Book) -> Optional[Book]:
        doc = await asyncio.to_thread(self.store.update_by_id, BOOKS, book_id, book.to_document())
        return Book.from_document(doc) if doc else None

    async def remove(self, book_id: str) -> bool:
        return await asyncio.to_thread(self.store.remove_by_id, BOOKS, book_id)

    async def with_resolved_author(self, books: List[Book]) -> List[Book]:
        """Replace each book's author reference with the Author it points to.

        All referenced authors are fetched in one read. A reference whose Author
        has been removed resolves to None instead of failing the read.
        """
        ids = [b.author_id for b in books if b.author_id]
        found = await self.authors.get_many(ids) if ids else {}
        for book in books:
            ref = book.author_id
            book.author = found.get(ref) if ref else None
            if ref and book.author is None:
                logger.warning(f"Book {book.id} references missing author {ref}")
        return books


# ------------------------- Join / aggregation results ------------------------- #
@dataclass
class CatalogCounts:
    author_count: int
    book_count: int

    def to_dict(self) -> dict:
        return {"author_count": self.author_count, "book_count": self.book_count}


@dataclass
class AuthorDetail:
    author: Author
    books: List[Book] = field(default_factory=list)


@dataclass
class DeletionCheck:
    """Outcome of the author deletion guard.

    ``dependents`` is the list of books still referencing the author; callers
    re-present it when the deletion is refused.
    """
    author_id: str
    author: Optional[Author]
    dependents: List[Book]

    @property
    def allowed(self) -> bool:
        return not self.dependents


# ------------------------- Catalog ------------------------- #
class Catalog:
    """Cross-entity reads and writes for the Author/Book catalog.

    Independent reads within one call are issued concurrently and joined with
    ``asyncio.gather``. They are not a consistency unit: each observes its own
    snapshot of the store.
    """

    BOOK_LIST_FIELDS = ("title", "author")
    AUTHOR_BOOK_FIELDS = ("title", "summary")

    def __init__(self, store: Optional[DocumentStore] = None) -> None:
        self.store = store or DocumentStore()
        self.authors = AuthorRepository(self.store)
        self.books = BookRepository(self.store, self.authors)

    # ------------------------- Aggregates ------------------------- #
    async def counts(self) -> CatalogCounts:
        author_count, book_count = await asyncio.gather(self.authors.count(), self.books.count())
        return CatalogCounts(author_count=author_count, book_count=book_count)

    # ------------------------- List joins ------------------------- #
    async def list_authors(self) -> List[Author]:
        return await self.authors.list()

    async def list_books(self) -> List[Book]:
        books = await self.books.list(projection=self.BOOK_LIST_FIELDS)
        return await self.books.with_resolved_author(books)

    # ------------------------- Detail joins ------------------------- #
    async def author_detail(self, author_id: str) -> AuthorDetail:
        author, books = await asyncio.gather(
            self.authors.get(author_id),
            self.books.by_author(author_id, projection=self.AUTHOR_BOOK_FIELDS),
        )
        if author is None:
            raise EntityNotFound("Author", author_id)
        return AuthorDetail(author=author, books=books)

    async def get_author(self, author_id: str) -> Author:
        author = await self.authors.get(author_id)
        if author is None:
            raise EntityNotFound("Author", author_id)
        return author

    async def book_detail(self, book_id: str) -> Book:
        book = await self.books.get(book_id)
        if book is None:
            raise EntityNotFound("Book", book_id)
        resolved = await self.books.with_resolved_author([book])
        return resolved[0]

    async def book_form_data(self, book_id: str) -> Tuple[Book, List[Author]]:
        """The resolved book plus every author to choose from, read concurrently."""
        book, authors = await asyncio.gather(self.book_detail(book_id), self.authors.list())
        return book, authors

    # ------------------------- Writes ------------------------- #
    async def create_author(self, author: Author) -> Author:
        created = await self.authors.create(author)
        logger.info(f"Created author {created.id}")
        return created

    async def update_author(self, author_id: str, author: Author) -> Author:
        updated = await self.authors.update(author_id, author)
        if updated is None:
            raise EntityNotFound("Author", author_id)
        logger.info(f"Updated author {author_id}")
        return updated

    async def create_book(self, book: Book) -> Book:
        created = await self.books.create(book)
        logger.info(f"Created book {created.id}")
        return created

    async def update_book(self, book_id: str, book: Book) -> Book:
        updated = await self.books.update(book_id, book)
        if updated is None:
            raise EntityNotFound("Book", book_id)
        logger.info(f"Updated book {book_id}")
        return updated

    async def remove_book(self, book_id: str) -> bool:
        removed = await self.books.remove(book_id)
        if removed:
            logger.info(f"Removed book {book_id}")
        return removed

    # ------------------------- Deletion guard ------------------------- #
    async def check_author_deletion(self, author_id: str) -> DeletionCheck:
        """Read the author and its dependent books; decide whether removal may proceed.

        Performs no write. The check and the later removal are separate store
        calls, so a book created in between can still end up orphaned.
        """
        author, dependents = await asyncio.gather(
            self.authors.get(author_id),
            self.books.by_author(author_id),
        )
        check = DeletionCheck(author_id=author_id, author=author, dependents=dependents)
        if not check.allowed:
            logger.info(f"Refusing to delete author {author_id}: {len(dependents)} dependent book(s)")
        return check

    async def remove_author(self, check: DeletionCheck) -> bool:
        """Remove the author authorized by ``check``."""
        if not check.allowed:
            raise ValueError(f"Author {check.author_id} still has dependent books")
        removed = await self.authors.remove(check.author_id)
        if removed:
            logger.info(f"Removed author {check.author_id}")
        return removed
