"""Use-case handlers for the catalog.

Each handler is a single pass over the catalog and returns one outcome:
``Render`` (a named view and its data bag), ``Redirect``, ``NotFound`` or
``Failed``. Validation failures and refused deletions are ordinary ``Render``
outcomes. Store failures are logged and become ``Failed``.
"""

import logging
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Dict, Mapping, Union

from author import Author
from book import Book
from catalog import Catalog, EntityNotFound
from config import settings
from database import StoreFailure
from utils.validators import validate_author, validate_book

logger = logging.getLogger(__name__)

AUTHOR_LIST_URL = f"{settings.catalog_prefix}/authors"
BOOK_LIST_URL = f"{settings.catalog_prefix}/books"


# ------------------------- Outcomes ------------------------- #
@dataclass
class Render:
    view: str
    data: Dict[str, Any] = field(default_factory=dict)
    status_code: int = 200


@dataclass
class Redirect:
    location: str
    status_code: int = 302


@dataclass
class NotFound:
    message: str
    status_code: int = 404


@dataclass
class Failed:
    message: str
    status_code: int = 500


Outcome = Union[Render, Redirect, NotFound, Failed]


def handles_store_failure(func):
    """Turn a StoreFailure raised by a use case into a logged Failed outcome."""
    @wraps(func)
    async def wrapper(*args, **kwargs) -> Outcome:
        try:
            return await func(*args, **kwargs)
        except StoreFailure as e:
            logger.exception(f"{func.__name__} failed: {e}")
            return Failed(str(e))
    return wrapper


# ------------------------- Home ------------------------- #
@handles_store_failure
async def index(catalog: Catalog) -> Outcome:
    counts = await catalog.counts()
    return Render("index", {"title": "Local Library Home", "data": counts.to_dict()})


# ------------------------- Authors ------------------------- #
@handles_store_failure
async def author_list(catalog: Catalog) -> Outcome:
    authors = await catalog.list_authors()
    return Render("author_list", {"title": "Author List", "author_list": authors})


@handles_store_failure
async def author_detail(catalog: Catalog, author_id: str) -> Outcome:
    try:
        detail = await catalog.author_detail(author_id)
    except EntityNotFound as e:
        return NotFound(str(e))
    return Render("author_detail", {
        "title": "Author Detail",
        "author": detail.author,
        "author_books": detail.books,
    })


async def author_create_get(catalog: Catalog) -> Outcome:
    return Render("author_form", {"title": "Create Author"})


@handles_store_failure
async def author_create_post(catalog: Catalog, form: Mapping[str, Any]) -> Outcome:
    result = validate_author(form)
    author = Author.from_form(result.values)
    if not result.ok:
        return Render("author_form", {"title": "Create Author", "author": author, "errors": result.errors})

    created = await catalog.create_author(author)
    return Redirect(created.url)


@handles_store_failure
async def author_delete_get(catalog: Catalog, author_id: str) -> Outcome:
    try:
        detail = await catalog.author_detail(author_id)
    except EntityNotFound:
        return Redirect(AUTHOR_LIST_URL)
    return Render("author_delete", {
        "title": "Delete Author",
        "author": detail.author,
        "author_books": detail.books,
    })


@handles_store_failure
async def author_delete_post(catalog: Catalog, author_id: str) -> Outcome:
    check = await catalog.check_author_deletion(author_id)
    if not check.allowed:
        # Same view as the GET route, re-using the guard's dependent list
        return Render("author_delete", {
            "title": "Delete Author",
            "author": check.author,
            "author_books": check.dependents,
        })

    await catalog.remove_author(check)
    return Redirect(AUTHOR_LIST_URL)


@handles_store_failure
async def author_update_get(catalog: Catalog, author_id: str) -> Outcome:
    try:
        author = await catalog.get_author(author_id)
    except EntityNotFound as e:
        return NotFound(str(e))
    return Render("author_form", {"title": "Update Author", "author": author})


@handles_store_failure
async def author_update_post(catalog: Catalog, author_id: str, form: Mapping[str, Any]) -> Outcome:
    result = validate_author(form)
    author = Author.from_form(result.values, author_id=author_id)
    if not result.ok:
        return Render("author_form", {"title": "Update Author", "author": author, "errors": result.errors})

    try:
        updated = await catalog.update_author(author_id, author)
    except EntityNotFound as e:
        return NotFound(str(e))
    return Redirect(updated.url)


# ------------------------- Books ------------------------- #
@handles_store_failure
async def book_list(catalog: Catalog) -> Outcome:
    books = await catalog.list_books()
    return Render("book_list", {"title": "Book List", "book_list": books})


@handles_store_failure
async def book_detail(catalog: Catalog, book_id: str) -> Outcome:
    try:
        book = await catalog.book_detail(book_id)
    except EntityNotFound as e:
        return NotFound(str(e))
    return Render("book_detail", {"title": book.title, "book": book})


@handles_store_failure
async def book_create_get(catalog: Catalog) -> Outcome:
    authors = await catalog.list_authors()
    return Render("book_form", {"title": "Create Book", "authors": authors})


@handles_store_failure
async def book_create_post(catalog: Catalog, form: Mapping[str, Any]) -> Outcome:
    result = validate_book(form)
    book = Book.from_form(result.values)
    if not result.ok:
        authors = await catalog.list_authors()
        return Render("book_form", {
            "title": "Create Book",
            "authors": authors,
            "book": book,
            "errors": result.errors,
        })

    created = await catalog.create_book(book)
    return Redirect(created.url)


@handles_store_failure
async def book_delete_get(catalog: Catalog, book_id: str) -> Outcome:
    try:
        book = await catalog.book_detail(book_id)
    except EntityNotFound:
        return Redirect(BOOK_LIST_URL)
    return Render("book_delete", {"title": "Delete Book", "book": book})


@handles_store_failure
async def book_delete_post(catalog: Catalog, book_id: str) -> Outcome:
    await catalog.remove_book(book_id)
    return Redirect(BOOK_LIST_URL)


@handles_store_failure
async def book_update_get(catalog: Catalog, book_id: str) -> Outcome:
    try:
        book, authors = await catalog.book_form_data(book_id)
    except EntityNotFound as e:
        return NotFound(str(e))
    return Render("book_form", {"title": "Update Book", "authors": authors, "book": book})


@handles_store_failure
async def book_update_post(catalog: Catalog, book_id: str, form: Mapping[str, Any]) -> Outcome:
    result = validate_book(form)
    book = Book.from_form(result.values, book_id=book_id)
    if not result.ok:
        # Fresh author list for the re-displayed form
        authors = await catalog.list_authors()
        return Render("book_form", {
            "title": "Update Book",
            "authors": authors,
            "book": book,
            "errors": result.errors,
        })

    try:
        updated = await catalog.update_book(book_id, book)
    except EntityNotFound as e:
        return NotFound(str(e))
    return Redirect(updated.url)
