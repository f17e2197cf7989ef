import asyncio

import pytest

from author import Author
from book import Book
from catalog import Catalog
from database import DocumentStore


@pytest.fixture
def store(tmp_path, request):
    # Unique database file per test
    db_file = str(tmp_path / f"catalog_{request.node.name}.db")
    return DocumentStore(db_file=db_file)


@pytest.fixture
def catalog(store):
    return Catalog(store)


@pytest.fixture
def seeded(catalog):
    """Two authors; the first has two books, the second has none."""
    async def seed():
        austen = await catalog.create_author(Author("Jane", "Austen"))
        woolf = await catalog.create_author(Author("Virginia", "Woolf"))
        emma = await catalog.create_book(Book("Emma", "A matchmaker", "9780141439587", austen.id))
        persuasion = await catalog.create_book(Book("Persuasion", "Second chances", "9780141439686", austen.id))
        return {"austen": austen, "woolf": woolf, "emma": emma, "persuasion": persuasion}
    return asyncio.run(seed())
