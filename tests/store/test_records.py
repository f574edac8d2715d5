from typing import Annotated

import pytest
from pydantic import Field, ValidationError
from sqlalchemy import ForeignKey, MetaData
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import mapped_column

from sqlrelate.entity.annotations import ColumnName
from sqlrelate.entity.core import Entity
from sqlrelate.exceptions import RecordNotFoundError
from sqlrelate.store.catalog import SchemaCatalog
from sqlrelate.store.config import StoreConfig
from sqlrelate.store.records import RecordStore


metadata = MetaData()


class LibraryBase(Entity):
    __sqlalchemy_params__ = {"__abstract__": True, "metadata": metadata}


class Author(LibraryBase):
    first_name: Annotated[str, ColumnName("given_name")]
    last_name: str


class Book(LibraryBase):
    title: Annotated[str, Field(min_length=1)]
    pages: int = 0
    author_id: Annotated[int | None, mapped_column(ForeignKey("authors.id"))] = None


@pytest.fixture
def store(engine) -> RecordStore:
    store = RecordStore(engine, SchemaCatalog(Author, Book))
    store.create_schema()
    return store


@pytest.fixture
def books(store: RecordStore) -> list[Book]:
    return [
        store.insert(Book, {"title": "Dune", "pages": 412}),
        store.insert(Book, {"title": "Emma", "pages": 474}),
        store.insert(Book, {"title": "Beloved", "pages": 324}),
    ]


def test_insert_assigns_id(store):
    book = store.insert(Book, {"title": "Dune", "pages": 412})

    assert book.persisted
    assert store.find(Book, book.id) == book


def test_insert_validates_attributes(store):
    with pytest.raises(ValidationError):
        store.insert(Book, {"title": ""})

    assert store.count(Book) == 0


def test_add_keeps_explicit_id(store):
    store.add(Book(id=40, title="Dune"))

    assert store.find(Book, 40).title == "Dune"


def test_add_revalidates_modified_entity(store):
    book = Book(title="Dune")
    book.title = ""

    with pytest.raises(ValidationError):
        store.add(book)

    assert not book.persisted
    assert store.count(Book) == 0


def test_find_by_id_returns_none_when_missing(store):
    assert store.find_by_id(Book, 42) is None


def test_find_raises_when_missing(store):
    with pytest.raises(RecordNotFoundError, match="Couldn't find Book with id=42") as exc_info:
        store.find(Book, 42)

    assert exc_info.value.entity_type is Book
    assert exc_info.value.id == 42


def test_found_entities_are_copies(store, books):
    first = store.find(Book, books[0].id)
    first.pages = 1

    assert store.find(Book, books[0].id).pages == 412


def test_where_filters_and_orders_by_id(store, books):
    store.insert(Book, {"title": "Dune", "pages": 896})

    dunes = store.where(Book, title="Dune")

    assert [it.pages for it in dunes] == [412, 896]
    assert [it.id for it in store.all(Book)] == sorted(it.id for it in store.all(Book))
    assert len(store.all(Book)) == 4


def test_where_maps_renamed_columns(store):
    author = store.insert(Author, {"first_name": "Toni", "last_name": "Morrison"})

    assert store.where(Author, first_name="Toni") == [author]
    assert store.find_by(Author, first_name="Jane") is None


def test_where_rejects_unknown_fields(store):
    with pytest.raises(ValueError, match="Book has no columns for fields"):
        store.where(Book, colour="red")


def test_find_by_and_first(store, books):
    assert store.find_by(Book, title="Emma") == books[1]
    assert store.first(Book) == books[0]


def test_first_of_empty_table(store):
    assert store.first(Book) is None


def test_count(store, books):
    assert store.count(Book) == 3
    assert store.count(Book, title="Emma") == 1
    assert store.count(Author) == 0


def test_update_writes_all_columns(store, books):
    book = books[0]
    book.pages = 500
    book.title = "Dune Messiah"

    store.update(book)

    assert store.find(Book, book.id) == book


def test_update_requires_id(store):
    with pytest.raises(ValueError, match="Cannot update an unsaved Book"):
        store.update(Book(title="Dune"))


def test_update_missing_row(store):
    with pytest.raises(RecordNotFoundError):
        store.update(Book(id=7, title="Dune"))


def test_update_revalidates(store, books):
    books[0].title = ""

    with pytest.raises(ValidationError):
        store.update(books[0])

    assert store.find(Book, books[0].id).title == "Dune"


def test_save_inserts_then_updates(store):
    book = Book(title="Emma", pages=474)

    store.save(book)
    assert book.persisted
    book.pages = 480
    store.save(book)

    assert store.count(Book) == 1
    assert store.find(Book, book.id).pages == 480


def test_save_inserts_entity_with_unknown_id(store):
    store.save(Book(id=12, title="Emma"))

    assert store.find(Book, 12).title == "Emma"


def test_delete(store, books):
    store.delete(books[1])

    assert store.find_by_id(Book, books[1].id) is None
    assert store.count(Book) == 2


def test_delete_requires_id(store):
    with pytest.raises(ValueError, match="Cannot delete an unsaved Book"):
        store.delete(Book(title="Dune"))


def test_delete_missing_row(store, books):
    store.delete(books[0])

    with pytest.raises(RecordNotFoundError):
        store.delete(books[0])


def test_delete_all(store, books):
    assert store.delete_all(Book) == 3
    assert store.count(Book) == 0


def test_store_registers_entity_types_on_first_use(engine):
    store = RecordStore(engine)

    with pytest.raises(OperationalError):
        store.count(Author)

    assert Author in store.catalog
    store.create_schema()
    assert store.count(Author) == 0


def test_drop_schema(store, books):
    store.drop_schema()

    with pytest.raises(OperationalError):
        store.count(Book)


def test_from_config():
    config = StoreConfig(create_schema=True)
    store = RecordStore.from_config(config, SchemaCatalog(Author, Book))

    try:
        author = store.insert(Author, {"first_name": "Jane", "last_name": "Austen"})
        assert store.find(Author, author.id) == author
        assert store.engine.url.drivername == "sqlite"
    finally:
        store.engine.dispose()


def test_repr_shows_url(store):
    assert repr(store) == "RecordStore(sqlite://)"
