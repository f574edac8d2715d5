from typing import Annotated

import pytest
from pydantic import Field, ValidationError
from sqlalchemy import ForeignKey, MetaData
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import mapped_column

from sqlrelate.associations.registry import AssociationRegistry
from sqlrelate.associations.resolver import AssociationResolver
from sqlrelate.entity.annotations import ExcludeSAField
from sqlrelate.entity.core import Entity
from sqlrelate.exceptions import (
    AssociationConfigError,
    AssociationTypeMismatchError,
    DanglingReferenceError,
    DuplicateAssociationError,
    MissingForeignKeyError,
    StoreNotBoundError,
    UnknownAssociationError,
    UnknownTargetTypeError,
    UnsavedTargetError,
)
from sqlrelate.store.catalog import SchemaCatalog
from sqlrelate.store.records import RecordStore


metadata = MetaData()
registry = AssociationRegistry()


class ShowBase(Entity):
    __sqlalchemy_params__ = {"__abstract__": True, "metadata": metadata}
    __association_registry__ = registry


class Person(ShowBase):
    first_name: str
    last_name: str


class Dog(ShowBase):
    name: Annotated[str, Field(min_length=1)]
    breed: str | None = None
    owner_id: Annotated[int | None, mapped_column(ForeignKey("people.id"))] = None


class Rating(ShowBase):
    score: int
    dog_id: int | None = None
    judge_id: int | None = None


AssociationResolver(registry=registry).declare(Rating, "dog")
AssociationResolver(registry=registry).declare(
    Rating, "judge", target=Person, foreign_key="judge_id"
)


@pytest.fixture
def store(engine) -> RecordStore:
    store = RecordStore(engine, SchemaCatalog(Person, Dog, Rating))
    store.create_schema()
    return store


@pytest.fixture
def resolver(store: RecordStore) -> AssociationResolver:
    return AssociationResolver(store, registry)


@pytest.fixture
def teagan(store: RecordStore) -> Person:
    return store.insert(Person, {"first_name": "Teagan", "last_name": "Hickman"})


@pytest.fixture
def tenley(store: RecordStore, teagan: Person) -> Dog:
    return store.insert(Dog, {"name": "Tenley", "breed": "Vizsla", "owner_id": teagan.id})


def test_get_loads_target_by_foreign_key(store, resolver, tenley):
    rating = store.insert(Rating, {"score": 9, "dog_id": tenley.id})

    dog = resolver.get(rating, "dog")

    assert dog == tenley
    assert dog == store.find_by_id(Dog, rating.dog_id)
    assert dog is not tenley


def test_get_uses_configured_target_and_foreign_key(store, resolver, teagan):
    rating = store.insert(Rating, {"score": 9, "judge_id": teagan.id})

    assert resolver.get(rating, "judge") == teagan


def test_get_returns_none_without_foreign_key(store, resolver):
    rating = store.insert(Rating, {"score": 3})

    assert resolver.get(rating, "dog") is None
    assert resolver.get(rating, "judge") is None


def test_get_with_dangling_foreign_key(store, resolver):
    rating = store.insert(Rating, {"score": 3, "dog_id": 999})

    with pytest.raises(DanglingReferenceError) as exc_info:
        resolver.get(rating, "dog")

    assert exc_info.value.value == 999
    assert exc_info.value.target is Dog
    assert exc_info.value.foreign_key == "dog_id"
    assert "Rating.dog references Dog with id 999" in str(exc_info.value)


def test_get_reflects_current_foreign_key(store, resolver, tenley):
    other = store.insert(Dog, {"name": "Rex"})
    rating = store.insert(Rating, {"score": 5, "dog_id": tenley.id})

    rating.dog_id = other.id

    assert resolver.get(rating, "dog") == other


def test_get_unknown_association(resolver):
    with pytest.raises(UnknownAssociationError):
        resolver.get(Rating(score=1), "owner")


def test_get_without_store():
    rating = Rating(score=1, dog_id=1)

    with pytest.raises(StoreNotBoundError, match="No RecordStore is bound for Rating"):
        AssociationResolver(registry=registry).get(rating, "dog")


def test_set_then_get(store, resolver, teagan):
    rating = store.insert(Rating, {"score": 7})

    resolver.set(rating, "judge", teagan)

    assert rating.judge_id == teagan.id
    assert resolver.get(rating, "judge") == teagan


def test_set_only_changes_memory_until_saved(store, resolver, teagan):
    rating = store.insert(Rating, {"score": 7})

    resolver.set(rating, "judge", teagan)

    assert store.find(Rating, rating.id).judge_id is None
    store.save(rating)
    assert store.find(Rating, rating.id).judge_id == teagan.id


def test_set_none_clears_foreign_key(store, resolver, tenley):
    rating = store.insert(Rating, {"score": 7, "dog_id": tenley.id})

    resolver.set(rating, "dog", None)

    assert rating.dog_id is None
    assert resolver.get(rating, "dog") is None


def test_set_rejects_unsaved_target(resolver):
    rating = Rating(score=7, dog_id=4)

    with pytest.raises(UnsavedTargetError, match="Cannot assign unsaved Dog to Rating.dog"):
        resolver.set(rating, "dog", Dog(name="Rex"))

    assert rating.dog_id == 4


def test_set_rejects_wrong_target_type(resolver, teagan):
    rating = Rating(score=7)

    message = "Rating.dog expects Dog or None, got Person"
    with pytest.raises(AssociationTypeMismatchError, match=message):
        resolver.set(rating, "dog", teagan)

    assert rating.dog_id is None


def test_type_mismatch_is_a_type_error(resolver, teagan):
    with pytest.raises(TypeError):
        resolver.set(Rating(score=7), "dog", teagan)


def test_create_inserts_and_assigns(store, resolver):
    rating = store.insert(Rating, {"score": 8})

    dog = resolver.create(rating, "dog", {"name": "Rex", "breed": "Beagle"})

    assert dog.persisted
    assert dog.valid
    assert rating.dog_id == dog.id
    assert resolver.get(rating, "dog") == dog
    assert store.count(Dog) == 1


def test_create_with_invalid_attributes_returns_errors(store, resolver, tenley):
    rating = store.insert(Rating, {"score": 8, "dog_id": tenley.id})

    dog = resolver.create(rating, "dog", {"name": ""})

    assert isinstance(dog, Dog)
    assert not dog.persisted
    assert not dog.valid
    assert [error["loc"] for error in dog.errors] == [("name",)]
    assert rating.dog_id == tenley.id
    assert store.count(Dog) == 1


def test_create_or_fail_raises_on_invalid_attributes(store, resolver):
    rating = store.insert(Rating, {"score": 8})

    with pytest.raises(ValidationError):
        resolver.create_or_fail(rating, "dog", {"breed": "Beagle"})

    assert rating.dog_id is None
    assert store.count(Dog) == 0


def test_create_or_fail_inserts_and_assigns(store, resolver):
    rating = store.insert(Rating, {"score": 8})

    judge = resolver.create_or_fail(rating, "judge", {"first_name": "Avery", "last_name": "Lin"})

    assert judge.persisted
    assert rating.judge_id == judge.id
    assert store.find(Person, judge.id) == judge


def test_create_requires_store():
    with pytest.raises(StoreNotBoundError):
        AssociationResolver(registry=registry).create_or_fail(
            Rating(score=1), "dog", {"name": "Rex"}
        )


def test_build_writes_nothing(store, resolver):
    rating = store.insert(Rating, {"score": 6})

    dog = resolver.build(rating, "dog", {"name": "Rex"})

    assert isinstance(dog, Dog)
    assert not dog.persisted
    assert rating.dog_id is None
    assert rating.pending_targets == {"dog": dog}
    assert store.count(Dog) == 0


def test_saving_owner_inserts_built_target(store, resolver):
    rating = store.insert(Rating, {"score": 6})
    dog = resolver.build(rating, "dog", {"name": "Rex"})

    store.save(rating)

    assert dog.persisted
    assert rating.dog_id == dog.id
    assert rating.pending_targets == {}
    assert store.find(Rating, rating.id).dog_id == dog.id
    assert resolver.get(rating, "dog") == dog


def test_adding_new_owner_inserts_built_target(store, resolver):
    rating = Rating(score=6)
    judge = resolver.build(rating, "judge", {"first_name": "Avery", "last_name": "Lin"})

    store.add(rating)

    assert rating.persisted
    assert judge.persisted
    assert store.find(Rating, rating.id).judge_id == judge.id


def test_build_replaces_current_target(store, resolver, tenley):
    rating = store.insert(Rating, {"score": 6, "dog_id": tenley.id})

    resolver.build(rating, "dog", {"name": "Rex"})

    assert rating.dog_id is None


def test_build_with_invalid_attributes_raises(resolver):
    rating = Rating(score=6)

    with pytest.raises(ValidationError):
        resolver.build(rating, "dog", {"name": ""})

    assert rating.pending_targets == {}


def test_set_discards_built_target(store, resolver, tenley):
    rating = store.insert(Rating, {"score": 6})
    resolver.build(rating, "dog", {"name": "Rex"})

    resolver.set(rating, "dog", tenley)
    store.save(rating)

    assert rating.pending_targets == {}
    assert store.count(Dog) == 1
    assert store.find(Rating, rating.id).dog_id == tenley.id


def test_declare_rejects_duplicates(resolver):
    with pytest.raises(DuplicateAssociationError):
        resolver.declare(Rating, "dog", target=Person)

    assert registry.get(Rating, "dog").target == "Dog"


def test_declare_requires_foreign_key_field(resolver):
    with pytest.raises(MissingForeignKeyError, match="Person has no such field"):
        resolver.declare(Person, "dog")

    assert registry.find(Person, "dog") is None


def test_declare_rejects_name_clashing_with_field(resolver):
    with pytest.raises(AssociationConfigError, match="clashes with the field"):
        resolver.declare(Dog, "owner_id", foreign_key="owner_id")


def test_declare_requires_entity_owner(resolver):
    with pytest.raises(AssociationConfigError, match="owners must be Entity subclasses"):
        resolver.declare(dict, "dog")  # type: ignore[arg-type]


def test_check_schema_accepts_declared_associations(resolver):
    resolver.check_schema()


def test_check_schema_needs_catalog_or_store():
    with pytest.raises(StoreNotBoundError):
        AssociationResolver(registry=registry).check_schema()


class Ribbon(ShowBase):
    __association_registry__ = AssociationRegistry()

    colour: str
    dog_id: Annotated[int | None, ExcludeSAField()] = None


class Trophy(ShowBase):
    __association_registry__ = AssociationRegistry()

    title: str
    winner_id: int | None = None


AssociationResolver(registry=Ribbon.__association_registry__).declare(Ribbon, "dog")
AssociationResolver(registry=Trophy.__association_registry__).declare(
    Trophy, "winner", target="NoSuchWinner"
)


def test_check_schema_requires_foreign_key_column():
    resolver = AssociationResolver(registry=Ribbon.__association_registry__)

    with pytest.raises(MissingForeignKeyError, match="Ribbon has no such column"):
        resolver.check_schema(SchemaCatalog(Ribbon))


def test_check_schema_requires_resolvable_target():
    resolver = AssociationResolver(registry=Trophy.__association_registry__)

    with pytest.raises(UnknownTargetTypeError, match="NoSuchWinner"):
        resolver.check_schema(SchemaCatalog(Trophy))


def test_check_schema_skips_owners_outside_catalog():
    resolver = AssociationResolver(registry=Trophy.__association_registry__)

    resolver.check_schema(SchemaCatalog(Person))


def test_failed_owner_insert_rolls_back_built_target(store, resolver):
    store.insert(Rating, {"id": 1, "score": 6})
    clash = Rating(id=1, score=2)
    dog = resolver.build(clash, "dog", {"name": "Rex"})

    with pytest.raises(IntegrityError):
        store.add(clash)

    assert dog.id is None
    assert clash.id == 1
    assert clash.dog_id is None
    assert clash.pending_targets == {"dog": dog}
    assert store.count(Dog) == 0

    clash.id = None
    store.add(clash)

    assert dog.persisted
    assert clash.dog_id == dog.id
    assert resolver.get(clash, "dog") == dog
    assert store.count(Dog) == 1


class Kennel(ShowBase):
    dog_id: int | None = None

    def dog(self) -> str:
        return "woof"


def test_declare_rejects_name_clashing_with_method(resolver):
    with pytest.raises(AssociationConfigError, match="clashes with the existing attribute"):
        resolver.declare(Kennel, "dog")

    assert registry.find(Kennel, "dog") is None
    assert Kennel(dog_id=1).dog() == "woof"
