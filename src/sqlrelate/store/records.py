"""CRUD over entity rows by primary key.

The RecordStore is the persistence API association resolution builds on.
Every operation opens its own SQLAlchemy session and, for writes, its own
transaction; entities handed back are detached pydantic copies of the rows,
never live SQLAlchemy models.

Example:
    ```python
    engine = create_engine("sqlite://")
    store = RecordStore(engine, SchemaCatalog(Person, Dog))
    store.create_schema()

    teagan = store.insert(Person, {"first_name": "Teagan", "last_name": "Hickman"})
    store.insert(Dog, {"name": "Tenley", "owner_id": teagan.id})
    store.find_by(Dog, name="Tenley")
    ```
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from logging import getLogger
from typing import TYPE_CHECKING, Any, Self, TypeVar

from sqlalchemy import Engine, create_engine, delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from sqlrelate.exceptions import RecordNotFoundError
from sqlrelate.store.catalog import SchemaCatalog
from sqlrelate.store.config import StoreConfig

if TYPE_CHECKING:
    from sqlrelate.entity.core import Entity

logger = getLogger(__name__)

_E = TypeVar("_E", bound="Entity")


class RecordStore:
    """Reads and writes entities through a SQLAlchemy engine.

    Entity types are registered with the catalog the first time the store
    touches them, so create_schema() covers every type used so far as well
    as those registered up front.

    Args:
        engine: The engine sessions are bound to.
        catalog: The catalog of entity types; a new empty one by default.
        expire_on_commit: Passed to the session factory.
    """

    def __init__(
        self,
        engine: Engine,
        catalog: SchemaCatalog | None = None,
        *,
        expire_on_commit: bool = False,
    ) -> None:
        self._engine = engine
        self._catalog = catalog if catalog is not None else SchemaCatalog()
        self._sessions = sessionmaker(engine, expire_on_commit=expire_on_commit)

    @classmethod
    def from_config(cls, config: StoreConfig, catalog: SchemaCatalog | None = None) -> Self:
        """Build a store, and its engine, from settings."""
        engine = create_engine(config.url, echo=config.echo)
        store = cls(engine, catalog, expire_on_commit=config.expire_on_commit)
        if config.create_schema:
            store.create_schema()
        return store

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._engine.url!r})"

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def catalog(self) -> SchemaCatalog:
        return self._catalog

    def create_schema(self) -> None:
        self._catalog.create_all(self._engine)

    def drop_schema(self) -> None:
        self._catalog.drop_all(self._engine)

    def _model_for(self, entity_type: type[Entity]) -> type[Any]:
        if entity_type not in self._catalog:
            self._catalog.register(entity_type)
        return self._catalog.model_for(entity_type)

    def _filters(self, entity_type: type[Entity], criteria: Mapping[str, Any]) -> dict[str, Any]:
        definitions = entity_type.__column_definitions__()
        unknown = [key for key in criteria if key not in definitions]
        if unknown:
            raise ValueError(f"{entity_type.__name__} has no columns for fields {unknown}")
        return {definitions[key].mapped_name: value for key, value in criteria.items()}

    # --- Reads ---

    def find_by_id(self, entity_type: type[_E], id: Any) -> _E | None:
        """Load the entity with primary key ``id``, or None if there is no such row."""
        sa_type = self._model_for(entity_type)
        with self._sessions() as session:
            sa_model = session.get(sa_type, id)
            return None if sa_model is None else entity_type.from_sa_model(sa_model)

    def find(self, entity_type: type[_E], id: Any) -> _E:
        """Load the entity with primary key ``id``.

        Raises:
            RecordNotFoundError: If there is no such row.
        """
        if (result := self.find_by_id(entity_type, id)) is None:
            raise RecordNotFoundError(entity_type, id)
        return result

    def where(self, entity_type: type[_E], **criteria: Any) -> list[_E]:
        """Load every entity whose fields equal ``criteria``, ordered by primary key."""
        sa_type = self._model_for(entity_type)
        statement = (
            select(sa_type)
            .filter_by(**self._filters(entity_type, criteria))
            .order_by(*sa_type.__table__.primary_key.columns)
        )
        with self._sessions() as session:
            return [entity_type.from_sa_model(it) for it in session.scalars(statement)]

    def all(self, entity_type: type[_E]) -> list[_E]:
        return self.where(entity_type)

    def find_by(self, entity_type: type[_E], **criteria: Any) -> _E | None:
        """Load the first entity, by primary key, whose fields equal ``criteria``."""
        sa_type = self._model_for(entity_type)
        statement = (
            select(sa_type)
            .filter_by(**self._filters(entity_type, criteria))
            .order_by(*sa_type.__table__.primary_key.columns)
            .limit(1)
        )
        with self._sessions() as session:
            sa_model = session.scalars(statement).first()
            return None if sa_model is None else entity_type.from_sa_model(sa_model)

    def first(self, entity_type: type[_E]) -> _E | None:
        return self.find_by(entity_type)

    def count(self, entity_type: type[Entity], **criteria: Any) -> int:
        sa_type = self._model_for(entity_type)
        matching = select(sa_type).filter_by(**self._filters(entity_type, criteria)).subquery()
        with self._sessions() as session:
            return session.scalar(select(func.count()).select_from(matching)) or 0

    # --- Writes ---

    def insert(self, entity_type: type[_E], attributes: Mapping[str, Any]) -> _E:
        """Validate ``attributes`` into a new entity and insert it.

        Raises:
            pydantic.ValidationError: If the attributes are invalid; nothing is written.
        """
        return self.add(entity_type.model_validate(dict(attributes)))

    def add(self, entity: _E) -> _E:
        """Insert ``entity`` and write its new id back to it.

        An explicit id is kept. Targets built for its belongs-to associations
        are inserted first, in the same transaction. If the transaction fails,
        the ids and foreign keys of every entity involved are restored.

        Raises:
            pydantic.ValidationError: If the entity's current values are invalid.
        """
        _revalidate(entity)
        with self._transaction(entity) as (session, written):
            self._add(session, entity, written)
        return entity

    def update(self, entity: _E) -> _E:
        """Write every column of an existing entity.

        Raises:
            ValueError: If the entity has no id.
            RecordNotFoundError: If its row no longer exists.
            pydantic.ValidationError: If the entity's current values are invalid.
        """
        if entity.id is None:
            raise ValueError(f"Cannot update an unsaved {type(entity).__name__}")
        _revalidate(entity)
        with self._transaction(entity) as (session, written):
            self._update(session, entity, written)
        return entity

    def save(self, entity: _E) -> _E:
        """Insert ``entity`` if its row does not exist yet, otherwise update it."""
        _revalidate(entity)
        sa_type = self._model_for(type(entity))
        with self._transaction(entity) as (session, written):
            if entity.id is not None and session.get(sa_type, entity.id) is not None:
                self._update(session, entity, written)
            else:
                self._add(session, entity, written)
        return entity

    def delete(self, entity: Entity) -> None:
        """Delete the row of ``entity``.

        Raises:
            ValueError: If the entity has no id.
            RecordNotFoundError: If its row does not exist.
        """
        if entity.id is None:
            raise ValueError(f"Cannot delete an unsaved {type(entity).__name__}")
        sa_type = self._model_for(type(entity))
        with self._sessions.begin() as session:
            if (existing := session.get(sa_type, entity.id)) is None:
                raise RecordNotFoundError(type(entity), entity.id)
            session.delete(existing)
        logger.debug(f"Deleted {type(entity).__name__}({entity.id!r})")

    def delete_all(self, entity_type: type[Entity]) -> int:
        """Delete every row of ``entity_type``; returns the number of rows deleted."""
        sa_type = self._model_for(entity_type)
        with self._sessions.begin() as session:
            deleted = session.execute(delete(sa_type)).rowcount
        logger.debug(f"Deleted {deleted} {entity_type.__name__} rows")
        return deleted

    @contextmanager
    def _transaction(self, entity: Entity) -> Iterator[tuple[Session, list[Entity]]]:
        """Run one write of ``entity`` in its own transaction.

        Ids and foreign keys assigned while writing are rolled back together
        with the transaction. Pending targets are only cleared after commit.
        """
        previous = _snapshot(entity)
        written: list[Entity] = []
        try:
            with self._sessions.begin() as session:
                yield session, written
        except Exception:
            _restore(previous)
            raise
        _settle(written)

    def _add(self, session: Session, entity: Entity, written: list[Entity]) -> None:
        self._model_for(type(entity))
        self._flush_pending(session, entity, written)
        sa_model = entity.to_sa_model()
        session.add(sa_model)
        session.flush()
        entity.id = getattr(sa_model, _id_attribute(type(entity)))
        written.append(entity)
        logger.debug(f"Inserted {type(entity).__name__}({entity.id!r})")

    def _update(self, session: Session, entity: Entity, written: list[Entity]) -> None:
        sa_type = self._model_for(type(entity))
        if (existing := session.get(sa_type, entity.id)) is None:
            raise RecordNotFoundError(type(entity), entity.id)
        self._flush_pending(session, entity, written)
        for name, value in entity.to_sa_values().items():
            setattr(existing, name, value)
        written.append(entity)
        logger.debug(f"Updated {type(entity).__name__}({entity.id!r})")

    def _flush_pending(self, session: Session, entity: Entity, written: list[Entity]) -> None:
        """Insert the targets built for ``entity`` and point its foreign keys at them."""
        for foreign_key, target in entity._pending_foreign_keys():
            if target.id is None:
                _revalidate(target)
                self._add(session, target, written)
            setattr(entity, foreign_key, target.id)


def _id_attribute(entity_type: type[Entity]) -> str:
    return entity_type.__column_definitions__()["id"].mapped_name


def _revalidate(entity: Entity) -> None:
    """Run the entity's validators over its current field values.

    Entities are not validated on assignment, and create() can hand back
    unvalidated ones, so writes check again before touching the database.
    """
    fields = type(entity).model_fields
    values = {
        info.alias or name: entity.__dict__[name]
        for name, info in fields.items()
        if name in entity.__dict__
    }
    type(entity).model_validate(values)


def _snapshot(entity: Entity) -> list[tuple[Entity, str, Any]]:
    """The id of ``entity`` and its pending foreign keys, recursively through pending targets."""
    values: list[tuple[Entity, str, Any]] = [(entity, "id", entity.id)]
    for foreign_key, target in entity._pending_foreign_keys():
        values.append((entity, foreign_key, getattr(entity, foreign_key)))
        values.extend(_snapshot(target))
    return values


def _restore(values: list[tuple[Entity, str, Any]]) -> None:
    for entity, name, value in reversed(values):
        setattr(entity, name, value)


def _settle(written: list[Entity]) -> None:
    for entity in written:
        entity._clear_pending_targets()
