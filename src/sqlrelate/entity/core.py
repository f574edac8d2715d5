from __future__ import annotations

from functools import cache
from logging import getLogger
from typing import TYPE_CHECKING, Annotated, Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, PrivateAttr
from pydantic_core import ErrorDetails
from sqlalchemy.orm import mapped_column

from sqlrelate.associations.descriptors import BelongsToDescriptor
from sqlrelate.associations.registry import AssociationRegistry, default_registry
from sqlrelate.associations.resolver import check_declaration_fields
from sqlrelate.entity.automodel import create_automodel, is_abstract
from sqlrelate.entity.columns import ColumnDefinition
from sqlrelate.exceptions import AssociationConfigError, StoreNotBoundError
from sqlrelate.utils.properties import lazyclassproperty

if TYPE_CHECKING:
    from sqlrelate.store.records import RecordStore

logger = getLogger(__name__)

_entity_types: dict[str, list[type[Entity]]] = {}


def entity_types_named(name: str) -> list[type[Entity]]:
    """Concrete entity types whose class name is ``name``, in definition order."""
    return list(_entity_types.get(name, []))


def _register_entity_type(cls: type[Entity]) -> None:
    known = _entity_types.setdefault(cls.__name__, [])
    # A class redefined in the same module (e.g. on reload) replaces the old one
    known[:] = [
        it
        for it in known
        if (it.__module__, it.__qualname__) != (cls.__module__, cls.__qualname__)
    ]
    known.append(cls)


class Entity(BaseModel):
    """Base class for pydantic entities persisted through SQLAlchemy.

    Subclasses declare their columns as ordinary pydantic fields. Fields may
    carry ``mapped_column()`` in ``Annotated`` metadata to configure the
    column; fields annotated with ``ExcludeSAField()`` stay off the table.
    A SQLAlchemy model is generated lazily and is accessible via
    ``__sqlalchemy_type__``. Every entity has an integer ``id`` primary key,
    which is None until the entity is inserted.

    Class Attributes:
        __sqlalchemy_base__: Optional custom DeclarativeBase for the SA model.
        __sqlalchemy_params__: SQLAlchemy configuration (tablename, metadata, etc.).
        __sqlalchemy_type__: The SQLAlchemy model class backing this entity.
        __association_registry__: Registry belongs-to declarations are recorded in.
        __record_store__: Store used by association accessors, see bind_store().

    Example:
        ```python
        class Person(Entity):
            first_name: Annotated[str, mapped_column(String(50))]
            last_name: str


        class Dog(Entity):
            __sqlalchemy_params__ = {"__tablename__": "dogs"}

            name: str
            breed: str | None = None
            owner_id: Annotated[int | None, mapped_column(ForeignKey("people.id"))] = None

            owner = belongs_to(Person)


        Entity.bind_store(store)
        dog = store.first(Dog)
        dog.owner  # Person loaded by dog.owner_id
        ```
    """

    model_config = ConfigDict(ignored_types=(BelongsToDescriptor,))

    __sqlalchemy_params__: ClassVar[dict[str, Any]] = {"__abstract__": True}
    __sqlalchemy_type__: ClassVar[type[Any]] = lazyclassproperty(create_automodel)
    __association_registry__: ClassVar[AssociationRegistry] = default_registry
    __record_store__: ClassVar[RecordStore | None] = None

    id: Annotated[int | None, mapped_column(primary_key=True)] = None

    _errors: list[ErrorDetails] = PrivateAttr(default_factory=list)
    _pending_targets: dict[str, tuple[str, Entity]] = PrivateAttr(default_factory=dict)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        registry = cls.__association_registry__
        try:
            for declaration in registry.declared_on(cls):
                check_declaration_fields(declaration)
        except AssociationConfigError:
            registry.discard(cls)
            raise
        if not is_abstract(cls):
            _register_entity_type(cls)

    @classmethod
    @cache
    def __column_definitions__(cls) -> dict[str, ColumnDefinition]:
        """Column definitions for every mapped field, keyed by field name."""
        return {
            name: definition
            for name, info in cls.model_fields.items()
            if (definition := ColumnDefinition.from_field_info(name, info)) is not None
        }

    @classmethod
    def from_sa_model(cls, sa_model: Any) -> Self:
        """Create an entity instance from a SQLAlchemy model.

        Raises:
            TypeError: If sa_model is None.
            ValueError: If sa_model is not an instance of this entity's SQLAlchemy type.
            pydantic.ValidationError: If the stored values are invalid for this entity.
        """
        if sa_model is None:
            raise TypeError(
                f"Cannot create {cls.__name__} from None. "
                f"Expected an instance of {cls.__sqlalchemy_type__.__name__}."
            )
        if not isinstance(sa_model, cls.__sqlalchemy_type__):
            raise ValueError(
                f"Cannot create {cls.__name__} from {type(sa_model).__name__}: "
                f"expected an instance of {cls.__sqlalchemy_type__.__name__}."
            )
        return cls.model_validate(
            {
                it.source_name: getattr(sa_model, it.mapped_name)
                for it in cls.__column_definitions__().values()
            }
        )

    def to_sa_values(self) -> dict[str, Any]:
        """Column values of this entity, keyed by SQLAlchemy attribute name.

        A None id is left out so the database assigns one.
        """
        values = {
            it.mapped_name: getattr(self, it.source_name)
            for it in self.__class__.__column_definitions__().values()
        }
        if self.id is None:
            values.pop(self.__class__.__column_definitions__()["id"].mapped_name, None)
        return values

    def to_sa_model(self) -> Any:
        """Convert this entity to a new SQLAlchemy model instance."""
        return self.__class__.__sqlalchemy_type__(**self.to_sa_values())

    @property
    def persisted(self) -> bool:
        """Whether this entity has an id, i.e. has been (or claims to have been) saved."""
        return self.id is not None

    @property
    def errors(self) -> list[ErrorDetails]:
        """Validation errors recorded by a failed non-raising create."""
        return self._errors

    @property
    def valid(self) -> bool:
        return not self._errors

    @property
    def pending_targets(self) -> dict[str, Entity]:
        """Built, unsaved association targets, keyed by association name."""
        return {name: target for name, (_, target) in self._pending_targets.items()}

    def _add_pending_target(self, name: str, foreign_key: str, target: Entity) -> None:
        self._pending_targets[name] = (foreign_key, target)

    def _discard_pending_target(self, name: str) -> None:
        self._pending_targets.pop(name, None)

    def _pending_foreign_keys(self) -> list[tuple[str, Entity]]:
        return list(self._pending_targets.values())

    def _clear_pending_targets(self) -> None:
        self._pending_targets.clear()

    @classmethod
    def bind_store(cls, store: RecordStore | None) -> None:
        """Bind the store association accessors use for this class and its subclasses.

        Pass None to unbind.
        """
        cls.__record_store__ = store
        logger.debug(f"Bound {store!r} to {cls.__qualname__}")

    @classmethod
    def record_store(cls) -> RecordStore:
        """The store bound to this class or its nearest bound base.

        Raises:
            StoreNotBoundError: If no store is bound.
        """
        if cls.__record_store__ is None:
            raise StoreNotBoundError(cls)
        return cls.__record_store__
