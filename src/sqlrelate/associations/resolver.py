"""Resolution of belongs-to associations against a RecordStore.

The resolver implements every operation on a belongs-to association:
declaring it on an owner type, reading and assigning the target of an owner
instance, and building or creating a new target for it. The generated
accessors on entity classes are thin wrappers around these methods.

Example:
    ```python
    resolver = AssociationResolver(store)
    resolver.declare(Rating, "dog")
    resolver.declare(Rating, "judge", target=Person, foreign_key="judge_id")

    rating = store.find(Rating, 1)
    dog = resolver.get(rating, "dog")  # store.find_by_id(Dog, rating.dog_id)
    resolver.set(rating, "judge", store.find(Person, 5))
    store.save(rating)
    ```
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from sqlrelate.associations.declaration import BelongsTo
from sqlrelate.associations.registry import AssociationRegistry, default_registry
from sqlrelate.exceptions import (
    AssociationConfigError,
    AssociationTypeMismatchError,
    DanglingReferenceError,
    MissingForeignKeyError,
    StoreNotBoundError,
    UnsavedTargetError,
)

if TYPE_CHECKING:
    from sqlrelate.associations.descriptors import BelongsToDescriptor
    from sqlrelate.entity.core import Entity
    from sqlrelate.store.catalog import SchemaCatalog
    from sqlrelate.store.records import RecordStore

logger = getLogger(__name__)


class AssociationResolver:
    """Declares and resolves belongs-to associations.

    Args:
        store: The RecordStore targets are loaded from and inserted into. Only
            get(), create() and create_or_fail() need one.
        registry: Where declarations are recorded and looked up.
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        registry: AssociationRegistry = default_registry,
    ) -> None:
        self._store = store
        self._registry = registry

    @classmethod
    def for_entity(cls, entity: Entity) -> AssociationResolver:
        """Create a resolver using the store and registry configured on the entity's class."""
        owner = type(entity)
        return cls(owner.__record_store__, owner.__association_registry__)

    @property
    def registry(self) -> AssociationRegistry:
        return self._registry

    def _require_store(self, owner: type | None = None) -> RecordStore:
        if self._store is None:
            raise StoreNotBoundError(owner)
        return self._store

    def declare(
        self,
        owner: type[Entity],
        name: str,
        *,
        target: type[Entity] | str | None = None,
        foreign_key: str | None = None,
        descriptor: BelongsToDescriptor[Any] | None = None,
        check_fields: bool = True,
    ) -> BelongsTo:
        """Register a belongs-to association and install its accessors on ``owner``.

        Installs the ``owner.<name>`` descriptor for reading and assigning the
        target, plus ``build_<name>``, ``create_<name>`` and
        ``create_<name>_or_fail`` methods. Methods the owner already defines
        itself are left alone.

        Args:
            owner: The entity type holding the foreign key.
            name: The association name.
            target: The target entity type or class name; defaults to the
                PascalCase singular of ``name``.
            foreign_key: The owner field holding the target's id; defaults to
                ``<name>_id``.
            descriptor: An already assigned descriptor (class-body declarations).
            check_fields: Whether to verify the owner's fields now. Class-body
                declarations defer this until the entity class is complete.

        Returns:
            The registered declaration.

        Raises:
            DuplicateAssociationError: If ``owner`` already declares ``name``.
            MissingForeignKeyError: If the foreign key is not a field of ``owner``.
            AssociationConfigError: If ``owner`` is not an entity type, or
                ``name`` clashes with one of its fields or attributes.
        """
        from sqlrelate.associations.descriptors import BelongsToDescriptor
        from sqlrelate.entity.core import Entity

        if not (isinstance(owner, type) and issubclass(owner, Entity)):
            raise AssociationConfigError(
                f"Cannot declare {name!r} on {owner!r}: owners must be Entity subclasses",
                name=name,
            )
        declaration = BelongsTo.from_options(owner, name, target=target, foreign_key=foreign_key)
        if check_fields:
            check_declaration_fields(declaration)
        existing = vars(owner).get(name)
        if descriptor is None and name in vars(owner):
            if not isinstance(existing, BelongsToDescriptor):
                raise AssociationConfigError(
                    f"Association {owner.__name__}.{name} clashes with the existing attribute "
                    f"{existing!r}",
                    owner=owner,
                    name=name,
                )
            descriptor = existing

        self._registry.register(declaration)

        if descriptor is None:
            descriptor = BelongsToDescriptor(target, foreign_key)
            setattr(owner, name, descriptor)
            descriptor._name = name
        for method_name, method in _association_methods(name).items():
            if method_name not in vars(owner):
                setattr(owner, method_name, method)
        return declaration

    def get(self, owner: Entity, name: str) -> Entity | None:
        """Load the target of an association.

        Returns:
            None when the owner's foreign key is None, otherwise a freshly
            loaded target entity.

        Raises:
            DanglingReferenceError: If no target row has the foreign key's value.
            StoreNotBoundError: If the resolver has no store.
        """
        declaration = self._registry.get(type(owner), name)
        value = getattr(owner, declaration.foreign_key)
        if value is None:
            return None

        target_type = declaration.target_type
        result = self._require_store(type(owner)).find_by_id(target_type, value)
        if result is None:
            raise DanglingReferenceError(
                type(owner), name, declaration.foreign_key, value, target_type
            )
        logger.debug(f"Resolved {type(owner).__name__}.{name} to {target_type.__name__}({value!r})")
        return result

    def set(self, owner: Entity, name: str, target: Entity | None) -> None:
        """Point an association at a saved target, or clear it with None.

        Only the owner's foreign key changes, in memory; save the owner to
        persist it. Any target pending from build() is discarded.

        Raises:
            AssociationTypeMismatchError: If ``target`` is not an instance of the target type.
            UnsavedTargetError: If ``target`` has no id yet.
        """
        declaration = self._registry.get(type(owner), name)
        if target is None:
            value = None
        else:
            target_type = declaration.target_type
            if not isinstance(target, target_type):
                raise AssociationTypeMismatchError(type(owner), name, target_type, target)
            if target.id is None:
                raise UnsavedTargetError(type(owner), name, target)
            value = target.id

        owner._discard_pending_target(name)
        setattr(owner, declaration.foreign_key, value)

    def build(self, owner: Entity, name: str, attributes: Mapping[str, Any]) -> Entity:
        """Construct an unsaved target and attach it to the owner.

        The target has no id yet, so the owner's foreign key is cleared and
        the target is kept as pending on the owner. Saving the owner through a
        RecordStore inserts the pending target first and fills in the foreign
        key. Nothing is written here.

        Raises:
            pydantic.ValidationError: If ``attributes`` are invalid for the target type.
        """
        declaration = self._registry.get(type(owner), name)
        target = declaration.target_type.model_validate(dict(attributes))
        self.set(owner, name, None)
        owner._add_pending_target(name, declaration.foreign_key, target)
        return target

    def create(self, owner: Entity, name: str, attributes: Mapping[str, Any]) -> Entity:
        """Insert a new target and point the association at it.

        Validation failures do not raise: an unsaved target is returned with
        its ``errors`` populated, and the owner's foreign key is unchanged.
        Errors raised by the store itself still propagate.
        """
        declaration = self._registry.get(type(owner), name)
        try:
            return self.create_or_fail(owner, name, attributes)
        except ValidationError as exc:
            target = declaration.target_type.model_construct(**dict(attributes))
            target._errors = exc.errors(include_url=False)
            logger.debug(
                f"Could not create {declaration.target_name} for {type(owner).__name__}.{name}: "
                f"{exc.error_count()} validation errors"
            )
            return target

    def create_or_fail(self, owner: Entity, name: str, attributes: Mapping[str, Any]) -> Entity:
        """Insert a new target and point the association at it.

        Raises:
            pydantic.ValidationError: If ``attributes`` are invalid; the owner's
                foreign key is unchanged.
            StoreNotBoundError: If the resolver has no store.
        """
        declaration = self._registry.get(type(owner), name)
        store = self._require_store(type(owner))
        target = store.insert(declaration.target_type, attributes)
        self.set(owner, name, target)
        return target

    def check_schema(self, catalog: SchemaCatalog | None = None) -> None:
        """Verify the registered declarations against table metadata.

        Every declaration whose owner is in the catalog must have its foreign
        key column on the owner's table and a resolvable target type.

        Args:
            catalog: The catalog to check against; defaults to the store's.

        Raises:
            MissingForeignKeyError: If a foreign key column is missing.
            UnknownTargetTypeError: If a target type cannot be resolved.
        """
        if catalog is None:
            catalog = self._require_store().catalog
        for declaration in self._registry:
            if declaration.owner not in catalog:
                continue
            if not catalog.column_exists(declaration.owner, declaration.foreign_key):
                raise MissingForeignKeyError(
                    declaration.owner, declaration.name, declaration.foreign_key, where="column"
                )
            target_type = declaration.target_type
            logger.debug(
                f"Checked {declaration.owner.__name__}.{declaration.name} -> {target_type.__name__}"
            )


def check_declaration_fields(declaration: BelongsTo) -> None:
    """Check a declaration against its owner's pydantic fields.

    Raises:
        MissingForeignKeyError: If the foreign key is not a field of the owner.
        AssociationConfigError: If the association name is also a field name.
    """
    owner, name = declaration.owner, declaration.name
    fields = owner.model_fields
    if name in fields:
        raise AssociationConfigError(
            f"Association {owner.__name__}.{name} clashes with the field of the same name",
            owner=owner,
            name=name,
        )
    if declaration.foreign_key not in fields:
        raise MissingForeignKeyError(owner, name, declaration.foreign_key)


def declare_belongs_to(
    owner: type[Entity],
    name: str,
    *,
    target: type[Entity] | str | None = None,
    foreign_key: str | None = None,
) -> BelongsTo:
    """Declare a belongs-to association on an existing entity class.

    Uses the owner's ``__association_registry__``. Equivalent to assigning
    ``belongs_to(target, foreign_key=...)`` in the class body.
    """
    resolver = AssociationResolver(registry=owner.__association_registry__)
    return resolver.declare(owner, name, target=target, foreign_key=foreign_key)


def _association_methods(name: str) -> dict[str, Callable[..., Any]]:
    def build(self: Entity, **attributes: Any) -> Entity:
        return AssociationResolver.for_entity(self).build(self, name, attributes)

    def create(self: Entity, **attributes: Any) -> Entity:
        return AssociationResolver.for_entity(self).create(self, name, attributes)

    def create_or_fail(self: Entity, **attributes: Any) -> Entity:
        return AssociationResolver.for_entity(self).create_or_fail(self, name, attributes)

    build.__doc__ = f"Build an unsaved {name}; it is inserted when this entity is saved."
    create.__doc__ = f"Insert a new {name} and attach it; invalid attributes give errors."
    create_or_fail.__doc__ = f"Insert a new {name} and attach it; invalid attributes raise."

    methods = {
        f"build_{name}": build,
        f"create_{name}": create,
        f"create_{name}_or_fail": create_or_fail,
    }
    for method_name, method in methods.items():
        method.__name__ = method_name
        method.__qualname__ = method_name
    return methods
