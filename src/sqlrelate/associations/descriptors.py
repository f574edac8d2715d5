"""Class-body declaration of belongs-to associations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, Self, TypeVar, cast, overload

if TYPE_CHECKING:
    from sqlrelate.entity.core import Entity


_O = TypeVar("_O", bound="Entity")
_T = TypeVar("_T", bound="Entity")


class BelongsToDescriptor(property, Generic[_T]):
    """Descriptor implementation for belongs_to.

    See belongs_to() function for documentation.

    Subclasses property so that Pydantic treats it like any other property:
    it is skipped during field collection, and assignments on model instances
    are routed to __set__.
    """

    def __init__(
        self,
        target: type[_T] | str | None = None,
        foreign_key: str | None = None,
    ) -> None:
        super().__init__()
        self._target = target
        self._foreign_key = foreign_key
        self._name: str | None = None

    def __set_name__(self, owner: type[Entity], name: str) -> None:
        """Register the association when the descriptor is assigned in a class body.

        The owner's pydantic fields are not collected yet at this point, so the
        foreign key field is checked later, once the entity class is complete.
        """
        from sqlrelate.associations.resolver import AssociationResolver

        self._name = name
        AssociationResolver(registry=owner.__association_registry__).declare(
            owner,
            name,
            target=self._target,
            foreign_key=self._foreign_key,
            descriptor=self,
            check_fields=False,
        )

    @property
    def name(self) -> str:
        if self._name is None:
            raise RuntimeError(
                "Attempted to use a `belongs_to` descriptor before it was assigned to a class!"
            )
        return self._name

    @overload
    def __get__(self, instance: None, owner: type, /) -> Self: ...

    @overload
    def __get__(self, instance: _O, owner: type[_O], /) -> _T | None: ...

    @overload
    def __get__(self, instance: Any, owner: type | None = None, /) -> Any: ...

    def __get__(self, instance: Any, owner: type | None = None, /) -> Any:
        """Resolve the associated target for an entity instance.

        When accessed on the class, returns the descriptor itself.
        """
        if instance is None:
            return self
        from sqlrelate.associations.resolver import AssociationResolver

        return AssociationResolver.for_entity(instance).get(instance, self.name)

    def __set__(self, instance: Any, value: _T | None) -> None:
        from sqlrelate.associations.resolver import AssociationResolver

        AssociationResolver.for_entity(instance).set(instance, self.name, value)

    def __delete__(self, instance: Any) -> None:
        self.__set__(instance, None)


@overload
def belongs_to(target: type[_T], *, foreign_key: str | None = None) -> _T | None: ...


@overload
def belongs_to(target: str | None = None, *, foreign_key: str | None = None) -> Any: ...


def belongs_to(target: type[_T] | str | None = None, *, foreign_key: str | None = None) -> Any:
    """Declare a belongs-to association in an entity class body.

    The attribute name is the association name. Reading it loads the target
    through the class's bound RecordStore; assigning a saved target (or None)
    updates the foreign key in memory. The owner class also gains
    ``build_<name>``, ``create_<name>`` and ``create_<name>_or_fail`` methods.

    Args:
        target: The target entity type or its class name. Defaults to the
            PascalCase singular of the attribute name.
        foreign_key: The owner field holding the target's id. Defaults to
            ``<name>_id``.

    Example:
        ```python
        class Rating(Entity):
            dog_id: int | None = None
            judge_id: int | None = None

            dog = belongs_to()
            judge = belongs_to("Person", foreign_key="judge_id")


        rating = store.find(Rating, 1)
        rating.dog  # Dog loaded by rating.dog_id
        rating.judge = store.find(Person, 5)  # rating.judge_id == 5
        ```
    """
    return cast(_T, BelongsToDescriptor(target, foreign_key))
