"""Exceptions raised by SQLRelate.

Association errors describe problems with a belongs-to declaration or with
resolving one on an owner instance. Store errors describe problems reaching
rows through a RecordStore. Validation errors from pydantic and database
errors from SQLAlchemy are never wrapped; they reach the caller unchanged.
"""

from typing import Any


class SQLRelateError(Exception):
    """Base class for all SQLRelate errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class AssociationError(SQLRelateError):
    """Base exception for belongs-to association failures.

    Attributes:
        owner: The owner entity type the association is declared on.
        name: The association name.
        message: Human-readable description of the failure.
    """

    def __init__(self, message: str, *, owner: type | None = None, name: str | None = None):
        self.owner = owner
        self.name = name
        super().__init__(message)


class AssociationConfigError(AssociationError):
    """Raised when an association declaration is invalid.

    These are configuration errors, surfaced when entity types are defined
    rather than when instances are used.
    """


class DuplicateAssociationError(AssociationConfigError):
    """Raised when the same association name is declared twice on one type."""

    def __init__(self, owner: type, name: str) -> None:
        super().__init__(
            f"{owner.__name__} already declares a belongs-to association named {name!r}",
            owner=owner,
            name=name,
        )


class MissingForeignKeyError(AssociationConfigError):
    """Raised when an association's foreign key is not a field or column of its owner."""

    def __init__(self, owner: type, name: str, foreign_key: str, where: str = "field") -> None:
        self.foreign_key = foreign_key
        super().__init__(
            f"Association {owner.__name__}.{name} uses foreign key {foreign_key!r}, "
            f"but {owner.__name__} has no such {where}.\n"
            f"Hint: declare the field on {owner.__name__} or pass foreign_key= explicitly.",
            owner=owner,
            name=name,
        )


class UnknownTargetTypeError(AssociationConfigError):
    """Raised when an association's target type cannot be resolved to an entity class."""

    def __init__(
        self,
        target: str,
        *,
        owner: type | None = None,
        name: str | None = None,
        candidates: list[type] | None = None,
    ) -> None:
        self.target = target
        self.candidates = candidates or []
        if self.candidates:
            found = ", ".join(f"{it.__module__}.{it.__qualname__}" for it in self.candidates)
            message = (
                f"Target type {target!r} is ambiguous; candidates are {found}.\n"
                f"Hint: pass the class itself or a qualified 'module.ClassName' string."
            )
        else:
            message = f"No entity type named {target!r} is defined"
        if owner is not None and name is not None:
            message = f"{owner.__name__}.{name}: {message}"
        super().__init__(message, owner=owner, name=name)


class RegistryFrozenError(AssociationConfigError):
    """Raised when declaring an association after the registry has been frozen."""

    def __init__(self, owner: type, name: str) -> None:
        super().__init__(
            f"Cannot declare {owner.__name__}.{name}: the association registry is frozen",
            owner=owner,
            name=name,
        )


class UnknownAssociationError(AssociationError, KeyError):
    """Raised when looking up an association that was never declared."""

    def __init__(self, owner: type, name: str) -> None:
        super().__init__(
            f"{owner.__name__} has no belongs-to association named {name!r}",
            owner=owner,
            name=name,
        )


class DanglingReferenceError(AssociationError):
    """Raised when a foreign key references a target row that does not exist.

    Attributes:
        foreign_key: Name of the foreign key field on the owner.
        value: The foreign key value that could not be resolved.
        target: The target entity type that was searched.
    """

    def __init__(
        self, owner: type, name: str, foreign_key: str, value: Any, target: type
    ) -> None:
        self.foreign_key = foreign_key
        self.value = value
        self.target = target
        super().__init__(
            f"{owner.__name__}.{name} references {target.__name__} with id {value!r} "
            f"via {foreign_key!r}, but no such {target.__name__} exists",
            owner=owner,
            name=name,
        )


class UnsavedTargetError(AssociationError):
    """Raised when assigning a target that has not been persisted yet."""

    def __init__(self, owner: type, name: str, target: Any) -> None:
        self.target = target
        super().__init__(
            f"Cannot assign unsaved {type(target).__name__} to {owner.__name__}.{name}: "
            f"it has no id.\n"
            f"Hint: save it first, or use build_{name}()/create_{name}() instead.",
            owner=owner,
            name=name,
        )


class AssociationTypeMismatchError(AssociationError, TypeError):
    """Raised when assigning a value of the wrong type to an association."""

    def __init__(self, owner: type, name: str, expected: type, value: Any) -> None:
        self.expected = expected
        self.value = value
        super().__init__(
            f"{owner.__name__}.{name} expects {expected.__name__} or None, "
            f"got {type(value).__name__}",
            owner=owner,
            name=name,
        )


class StoreError(SQLRelateError):
    """Base exception for record store failures."""


class RecordNotFoundError(StoreError, LookupError):
    """Raised when a record with the requested primary key does not exist."""

    def __init__(self, entity_type: type, id: Any) -> None:
        self.entity_type = entity_type
        self.id = id
        super().__init__(f"Couldn't find {entity_type.__name__} with id={id!r}")


class StoreNotBoundError(StoreError):
    """Raised when an operation needs a RecordStore but none has been bound."""

    def __init__(self, entity_type: type | None = None) -> None:
        self.entity_type = entity_type
        subject = entity_type.__name__ if entity_type is not None else "this resolver"
        super().__init__(
            f"No RecordStore is bound for {subject}.\n"
            f"Hint: call bind_store(store) on the entity class or one of its bases."
        )


class SchemaError(StoreError):
    """Raised when an entity type cannot be mapped to a table."""
