"""Registry of belongs-to declarations.

The registry maps ``(owner type, association name)`` to a BelongsTo
declaration. It is filled while entity types are being defined and can be
frozen once that bootstrap phase is over, after which it is read-only.

Lookups follow the owner's MRO, so a subclass sees the associations of its
bases and may redeclare one of them to override it.
"""

from __future__ import annotations

from collections.abc import Iterator
from logging import getLogger

from sqlrelate.associations.declaration import BelongsTo
from sqlrelate.exceptions import (
    DuplicateAssociationError,
    RegistryFrozenError,
    UnknownAssociationError,
)

logger = getLogger(__name__)


class AssociationRegistry:
    """Process-wide table of belongs-to declarations.

    Attributes:
        _declarations: Declarations keyed by the exact owner type, then by name.
        _frozen: Whether further registrations are rejected.
    """

    def __init__(self, *declarations: BelongsTo) -> None:
        self._declarations: dict[type, dict[str, BelongsTo]] = {}
        self._frozen = False
        for declaration in declarations:
            self.register(declaration)

    def register(self, declaration: BelongsTo) -> None:
        """Add a declaration.

        Raises:
            RegistryFrozenError: If the registry has been frozen.
            DuplicateAssociationError: If the owner already declares the name.
                The existing declaration is left in place.
        """
        owner, name = declaration.owner, declaration.name
        if self._frozen:
            raise RegistryFrozenError(owner, name)
        declared = self._declarations.setdefault(owner, {})
        if name in declared:
            raise DuplicateAssociationError(owner, name)
        declared[name] = declaration
        logger.debug(
            f"Registered {owner.__name__}.{name} belongs to {declaration.target_name} "
            f"via {declaration.foreign_key!r}"
        )

    def discard(self, owner: type) -> None:
        """Remove the declarations made on ``owner`` itself, e.g. after its class failed to build.

        Raises:
            RegistryFrozenError: If the registry has been frozen.
        """
        declared = self._declarations.get(owner, {})
        if self._frozen and declared:
            raise RegistryFrozenError(owner, next(iter(declared)))
        self._declarations.pop(owner, None)
        logger.debug(f"Discarded {len(declared)} declarations of {owner.__name__}")

    def find(self, owner: type, name: str) -> BelongsTo | None:
        """Find the declaration visible on ``owner`` under ``name``, searching its MRO."""
        return next(
            (
                self._declarations[klass][name]
                for klass in owner.__mro__
                if name in self._declarations.get(klass, {})
            ),
            None,
        )

    def get(self, owner: type, name: str) -> BelongsTo:
        """Like find(), but raises UnknownAssociationError when nothing is declared."""
        if (declaration := self.find(owner, name)) is None:
            raise UnknownAssociationError(owner, name)
        return declaration

    def declared_on(self, owner: type) -> list[BelongsTo]:
        """Declarations made on ``owner`` itself, excluding inherited ones."""
        return list(self._declarations.get(owner, {}).values())

    def for_owner(self, owner: type) -> dict[str, BelongsTo]:
        """All declarations visible on ``owner``, with subclass declarations taking precedence."""
        result: dict[str, BelongsTo] = {}
        for klass in reversed(owner.__mro__):
            result.update(self._declarations.get(klass, {}))
        return result

    def freeze(self) -> None:
        """End the registration phase; later registrations raise RegistryFrozenError."""
        self._frozen = True
        logger.debug(f"Association registry frozen with {len(self)} declarations")

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __iter__(self) -> Iterator[BelongsTo]:
        return (it for declared in self._declarations.values() for it in declared.values())

    def __len__(self) -> int:
        return sum(len(it) for it in self._declarations.values())


default_registry = AssociationRegistry()
