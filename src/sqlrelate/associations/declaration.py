"""The belongs-to declaration record and its naming defaults."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Self

from sqlrelate.exceptions import AssociationConfigError, UnknownTargetTypeError
from sqlrelate.utils.naming import default_foreign_key, default_target_name

if TYPE_CHECKING:
    from sqlrelate.entity.core import Entity


@dataclass(frozen=True, slots=True)
class BelongsTo:
    """A belongs-to association declared on an owner entity type.

    The owner's ``foreign_key`` field holds the primary key of one ``target``
    entity. The target may be given as a class or as a class name, which is
    resolved on first use so that associations can point at entities defined
    later.

    Attributes:
        owner: The entity type holding the foreign key.
        name: The association name, e.g. ``"dog"``.
        target: The target entity type, or its (optionally module-qualified) name.
        foreign_key: Name of the owner field holding the target's id.
    """

    owner: type[Entity]
    name: str
    target: type[Entity] | str
    foreign_key: str

    @classmethod
    def from_options(
        cls,
        owner: type[Entity],
        name: str,
        *,
        target: type[Entity] | str | None = None,
        foreign_key: str | None = None,
    ) -> Self:
        """Create a declaration, filling unset options from naming conventions.

        ``target`` defaults to the PascalCase singular of ``name`` and
        ``foreign_key`` defaults to ``f"{name}_id"``.

        Raises:
            AssociationConfigError: If ``name`` or ``foreign_key`` is not a valid identifier.
        """
        if not name.isidentifier() or name.startswith("_"):
            raise AssociationConfigError(
                f"Invalid association name {name!r} on {owner.__name__}: "
                f"expected a public Python identifier",
                owner=owner,
                name=name,
            )
        foreign_key = foreign_key or default_foreign_key(name)
        if not foreign_key.isidentifier():
            raise AssociationConfigError(
                f"Invalid foreign key {foreign_key!r} for {owner.__name__}.{name}",
                owner=owner,
                name=name,
            )
        return cls(
            owner=owner,
            name=name,
            target=target or default_target_name(name),
            foreign_key=foreign_key,
        )

    @property
    def target_name(self) -> str:
        return self.target if isinstance(self.target, str) else self.target.__name__

    @property
    def target_type(self) -> type[Entity]:
        """The resolved target entity type.

        Raises:
            UnknownTargetTypeError: If a target name matches no entity type, or
                matches several and none of them lives in the owner's module.
        """
        if not isinstance(self.target, str):
            return self.target

        from sqlrelate.entity.core import entity_types_named

        module_name, _, class_name = self.target.rpartition(".")
        candidates = [
            it
            for it in entity_types_named(class_name)
            if not module_name or it.__module__ == module_name
        ]
        if len(candidates) > 1:
            local = [it for it in candidates if it.__module__ == self.owner.__module__]
            candidates = local or candidates
        if len(candidates) != 1:
            raise UnknownTargetTypeError(
                self.target, owner=self.owner, name=self.name, candidates=candidates
            )
        return candidates[0]
