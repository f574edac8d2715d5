"""Field-level annotations for SQLAlchemy mapping configuration."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ExcludeSAField:
    """Keep an entity field off the generated table.

    Example:
        ```python
        class Dog(Entity):
            name: str
            nickname: Annotated[str | None, ExcludeSAField()] = None
        ```
    """

    value: bool = True


@dataclass(frozen=True, slots=True)
class ColumnName:
    """Map an entity field to a differently named column.

    Example:
        ```python
        class Person(Entity):
            first_name: Annotated[str, ColumnName("given_name")]
        ```
    """

    name: str
