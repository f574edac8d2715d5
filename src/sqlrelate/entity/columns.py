"""Internal metadata describing how entity fields map to table columns."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Self

from pydantic.fields import FieldInfo
from sqlalchemy.orm import MappedColumn, mapped_column

from sqlrelate.entity.annotations import ColumnName, ExcludeSAField


@dataclass(frozen=True, slots=True)
class ColumnDefinition:
    """Complete specification for mapping one entity field to a column.

    Attributes:
        source_name: Name of the field on the entity.
        source_tp: Python type of the field, as resolved by pydantic.
        mapped_name: Name of the attribute (and column) on the SQLAlchemy model.
        column: The mapped_column() given in the field's Annotated metadata, if any.
    """

    source_name: str
    source_tp: Any
    mapped_name: str
    column: MappedColumn[Any] | None = None

    @classmethod
    def from_field_info(cls, source_name: str, info: FieldInfo) -> Self | None:
        """Create a column definition from a pydantic field.

        Pydantic keeps metadata it does not understand in ``FieldInfo.metadata``,
        which is where mapped_column(), ColumnName and ExcludeSAField end up.

        Returns:
            A ColumnDefinition, or None if the field is excluded from the table.
        """
        column: MappedColumn[Any] | None = None
        mapped_name = source_name
        for item in info.metadata:
            if isinstance(item, ExcludeSAField) and item.value:
                return None
            if isinstance(item, MappedColumn):
                column = item
            elif isinstance(item, ColumnName):
                mapped_name = item.name
        return cls(
            source_name=source_name,
            source_tp=info.annotation,
            mapped_name=mapped_name,
            column=column,
        )

    def make_column(self) -> MappedColumn[Any]:
        """Return a mapped_column() for a new SQLAlchemy model.

        A mapped_column() can only be attached to one model, so the declared one
        is copied; entities inheriting the field each get their own column.
        """
        if self.column is None:
            return mapped_column()
        return self.column._copy()
