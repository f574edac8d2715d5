"""Table and column lookups for entity types."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import Engine, MetaData, Table

from sqlrelate.entity.automodel import is_abstract
from sqlrelate.exceptions import SchemaError

if TYPE_CHECKING:
    from sqlrelate.entity.core import Entity

logger = getLogger(__name__)


class SchemaCatalog:
    """The set of entity types a store works with, and their table metadata.

    Args:
        *entity_types: Concrete entity types to register straight away.
    """

    def __init__(self, *entity_types: type[Entity]) -> None:
        self._entity_types: list[type[Entity]] = []
        self.register(*entity_types)

    def register(self, *entity_types: type[Entity]) -> None:
        """Add entity types to the catalog; already registered types are ignored.

        Raises:
            SchemaError: If a type is not a concrete entity type.
        """
        from sqlrelate.entity.core import Entity

        for entity_type in entity_types:
            if not (isinstance(entity_type, type) and issubclass(entity_type, Entity)):
                raise SchemaError(f"{entity_type!r} is not an Entity subclass")
            if is_abstract(entity_type):
                raise SchemaError(f"{entity_type.__name__} is abstract and has no table")
            if entity_type not in self._entity_types:
                self._entity_types.append(entity_type)
                table_name = self.table_name_for(entity_type)
                logger.debug(f"Registered {entity_type.__name__} with table {table_name!r}")

    @property
    def entity_types(self) -> tuple[type[Entity], ...]:
        return tuple(self._entity_types)

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._entity_types

    def _require(self, entity_type: type[Entity]) -> None:
        if entity_type not in self._entity_types:
            raise SchemaError(f"{entity_type.__name__} is not registered with this catalog")

    def model_for(self, entity_type: type[Entity]) -> type[Any]:
        """The SQLAlchemy model class backing ``entity_type``."""
        self._require(entity_type)
        return entity_type.__sqlalchemy_type__

    def table_for(self, entity_type: type[Entity]) -> Table:
        return self.model_for(entity_type).__table__

    def table_name_for(self, entity_type: type[Entity]) -> str:
        return self.table_for(entity_type).name

    def column_names(self, entity_type: type[Entity]) -> list[str]:
        return [it.name for it in self.table_for(entity_type).columns]

    def column_exists(self, entity_type: type[Entity], field_name: str) -> bool:
        """Whether ``field_name`` of ``entity_type`` is backed by a column of its table.

        Fields renamed with ColumnName are looked up by their column name.
        """
        definitions = entity_type.__column_definitions__()
        mapped_name = field_name
        if field_name in definitions:
            mapped_name = definitions[field_name].mapped_name
        return mapped_name in self.table_for(entity_type).columns

    def _tables_by_metadata(self) -> dict[MetaData, list[Table]]:
        result: dict[MetaData, list[Table]] = {}
        for entity_type in self._entity_types:
            table = self.table_for(entity_type)
            result.setdefault(table.metadata, []).append(table)
        return result

    def create_all(self, engine: Engine) -> None:
        """Create the tables of every registered entity type that do not exist yet."""
        for metadata, tables in self._tables_by_metadata().items():
            metadata.create_all(engine, tables=tables)
            logger.debug(f"Created tables {[it.name for it in tables]}")

    def drop_all(self, engine: Engine) -> None:
        """Drop the tables of every registered entity type."""
        for metadata, tables in self._tables_by_metadata().items():
            metadata.drop_all(engine, tables=tables)
            logger.debug(f"Dropped tables {[it.name for it in tables]}")

