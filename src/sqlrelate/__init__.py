from sqlrelate.entity.core import Entity
from sqlrelate.entity.annotations import ColumnName, ExcludeSAField
from sqlrelate.associations.declaration import BelongsTo
from sqlrelate.associations.descriptors import BelongsToDescriptor, belongs_to
from sqlrelate.associations.registry import AssociationRegistry, default_registry
from sqlrelate.associations.resolver import AssociationResolver, declare_belongs_to
from sqlrelate.store.catalog import SchemaCatalog
from sqlrelate.store.config import StoreConfig
from sqlrelate.store.records import RecordStore
from sqlrelate.exceptions import (
    SQLRelateError,
    AssociationError,
    AssociationConfigError,
    DuplicateAssociationError,
    MissingForeignKeyError,
    UnknownTargetTypeError,
    RegistryFrozenError,
    UnknownAssociationError,
    DanglingReferenceError,
    UnsavedTargetError,
    AssociationTypeMismatchError,
    StoreError,
    RecordNotFoundError,
    StoreNotBoundError,
    SchemaError,
)
from sqlrelate._version import __version__

__all__ = [
    "Entity",
    "ColumnName",
    "ExcludeSAField",
    "BelongsTo",
    "BelongsToDescriptor",
    "belongs_to",
    "AssociationRegistry",
    "default_registry",
    "AssociationResolver",
    "declare_belongs_to",
    "SchemaCatalog",
    "StoreConfig",
    "RecordStore",
    "SQLRelateError",
    "AssociationError",
    "AssociationConfigError",
    "DuplicateAssociationError",
    "MissingForeignKeyError",
    "UnknownTargetTypeError",
    "RegistryFrozenError",
    "UnknownAssociationError",
    "DanglingReferenceError",
    "UnsavedTargetError",
    "AssociationTypeMismatchError",
    "StoreError",
    "RecordNotFoundError",
    "StoreNotBoundError",
    "SchemaError",
    "__version__",
]
