from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import DeclarativeBase, Mapped

from sqlrelate.utils.naming import tableize

if TYPE_CHECKING:
    from sqlrelate.entity.core import Entity

logger = getLogger(__name__)


class SQLAlchemyBase(DeclarativeBase):
    """Default SQLAlchemy declarative base for auto-generated models.

    This is used as the base class for SQLAlchemy models when no custom
    base is specified.
    """

    pass


def is_abstract(source: type[Entity]) -> bool:
    return bool(vars(source).get("__sqlalchemy_params__", {}).get("__abstract__", False))


def _get_sa_base(source: type[Entity]) -> type[Any]:
    """Find the declarative class the automodel should inherit from.

    An explicit ``__sqlalchemy_base__`` wins. Otherwise the nearest abstract
    entity ancestor is used, so ``metadata`` and ``__table_args__`` set on an
    abstract base reach every concrete entity below it. Concrete ancestors are
    skipped: each concrete entity gets a table of its own.
    """
    from sqlrelate.entity.core import Entity

    for klass in source.__mro__:
        if explicit_base := vars(klass).get("__sqlalchemy_base__"):
            return explicit_base
        if klass is not source and issubclass(klass, Entity) and is_abstract(klass):
            return klass.__sqlalchemy_type__
    return SQLAlchemyBase


def create_automodel(source: type[Entity]) -> type[Any]:
    """Create the SQLAlchemy model class backing an entity type.

    Every column definition of the entity becomes a ``Mapped[...]`` attribute
    with its own mapped_column(). Abstract entities produce abstract models
    without columns; they only carry ``__sqlalchemy_params__`` down to their
    subclasses.
    """
    params = dict(vars(source).get("__sqlalchemy_params__", {}))
    base = _get_sa_base(source)

    if params.get("__abstract__") or "__table__" in params:
        # Abstract models only pass params down; an explicit __table__ has its own columns
        namespace: dict[str, Any] = {**params}
    else:
        if "__tablename__" not in params and "__table__" not in params:
            params["__tablename__"] = tableize(source.__name__)
        definitions = source.__column_definitions__().values()
        namespace = {
            **{it.mapped_name: it.make_column() for it in definitions},
            **params,
            "__annotations__": {it.mapped_name: Mapped[it.source_tp] for it in definitions},
        }

    namespace["__module__"] = source.__module__
    automodel_name = f"{source.__name__}AutoModel"
    result = type(automodel_name, (base,), namespace)
    logger.debug(f"Generated SQLAlchemy model {automodel_name} for {source.__qualname__}")
    return result
