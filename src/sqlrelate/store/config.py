"""Settings for building a RecordStore."""

from pydantic import BaseModel, ConfigDict


class StoreConfig(BaseModel):
    """Connection settings consumed by RecordStore.from_config().

    Attributes:
        url: SQLAlchemy database URL. Defaults to an in-memory SQLite database.
        echo: Log every SQL statement through the ``sqlalchemy.engine`` logger.
        expire_on_commit: Expire loaded SQLAlchemy models after each commit.
            Entities are detached copies, so this is rarely useful.
        create_schema: Create the catalog's tables when the store is built.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str = "sqlite://"
    echo: bool = False
    expire_on_commit: bool = False
    create_schema: bool = False
