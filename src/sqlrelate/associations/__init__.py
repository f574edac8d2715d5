from sqlrelate.associations.declaration import BelongsTo
from sqlrelate.associations.registry import AssociationRegistry, default_registry

__all__ = ["BelongsTo", "AssociationRegistry", "default_registry"]
