# kg_docgraph/store/__init__.py

"""
Entity store clients: the hosted HTTP store and a local JSON-file store
with the same create / list / get / update / upload_file surface.
"""

from __future__ import annotations

from typing import Optional

from kg_docgraph.config.settings import Settings, StoreBackend, settings
from .base import EntityStore
from .http import EntityStoreClient, EntityStoreConfig
from .local import LocalEntityStore


def get_entity_store(cfg: Optional[Settings] = None) -> EntityStore:
    """Build the store selected by STORE_BACKEND."""
    cfg = cfg or settings
    if cfg.STORE_BACKEND == StoreBackend.REMOTE:
        return EntityStoreClient(EntityStoreConfig.from_settings(cfg))
    return LocalEntityStore(cfg.store_dir)


__all__ = [
    "EntityStore",
    "EntityStoreClient",
    "EntityStoreConfig",
    "LocalEntityStore",
    "get_entity_store",
]
