# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la persistencia (actualmente JSON).
#
# ESTRUCTURA:
# ├── interfaces.py         → Protocolos (contratos de los colaboradores)
# ├── base.py               → Clases base JSON (DictRepository, ListRepository)
# ├── state_repository.py   → state.json (tickets, historial, tasas)
# ├── catalog_repository.py → catalog.json (productos, precios, existencias)
# └── audit_repository.py   → audit.json
# ==============================================================================

from .interfaces import (
    IKeyValueStore,
    IInventoryStore,
    IAuditRepository,
)

from .base import BaseRepository, DictRepository, ListRepository
from .state_repository import StateRepository
from .catalog_repository import CatalogRepository
from .audit_repository import AuditRepository

__all__ = [
    # Interfaces
    'IKeyValueStore',
    'IInventoryStore',
    'IAuditRepository',

    # Clases base
    'BaseRepository',
    'DictRepository',
    'ListRepository',

    # Implementaciones JSON
    'StateRepository',
    'CatalogRepository',
    'AuditRepository',
]
