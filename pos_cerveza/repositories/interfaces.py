# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos que los servicios esperan de sus colaboradores externos:
#
# 1. IKeyValueStore   → persistencia del estado (tickets, historial)
# 2. IInventoryStore  → catálogo, precios y existencias
# 3. IAuditRepository → registro de eventos del negocio
#
# Cambiar JSON por una base de datos solo requiere una nueva clase que
# cumpla el protocolo y cambiar la instanciación en app_container.py.
# ==============================================================================

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


@runtime_checkable
class IKeyValueStore(Protocol):
    """Almacén clave-valor donde se refleja el estado tras cada mutación."""

    def save(self, key: str, value: Any) -> None:
        ...

    def load(self, key: str) -> Optional[Any]:
        ...


@runtime_checkable
class IInventoryStore(Protocol):
    """
    Catálogo e inventario de una organización.
    Consumido por CatalogService y StockLedgerService.
    """

    def fetch_catalog(self, org_id: str) -> List[Dict[str, Any]]:
        """Productos: [{id, name, color}]."""
        ...

    def fetch_emissions(self) -> List[Dict[str, Any]]:
        """Emisiones: [{id, name, units}]."""
        ...

    def fetch_subtypes(self, org_id: str) -> Optional[List[str]]:
        ...

    def fetch_inventory(self, org_id: str) -> List[Dict[str, Any]]:
        """Existencias: [{product_id, subtype, quantity}]."""
        ...

    def fetch_prices(self, org_id: str) -> List[Dict[str, Any]]:
        """Precios: [{product_id, emission, subtype, is_local, price}]."""
        ...

    def fetch_conversions(self, org_id: str) -> List[Dict[str, Any]]:
        """Conversiones: [{emission, subtype, units}]."""
        ...

    def upsert_inventory(self, record: Dict[str, Any]) -> None:
        """record: {organization_id, product_id, subtype, quantity}."""
        ...


@runtime_checkable
class IAuditRepository(Protocol):
    """Registro de auditoría."""

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        ...

    def load(self) -> List[Dict[str, Any]]:
        ...
