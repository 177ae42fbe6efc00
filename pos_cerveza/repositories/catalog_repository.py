# ==============================================================================
# REPOSITORIO DE CATÁLOGO E INVENTARIO
# ==============================================================================
# Encapsula todo el acceso a catalog.json: productos, emisiones (empaques),
# subtipos, precios, conversiones y existencias por organización.
# ==============================================================================

import os
from typing import Any, Dict, List, Optional

from .base import DictRepository


class CatalogRepository(DictRepository):
    """
    Repositorio del catálogo (Inventory Store).

    Formato de datos en catalog.json:
    {
        "emissions": [{"id": "1", "name": "Caja", "units": 36}],
        "organizations": {
            "org_default": {
                "products": [{"id": "p1", "name": "Polar Pilsen", "color": "#1E40AF"}],
                "subtypes": ["Botella", "Lata Pequeña"],
                "inventory": [{"product_id": "p1", "subtype": "Botella", "quantity": 120}],
                "prices": [{"product_id": "p1", "emission": "Caja", "subtype": "Botella",
                            "is_local": true, "price": 30.0}],
                "conversions": [{"emission": "Caja", "subtype": "Botella", "units": 36}]
            }
        }
    }
    """

    def __init__(self, base_path: str):
        """
        Inicializa el repositorio de catálogo.

        Args:
            base_path: Directorio de datos
        """
        file_path = os.path.join(base_path, 'catalog.json')
        super().__init__(file_path)

    def _organization(self, org_id: str) -> Dict[str, Any]:
        organizations = self.get_all().get('organizations') or {}
        return organizations.get(org_id) or {}

    # =========================================================================
    # LECTURAS
    # =========================================================================

    def fetch_catalog(self, org_id: str) -> List[Dict[str, Any]]:
        """Productos de la organización: [{id, name, color}]."""
        return list(self._organization(org_id).get('products') or [])

    def fetch_emissions(self) -> List[Dict[str, Any]]:
        """Emisiones globales: [{id, name, units}]."""
        return list(self.get_all().get('emissions') or [])

    def fetch_subtypes(self, org_id: str) -> Optional[List[str]]:
        """Subtipos configurados o None si la organización no los define."""
        subtypes = self._organization(org_id).get('subtypes')
        return list(subtypes) if subtypes else None

    def fetch_inventory(self, org_id: str) -> List[Dict[str, Any]]:
        """Existencias: [{product_id, subtype, quantity}]."""
        return list(self._organization(org_id).get('inventory') or [])

    def fetch_prices(self, org_id: str) -> List[Dict[str, Any]]:
        """Precios: [{product_id, emission, subtype, is_local, price}]."""
        return list(self._organization(org_id).get('prices') or [])

    def fetch_conversions(self, org_id: str) -> List[Dict[str, Any]]:
        """Conversiones específicas por subtipo: [{emission, subtype, units}]."""
        return list(self._organization(org_id).get('conversions') or [])

    # =========================================================================
    # ESCRITURAS
    # =========================================================================

    def upsert_inventory(self, record: Dict[str, Any]) -> None:
        """
        Crea o actualiza la existencia de un producto/subtipo.

        Args:
            record: {organization_id, product_id, subtype, quantity}
        """
        org_id = record['organization_id']
        with self._file_lock:
            data = self.get_all()
            organizations = data.setdefault('organizations', {})
            organization = organizations.setdefault(org_id, {})
            inventory = organization.setdefault('inventory', [])

            for row in inventory:
                if (str(row.get('product_id')) == str(record['product_id']) and
                        row.get('subtype') == record['subtype']):
                    row['quantity'] = record['quantity']
                    break
            else:
                inventory.append({
                    'product_id': record['product_id'],
                    'subtype': record['subtype'],
                    'quantity': record['quantity']
                })

            self._write_raw(data)

    def save_organization(self, org_id: str, organization: Dict[str, Any]) -> None:
        """
        Reemplaza el catálogo completo de una organización (carga inicial).

        Args:
            org_id: ID de la organización
            organization: {products, subtypes, inventory, prices, conversions}
        """
        with self._file_lock:
            data = self.get_all()
            data.setdefault('organizations', {})[org_id] = organization
            self._write_raw(data)

    def save_emissions(self, emissions: List[Dict[str, Any]]) -> None:
        """Reemplaza la lista global de emisiones."""
        with self._file_lock:
            data = self.get_all()
            data['emissions'] = emissions
            self._write_raw(data)
