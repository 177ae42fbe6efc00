# ==============================================================================
# REPOSITORIO DE ESTADO (CLAVE-VALOR)
# ==============================================================================
# Encapsula todo el acceso a state.json.
# Refleja de forma durable el estado en memoria de los servicios:
# tickets (abiertos y cerrados), historial de inventario y tasas de cambio.
# ==============================================================================

import os
from typing import Any, Optional

from .base import DictRepository


class StateRepository(DictRepository):
    """
    Almacén clave-valor para el estado de la aplicación.

    Formato de datos en state.json:
    {
        "pendingOrders": [{...}, {...}],
        "inventoryHistory": [{...}],
        "exchangeRates": {"bcv": 36.5, "parallel": 0, "lastUpdate": "..."}
    }
    """

    KEY_ORDERS = 'pendingOrders'
    KEY_INVENTORY_HISTORY = 'inventoryHistory'
    KEY_EXCHANGE_RATES = 'exchangeRates'

    def __init__(self, base_path: str):
        """
        Inicializa el repositorio de estado.

        Args:
            base_path: Directorio de datos
        """
        file_path = os.path.join(base_path, 'state.json')
        super().__init__(file_path)

    def load(self, key: str) -> Optional[Any]:
        """
        Obtiene el valor guardado bajo una clave.

        Args:
            key: Clave a leer

        Returns:
            Valor guardado o None si no existe
        """
        return self.get_by_id(key)

    def save(self, key: str, value: Any) -> None:
        """
        Guarda (reemplaza) el valor de una clave.

        Args:
            key: Clave a escribir
            value: Valor serializable a JSON
        """
        self.update(key, value)
