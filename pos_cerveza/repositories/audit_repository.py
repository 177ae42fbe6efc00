# ==============================================================================
# REPOSITORIO DE AUDITORÍA
# ==============================================================================
# Encapsula todo el acceso a audit.json
# La auditoría se almacena como lista: [{log1}, {log2}, ...] (más reciente primero)
# ==============================================================================

import os
from datetime import datetime
from typing import Any, Dict, List

from .base import ListRepository


class AuditRepository(ListRepository):
    """
    Repositorio para gestión del log de auditoría.

    Formato de datos en audit.json:
    [
        {
            "type": "TICKET",
            "user": "admin",
            "message": "Ticket #1234 cerrado: 1.250,00 Bs",
            "timestamp": "2024-01-01 10:00:00",
            "related_id": "1700000000000",
            "details": {...}
        }
    ]
    """

    # Límite de registros para evitar archivos muy grandes
    MAX_LOGS = 10000

    def __init__(self, base_path: str):
        """
        Inicializa el repositorio de auditoría.

        Args:
            base_path: Directorio de datos
        """
        file_path = os.path.join(base_path, 'audit.json')
        super().__init__(file_path)

    def load(self) -> List[Dict[str, Any]]:
        """
        Carga todos los logs de auditoría.

        Returns:
            Lista de logs (más recientes primero)
        """
        return sorted(
            self.get_all(),
            key=lambda x: x.get('timestamp', ''),
            reverse=True
        )

    def save(self, logs: List[Dict[str, Any]]) -> None:
        """
        Guarda todos los logs aplicando el límite de registros.

        Args:
            logs: Lista de logs
        """
        if len(logs) > self.MAX_LOGS:
            logs = logs[:self.MAX_LOGS]
        self.save_all(logs)

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """
        Registra un nuevo evento de auditoría.

        Args:
            log_type: Tipo de evento (TICKET, VENTA, STOCK)
            user: Usuario que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID relacionado (ticket, producto, etc.)
            details: Detalles adicionales
        """
        log_entry = {
            'type': log_type,
            'user': user or 'sistema',
            'message': message,
            'timestamp': datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            'related_id': related_id,
            'details': details or {}
        }

        with self._file_lock:
            logs = self.get_all()
            logs.insert(0, log_entry)
            self.save(logs)
