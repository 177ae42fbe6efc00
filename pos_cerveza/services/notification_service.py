# ==============================================================================
# SERVICIO DE NOTIFICACIONES
# ==============================================================================
# Mensajes para el usuario (toasts de la caja). Fire-and-forget: ninguna
# lógica del negocio depende de que una notificación llegue.
# ==============================================================================

import threading
from collections import deque
from typing import Callable, List, Optional

from pos_cerveza import config
from pos_cerveza.models import Notification, NotificationLevel
from pos_cerveza.performance_logger import log_error


NotificationSink = Callable[[Notification], None]


class NotificationService:
    """
    Distribuye notificaciones a los canales registrados.

    Guarda además las notificaciones recientes para que la capa HTTP
    las entregue en la siguiente respuesta (drain).
    """

    MAX_RECENT = 100

    def __init__(self, sinks: Optional[List[NotificationSink]] = None):
        """
        Args:
            sinks: Canales adicionales (callables que reciben la Notification)
        """
        self._sinks: List[NotificationSink] = list(sinks or [])
        self._recent = deque(maxlen=self.MAX_RECENT)
        self._lock = threading.Lock()

    def add_sink(self, sink: NotificationSink) -> None:
        """Registra un canal adicional. Sus errores se registran y se ignoran."""
        self._sinks.append(sink)

    def notify(
        self,
        message: str,
        level: str = NotificationLevel.INFO,
        duration_ms: Optional[int] = None
    ) -> Notification:
        """
        Envía una notificación.

        Args:
            message: Texto para el usuario
            level: info, success o error
            duration_ms: Duración sugerida en pantalla

        Returns:
            La notificación creada
        """
        try:
            level = NotificationLevel(level)
        except ValueError:
            level = NotificationLevel.INFO

        notification = Notification(
            message=message,
            level=level,
            duration_ms=duration_ms or config.NOTIFICATION_DURATION_MS
        )

        with self._lock:
            self._recent.append(notification)

        for sink in list(self._sinks):
            try:
                sink(notification)
            except Exception as e:
                log_error('Enviando notificación', e)

        return notification

    def drain(self) -> List[Notification]:
        """Entrega y vacía las notificaciones pendientes."""
        with self._lock:
            pending = list(self._recent)
            self._recent.clear()
        return pending
