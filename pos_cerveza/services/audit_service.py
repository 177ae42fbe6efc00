# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Centraliza el registro de eventos del negocio con mensajes humanizados:
# apertura, cierre y cancelación de tickets, ventas directas y cargas de
# inventario.
# ==============================================================================

from typing import Any, Dict, List

from pos_cerveza.models import InventoryReport, Order
from pos_cerveza.performance_logger import log_error
from pos_cerveza.repositories.interfaces import IAuditRepository


def format_bs(amount: float) -> str:
    """Formatea un monto al estilo es-VE: 1.234,56"""
    text = f"{amount:,.2f}"
    return text.replace(',', '_').replace('.', ',').replace('_', '.')


class AuditService:
    """
    Servicio para registro y consulta de auditoría.

    La regla de oro: si entra dinero → siempre log de VENTA.
    Un fallo al auditar nunca detiene la operación de caja.
    """

    TYPE_TICKET = 'TICKET'
    TYPE_VENTA = 'VENTA'
    TYPE_STOCK = 'STOCK'

    def __init__(self, audit_repo: IAuditRepository):
        """
        Inicializa el servicio de auditoría.

        Args:
            audit_repo: Repositorio de auditoría
        """
        self.audit_repo = audit_repo

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """
        Registra un evento de auditoría genérico.

        Args:
            log_type: Tipo de evento (TICKET, VENTA, STOCK)
            user: Usuario que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID relacionado (ticket, reporte)
            details: Detalles adicionales
        """
        try:
            self.audit_repo.log(log_type, user, message, related_id, details)
        except Exception as e:
            log_error('Registrando auditoría', e)

    def log_ticket_created(self, user: str, order: Order) -> None:
        message = (
            f"Ticket #{order.ticket_number} abierto por {user or 'sistema'} - "
            f"Cliente: {order.customer_name} - {order.type.value}"
        )
        self.log(
            self.TYPE_TICKET, user, message, order.id,
            {'ticket_number': order.ticket_number, 'type': order.type.value,
             'items_count': len(order.items)}
        )

    def log_ticket_cancelled(self, user: str, order: Order) -> None:
        message = f"Ticket #{order.ticket_number} cancelado - Cliente: {order.customer_name}"
        self.log(
            self.TYPE_TICKET, user, message, order.id,
            {'ticket_number': order.ticket_number, 'items_count': len(order.items)}
        )

    def log_ticket_closed(self, user: str, order: Order) -> None:
        """
        Registra el cobro de un ticket.

        Args:
            user: Usuario que cierra
            order: Ticket ya en estado PAID
        """
        message = (
            f"Ticket #{order.ticket_number} cerrado: {format_bs(order.total_amount_bs or 0)} Bs "
            f"(${order.total_amount_usd or 0:.2f}) - Pago: {order.payment_method or 'N/D'}"
        )
        self.log(
            self.TYPE_VENTA, user, message, order.id,
            {
                'ticket_number': order.ticket_number,
                'total_usd': order.total_amount_usd,
                'total_bs': order.total_amount_bs,
                'payment_method': order.payment_method,
                'reference': order.reference
            }
        )

    def log_direct_sale(self, user: str, order: Order) -> None:
        message = (
            f"Venta directa #{order.ticket_number}: {format_bs(order.total_amount_bs or 0)} Bs "
            f"(${order.total_amount_usd or 0:.2f}) - {len(order.items)} items"
        )
        self.log(
            self.TYPE_VENTA, user, message, order.id,
            {
                'ticket_number': order.ticket_number,
                'total_usd': order.total_amount_usd,
                'total_bs': order.total_amount_bs,
                'payment_method': order.payment_method
            }
        )

    def log_inventory_commit(self, user: str, report: InventoryReport) -> None:
        message = (
            f"Carga de inventario: {report.total_units} unidades en "
            f"{len(report.movements)} movimientos"
        )
        self.log(self.TYPE_STOCK, user, message, report.id, report.to_dict())

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_logs(self, log_type: str = None) -> List[Dict[str, Any]]:
        """
        Obtiene los logs (más recientes primero), opcionalmente por tipo.
        """
        logs = self.audit_repo.load()
        if log_type:
            logs = [log for log in logs if log.get('type') == log_type]
        return logs
