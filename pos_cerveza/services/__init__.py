# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica del punto de venta.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Todo movimiento de stock pasa por StockLedgerService
# 3. Las rutas (controllers) solo llaman a servicios
# 4. Los servicios NO conocen el tipo de almacenamiento (JSON/otro)
#
# ESTRUCTURA:
# ├── catalog_service.py      → Productos, empaques, precios, tasa de cambio
# ├── stock_service.py        → Existencias y cargas de inventario
# ├── pack_optimizer.py       → Reparto del consumo en empaques con descuento
# ├── order_service.py        → Tickets (abrir, slots, cerrar, cancelar, venta directa)
# ├── notification_service.py → Mensajes para la caja
# └── audit_service.py        → Logs de actividad
# ==============================================================================

from pos_cerveza.services.audit_service import AuditService, format_bs
from pos_cerveza.services.notification_service import NotificationService
from pos_cerveza.services.catalog_service import (
    CatalogService,
    PRICE_MODE_LOCAL,
    PRICE_MODE_STANDARD,
)
from pos_cerveza.services.stock_service import StockLedgerService
from pos_cerveza.services.pack_optimizer import (
    calculate_order_total,
    build_consumption_map,
    candidate_packs,
    is_greedy_canonical,
)
from pos_cerveza.services.order_service import OrderService, AdminApiDisabledError

__all__ = [
    'AuditService',
    'format_bs',
    'NotificationService',
    'CatalogService',
    'PRICE_MODE_LOCAL',
    'PRICE_MODE_STANDARD',
    'StockLedgerService',
    'calculate_order_total',
    'build_consumption_map',
    'candidate_packs',
    'is_greedy_canonical',
    'OrderService',
    'AdminApiDisabledError',
]
