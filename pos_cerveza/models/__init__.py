# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Este módulo define todas las entidades del dominio usando dataclasses.
# Las claves compuestas (StockKey, PriceKey, ConversionKey) son tuplas
# tipadas: nunca se concatenan nombres para formar claves.
# ==============================================================================

from .entities import (
    # Enumeraciones
    OrderStatus,
    OrderType,
    BeerVariety,
    NotificationLevel,
    FailureReason,

    # Emisiones especiales
    UNIDAD,
    LIBRE,
    CONSUMO,
    CAJA,
    MEDIA_CAJA,
    SIX_PACK,
    SINGLE_UNIT_EMISSIONS,
    OPEN_CONSUMPTION_EMISSIONS,

    # Claves compuestas
    StockKey,
    PriceKey,
    ConversionKey,

    # Catálogo
    Product,
    Emission,
    PriceEntry,
    InventoryRecord,

    # Tickets
    Order,
    OrderItem,
    OrderTotal,

    # Inventario
    InventoryMovement,
    InventoryReport,

    # Notificaciones
    Notification,

    # Utilidades
    utc_now_iso,
    new_item_id,
)

__all__ = [
    'OrderStatus',
    'OrderType',
    'BeerVariety',
    'NotificationLevel',
    'FailureReason',

    'UNIDAD',
    'LIBRE',
    'CONSUMO',
    'CAJA',
    'MEDIA_CAJA',
    'SIX_PACK',
    'SINGLE_UNIT_EMISSIONS',
    'OPEN_CONSUMPTION_EMISSIONS',

    'StockKey',
    'PriceKey',
    'ConversionKey',

    'Product',
    'Emission',
    'PriceEntry',
    'InventoryRecord',

    'Order',
    'OrderItem',
    'OrderTotal',

    'InventoryMovement',
    'InventoryReport',

    'Notification',

    'utc_now_iso',
    'new_item_id',
]
