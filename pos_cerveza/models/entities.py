# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio (tickets, productos del
# catálogo, movimientos de inventario). Diseñadas para ser independientes
# del mecanismo de persistencia.
# ==============================================================================

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class OrderStatus(str, Enum):
    """Estados posibles de un ticket."""
    OPEN = "OPEN"   # Cuenta abierta, admite cambios
    PAID = "PAID"   # Cerrado y cobrado (terminal)


class OrderType(str, Enum):
    """Modalidad de consumo."""
    LOCAL = "Local"              # Consumo en el local (slots + optimización)
    LLEVAR = "Llevar"            # Para llevar, precio por empaque
    PARA_LLEVAR = "Para Llevar"  # Alias usado por la venta directa


class BeerVariety(str, Enum):
    """Variedad de un item del ticket."""
    NORMAL = "Normal"
    VARIADO = "Variado"    # Caja mixta, se fija producto por unidad


class NotificationLevel(str, Enum):
    """Niveles de notificación al usuario."""
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class FailureReason(str, Enum):
    """Motivos por los que una operación no se aplicó."""
    INSUFFICIENT_STOCK = "STOCK_INSUFICIENTE"  # Se notifica, estado intacto
    NOT_FOUND = "NO_ENCONTRADO"                # Silencioso
    ALREADY_CLOSED = "TICKET_CERRADO"          # El ticket ya fue cobrado
    INVALID_DATA = "DATOS_INVALIDOS"


# Emisiones (empaques) con significado especial
UNIDAD = 'Unidad'
LIBRE = 'Libre'
CONSUMO = 'Consumo'
CAJA = 'Caja'
MEDIA_CAJA = 'Media Caja'
SIX_PACK = 'Six Pack'

# Emisiones que siempre equivalen a una unidad canónica
SINGLE_UNIT_EMISSIONS = frozenset([UNIDAD, LIBRE])

# Emisiones de consumo abierto (el stock se descuenta slot por slot)
OPEN_CONSUMPTION_EMISSIONS = frozenset([LIBRE, CONSUMO])


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_item_id() -> str:
    return f"item_{uuid.uuid4().hex[:8]}"


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Devuelve el primer valor presente entre varias claves (snake_case o legacy camelCase)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _parse_enum(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


# ==============================================================================
# CLAVES COMPUESTAS
# ==============================================================================
# Reemplazan las claves "producto_subtipo" concatenadas: un nombre de producto
# puede contener cualquier carácter sin colisionar.

class StockKey(NamedTuple):
    """Clave de inventario: (producto, subtipo)."""
    product: str
    subtype: str


class PriceKey(NamedTuple):
    """Clave de precio: (producto, emisión, subtipo, tarifa local)."""
    product: str
    emission: str
    subtype: str
    is_local: bool


class ConversionKey(NamedTuple):
    """Clave de conversión: (emisión, subtipo)."""
    emission: str
    subtype: str


# ==============================================================================
# ENTIDADES DEL CATÁLOGO
# ==============================================================================

@dataclass
class Product:
    """Producto del catálogo (una marca/estilo de cerveza)."""
    id: str
    name: str
    color: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', ''),
            color=data.get('color') or ''
        )


@dataclass
class Emission:
    """
    Definición de un empaque (emisión).

    Attributes:
        id: Identificador del registro
        name: Nombre del empaque (Caja, Media Caja, Six Pack...)
        units: Unidades canónicas por empaque
    """
    id: str
    name: str
    units: int = 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Emission':
        try:
            units = int(data.get('units') or 0)
        except (TypeError, ValueError):
            units = 0
        return cls(id=str(data.get('id', '')), name=data.get('name', ''), units=units)


@dataclass
class PriceEntry:
    """Precio de un producto en un empaque y subtipo dados."""
    product_id: str
    emission: str
    subtype: str
    is_local: bool
    price: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PriceEntry':
        try:
            price = float(data.get('price') or 0)
        except (TypeError, ValueError):
            price = 0.0
        return cls(
            product_id=str(_pick(data, 'product_id', 'productId', default='')),
            emission=data.get('emission', ''),
            subtype=data.get('subtype', ''),
            is_local=bool(_pick(data, 'is_local', 'isLocal', default=False)),
            price=price
        )


@dataclass
class InventoryRecord:
    """Existencia de un producto/subtipo en unidades canónicas."""
    product_id: str
    subtype: str
    quantity: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'subtype': self.subtype,
            'quantity': self.quantity
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InventoryRecord':
        try:
            quantity = int(data.get('quantity') or 0)
        except (TypeError, ValueError):
            quantity = 0
        return cls(
            product_id=str(_pick(data, 'product_id', 'productId', default='')),
            subtype=data.get('subtype', ''),
            quantity=quantity
        )


# ==============================================================================
# ENTIDADES DE TICKETS
# ==============================================================================

@dataclass
class OrderItem:
    """
    Item de un ticket.

    Attributes:
        id: Identificador del item
        name: Producto (o 'Consumo' para la cuenta abierta)
        beer_variety: Normal o Variado
        emission: Empaque ('Caja', 'Unidad', 'Libre', ...)
        subtype: Tipo de envase (Botella, Lata Pequeña...)
        quantity: Cantidad de empaques
        slots: Una entrada por unidad canónica que el item retiene del stock;
            cada entrada nombra el producto consumido o es None si aún no se asigna
        added_at: Momento en que se agregó
        beer_type: Nombre alterno del producto (legacy)
        unit_price_usd / unit_price_bs: Precio unitario (cajas variadas o items optimizados)
        total_price_usd / total_price_bs: Total de la línea (items optimizados)
        composition: Para cajas variadas para llevar, {producto: unidades por caja}
        order_type: Modalidad con la que se generó la línea optimizada
    """
    id: str
    name: str
    beer_variety: BeerVariety = BeerVariety.NORMAL
    emission: str = UNIDAD
    subtype: str = ''
    quantity: int = 1
    slots: List[Optional[str]] = field(default_factory=list)
    added_at: str = ''
    beer_type: Optional[str] = None
    unit_price_usd: Optional[float] = None
    unit_price_bs: Optional[float] = None
    total_price_usd: Optional[float] = None
    total_price_bs: Optional[float] = None
    composition: Optional[Dict[str, int]] = None
    order_type: Optional[str] = None

    @property
    def product_name(self) -> str:
        """Producto al que se le descuenta stock por defecto."""
        return self.beer_type or self.name

    @property
    def is_variado(self) -> bool:
        return self.beer_variety == BeerVariety.VARIADO

    @property
    def is_open_consumption(self) -> bool:
        """Item de consumo abierto (Libre/Consumo)."""
        return self.emission in OPEN_CONSUMPTION_EMISSIONS

    @property
    def filled_slots(self) -> List[str]:
        """Slots ocupados por un producto."""
        return [s for s in self.slots if s]

    def copy(self) -> 'OrderItem':
        return OrderItem.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia."""
        d = {
            'id': self.id,
            'name': self.name,
            'beer_variety': self.beer_variety.value,
            'emission': self.emission,
            'subtype': self.subtype,
            'quantity': self.quantity,
            'slots': list(self.slots),
            'added_at': self.added_at,
        }
        optional = {
            'beer_type': self.beer_type,
            'unit_price_usd': self.unit_price_usd,
            'unit_price_bs': self.unit_price_bs,
            'total_price_usd': self.total_price_usd,
            'total_price_bs': self.total_price_bs,
            'composition': dict(self.composition) if self.composition else None,
            'type': self.order_type,
        }
        d.update({k: v for k, v in optional.items() if v is not None})
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OrderItem':
        """Crea instancia desde diccionario (acepta claves legacy camelCase)."""
        try:
            quantity = int(_pick(data, 'quantity', default=1))
        except (TypeError, ValueError):
            quantity = 1

        composition = data.get('composition')
        if composition:
            composition = {str(k): int(v) for k, v in composition.items()}

        return cls(
            id=str(data.get('id') or new_item_id()),
            name=data.get('name') or _pick(data, 'beer_type', 'beerType', default=''),
            beer_variety=_parse_enum(
                BeerVariety,
                _pick(data, 'beer_variety', 'beerVariety', default=BeerVariety.NORMAL.value),
                BeerVariety.NORMAL
            ),
            emission=data.get('emission') or UNIDAD,
            subtype=data.get('subtype') or '',
            quantity=quantity if quantity > 0 else 1,
            slots=list(data.get('slots') or []),
            added_at=_pick(data, 'added_at', 'addedAt', default=''),
            beer_type=_pick(data, 'beer_type', 'beerType'),
            unit_price_usd=_pick(data, 'unit_price_usd', 'unitPriceUsd'),
            unit_price_bs=_pick(data, 'unit_price_bs', 'unitPriceBs'),
            total_price_usd=_pick(data, 'total_price_usd', 'totalPriceUsd'),
            total_price_bs=_pick(data, 'total_price_bs', 'totalPriceBs'),
            composition=composition or None,
            order_type=data.get('type')
        )


@dataclass
class Order:
    """
    Ticket (cuenta) de un cliente.

    Mientras está OPEN no tiene totales; al pasar a PAID los totales quedan
    fijos y los items se reemplazan por las líneas optimizadas.
    """
    id: str
    ticket_number: int
    customer_name: str
    status: OrderStatus = OrderStatus.OPEN
    type: OrderType = OrderType.LOCAL
    payment_method: Optional[str] = None
    reference: str = ''
    created_by: str = 'Desconocido'
    created_at: str = ''
    closed_at: Optional[str] = None
    items: List[OrderItem] = field(default_factory=list)
    payments: List[Dict[str, Any]] = field(default_factory=list)
    total_amount_usd: Optional[float] = None
    total_amount_bs: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.status == OrderStatus.OPEN

    @property
    def is_local(self) -> bool:
        return self.type == OrderType.LOCAL

    def find_item(self, item_id: str) -> Optional[OrderItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia JSON."""
        d = {
            'id': self.id,
            'ticket_number': self.ticket_number,
            'customer_name': self.customer_name,
            'status': self.status.value,
            'type': self.type.value,
            'payment_method': self.payment_method,
            'reference': self.reference,
            'created_by': self.created_by,
            'created_at': self.created_at,
            'items': [i.to_dict() for i in self.items],
            'payments': list(self.payments),
        }
        if self.closed_at:
            d['closed_at'] = self.closed_at
        if self.status == OrderStatus.PAID:
            d['total_amount_usd'] = self.total_amount_usd
            d['total_amount_bs'] = self.total_amount_bs
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Order':
        """Crea instancia desde diccionario (acepta claves legacy camelCase)."""
        try:
            ticket_number = int(_pick(data, 'ticket_number', 'ticketNumber', default=0))
        except (TypeError, ValueError):
            ticket_number = 0

        return cls(
            id=str(data.get('id', '')),
            ticket_number=ticket_number,
            customer_name=_pick(data, 'customer_name', 'customerName', default='Cliente'),
            status=_parse_enum(OrderStatus, data.get('status', 'OPEN'), OrderStatus.OPEN),
            type=_parse_enum(OrderType, data.get('type', 'Local'), OrderType.LLEVAR),
            payment_method=_pick(data, 'payment_method', 'paymentMethod'),
            reference=data.get('reference') or '',
            created_by=_pick(data, 'created_by', 'createdBy', default='Desconocido'),
            created_at=_pick(data, 'created_at', 'createdAt', default=''),
            closed_at=_pick(data, 'closed_at', 'closedAt'),
            items=[OrderItem.from_dict(i) for i in data.get('items') or []],
            payments=list(data.get('payments') or []),
            total_amount_usd=_pick(data, 'total_amount_usd', 'totalAmountUsd'),
            total_amount_bs=_pick(data, 'total_amount_bs', 'totalAmountBs')
        )


@dataclass
class OrderTotal:
    """Resultado del optimizador de empaques."""
    total_bs: float = 0.0
    total_usd: float = 0.0
    details: List[str] = field(default_factory=list)
    optimized_items: List[OrderItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_bs': self.total_bs,
            'total_usd': self.total_usd,
            'details': list(self.details),
            'optimized_items': [i.to_dict() for i in self.optimized_items]
        }


# ==============================================================================
# ENTIDADES DE INVENTARIO
# ==============================================================================

@dataclass
class InventoryMovement:
    """Movimiento confirmado dentro de una carga de inventario."""
    product: str
    subtype: str
    quantity: int

    def to_dict(self) -> Dict[str, Any]:
        return {'product': self.product, 'subtype': self.subtype, 'quantity': self.quantity}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InventoryMovement':
        return cls(
            product=_pick(data, 'product', 'beer', default=''),
            subtype=data.get('subtype', ''),
            quantity=int(data.get('quantity') or 0)
        )


@dataclass
class InventoryReport:
    """Reporte de una carga de inventario confirmada."""
    id: str
    timestamp: str
    movements: List[InventoryMovement] = field(default_factory=list)
    total_units: int = 0
    user: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'movements': [m.to_dict() for m in self.movements],
            'total_units': self.total_units,
            'user': self.user
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InventoryReport':
        return cls(
            id=str(data.get('id', '')),
            timestamp=data.get('timestamp', ''),
            movements=[InventoryMovement.from_dict(m) for m in data.get('movements') or []],
            total_units=int(_pick(data, 'total_units', 'totalUnits', default=0)),
            user=data.get('user')
        )


@dataclass
class Notification:
    """Mensaje para el usuario (fire-and-forget)."""
    message: str
    level: NotificationLevel = NotificationLevel.INFO
    duration_ms: Optional[int] = None
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'message': self.message,
            'level': self.level.value,
            'duration_ms': self.duration_ms,
            'created_at': self.created_at
        }
