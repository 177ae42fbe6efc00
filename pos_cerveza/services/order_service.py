# ==============================================================================
# SERVICIO DE TICKETS (MOTOR DE ÓRDENES)
# ==============================================================================
# Máquina de estados de cada ticket:
#
#     OPEN --cerrar--> PAID        (terminal)
#     OPEN --cancelar--> eliminado (terminal, devuelve el stock retenido)
#
# Consumo en el local: cada item lleva una lista de slots, uno por unidad
# que retiene del inventario. El stock se descuenta al asignar cada slot y
# se devuelve al quitar el item o cancelar el ticket.
#
# Para llevar: el stock se descuenta recién al cerrar (o en la venta directa).
# ==============================================================================

import random
import threading
import uuid
from typing import Any, Dict, List, Optional, Union

from pos_cerveza import config
from pos_cerveza.models import (
    CONSUMO,
    LIBRE,
    UNIDAD,
    BeerVariety,
    FailureReason,
    NotificationLevel,
    Order,
    OrderItem,
    OrderStatus,
    OrderTotal,
    OrderType,
    utc_now_iso,
)
from pos_cerveza.performance_logger import log_error, profile_function
from pos_cerveza.repositories.interfaces import IKeyValueStore
from pos_cerveza.repositories.state_repository import StateRepository
from pos_cerveza.services import pack_optimizer
from pos_cerveza.services.audit_service import AuditService, format_bs
from pos_cerveza.services.catalog_service import CatalogService
from pos_cerveza.services.notification_service import NotificationService
from pos_cerveza.services.stock_service import StockLedgerService


ItemInput = Union[OrderItem, Dict[str, Any]]


class AdminApiDisabledError(Exception):
    """Se intentó usar la API administrativa con la capacidad deshabilitada."""
    pass


def _fail(reason: FailureReason, error: str) -> Dict[str, Any]:
    return {'ok': False, 'reason': reason, 'error': error}


def _coerce_item(item: ItemInput) -> OrderItem:
    """Acepta un OrderItem o su diccionario (claves snake_case o camelCase)."""
    if isinstance(item, OrderItem):
        return item.copy()
    if not isinstance(item, dict):
        raise ValueError('Item inválido')
    return OrderItem.from_dict(item)


class OrderService:
    """
    Servicio de tickets.

    Responsabilidades:
    - Abrir, modificar, cancelar y cerrar tickets
    - Mantener el inventario consistente en cada transición
    - Registrar ventas directas en caja
    - Reflejar todos los tickets en el almacén tras cada cambio

    Las operaciones devuelven {'ok': True, ...} o
    {'ok': False, 'reason': FailureReason, 'error': str}.
    Un ticket inexistente es un no-op silencioso (sin notificación).
    """

    def __init__(
        self,
        stock_ledger: StockLedgerService,
        catalog: CatalogService,
        notifier: NotificationService,
        state_repo: IKeyValueStore,
        audit_service: AuditService = None,
        allow_admin: bool = False
    ):
        """
        Inicializa el servicio de tickets.

        Args:
            stock_ledger: Libro de existencias (única vía para mover stock)
            catalog: Catálogo (precios y conversiones para el optimizador)
            notifier: Canal de notificaciones al usuario
            state_repo: Almacén clave-valor donde se reflejan los tickets
            audit_service: Servicio de auditoría (opcional)
            allow_admin: Habilita replace_all_orders
        """
        self.stock = stock_ledger
        self.catalog = catalog
        self.notifier = notifier
        self.state_repo = state_repo
        self.audit_service = audit_service
        self.allow_admin = allow_admin

        # Más recientes primero
        self._orders: List[Order] = []
        self._orders_lock = threading.RLock()

        self._order_locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # =========================================================================
    # CARGA Y PERSISTENCIA
    # =========================================================================

    def load(self) -> None:
        """Carga los tickets guardados (abiertos y cerrados)."""
        try:
            stored = self.state_repo.load(StateRepository.KEY_ORDERS) or []
            orders = [Order.from_dict(o) for o in stored]
        except Exception as e:
            log_error('Cargando tickets', e)
            orders = []
        with self._orders_lock:
            self._orders = orders

    def _persist(self) -> None:
        """Refleja todos los tickets en el almacén. Los fallos solo se registran."""
        with self._orders_lock:
            snapshot = [o.to_dict() for o in self._orders]
        try:
            self.state_repo.save(StateRepository.KEY_ORDERS, snapshot)
        except Exception as e:
            log_error('Guardando tickets', e)

    def _lock_for(self, order_id: str) -> Optional[threading.RLock]:
        """
        Obtiene o crea el lock de un ticket existente.
        Devuelve None si el ticket no existe (no se crea ningún lock).
        """
        with self._locks_guard:
            if self.get_order(order_id) is None:
                return None
            if order_id not in self._order_locks:
                self._order_locks[order_id] = threading.RLock()
            return self._order_locks[order_id]

    def _drop_lock(self, order_id: str) -> None:
        with self._locks_guard:
            self._order_locks.pop(order_id, None)

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._orders_lock:
            for order in self._orders:
                if order.id == order_id:
                    return order
        return None

    def get_orders(self, status: Optional[str] = None) -> List[Order]:
        """
        Lista los tickets (más recientes primero).

        Args:
            status: 'OPEN' o 'PAID' para filtrar (opcional)
        """
        with self._orders_lock:
            orders = list(self._orders)
        if status:
            orders = [o for o in orders if o.status == status]
        return orders

    def calculate_order_total(
        self,
        items: List[ItemInput],
        order_type: str = OrderType.LOCAL.value
    ) -> OrderTotal:
        """Calcula el total con el optimizador de empaques (sin mutar nada)."""
        return pack_optimizer.calculate_order_total(
            [_coerce_item(i) for i in items or []],
            order_type,
            self.catalog
        )

    # =========================================================================
    # ADMISIÓN DE ITEMS
    # =========================================================================

    def _has_stock_for(self, item: OrderItem) -> bool:
        """
        Cajas variadas: se verifica 1 unidad del producto base, sin importar
        la cantidad pedida. Items estándar: la cantidad completa en su empaque.
        No reserva nada: el descuento posterior puede quedar recortado en 0.
        """
        if item.is_variado:
            return self.stock.check_stock(item.product_name, UNIDAD, item.subtype, 1)
        return self.stock.check_stock(item.product_name, item.emission, item.subtype, item.quantity)

    def _admit_item(self, item: OrderItem, is_local: bool) -> None:
        """Prepara un item ya validado para entrar al ticket."""
        item.added_at = utc_now_iso()
        if not is_local:
            return
        if item.is_variado:
            self.stock.deduct_stock(item.product_name, UNIDAD, item.subtype, 1)
            item.slots = [item.product_name]
        else:
            # Se descuenta a medida que se asignan los slots
            item.slots = []

    def _restorable_units(self, item: OrderItem) -> List[str]:
        """
        Productos (uno por unidad) que un item retiene del inventario.

        Con slots se devuelven los ocupados. Sin slots, solo una caja
        variada cerrada retiene su producto base; los items de consumo
        libre y los estándar no retienen nada.
        """
        if item.slots:
            return item.filled_slots
        if item.is_variado and not item.is_open_consumption:
            return [item.product_name]
        return []

    def _restore_item(self, item: OrderItem) -> None:
        for product in self._restorable_units(item):
            self.stock.add_stock(product, UNIDAD, item.subtype, 1)

    def _consumption_item(self) -> OrderItem:
        """Item comodín de cuenta abierta (sin productos preseleccionados)."""
        return OrderItem(
            id=f"consumption-{uuid.uuid4().hex[:12]}",
            name=CONSUMO,
            beer_variety=BeerVariety.VARIADO,
            emission=LIBRE,
            subtype=config.DEFAULT_SUBTYPES[0],
            quantity=1,
            slots=[],
            added_at=utc_now_iso()
        )

    @staticmethod
    def _new_ticket_number() -> int:
        return random.randint(config.TICKET_NUMBER_MIN, config.TICKET_NUMBER_MAX)

    # =========================================================================
    # APERTURA
    # =========================================================================

    @profile_function(name="Abrir ticket")
    def create_order(
        self,
        customer_name: str,
        items: Optional[List[ItemInput]] = None,
        order_type: str = OrderType.LOCAL.value,
        payment_method: Optional[str] = None,
        reference: str = '',
        user: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Abre un ticket nuevo.

        Un ticket Local sin items arranca como cuenta abierta con un único
        item 'Consumo' (Variado, emisión Libre). Los items iniciales de un
        ticket Local pasan por la misma admisión que add_item_to_order; si
        alguno no tiene stock no se crea nada y se devuelve lo descontado.

        Args:
            customer_name: Nombre del cliente
            items: Items iniciales (OrderItem o dict)
            order_type: 'Local', 'Llevar' o 'Para Llevar'
            payment_method: Método de pago inicial
            reference: Referencia del pago
            user: Usuario que abre el ticket

        Returns:
            Dict con ok y el ticket creado
        """
        try:
            ticket_type = OrderType(order_type)
            initial_items = [_coerce_item(i) for i in items or []]
        except ValueError as e:
            return _fail(FailureReason.INVALID_DATA, str(e))

        is_local = ticket_type == OrderType.LOCAL

        admitted: List[OrderItem] = []
        for item in initial_items:
            if is_local and not self._has_stock_for(item):
                for done in admitted:
                    self._restore_item(done)
                self.notifier.notify(f"Stock insuficiente para {item.product_name}", NotificationLevel.ERROR)
                return _fail(FailureReason.INSUFFICIENT_STOCK, f"Stock insuficiente para {item.product_name}")

            self._admit_item(item, is_local)
            if not is_local and item.is_variado and not item.slots:
                item.slots = [item.product_name]
            admitted.append(item)

        if not admitted and is_local:
            admitted = [self._consumption_item()]

        order = Order(
            id=uuid.uuid4().hex,
            ticket_number=self._new_ticket_number(),
            customer_name=customer_name or 'Cliente',
            status=OrderStatus.OPEN,
            type=ticket_type,
            payment_method=payment_method,
            reference=reference or '',
            created_by=user or 'Desconocido',
            created_at=utc_now_iso(),
            items=admitted
        )

        with self._orders_lock:
            self._orders.insert(0, order)
        self._persist()

        if self.audit_service:
            self.audit_service.log_ticket_created(user, order)

        self.notifier.notify(f"Ticket #{order.ticket_number} Creado", NotificationLevel.SUCCESS)
        return {'ok': True, 'order': order}

    # =========================================================================
    # MODIFICACIÓN
    # =========================================================================

    @profile_function(name="Agregar item al ticket")
    def add_item_to_order(self, order_id: str, item: ItemInput) -> Dict[str, Any]:
        """
        Agrega un item a un ticket abierto.

        Local: una caja variada descuenta 1 unidad de inmediato y nace con
        slots=[producto]; un item estándar nace sin slots y no descuenta.
        Para llevar: no se descuenta nada hasta el cierre.

        Returns:
            Dict con ok, ticket e item agregado
        """
        lock = self._lock_for(order_id)
        if lock is None:
            return _fail(FailureReason.NOT_FOUND, 'Ticket no encontrado')

        with lock:
            order = self.get_order(order_id)
            if order is None:
                return _fail(FailureReason.NOT_FOUND, 'Ticket no encontrado')
            if not order.is_open:
                return _fail(FailureReason.ALREADY_CLOSED, 'El ticket ya fue cerrado')

            try:
                new_item = _coerce_item(item)
            except ValueError as e:
                return _fail(FailureReason.INVALID_DATA, str(e))

            name = new_item.product_name
            if not self._has_stock_for(new_item):
                self.notifier.notify(f"Stock insuficiente para {name}", NotificationLevel.ERROR)
                return _fail(FailureReason.INSUFFICIENT_STOCK, f"Stock insuficiente para {name}")

            self._admit_item(new_item, order.is_local)
            order.items.append(new_item)
            self._persist()

        self.notifier.notify(f"{name} agregado", NotificationLevel.INFO, 1500)
        return {'ok': True, 'order': order, 'item': new_item}

    @profile_function(name="Quitar item del ticket")
    def remove_item_from_order(self, order_id: str, item_id: str) -> Dict[str, Any]:
        """
        Quita un item de un ticket abierto.
        En tickets Local devuelve al inventario cada unidad que el item retenía.
        """
        lock = self._lock_for(order_id)
        if lock is None:
            return _fail(FailureReason.NOT_FOUND, 'Ticket no encontrado')

        with lock:
            order = self.get_order(order_id)
            if order is None:
                return _fail(FailureReason.NOT_FOUND, 'Ticket no encontrado')
            if not order.is_open:
                return _fail(FailureReason.ALREADY_CLOSED, 'El ticket ya fue cerrado')

            item = order.find_item(item_id)
            if item is None:
                return _fail(FailureReason.NOT_FOUND, 'Item no encontrado')

            if order.is_local:
                self._restore_item(item)

            order.items = [i for i in order.items if i.id != item_id]
            self._persist()

        return {'ok': True, 'order': order}

    @profile_function(name="Asignar slot")
    def update_order_item_slot(
        self,
        order_id: str,
        item_index: int,
        slot_index: int,
        new_content: Optional[str]
    ) -> Dict[str, Any]:
        """
        Reasigna el producto consumido en una unidad (slot) de un item.

        En tickets Local: valida 1 unidad del producto nuevo, devuelve la
        unidad del producto anterior y luego descuenta la del nuevo (en ese
        orden, para que asignar el mismo producto sea neutro).

        Los items 'Libre' compactan sus slots (sin huecos); el resto conserva
        los None como posiciones de un empaque de tamaño fijo. Un índice más
        allá del final rellena con None hasta esa posición.

        Args:
            order_id: ID del ticket
            item_index: Posición del item en el ticket
            slot_index: Posición del slot en el item
            new_content: Producto a asignar o None para liberar el slot

        Returns:
            Dict con ok, ticket e item actualizado
        """
        new_content = new_content or None

        lock = self._lock_for(order_id)
        if lock is None:
            return _fail(FailureReason.NOT_FOUND, 'Ticket no encontrado')

        with lock:
            order = self.get_order(order_id)
            if order is None:
                return _fail(FailureReason.NOT_FOUND, 'Ticket no encontrado')
            if not order.is_open:
                return _fail(FailureReason.ALREADY_CLOSED, 'El ticket ya fue cerrado')
            if item_index < 0 or item_index >= len(order.items):
                return _fail(FailureReason.NOT_FOUND, 'Item no encontrado')
            if slot_index < 0:
                return _fail(FailureReason.INVALID_DATA, 'Posición de slot inválida')

            item = order.items[item_index]
            old_content = item.slots[slot_index] if slot_index < len(item.slots) else None

            if order.is_local:
                if new_content and not self.stock.check_stock(new_content, UNIDAD, item.subtype, 1):
                    self.notifier.notify(f"Stock insuficiente para {new_content}", NotificationLevel.ERROR)
                    return _fail(FailureReason.INSUFFICIENT_STOCK, f"Stock insuficiente para {new_content}")

                if old_content:
                    self.stock.add_stock(old_content, UNIDAD, item.subtype, 1)
                if new_content:
                    self.stock.deduct_stock(new_content, UNIDAD, item.subtype, 1)

            slots = list(item.slots)
            if slot_index >= len(slots):
                slots.extend([None] * (slot_index + 1 - len(slots)))
            slots[slot_index] = new_content

            if item.emission == LIBRE:
                slots = [s for s in slots if s is not None]
            item.slots = slots

            self._persist()

        return {'ok': True, 'order': order, 'item': item}

    # =========================================================================
    # CANCELACIÓN
    # =========================================================================

    @profile_function(name="Cancelar ticket")
    def cancel_order(self, order_id: str, user: Optional[str] = None) -> Dict[str, Any]:
        """
        Cancela un ticket abierto: devuelve el stock retenido (solo Local)
        y lo elimina por completo (no se archiva).
        """
        lock = self._lock_for(order_id)
        if lock is None:
            return _fail(FailureReason.NOT_FOUND, 'Ticket no encontrado')

        with lock:
            order = self.get_order(order_id)
            if order is None:
                return _fail(FailureReason.NOT_FOUND, 'Ticket no encontrado')
            if not order.is_open:
                return _fail(FailureReason.ALREADY_CLOSED, 'El ticket ya fue cerrado')

            if order.is_local:
                for item in order.items:
                    self._restore_item(item)

            with self._orders_lock:
                self._orders = [o for o in self._orders if o.id != order_id]
            self._persist()

        self._drop_lock(order_id)

        if self.audit_service:
            self.audit_service.log_ticket_cancelled(user, order)

        self.notifier.notify('Ticket cancelado', NotificationLevel.INFO)
        return {'ok': True, 'order': order}

    # =========================================================================
    # CIERRE
    # =========================================================================

    def _deduct_composition(self, item: OrderItem) -> None:
        """Caja variada armada: descuenta cada componente en unidades."""
        for product, units in item.composition.items():
            self.stock.deduct_stock(product, UNIDAD, item.subtype, units * item.quantity)

    def _deduct_takeaway_item(self, item: OrderItem) -> None:
        """Descuento diferido de un item para llevar."""
        if item.is_variado and item.composition:
            self._deduct_composition(item)
        elif item.is_variado:
            for product in (item.filled_slots if item.slots else [item.product_name]):
                self.stock.deduct_stock(product, UNIDAD, item.subtype, 1)
        else:
            self.stock.deduct_stock(item.product_name, item.emission, item.subtype, item.quantity)

    def _fill_unassigned_units(self, item: OrderItem) -> None:
        """
        Item estándar en ticket Local: las unidades del empaque que nunca se
        asignaron se consumen con el propio producto del item, se descuentan
        del inventario y así el optimizador las cobra.
        """
        capacity = item.quantity * self.stock.get_units_per_emission(item.emission, item.subtype)
        missing = capacity - len(item.filled_slots)
        if missing <= 0:
            return

        product = item.product_name
        slots = list(item.slots)
        pending = missing
        for idx, slot in enumerate(slots):
            if pending == 0:
                break
            if slot is None:
                slots[idx] = product
                pending -= 1
        slots.extend([product] * pending)
        item.slots = slots

        self.stock.deduct_stock(product, UNIDAD, item.subtype, missing)

    @profile_function(name="Cerrar ticket")
    def close_order(
        self,
        order_id: str,
        payment_method: Optional[str],
        reference: str = '',
        user: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Cierra y cobra un ticket abierto.

        Para llevar: aquí se realiza el descuento de stock diferido.
        Local: el consumo ya se descontó slot por slot; los items estándar
        completan sus unidades sin asignar con su propio producto.

        Luego el optimizador calcula el total, los items se reemplazan por las
        líneas optimizadas y el ticket pasa a PAID. Cerrar un ticket PAID
        devuelve TICKET_CERRADO sin tocar nada.

        Args:
            order_id: ID del ticket
            payment_method: Método de pago
            reference: Referencia del pago
            user: Usuario que cobra

        Returns:
            Dict con ok, ticket cerrado y detalle del optimizador
        """
        lock = self._lock_for(order_id)
        if lock is None:
            return _fail(FailureReason.NOT_FOUND, 'Ticket no encontrado')

        with lock:
            order = self.get_order(order_id)
            if order is None:
                return _fail(FailureReason.NOT_FOUND, 'Ticket no encontrado')
            if not order.is_open:
                return _fail(FailureReason.ALREADY_CLOSED, 'El ticket ya fue cerrado')

            for item in order.items:
                if not order.is_local:
                    self._deduct_takeaway_item(item)
                elif not item.is_variado and not item.is_open_consumption:
                    self._fill_unassigned_units(item)

            total = pack_optimizer.calculate_order_total(order.items, order.type.value, self.catalog)

            order.status = OrderStatus.PAID
            order.closed_at = utc_now_iso()
            order.payment_method = payment_method
            order.reference = reference or ''
            order.total_amount_bs = total.total_bs
            order.total_amount_usd = total.total_usd
            order.items = total.optimized_items

            self._persist()

        if self.audit_service:
            self.audit_service.log_ticket_closed(user, order)

        self.notifier.notify(f"Ticket Cerrado: {format_bs(total.total_bs)} Bs", NotificationLevel.SUCCESS)
        return {'ok': True, 'order': order, 'details': total.details}

    @profile_function(name="Venta directa")
    def process_direct_sale(
        self,
        customer_name: str,
        items: List[ItemInput],
        payment_method: Optional[str],
        reference: str = '',
        user: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Registra una venta para llevar ya cobrada, en un solo paso.

        El total sale del optimizador (tarifa estándar) pero el stock se
        descuenta de los items originales: una caja variada con composición
        descuenta cada componente por separado.

        Returns:
            Dict con ok y el ticket PAID creado
        """
        try:
            sale_items = [_coerce_item(i) for i in items or []]
        except ValueError as e:
            return _fail(FailureReason.INVALID_DATA, str(e))
        if not sale_items:
            return _fail(FailureReason.INVALID_DATA, 'La venta no tiene items')

        total = pack_optimizer.calculate_order_total(sale_items, OrderType.PARA_LLEVAR.value, self.catalog)

        now = utc_now_iso()
        order = Order(
            id=uuid.uuid4().hex,
            ticket_number=self._new_ticket_number(),
            customer_name=customer_name or 'Venta Directa',
            status=OrderStatus.PAID,
            type=OrderType.LLEVAR,
            payment_method=payment_method,
            reference=reference or '',
            created_by=user or 'Desconocido',
            created_at=now,
            closed_at=now,
            items=total.optimized_items,
            total_amount_bs=total.total_bs,
            total_amount_usd=total.total_usd
        )

        for item in sale_items:
            if item.is_variado and item.composition:
                self._deduct_composition(item)
            else:
                self.stock.deduct_stock(item.product_name, item.emission, item.subtype, item.quantity)

        with self._orders_lock:
            self._orders.insert(0, order)
        self._persist()

        if self.audit_service:
            self.audit_service.log_direct_sale(user, order)

        self.notifier.notify('Venta Registrada en Caja', NotificationLevel.SUCCESS)
        return {'ok': True, 'order': order}

    # =========================================================================
    # API ADMINISTRATIVA
    # =========================================================================

    def replace_all_orders(self, orders: List[Union[Order, Dict[str, Any]]]) -> int:
        """
        Reemplaza todos los tickets (carga de datos de prueba).
        No toca el inventario.

        Raises:
            AdminApiDisabledError: Si la capacidad no está habilitada

        Returns:
            Cantidad de tickets cargados
        """
        if not self.allow_admin:
            raise AdminApiDisabledError('La API administrativa está deshabilitada')

        loaded = [o if isinstance(o, Order) else Order.from_dict(o) for o in orders or []]
        with self._orders_lock:
            self._orders = loaded
        with self._locks_guard:
            self._order_locks.clear()
        self._persist()

        print(f"[ADMIN] Tickets reemplazados: {len(loaded)}")
        return len(loaded)
