import os

import pytest

from pos_cerveza.models import (
    BeerVariety,
    FailureReason,
    NotificationLevel,
    OrderStatus,
    OrderType,
    StockKey,
)
from pos_cerveza.repositories import AuditRepository, StateRepository
from pos_cerveza.services import AdminApiDisabledError, OrderService


POLAR = 'Polar Pilsen'
SOLERA = 'Solera Verde'
ZULIA = 'Zulia'


def variado(product, subtype='Botella', quantity=1, emission='Caja'):
    return {
        'name': product,
        'beer_variety': 'Variado',
        'emission': emission,
        'subtype': subtype,
        'quantity': quantity,
    }


def standard(product, emission='Caja', subtype='Botella', quantity=1):
    return {'name': product, 'emission': emission, 'subtype': subtype, 'quantity': quantity}


def open_tab(orders, customer='Mesa 1'):
    return orders.create_order(customer, user='caja1')['order']


def messages(notifier):
    return [(n.message, n.level) for n in notifier.drain()]


# =============================================================================
# APERTURA
# =============================================================================

def test_empty_local_order_is_an_open_tab(orders, notifier):
    result = orders.create_order('Mesa 4', user='caja1')

    assert result['ok']
    order = result['order']
    assert order.status == OrderStatus.OPEN
    assert order.type == OrderType.LOCAL
    assert order.created_by == 'caja1'
    assert 1000 <= order.ticket_number <= 9999

    [tab] = order.items
    assert tab.name == 'Consumo'
    assert tab.beer_variety == BeerVariety.VARIADO
    assert tab.emission == 'Libre'
    assert tab.slots == []

    data = order.to_dict()
    assert 'total_amount_usd' not in data
    assert 'total_amount_bs' not in data

    assert messages(notifier) == [(f"Ticket #{order.ticket_number} Creado", NotificationLevel.SUCCESS)]


def test_empty_takeaway_order_has_no_items(orders):
    order = orders.create_order('Juan', order_type='Llevar')['order']
    assert order.items == []
    assert order.created_by == 'Desconocido'


def test_invalid_order_type(orders):
    result = orders.create_order('Juan', order_type='Delivery')
    assert not result['ok']
    assert result['reason'] == FailureReason.INVALID_DATA
    assert orders.get_orders() == []


def test_initial_local_items_are_admitted(orders, stock):
    order = orders.create_order('Mesa 2', [variado(POLAR), standard(SOLERA, 'Unidad', quantity=3)])['order']

    box, solera = order.items
    assert box.slots == [POLAR]
    assert solera.slots == []
    assert stock.get_inventory(POLAR, 'Botella') == 99
    assert stock.get_inventory(SOLERA, 'Botella') == 50


def test_initial_items_without_stock_create_nothing(orders, stock, notifier):
    result = orders.create_order('Mesa 3', [variado(POLAR), standard(SOLERA, 'Caja', quantity=2)])

    assert not result['ok']
    assert result['reason'] == FailureReason.INSUFFICIENT_STOCK
    assert orders.get_orders() == []
    assert stock.get_inventory(POLAR, 'Botella') == 100
    assert messages(notifier) == [(f"Stock insuficiente para {SOLERA}", NotificationLevel.ERROR)]


# =============================================================================
# AGREGAR / QUITAR
# =============================================================================

def test_variado_checks_single_unit_regardless_of_quantity(orders, stock, notifier):
    stock.set_base_stock(ZULIA, 'Lata Pequeña', 1)
    order = open_tab(orders)
    notifier.drain()

    result = orders.add_item_to_order(order.id, variado(ZULIA, 'Lata Pequeña', quantity=5))

    assert result['ok']
    assert result['item'].slots == [ZULIA]
    assert stock.get_inventory(ZULIA, 'Lata Pequeña') == 0
    assert messages(notifier) == [(f"{ZULIA} agregado", NotificationLevel.INFO)]


def test_standard_item_checks_full_quantity(orders, stock, notifier):
    order = open_tab(orders)
    notifier.drain()

    # 2 cajas de botella = 72 unidades > 50
    result = orders.add_item_to_order(order.id, standard(SOLERA, 'Caja', quantity=2))

    assert result['reason'] == FailureReason.INSUFFICIENT_STOCK
    assert len(order.items) == 1
    assert stock.get_inventory(SOLERA, 'Botella') == 50
    assert messages(notifier) == [(f"Stock insuficiente para {SOLERA}", NotificationLevel.ERROR)]


def test_standard_local_item_defers_deduction(orders, stock):
    order = open_tab(orders)
    result = orders.add_item_to_order(order.id, standard(POLAR, 'Caja'))

    assert result['ok']
    assert result['item'].slots == []
    assert stock.get_inventory(POLAR, 'Botella') == 100


def test_takeaway_add_defers_deduction(orders, stock):
    order = orders.create_order('Pedro', order_type='Llevar')['order']
    orders.add_item_to_order(order.id, variado(POLAR))
    orders.add_item_to_order(order.id, standard(SOLERA, 'Unidad', quantity=4))

    assert stock.get_inventory(POLAR, 'Botella') == 100
    assert stock.get_inventory(SOLERA, 'Botella') == 50


@pytest.mark.parametrize('item', [
    variado(POLAR),
    standard(SOLERA, 'Unidad', quantity=3),
    standard(POLAR, 'Media Caja'),
])
def test_add_then_remove_conserves_stock(orders, stock, item):
    order = open_tab(orders)
    before = stock.snapshot()

    added = orders.add_item_to_order(order.id, item)['item']
    result = orders.remove_item_from_order(order.id, added.id)

    assert result['ok']
    assert added.id not in [i.id for i in order.items]
    assert stock.snapshot() == before


def test_remove_restores_assigned_slots(orders, stock):
    order = open_tab(orders)
    box = orders.add_item_to_order(order.id, variado(POLAR))['item']
    orders.update_order_item_slot(order.id, 1, 1, SOLERA)
    assert stock.get_inventory(SOLERA, 'Botella') == 49

    orders.remove_item_from_order(order.id, box.id)

    assert stock.get_inventory(POLAR, 'Botella') == 100
    assert stock.get_inventory(SOLERA, 'Botella') == 50


def test_not_found_is_silent(orders, notifier):
    order = open_tab(orders)
    notifier.drain()

    assert orders.add_item_to_order('nope', variado(POLAR))['reason'] == FailureReason.NOT_FOUND
    assert orders.remove_item_from_order(order.id, 'nope')['reason'] == FailureReason.NOT_FOUND
    assert orders.update_order_item_slot(order.id, 7, 0, POLAR)['reason'] == FailureReason.NOT_FOUND
    assert orders.cancel_order('nope')['reason'] == FailureReason.NOT_FOUND
    assert orders.close_order('nope', 'Efectivo')['reason'] == FailureReason.NOT_FOUND
    assert notifier.drain() == []


def test_unknown_ids_do_not_create_locks(orders):
    for n in range(50):
        orders.add_item_to_order(f'missing-{n}', variado(POLAR))
        orders.update_order_item_slot(f'missing-{n}', 0, 0, POLAR)
        orders.cancel_order(f'missing-{n}')

    assert orders._order_locks == {}


def test_cancel_releases_order_lock(orders):
    order = open_tab(orders)
    orders.update_order_item_slot(order.id, 0, 0, POLAR)
    assert order.id in orders._order_locks

    orders.cancel_order(order.id)

    assert order.id not in orders._order_locks
    assert orders.update_order_item_slot(order.id, 0, 0, POLAR)['reason'] == FailureReason.NOT_FOUND
    assert orders._order_locks == {}


# =============================================================================
# SLOTS
# =============================================================================

def test_slot_assignment_moves_stock(orders, stock):
    order = open_tab(orders)

    orders.update_order_item_slot(order.id, 0, 0, POLAR)
    assert stock.get_inventory(POLAR, 'Botella') == 99

    orders.update_order_item_slot(order.id, 0, 0, SOLERA)
    assert stock.get_inventory(POLAR, 'Botella') == 100
    assert stock.get_inventory(SOLERA, 'Botella') == 49
    assert order.items[0].slots == [SOLERA]


def test_reassigning_same_product_is_a_no_op(orders, stock):
    order = open_tab(orders)
    orders.update_order_item_slot(order.id, 0, 0, POLAR)
    after_first = stock.snapshot()

    result = orders.update_order_item_slot(order.id, 0, 0, POLAR)

    assert result['ok']
    assert stock.snapshot() == after_first


def test_libre_slots_are_compacted(orders, stock):
    order = open_tab(orders)
    orders.update_order_item_slot(order.id, 0, 0, POLAR)
    orders.update_order_item_slot(order.id, 0, 1, SOLERA)
    orders.update_order_item_slot(order.id, 0, 2, POLAR)

    orders.update_order_item_slot(order.id, 0, 0, None)

    assert order.items[0].slots == [SOLERA, POLAR]
    assert stock.get_inventory(POLAR, 'Botella') == 99


def test_fixed_pack_slots_keep_placeholders(orders):
    order = open_tab(orders)
    orders.add_item_to_order(order.id, variado(POLAR))

    orders.update_order_item_slot(order.id, 1, 3, SOLERA)
    assert order.items[1].slots == [POLAR, None, None, SOLERA]

    orders.update_order_item_slot(order.id, 1, 0, None)
    assert order.items[1].slots == [None, None, None, SOLERA]


def test_slot_without_stock_is_rejected(orders, stock, notifier):
    stock.set_base_stock(SOLERA, 'Botella', 0)
    order = open_tab(orders)
    orders.update_order_item_slot(order.id, 0, 0, POLAR)
    notifier.drain()

    result = orders.update_order_item_slot(order.id, 0, 0, SOLERA)

    assert result['reason'] == FailureReason.INSUFFICIENT_STOCK
    assert order.items[0].slots == [POLAR]
    assert stock.get_inventory(POLAR, 'Botella') == 99
    assert messages(notifier) == [(f"Stock insuficiente para {SOLERA}", NotificationLevel.ERROR)]


def test_negative_slot_index_is_invalid(orders):
    order = open_tab(orders)
    assert orders.update_order_item_slot(order.id, 0, -1, POLAR)['reason'] == FailureReason.INVALID_DATA


# =============================================================================
# CANCELACIÓN
# =============================================================================

def test_cancel_restores_everything_and_deletes(orders, stock, notifier, data_dir):
    before = stock.snapshot()

    order = open_tab(orders)
    orders.add_item_to_order(order.id, variado(POLAR))
    orders.add_item_to_order(order.id, variado(ZULIA, 'Lata Pequeña'))
    orders.add_item_to_order(order.id, standard(SOLERA, 'Unidad', quantity=2))
    orders.update_order_item_slot(order.id, 0, 0, SOLERA)
    orders.update_order_item_slot(order.id, 0, 1, POLAR)
    orders.update_order_item_slot(order.id, 1, 2, SOLERA)
    notifier.drain()

    result = orders.cancel_order(order.id, 'caja1')

    assert result['ok']
    assert stock.snapshot() == before
    assert orders.get_order(order.id) is None
    assert messages(notifier) == [('Ticket cancelado', NotificationLevel.INFO)]
    assert StateRepository(data_dir).load(StateRepository.KEY_ORDERS) == []


def test_cancel_takeaway_does_not_touch_stock(orders, stock):
    order = orders.create_order('Pedro', [variado(POLAR)], order_type='Llevar')['order']
    before = stock.snapshot()

    orders.cancel_order(order.id)

    assert stock.snapshot() == before


# =============================================================================
# CIERRE
# =============================================================================

def test_close_local_optimizes_consumption(orders, stock, notifier):
    order = open_tab(orders)
    for slot in range(59):
        assert orders.update_order_item_slot(order.id, 0, slot, POLAR)['ok']
    assert stock.get_inventory(POLAR, 'Botella') == 41
    notifier.drain()

    result = orders.close_order(order.id, 'Pago Móvil', '0412')

    assert result['ok']
    closed = result['order']
    assert closed.status == OrderStatus.PAID
    assert closed.closed_at
    assert closed.payment_method == 'Pago Móvil'
    assert closed.reference == '0412'
    assert closed.total_amount_usd == 51
    assert closed.total_amount_bs == 2040
    assert [(i.emission, i.quantity) for i in closed.items] == [('Caja', 1), ('Media Caja', 1), ('Unidad', 5)]
    assert result['details'] == ['1 Caja', '1 Media Caja']
    # El consumo ya estaba descontado
    assert stock.get_inventory(POLAR, 'Botella') == 41
    assert messages(notifier) == [('Ticket Cerrado: 2.040,00 Bs', NotificationLevel.SUCCESS)]


def test_close_local_standard_item_charges_unassigned_units(orders, stock):
    order = open_tab(orders)
    orders.add_item_to_order(order.id, standard(POLAR, 'Caja'))
    orders.update_order_item_slot(order.id, 1, 0, SOLERA)

    result = orders.close_order(order.id, 'Efectivo')

    # 1 Solera asignada + 35 Polar sin asignar
    assert stock.get_inventory(POLAR, 'Botella') == 65
    assert stock.get_inventory(SOLERA, 'Botella') == 49
    # Polar: 1 Media Caja (16) + 17 unidades; Solera: 1 unidad (1.2)
    assert result['order'].total_amount_usd == pytest.approx(16 + 17 + 1.2)


def test_close_takeaway_deducts_now(orders, stock):
    order = orders.create_order('Pedro', order_type='Llevar')['order']
    orders.add_item_to_order(order.id, standard(POLAR, 'Caja'))
    orders.add_item_to_order(order.id, variado(SOLERA))
    orders.add_item_to_order(order.id, standard(ZULIA, 'Unidad', 'Lata Pequeña', quantity=4))

    result = orders.close_order(order.id, 'Efectivo')

    assert stock.get_inventory(POLAR, 'Botella') == 64
    assert stock.get_inventory(SOLERA, 'Botella') == 49
    assert stock.get_inventory(ZULIA, 'Lata Pequeña') == 20
    # 35 + (Solera en Caja estándar 40) + 4 * 1.2
    assert result['order'].total_amount_usd == pytest.approx(79.8)
    assert len(result['order'].items) == 3


def test_close_empty_tab_leaves_no_items(orders, stock):
    before = stock.snapshot()
    order = open_tab(orders)

    result = orders.close_order(order.id, 'Efectivo')

    assert result['ok']
    assert result['order'].status == OrderStatus.PAID
    assert result['order'].items == []
    assert result['order'].total_amount_usd == 0
    assert result['details'] == []
    assert stock.snapshot() == before


def test_closed_order_is_absorbing(orders, stock):
    order = open_tab(orders)
    orders.update_order_item_slot(order.id, 0, 0, POLAR)
    first = orders.close_order(order.id, 'Efectivo')
    snapshot = stock.snapshot()
    total = first['order'].total_amount_bs

    again = orders.close_order(order.id, 'Zelle')

    assert again == {'ok': False, 'reason': FailureReason.ALREADY_CLOSED, 'error': again['error']}
    assert order.payment_method == 'Efectivo'
    assert order.total_amount_bs == total
    assert stock.snapshot() == snapshot

    assert orders.add_item_to_order(order.id, variado(POLAR))['reason'] == FailureReason.ALREADY_CLOSED
    assert orders.update_order_item_slot(order.id, 0, 0, SOLERA)['reason'] == FailureReason.ALREADY_CLOSED
    assert orders.cancel_order(order.id)['reason'] == FailureReason.ALREADY_CLOSED
    assert orders.get_order(order.id) is not None


def test_close_is_audited(orders, data_dir):
    order = open_tab(orders)
    orders.update_order_item_slot(order.id, 0, 0, POLAR)
    orders.close_order(order.id, 'Efectivo', user='caja2')

    logs = AuditRepository(data_dir).load()
    assert logs[0]['type'] == 'VENTA'
    assert logs[0]['user'] == 'caja2'
    assert logs[0]['related_id'] == order.id
    assert logs[1]['type'] == 'TICKET'


# =============================================================================
# VENTA DIRECTA
# =============================================================================

def test_direct_sale_deducts_original_items(orders, stock, notifier):
    box = {
        'name': 'Caja Variada',
        'beer_variety': 'Variado',
        'emission': 'Caja',
        'subtype': 'Botella',
        'quantity': 2,
        'composition': {POLAR: 6, SOLERA: 6},
        'unit_price_usd': 20,
        'unit_price_bs': 800,
    }
    result = orders.process_direct_sale(None, [box, standard(SOLERA, 'Unidad', quantity=3)], 'Efectivo')

    assert result['ok']
    order = result['order']
    assert order.status == OrderStatus.PAID
    assert order.type == OrderType.LLEVAR
    assert order.customer_name == 'Venta Directa'
    assert order.total_amount_usd == pytest.approx(44.5)
    assert order.total_amount_bs == pytest.approx(1780)
    assert len(order.items) == 2

    assert stock.get_inventory(POLAR, 'Botella') == 88
    assert stock.get_inventory(SOLERA, 'Botella') == 35
    assert orders.get_orders()[0].id == order.id
    assert messages(notifier) == [('Venta Registrada en Caja', NotificationLevel.SUCCESS)]


def test_direct_sale_requires_items(orders):
    assert orders.process_direct_sale('Ana', [], 'Efectivo')['reason'] == FailureReason.INVALID_DATA


# =============================================================================
# PERSISTENCIA Y ADMINISTRACIÓN
# =============================================================================

class BrokenState:
    def load(self, key):
        return None

    def save(self, key, value):
        raise OSError('sin permisos')


def test_orders_reload_from_state(orders, stock, catalog, notifier, data_dir):
    order = open_tab(orders)
    orders.update_order_item_slot(order.id, 0, 0, POLAR)

    reloaded = OrderService(stock, catalog, notifier, StateRepository(data_dir))
    reloaded.load()

    [copy] = reloaded.get_orders()
    assert copy.id == order.id
    assert copy.items[0].slots == [POLAR]
    assert reloaded.get_orders(status='PAID') == []


def test_persistence_failure_does_not_abort(stock, catalog, notifier, logs_dir):
    service = OrderService(stock, catalog, notifier, BrokenState())
    result = service.create_order('Mesa 9')

    assert result['ok']
    assert service.get_order(result['order'].id) is not None
    with open(os.path.join(logs_dir, 'errors.log'), encoding='utf-8') as f:
        assert 'Guardando tickets' in f.read()


def test_replace_all_orders_is_gated(stock, catalog, notifier, data_dir):
    service = OrderService(stock, catalog, notifier, StateRepository(data_dir))
    with pytest.raises(AdminApiDisabledError):
        service.replace_all_orders([])


def test_replace_all_orders(orders):
    open_tab(orders)
    count = orders.replace_all_orders([
        {'id': 'a1', 'ticketNumber': 1234, 'customerName': 'Demo', 'status': 'PAID',
         'type': 'Local', 'totalAmountUsd': 10, 'totalAmountBs': 400, 'items': []},
        {'id': 'a2', 'ticket_number': 4321, 'customer_name': 'Demo 2', 'type': 'Llevar'},
    ])

    assert count == 2
    assert [o.id for o in orders.get_orders()] == ['a1', 'a2']
    assert orders.get_order('a1').total_amount_bs == 400
    assert orders.get_orders(status='OPEN')[0].id == 'a2'


def test_slot_keys_do_not_collide(orders, stock):
    stock.add_stock('Polar_Light', 'Unidad', 'Botella', 2)
    order = open_tab(orders)
    orders.update_order_item_slot(order.id, 0, 0, 'Polar_Light')

    assert stock.snapshot()[StockKey('Polar_Light', 'Botella')] == 1
