import pytest

from pos_cerveza.app_container import AppContainer
from pos_cerveza.main import create_app


@pytest.fixture
def app(data_dir):
    app = create_app(data_dir, {'TESTING': True, 'ENABLE_ADMIN_API': True})
    yield app
    AppContainer.reset_instance()


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


def open_tab(client, customer='Mesa 1'):
    r = client.post('/api/orders', json={'customer_name': customer}, headers={'X-User': 'caja1'})
    assert r.status_code == 200
    return r.get_json()['order']


def test_health(client):
    r = client.get('/api/health')
    assert r.status_code == 200
    assert r.get_json()['status'] == 'ok'


def test_create_order_returns_notifications(client):
    r = client.post('/api/orders', json={'customer_name': 'Mesa 7'}, headers={'X-User': 'caja1'})
    data = r.get_json()

    assert data['success']
    assert data['order']['status'] == 'OPEN'
    assert data['order']['created_by'] == 'caja1'
    assert data['order']['items'][0]['name'] == 'Consumo'
    assert data['notifications'][0]['message'] == f"Ticket #{data['order']['ticket_number']} Creado"
    assert data['notifications'][0]['level'] == 'success'

    # Las notificaciones se entregan una sola vez
    again = client.get('/api/orders').get_json()
    assert again['notifications'] == []
    assert [o['id'] for o in again['orders']] == [data['order']['id']]


def test_full_local_flow(client):
    order = open_tab(client)
    oid = order['id']

    for slot in range(3):
        r = client.put(f'/api/orders/{oid}/items/0/slots/{slot}', json={'content': 'Polar Pilsen'})
        assert r.status_code == 200
    assert r.get_json()['item']['slots'] == ['Polar Pilsen'] * 3

    inventory = client.get('/api/inventory').get_json()['inventory']
    polar = next(row for row in inventory if row['product'] == 'Polar Pilsen')
    assert polar['quantity'] == 97

    r = client.post(f'/api/orders/{oid}/close', json={'payment_method': 'Efectivo'})
    data = r.get_json()
    assert r.status_code == 200
    assert data['order']['status'] == 'PAID'
    assert data['order']['total_amount_usd'] == 3
    assert data['order']['total_amount_bs'] == 120
    assert data['notifications'][0]['message'] == 'Ticket Cerrado: 120,00 Bs'

    r = client.post(f'/api/orders/{oid}/close', json={'payment_method': 'Efectivo'})
    assert r.status_code == 409
    assert r.get_json()['reason'] == 'TICKET_CERRADO'

    paid = client.get('/api/orders?status=PAID').get_json()['orders']
    assert [o['id'] for o in paid] == [oid]


def test_add_item_without_stock_is_conflict(client):
    oid = open_tab(client)['id']
    r = client.post(f'/api/orders/{oid}/items', json={
        'item': {'name': 'Solera Verde', 'emission': 'Caja', 'subtype': 'Botella', 'quantity': 5}
    })
    data = r.get_json()
    assert r.status_code == 409
    assert data['reason'] == 'STOCK_INSUFICIENTE'
    assert data['notifications'][0]['level'] == 'error'


def test_add_and_remove_item(client):
    oid = open_tab(client)['id']
    r = client.post(f'/api/orders/{oid}/items', json={
        'name': 'Zulia', 'beerVariety': 'Variado', 'emission': 'Six Pack', 'subtype': 'Lata Pequeña'
    })
    item = r.get_json()['item']
    assert item['slots'] == ['Zulia']

    r = client.delete(f'/api/orders/{oid}/items/{item["id"]}')
    assert r.status_code == 200
    assert len(r.get_json()['order']['items']) == 1


def test_unknown_order_is_not_found(client):
    assert client.get('/api/orders/nope').status_code == 404
    assert client.post('/api/orders/nope/cancel').status_code == 404
    r = client.delete('/api/orders/nope/items/x')
    assert r.status_code == 404
    assert r.get_json()['notifications'] == []


def test_cancel_order(client):
    oid = open_tab(client)['id']
    client.put(f'/api/orders/{oid}/items/0/slots/0', json={'content': 'Solera Verde'})

    r = client.post(f'/api/orders/{oid}/cancel')
    assert r.status_code == 200
    assert client.get(f'/api/orders/{oid}').status_code == 404

    inventory = client.get('/api/inventory').get_json()['inventory']
    solera = next(row for row in inventory if row['product'] == 'Solera Verde')
    assert solera['quantity'] == 50


def test_quote_does_not_touch_stock(client):
    r = client.post('/api/orders/quote', json={
        'type': 'Local',
        'items': [{'name': 'Consumo', 'beer_variety': 'Variado', 'emission': 'Libre',
                   'subtype': 'Botella', 'slots': ['Polar Pilsen'] * 36}]
    })
    data = r.get_json()
    assert data['total_usd'] == 30
    assert data['details'] == ['1 Caja']

    inventory = client.get('/api/inventory').get_json()['inventory']
    polar = next(row for row in inventory if row['product'] == 'Polar Pilsen')
    assert polar['quantity'] == 100


def test_direct_sale(client):
    r = client.post('/api/sales/direct', json={
        'customer_name': 'Cliente Mostrador',
        'payment_method': 'Punto',
        'items': [{'name': 'Polar Pilsen', 'emission': 'Caja', 'subtype': 'Botella', 'quantity': 1}]
    }, headers={'X-User': 'caja2'})
    data = r.get_json()

    assert r.status_code == 200
    assert data['order']['status'] == 'PAID'
    assert data['order']['type'] == 'Llevar'
    assert data['order']['total_amount_usd'] == 35
    assert data['notifications'][0]['message'] == 'Venta Registrada en Caja'

    logs = client.get('/api/audit?type=VENTA').get_json()['logs']
    assert logs[0]['user'] == 'caja2'


def test_direct_sale_without_items(client):
    r = client.post('/api/sales/direct', json={'items': []})
    assert r.status_code == 400
    assert r.get_json()['reason'] == 'DATOS_INVALIDOS'


def test_inventory_load_and_history(client):
    assert client.post('/api/inventory/pending', json={
        'product': 'Zulia', 'subtype': 'Lata Pequeña', 'delta': 24
    }).get_json()['pending'] == 24
    client.post('/api/inventory/pending', json={'product': 'Polar Pilsen', 'subtype': 'Botella', 'delta': -10})

    pending = client.get('/api/inventory').get_json()['pending']
    assert len(pending) == 2

    r = client.post('/api/inventory/commit', headers={'X-User': 'almacen'})
    report = r.get_json()['report']
    assert report['total_units'] == 14
    assert report['user'] == 'almacen'

    history = client.get('/api/inventory/history').get_json()['history']
    assert history[0]['id'] == report['id']

    inventory = client.get('/api/inventory').get_json()
    assert inventory['pending'] == []
    zulia = next(row for row in inventory['inventory'] if row['product'] == 'Zulia')
    assert zulia['quantity'] == 48


def test_discard_pending_inventory(client):
    client.post('/api/inventory/pending', json={'product': 'Zulia', 'subtype': 'Lata Pequeña', 'delta': 6})
    assert client.delete('/api/inventory/pending').status_code == 200
    assert client.get('/api/inventory').get_json()['pending'] == []


def test_pending_inventory_validation(client):
    r = client.post('/api/inventory/pending', json={'product': 'Zulia', 'delta': 'muchas'})
    assert r.status_code == 400


def test_set_base_stock(client):
    r = client.put('/api/inventory/base', json={'product': 'Zulia', 'subtype': 'Lata Grande', 'units': 12})
    assert r.get_json()['quantity'] == 12
    assert client.put('/api/inventory/base', json={'product': 'Zulia', 'subtype': 'Lata Grande',
                                                    'units': -1}).status_code == 400


def test_exchange_rate(client):
    r = client.put('/api/exchange-rate', json={'bcv': 45})
    assert r.status_code == 200
    assert client.get('/api/exchange-rate').get_json()['rates']['bcv'] == 45
    assert client.put('/api/exchange-rate', json={'bcv': 'x'}).status_code == 400


def test_admin_replace_orders(client):
    open_tab(client)
    r = client.put('/api/admin/orders', json={'orders': [
        {'id': 'demo', 'ticketNumber': 1111, 'customerName': 'Demo', 'type': 'Local'}
    ]})
    assert r.get_json()['count'] == 1
    assert [o['id'] for o in client.get('/api/orders').get_json()['orders']] == ['demo']


def test_admin_api_disabled(data_dir):
    app = create_app(data_dir, {'TESTING': True, 'ENABLE_ADMIN_API': False})
    try:
        with app.test_client() as c:
            r = c.put('/api/admin/orders', json={'orders': []})
            assert r.status_code == 403
            assert r.get_json()['success'] is False
    finally:
        AppContainer.reset_instance()


def test_admin_performance_stats(client):
    open_tab(client)
    r = client.get('/api/admin/performance')
    data = r.get_json()
    assert r.status_code == 200
    assert data['functions']['Abrir ticket']['calls'] >= 1
    assert 'errors' in data['logs']

    assert client.delete('/api/admin/performance').status_code == 200
    assert client.get('/api/admin/performance').get_json()['functions'] == {}


def test_admin_performance_disabled(data_dir):
    app = create_app(data_dir, {'TESTING': True, 'ENABLE_ADMIN_API': False})
    try:
        with app.test_client() as c:
            assert c.get('/api/admin/performance').status_code == 403
    finally:
        AppContainer.reset_instance()
