import os

import pytest

from pos_cerveza import config
from pos_cerveza.app_container import AppContainer
from pos_cerveza.performance_logger import set_logs_dir
from pos_cerveza.repositories import CatalogRepository, StateRepository


# Catálogo de prueba:
#   Caja de botella = 36 unidades, Media Caja = 18 (conversiones por subtipo)
#   Tasa BCV = 40 Bs/USD
SEED_EMISSIONS = [
    {'id': '1', 'name': 'Unidad', 'units': 1},
    {'id': '2', 'name': 'Caja', 'units': 12},
    {'id': '3', 'name': 'Media Caja', 'units': 6},
    {'id': '4', 'name': 'Six Pack', 'units': 6},
]

SEED_ORGANIZATION = {
    'products': [
        {'id': 'p1', 'name': 'Polar Pilsen', 'color': '#1E40AF'},
        {'id': 'p2', 'name': 'Solera Verde', 'color': '#15803D'},
        {'id': 'p3', 'name': 'Zulia', 'color': '#B91C1C'},
    ],
    'subtypes': ['Botella', 'Botella Tercio', 'Lata Pequeña', 'Lata Grande'],
    'inventory': [
        {'product_id': 'p1', 'subtype': 'Botella', 'quantity': 100},
        {'product_id': 'p2', 'subtype': 'Botella', 'quantity': 50},
        {'product_id': 'p3', 'subtype': 'Lata Pequeña', 'quantity': 24},
    ],
    'prices': [
        # Polar Pilsen - consumo en el local
        {'product_id': 'p1', 'emission': 'Caja', 'subtype': 'Botella', 'is_local': True, 'price': 30},
        {'product_id': 'p1', 'emission': 'Media Caja', 'subtype': 'Botella', 'is_local': True, 'price': 16},
        {'product_id': 'p1', 'emission': 'Unidad', 'subtype': 'Botella', 'is_local': True, 'price': 1},
        # Polar Pilsen - para llevar
        {'product_id': 'p1', 'emission': 'Caja', 'subtype': 'Botella', 'is_local': False, 'price': 35},
        {'product_id': 'p1', 'emission': 'Unidad', 'subtype': 'Botella', 'is_local': False, 'price': 1.5},
        # Solera Verde
        {'product_id': 'p2', 'emission': 'Unidad', 'subtype': 'Botella', 'is_local': True, 'price': 1.2},
        {'product_id': 'p2', 'emission': 'Unidad', 'subtype': 'Botella', 'is_local': False, 'price': 1.5},
        {'product_id': 'p2', 'emission': 'Caja', 'subtype': 'Botella', 'is_local': False, 'price': 40},
        # Zulia lata
        {'product_id': 'p3', 'emission': 'Six Pack', 'subtype': 'Lata Pequeña', 'is_local': True, 'price': 5},
        {'product_id': 'p3', 'emission': 'Unidad', 'subtype': 'Lata Pequeña', 'is_local': True, 'price': 1},
        {'product_id': 'p3', 'emission': 'Unidad', 'subtype': 'Lata Pequeña', 'is_local': False, 'price': 1.2},
    ],
    'conversions': [
        {'emission': 'Caja', 'subtype': 'Botella', 'units': 36},
        {'emission': 'Media Caja', 'subtype': 'Botella', 'units': 18},
    ],
}


def seed_data_dir(path):
    """Escribe catalog.json y state.json de prueba en un directorio."""
    os.makedirs(path, exist_ok=True)
    catalog = CatalogRepository(path)
    catalog.save_emissions(SEED_EMISSIONS)
    catalog.save_organization(config.ORGANIZATION_ID, SEED_ORGANIZATION)
    StateRepository(path).save(
        StateRepository.KEY_EXCHANGE_RATES,
        {'bcv': 40, 'parallel': 0, 'lastUpdate': None}
    )
    return path


@pytest.fixture(autouse=True)
def logs_dir(tmp_path):
    path = str(tmp_path / 'logs')
    set_logs_dir(path)
    return path


@pytest.fixture
def data_dir(tmp_path):
    return seed_data_dir(str(tmp_path / 'data'))


@pytest.fixture
def container(data_dir):
    AppContainer.reset_instance()
    c = AppContainer(data_dir, allow_admin=True)
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def catalog(container):
    return container.catalog_service


@pytest.fixture
def stock(container):
    return container.stock_service


@pytest.fixture
def orders(container):
    return container.order_service


@pytest.fixture
def notifier(container):
    return container.notification_service
