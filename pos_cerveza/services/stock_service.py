# ==============================================================================
# SERVICIO DE STOCK (LIBRO DE EXISTENCIAS)
# ==============================================================================
# Único punto de mutación del inventario. Convierte cualquier empaque a
# unidades canónicas antes de operar y nunca deja existencias negativas.
#
# Incluye la carga de inventario por lotes: los cambios se anotan en un
# acumulador pendiente y se confirman juntos en un reporte con historial.
# ==============================================================================

import threading
import time
from datetime import datetime
from typing import Dict, List, Optional

from pos_cerveza import config
from pos_cerveza.models import (
    UNIDAD,
    InventoryMovement,
    InventoryRecord,
    InventoryReport,
    StockKey,
)
from pos_cerveza.performance_logger import log_error, profile_function
from pos_cerveza.repositories.interfaces import IInventoryStore, IKeyValueStore
from pos_cerveza.repositories.state_repository import StateRepository
from pos_cerveza.services.audit_service import AuditService
from pos_cerveza.services.catalog_service import CatalogService


class StockLedgerService:
    """
    Servicio de existencias.

    Responsabilidades:
    - Verificar disponibilidad (check_stock)
    - Descontar y reponer unidades (deduct_stock / add_stock)
    - Fijar el stock base de un producto
    - Acumular y confirmar cargas de inventario con historial

    Cada mutación es una lectura-modificación-escritura serializada por
    (producto, subtipo); luego se refleja en el almacén. Si el almacén
    falla se registra el error y el valor en memoria se mantiene.
    """

    def __init__(
        self,
        catalog: CatalogService,
        store: IInventoryStore,
        state_repo: Optional[IKeyValueStore] = None,
        audit_service: AuditService = None
    ):
        """
        Inicializa el servicio de stock.

        Args:
            catalog: Servicio de catálogo (conversiones e IDs de producto)
            store: Almacén de inventario
            state_repo: Almacén clave-valor para el historial de cargas
            audit_service: Servicio de auditoría (opcional)
        """
        self.catalog = catalog
        self.store = store
        self.state_repo = state_repo
        self.audit_service = audit_service

        self._inventory: Dict[StockKey, int] = {}
        self._pending: Dict[StockKey, int] = {}
        self._history: List[InventoryReport] = []

        self._locks: Dict[StockKey, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._pending_lock = threading.RLock()

    # =========================================================================
    # CARGA
    # =========================================================================

    def load(self) -> None:
        """Carga existencias e historial desde los almacenes."""
        inventory = {}
        try:
            for row in self.store.fetch_inventory(self.catalog.organization_id):
                record = InventoryRecord.from_dict(row)
                product_name = self.catalog.get_product_name(record.product_id)
                if product_name:
                    inventory[StockKey(product_name, record.subtype)] = max(0, record.quantity)
        except Exception as e:
            log_error('Cargando inventario', e)
        self._inventory = inventory

        self._history = []
        if self.state_repo is not None:
            try:
                stored = self.state_repo.load(StateRepository.KEY_INVENTORY_HISTORY) or []
                self._history = [InventoryReport.from_dict(r) for r in stored]
            except Exception as e:
                log_error('Cargando historial de inventario', e)

    def _get_lock(self, key: StockKey) -> threading.RLock:
        """Obtiene o crea el lock de un producto/subtipo"""
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.RLock()
            return self._locks[key]

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_units_per_emission(self, emission: str, subtype: str) -> int:
        """Unidades canónicas por empaque (ver CatalogService)."""
        return self.catalog.get_units_per_emission(emission, subtype)

    def get_inventory(self, product: str, subtype: str) -> int:
        """Existencia en unidades canónicas (0 si no hay registro)."""
        if not product or not subtype:
            return 0
        return self._inventory.get(StockKey(product, subtype), 0)

    def snapshot(self) -> Dict[StockKey, int]:
        """Copia del inventario completo."""
        return dict(self._inventory)

    def check_stock(self, product: str, emission: str, subtype: str, quantity: int) -> bool:
        """
        Verifica si hay existencias para una cantidad de empaques.

        Args:
            product: Nombre del producto
            emission: Empaque solicitado
            subtype: Subtipo (envase)
            quantity: Cantidad de empaques

        Returns:
            True si available >= quantity * unidades_por_empaque

        La verificación y el descuento posterior son secciones críticas
        separadas: dos tickets pueden pasar la misma verificación y el
        segundo descuento queda recortado en 0.
        """
        required = quantity * self.get_units_per_emission(emission, subtype)
        key = StockKey(product, subtype)
        with self._get_lock(key):
            available = self._inventory.get(key, 0)
        return available >= required

    # =========================================================================
    # MUTACIONES
    # =========================================================================

    @profile_function(name="Descontar stock")
    def deduct_stock(self, product: str, emission: str, subtype: str, quantity: int) -> int:
        """
        Descuenta empaques del inventario. Si no alcanza, el stock queda en 0
        (política: se recorta, no es un error).

        Returns:
            Nueva existencia en unidades
        """
        units = quantity * self.get_units_per_emission(emission, subtype)
        key = StockKey(product, subtype)

        with self._get_lock(key):
            new_total = max(0, self._inventory.get(key, 0) - units)
            self._inventory[key] = new_total
            self._persist(key, new_total)
        return new_total

    @profile_function(name="Reponer stock")
    def add_stock(self, product: str, emission: str, subtype: str, quantity: int) -> int:
        """
        Repone empaques al inventario (sin límite superior).

        Returns:
            Nueva existencia en unidades
        """
        units = quantity * self.get_units_per_emission(emission, subtype)
        key = StockKey(product, subtype)

        with self._get_lock(key):
            new_total = max(0, self._inventory.get(key, 0) + units)
            self._inventory[key] = new_total
            self._persist(key, new_total)
        return new_total

    def set_base_stock(self, product: str, subtype: str, units: int) -> int:
        """
        Fija la existencia absoluta de un producto/subtipo.

        Returns:
            Existencia fijada
        """
        key = StockKey(product, subtype)
        units = max(0, int(units))

        with self._get_lock(key):
            self._inventory[key] = units
            self._persist(key, units)
        return units

    def _persist(self, key: StockKey, quantity: int) -> None:
        """Refleja una existencia en el almacén (solo productos del catálogo)."""
        product_id = self.catalog.get_product_id(key.product)
        if not product_id:
            return
        try:
            self.store.upsert_inventory({
                'organization_id': self.catalog.organization_id,
                'product_id': product_id,
                'subtype': key.subtype,
                'quantity': quantity
            })
        except Exception as e:
            log_error(f'Guardando inventario de {key.product} ({key.subtype})', e)

    # =========================================================================
    # CARGA DE INVENTARIO PENDIENTE
    # =========================================================================

    def update_pending_inventory(self, product: str, subtype: str, delta: int) -> int:
        """
        Anota un cambio pendiente. Las entradas que suman 0 se eliminan.

        Returns:
            Delta acumulado para el producto/subtipo
        """
        key = StockKey(product, subtype)
        with self._pending_lock:
            new_value = self._pending.get(key, 0) + int(delta)
            if new_value == 0:
                self._pending.pop(key, None)
            else:
                self._pending[key] = new_value
            return new_value

    def get_pending_inventory(self, product: str, subtype: str) -> int:
        return self._pending.get(StockKey(product, subtype), 0)

    @property
    def pending_inventory(self) -> Dict[StockKey, int]:
        with self._pending_lock:
            return dict(self._pending)

    def clear_pending_inventory(self) -> None:
        with self._pending_lock:
            self._pending.clear()

    @profile_function(name="Confirmar carga de inventario")
    def commit_inventory(self, user: str = None) -> InventoryReport:
        """
        Aplica todos los cambios pendientes en unidades y genera un reporte.

        Los deltas positivos reponen stock; los negativos descuentan
        (recortando en 0). El reporte se antepone al historial, que se
        limita a los más recientes.

        Args:
            user: Usuario que confirma (para auditoría)

        Returns:
            Reporte de la carga
        """
        with self._pending_lock:
            pending = list(self._pending.items())

            movements = []
            total_units = 0
            for key, quantity in pending:
                if quantity > 0:
                    self.add_stock(key.product, UNIDAD, key.subtype, quantity)
                else:
                    self.deduct_stock(key.product, UNIDAD, key.subtype, -quantity)
                total_units += quantity
                movements.append(InventoryMovement(key.product, key.subtype, quantity))

            report = InventoryReport(
                id=str(int(time.time() * 1000)),
                timestamp=datetime.now().strftime('%d/%m/%Y, %I:%M %p'),
                movements=movements,
                total_units=total_units,
                user=user
            )

            self._history = ([report] + self._history)[:config.MAX_INVENTORY_HISTORY]
            self._pending.clear()

        self._persist_history()

        if self.audit_service:
            self.audit_service.log_inventory_commit(user, report)

        return report

    def get_inventory_history(self) -> List[InventoryReport]:
        """Reportes de carga (más recientes primero)."""
        return list(self._history)

    def _persist_history(self) -> None:
        if self.state_repo is None:
            return
        try:
            self.state_repo.save(
                StateRepository.KEY_INVENTORY_HISTORY,
                [r.to_dict() for r in self._history]
            )
        except Exception as e:
            log_error('Guardando historial de inventario', e)
