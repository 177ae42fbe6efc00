# ==============================================================================
# SERVICIO DE CATÁLOGO
# ==============================================================================
# Vista en memoria del catálogo de una organización: productos, emisiones
# (empaques), subtipos, tablas de precios y conversiones a unidades.
#
# El CRUD del catálogo vive fuera de este sistema; aquí solo se consulta.
# ==============================================================================

from datetime import datetime
from typing import Any, Dict, List, Optional

from pos_cerveza import config
from pos_cerveza.models import (
    CAJA,
    SINGLE_UNIT_EMISSIONS,
    UNIDAD,
    ConversionKey,
    Emission,
    PriceEntry,
    PriceKey,
    Product,
)
from pos_cerveza.performance_logger import log_error
from pos_cerveza.repositories.interfaces import IInventoryStore, IKeyValueStore
from pos_cerveza.repositories.state_repository import StateRepository


PRICE_MODE_STANDARD = 'standard'
PRICE_MODE_LOCAL = 'local'


class CatalogService:
    """
    Servicio de consulta del catálogo.

    Responsabilidades:
    - Mapa producto ↔ ID
    - Emisiones y su conversión a unidades canónicas
    - Precios estándar y de consumo local (USD y Bs)
    - Tasa de cambio vigente
    """

    def __init__(
        self,
        store: IInventoryStore,
        organization_id: str = config.ORGANIZATION_ID,
        state_repo: Optional[IKeyValueStore] = None
    ):
        """
        Inicializa el servicio de catálogo.

        Args:
            store: Almacén de catálogo e inventario
            organization_id: Organización a cargar
            state_repo: Almacén clave-valor para la tasa de cambio (opcional)
        """
        self.store = store
        self.organization_id = organization_id
        self.state_repo = state_repo

        self.products: List[Product] = []
        self.product_map: Dict[str, str] = {}   # Nombre -> ID
        self.id_map: Dict[str, str] = {}        # ID -> Nombre
        self.raw_emissions: List[Emission] = []
        self.emission_options: List[str] = list(config.DEFAULT_EMISSION_OPTIONS)
        self.subtypes: List[str] = list(config.DEFAULT_SUBTYPES)
        self.prices: Dict[PriceKey, float] = {}
        self.conversions: Dict[ConversionKey, int] = {}
        self.exchange_rates: Dict[str, Any] = {'bcv': 0, 'parallel': 0, 'lastUpdate': None}

    # =========================================================================
    # CARGA
    # =========================================================================

    def load(self) -> None:
        """
        Carga el catálogo desde el almacén.
        Si una lectura falla se registra y se mantienen los valores por defecto.
        """
        org_id = self.organization_id

        try:
            self.products = [Product.from_dict(p) for p in self.store.fetch_catalog(org_id)]
        except Exception as e:
            log_error('Cargando productos', e)
            self.products = []
        self.product_map = {p.name: p.id for p in self.products}
        self.id_map = {p.id: p.name for p in self.products}

        try:
            self.raw_emissions = [Emission.from_dict(e) for e in self.store.fetch_emissions()]
        except Exception as e:
            log_error('Cargando emisiones', e)
            self.raw_emissions = []
        if self.raw_emissions:
            # 'Unidad' siempre al principio
            names = [e.name for e in self.raw_emissions if e.name != UNIDAD]
            self.emission_options = [UNIDAD] + names
        else:
            self.emission_options = list(config.DEFAULT_EMISSION_OPTIONS)

        try:
            subtypes = self.store.fetch_subtypes(org_id)
        except Exception as e:
            log_error('Cargando subtipos', e)
            subtypes = None
        self.subtypes = list(subtypes) if subtypes else list(config.DEFAULT_SUBTYPES)

        self.prices = {}
        try:
            for row in self.store.fetch_prices(org_id):
                entry = PriceEntry.from_dict(row)
                product_name = self.id_map.get(entry.product_id)
                if product_name:
                    key = PriceKey(product_name, entry.emission, entry.subtype, entry.is_local)
                    self.prices[key] = entry.price
        except Exception as e:
            log_error('Cargando precios', e)

        self.conversions = {}
        try:
            for row in self.store.fetch_conversions(org_id):
                units = int(row.get('units') or 0)
                if units > 0:
                    self.conversions[ConversionKey(row.get('emission', ''), row.get('subtype', ''))] = units
        except Exception as e:
            log_error('Cargando conversiones', e)

        self._load_exchange_rates()

    def _load_exchange_rates(self) -> None:
        if self.state_repo is None:
            return
        try:
            stored = self.state_repo.load(StateRepository.KEY_EXCHANGE_RATES)
        except Exception as e:
            log_error('Cargando tasa de cambio', e)
            return
        if isinstance(stored, dict):
            self.exchange_rates.update(stored)

    # =========================================================================
    # PRODUCTOS
    # =========================================================================

    def get_product_id(self, name: str) -> Optional[str]:
        """ID del producto o None si no está en el catálogo."""
        return self.product_map.get(name)

    def get_product_name(self, product_id: str) -> Optional[str]:
        return self.id_map.get(str(product_id))

    # =========================================================================
    # CONVERSIONES
    # =========================================================================

    def get_units_per_emission(self, emission: str, subtype: str) -> int:
        """
        Unidades canónicas que contiene un empaque.

        Precedencia:
            1. 'Unidad', 'Libre' o vacío → 1
            2. Conversión específica (emisión, subtipo)
            3. Definición de la emisión en el catálogo
            4. Heurística para 'Caja': lata → 24, tercio → 36, otro → 12
            5. 1

        Nunca falla: entradas desconocidas resuelven a 1.
        """
        if not emission or emission in SINGLE_UNIT_EMISSIONS:
            return 1

        units = self.conversions.get(ConversionKey(emission, subtype))
        if units:
            return units

        for raw in self.raw_emissions:
            if raw.name == emission and raw.units:
                return raw.units

        if emission == CAJA:
            lowered = (subtype or '').lower()
            if 'lata' in lowered:
                return 24
            if 'tercio' in lowered:
                return 36
            return 12

        return 1

    # =========================================================================
    # PRECIOS
    # =========================================================================

    def get_price(
        self,
        product: str,
        emission: str,
        subtype: str,
        mode: str = PRICE_MODE_STANDARD
    ) -> float:
        """
        Precio en USD de un producto en un empaque.

        Args:
            mode: 'standard' (para llevar) o 'local' (consumo en el local)

        Returns:
            Precio o 0 si no está definido
        """
        key = PriceKey(product, emission, subtype, mode == PRICE_MODE_LOCAL)
        return self.prices.get(key, 0) or 0

    def get_bs_price(
        self,
        product: str,
        emission: str,
        subtype: str,
        mode: str = PRICE_MODE_STANDARD
    ) -> float:
        """Precio en bolívares según la tasa BCV vigente."""
        usd = self.get_price(product, emission, subtype, mode)
        return usd * (self.exchange_rates.get('bcv') or 0)

    def set_exchange_rate(self, bcv: float, parallel: float = 0) -> Dict[str, Any]:
        """
        Fija la tasa de cambio manualmente y la persiste.

        Args:
            bcv: Tasa oficial (Bs por USD)
            parallel: Tasa paralela (informativa)

        Returns:
            Tasas vigentes
        """
        self.exchange_rates = {
            'bcv': float(bcv or 0),
            'parallel': float(parallel or 0),
            'lastUpdate': datetime.now().strftime('%d/%m/%Y %I:%M %p')
        }
        if self.state_repo is not None:
            try:
                self.state_repo.save(StateRepository.KEY_EXCHANGE_RATES, self.exchange_rates)
            except Exception as e:
                log_error('Guardando tasa de cambio', e)
        return dict(self.exchange_rates)
