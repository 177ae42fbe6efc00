# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único donde se arman repositorios y servicios. Facilita:
#   - Inyección de dependencias (el motor de tickets no usa globales)
#   - Testing (se puede apuntar a un directorio temporal)
#   - Cambiar el almacén JSON por otro sin tocar los servicios
#
# Para usar otro almacén basta con una clase que cumpla el protocolo de
# repositories/interfaces.py y cambiar la instanciación aquí.
# ==============================================================================

from typing import Optional

from pos_cerveza import config

# ═══════════════════════════════════════════════════════════════════════════════
# REPOSITORIOS - Capa de persistencia
# ═══════════════════════════════════════════════════════════════════════════════
from pos_cerveza.repositories import (
    AuditRepository,
    CatalogRepository,
    StateRepository,
)

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from pos_cerveza.services import (
    AuditService,
    CatalogService,
    NotificationService,
    OrderService,
    StockLedgerService,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(base_path='/srv/pos/data')
        orders = container.order_service
        stock = container.stock_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, base_path: str = None, allow_admin: bool = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, base_path: str = None, allow_admin: bool = None):
        """
        Inicializa el contenedor.

        Args:
            base_path: Directorio de datos (donde están los JSON)
            allow_admin: Habilita la API administrativa (por defecto según config)
        """
        if self._initialized:
            return

        self._base_path = base_path or config.DATA_DIR
        self._allow_admin = config.ENABLE_ADMIN_API if allow_admin is None else allow_admin

        # Repositorios (lazy loading)
        self._state_repo: Optional[StateRepository] = None
        self._catalog_repo: Optional[CatalogRepository] = None
        self._audit_repo: Optional[AuditRepository] = None

        # Servicios (lazy loading)
        self._audit_service: Optional[AuditService] = None
        self._notification_service: Optional[NotificationService] = None
        self._catalog_service: Optional[CatalogService] = None
        self._stock_service: Optional[StockLedgerService] = None
        self._order_service: Optional[OrderService] = None

        self._initialized = True

    @property
    def base_path(self) -> str:
        return self._base_path

    @property
    def allow_admin(self) -> bool:
        return self._allow_admin

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def state_repo(self) -> StateRepository:
        """Repositorio de estado (singleton)."""
        if self._state_repo is None:
            self._state_repo = StateRepository(self._base_path)
        return self._state_repo

    @property
    def catalog_repo(self) -> CatalogRepository:
        """Repositorio de catálogo e inventario (singleton)."""
        if self._catalog_repo is None:
            self._catalog_repo = CatalogRepository(self._base_path)
        return self._catalog_repo

    @property
    def audit_repo(self) -> AuditRepository:
        """Repositorio de auditoría (singleton)."""
        if self._audit_repo is None:
            self._audit_repo = AuditRepository(self._base_path)
        return self._audit_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def audit_service(self) -> AuditService:
        """Servicio de auditoría (singleton)."""
        if self._audit_service is None:
            self._audit_service = AuditService(self.audit_repo)
        return self._audit_service

    @property
    def notification_service(self) -> NotificationService:
        """Servicio de notificaciones (singleton)."""
        if self._notification_service is None:
            self._notification_service = NotificationService()
        return self._notification_service

    @property
    def catalog_service(self) -> CatalogService:
        """Servicio de catálogo, ya cargado (singleton)."""
        if self._catalog_service is None:
            service = CatalogService(
                self.catalog_repo,
                config.ORGANIZATION_ID,
                self.state_repo
            )
            service.load()
            self._catalog_service = service
        return self._catalog_service

    @property
    def stock_service(self) -> StockLedgerService:
        """Libro de existencias, ya cargado (singleton)."""
        if self._stock_service is None:
            service = StockLedgerService(
                self.catalog_service,
                self.catalog_repo,
                self.state_repo,
                self.audit_service
            )
            service.load()
            self._stock_service = service
        return self._stock_service

    @property
    def order_service(self) -> OrderService:
        """Servicio de tickets, con los tickets guardados cargados (singleton)."""
        if self._order_service is None:
            service = OrderService(
                self.stock_service,
                self.catalog_service,
                self.notification_service,
                self.state_repo,
                self.audit_service,
                allow_admin=self._allow_admin
            )
            service.load()
            self._order_service = service
        return self._order_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias.
        Útil para testing o para recargar datos.
        """
        self._state_repo = None
        self._catalog_repo = None
        self._audit_repo = None

        self._audit_service = None
        self._notification_service = None
        self._catalog_service = None
        self._stock_service = None
        self._order_service = None

    @classmethod
    def get_instance(cls, base_path: str = None, allow_admin: bool = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            base_path: Directorio de datos (solo se usa en primera llamada)
            allow_admin: Capacidad administrativa (solo en primera llamada)

        Returns:
            Instancia del contenedor
        """
        if cls._instance is None:
            return cls(base_path, allow_admin)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


def get_container(base_path: str = None, allow_admin: bool = None) -> AppContainer:
    """
    Obtiene el contenedor de dependencias global.

    Args:
        base_path: Directorio de datos
        allow_admin: Capacidad administrativa

    Returns:
        Instancia del contenedor
    """
    return AppContainer.get_instance(base_path, allow_admin)
