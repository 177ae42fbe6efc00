# ==============================================================================
# CONFIGURACIÓN DEL SISTEMA
# ==============================================================================
# Todas las opciones se leen de variables de entorno con valores por defecto
# seguros para desarrollo local.
#
# Ejemplo:
#   export POS_DATA_DIR="/srv/pos/data"
#   export POS_ENABLE_ADMIN_API=1
# ==============================================================================

import os


def _env_flag(name: str, default: bool) -> bool:
    """Interpreta una variable de entorno como booleano."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'si', 'sí', 'on')


BASE = os.path.dirname(os.path.abspath(__file__))

# ═══════════════════════════════════════════════════════════════════════════════
# MODO PRODUCCIÓN
# ═══════════════════════════════════════════════════════════════════════════════
# True = Sin API administrativa y con advertencias de seguridad
# False = Modo desarrollo
PRODUCTION_MODE = _env_flag('POS_PRODUCTION_MODE', True)

# Directorio donde viven catalog.json, state.json y audit.json
DATA_DIR = os.environ.get('POS_DATA_DIR', BASE)

# Organización cuyo catálogo e inventario se cargan
ORGANIZATION_ID = os.environ.get('POS_ORGANIZATION_ID', 'org_default')

# Capacidad para reemplazar todos los tickets (carga de datos de prueba)
ENABLE_ADMIN_API = _env_flag('POS_ENABLE_ADMIN_API', not PRODUCTION_MODE)

# ═══════════════════════════════════════════════════════════════════════════════
# PROFILING Y LOGS
# ═══════════════════════════════════════════════════════════════════════════════
ENABLE_PROFILING = _env_flag('POS_ENABLE_PROFILING', True)
LOGS_DIR = os.environ.get('POS_LOGS_DIR', os.path.join(BASE, 'logs'))

# ═══════════════════════════════════════════════════════════════════════════════
# CONSTANTES DEL DOMINIO
# ═══════════════════════════════════════════════════════════════════════════════
DEFAULT_SUBTYPES = ['Botella', 'Botella Tercio', 'Lata Pequeña', 'Lata Grande']
DEFAULT_EMISSION_OPTIONS = ['Unidad', 'Caja']

# Historial de cargas de inventario (reportes más recientes)
MAX_INVENTORY_HISTORY = 50

# Rango de números de ticket visibles al cliente
TICKET_NUMBER_MIN = 1000
TICKET_NUMBER_MAX = 9999

# Duración por defecto de las notificaciones (ms)
NOTIFICATION_DURATION_MS = 3000

