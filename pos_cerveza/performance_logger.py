# ==============================================================================
# SISTEMA DE PROFILING Y LOGS INTERNOS
# ==============================================================================
# Mide rendimiento de rutas y operaciones del motor de tickets sin afectar
# la experiencia del usuario. Guarda logs legibles en /logs/ para análisis humano.
#
# También concentra el registro de errores de infraestructura (persistencia,
# notificaciones) que el sistema registra y continúa.
#
# ACTIVAR/DESACTIVAR: variable de entorno POS_ENABLE_PROFILING
# ==============================================================================

import os
import time
import threading
from datetime import datetime
from functools import wraps
from collections import defaultdict

from pos_cerveza import config

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = config.ENABLE_PROFILING

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300   # Advertencia si supera 300ms
THRESHOLD_CRITICAL = 700  # Crítico si supera 700ms

# Directorio de logs (se puede cambiar con set_logs_dir)
LOGS_DIR = config.LOGS_DIR

PERFORMANCE_LOG = 'performance.log'
SLOW_ROUTES_LOG = 'slow_routes.log'
SLOW_FUNCTIONS_LOG = 'slow_functions.log'
ERRORS_LOG = 'errors.log'

# Mapeo de rutas a nombres legibles (para logs más humanos)
ROUTE_NAMES = {
    # Tickets
    'GET /api/orders': 'Ver tickets',
    'POST /api/orders': 'Abrir ticket',
    'GET /api/orders/<order_id>': 'Ver ticket',
    'POST /api/orders/<order_id>/items': 'Agregar producto al ticket',
    'DELETE /api/orders/<order_id>/items/<item_id>': 'Quitar producto del ticket',
    'PUT /api/orders/<order_id>/items/<int:item_index>/slots/<int:slot_index>': 'Asignar consumo',
    'POST /api/orders/<order_id>/close': 'Cerrar ticket',
    'POST /api/orders/<order_id>/cancel': 'Cancelar ticket',
    'POST /api/orders/quote': 'Calcular total',

    # Caja
    'POST /api/sales/direct': 'Venta directa',

    # Inventario
    'GET /api/inventory': 'Ver inventario',
    'POST /api/inventory/pending': 'Anotar carga de inventario',
    'DELETE /api/inventory/pending': 'Descartar carga de inventario',
    'POST /api/inventory/commit': 'Confirmar carga de inventario',
    'GET /api/inventory/history': 'Ver historial de inventario',
    'PUT /api/inventory/base': 'Fijar stock base',

    # Tasa de cambio
    'GET /api/exchange-rate': 'Ver tasa de cambio',
    'PUT /api/exchange-rate': 'Fijar tasa de cambio',

    # Auditoría
    'GET /api/audit': 'Ver auditoría',

    # Administración
    'PUT /api/admin/orders': 'Reemplazar tickets',
    'GET /api/admin/performance': 'Ver rendimiento',
    'DELETE /api/admin/performance': 'Reiniciar rendimiento',
}

_write_lock = threading.Lock()


def set_logs_dir(path):
    """Cambia el directorio de logs (útil para testing)."""
    global LOGS_DIR
    LOGS_DIR = path


def _log_path(filename):
    return os.path.join(LOGS_DIR, filename)


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE FUNCIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# Estructura: {nombre_funcion: {calls: int, total_time: float, max_time: float}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES DE LOGGING
# ═══════════════════════════════════════════════════════════════════════════

def _get_timestamp():
    """Obtiene timestamp legible"""
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _write_log(filename, content):
    """Escribe contenido a un archivo de log (thread-safe)"""
    try:
        with _write_lock:
            os.makedirs(LOGS_DIR, exist_ok=True)
            with open(_log_path(filename), 'a', encoding='utf-8') as f:
                f.write(content)
    except OSError:
        pass  # Un log que falla no debe tumbar la operación


def log_error(context, error):
    """
    Registra un error de infraestructura que el sistema absorbe.

    Se usa para fallas de persistencia y de canales de notificación:
    el estado en memoria sigue siendo la fuente de verdad.

    Args:
        context: Descripción corta de la operación (ej: 'Guardando tickets')
        error: Excepción capturada o mensaje
    """
    detail = f"{type(error).__name__}: {error}" if isinstance(error, BaseException) else str(error)
    print(f"[ERROR] {context}: {detail}")

    log_entry = f"""
🔴 [ERROR] {_get_timestamp()}
Contexto: {context}
Detalle: {detail}
────────────────────────────────────────
"""
    _write_log(ERRORS_LOG, log_entry)


def _get_route_name(method, path, rule=None):
    """
    Obtiene nombre legible para una ruta.
    Intenta hacer match con ROUTE_NAMES, si no, devuelve la ruta raw.
    """
    key = f"{method} {path}"
    if key in ROUTE_NAMES:
        return ROUTE_NAMES[key]

    if rule:
        rule_key = f"{method} {rule}"
        if rule_key in ROUTE_NAMES:
            return ROUTE_NAMES[rule_key]

    return f"{method} {path}"


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ PROFILING DE RUTAS (Middleware Flask)
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, user=None):
    """
    Registra el rendimiento de una ruta en performance.log

    Args:
        method: GET, POST, etc.
        path: Ruta solicitada (/api/orders/123/close)
        rule: Regla de Flask (/api/orders/<order_id>/close)
        time_ms: Tiempo en milisegundos
        user: Usuario que hizo la petición (opcional)
    """
    if not ENABLE_PROFILING:
        return

    action_name = _get_route_name(method, path, rule)
    user_str = user or 'anónimo'

    log_entry = f"""
════════════════════════════════════════
[PERFORMANCE] {_get_timestamp()}
────────────────────────────────────────
Acción: {action_name}
Usuario: {user_str}
Ruta: {method} {path}
Tiempo: {time_ms:.0f} ms
"""
    _write_log(PERFORMANCE_LOG, log_entry)


def log_slow_route(method, path, rule, time_ms, user=None, level='WARNING'):
    """
    Registra una ruta lenta en slow_routes.log

    Args:
        level: 'WARNING' (>300ms) o 'CRITICAL' (>700ms)
    """
    if not ENABLE_PROFILING:
        return

    action_name = _get_route_name(method, path, rule)
    user_str = user or 'anónimo'

    emoji = '⚠️' if level == 'WARNING' else '🔴'
    severity = 'LENTA' if level == 'WARNING' else 'MUY LENTA'
    threshold = THRESHOLD_WARNING if level == 'WARNING' else THRESHOLD_CRITICAL

    log_entry = f"""
{emoji} [{level}] {_get_timestamp()}
────────────────────────────────────────
Ruta {severity}: {action_name}
Usuario: {user_str}
Detalle: {method} {path}
Tiempo: {time_ms:.0f} ms (umbral: {threshold} ms)
────────────────────────────────────────
"""
    _write_log(SLOW_ROUTES_LOG, log_entry)


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ HOOKS PARA FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app):
    """
    Inicializa el sistema de profiling en una app Flask.
    Registra hooks before_request y after_request.
    """
    if not ENABLE_PROFILING:
        return

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request

        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000  # ms

        method = request.method
        path = request.path
        rule = str(request.url_rule) if request.url_rule else path
        user = request.headers.get('X-User')

        log_route_performance(method, path, rule, elapsed, user)

        if elapsed >= THRESHOLD_CRITICAL:
            log_slow_route(method, path, rule, elapsed, user, 'CRITICAL')
        elif elapsed >= THRESHOLD_WARNING:
            log_slow_route(method, path, rule, elapsed, user, 'WARNING')

        return response


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador para medir rendimiento de funciones críticas.

    Uso:
        @profile_function
        def mi_funcion():
            ...

        @profile_function(name="Cerrar ticket")
        def close_order():
            ...

    Registra:
        - Cantidad de llamadas
        - Tiempo promedio
        - Tiempo máximo
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn

        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000

                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    if elapsed_ms > stats['max_time']:
                        stats['max_time'] = elapsed_ms

                if elapsed_ms >= THRESHOLD_WARNING:
                    _log_slow_function_call(func_name, elapsed_ms)

        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


def _log_slow_function_call(func_name, time_ms):
    """Registra una llamada lenta a una función"""
    severity = 'CRÍTICO' if time_ms >= THRESHOLD_CRITICAL else 'LENTO'
    emoji = '🔴' if time_ms >= THRESHOLD_CRITICAL else '⚠️'

    log_entry = f"""
{emoji} [{severity}] {_get_timestamp()}
Función: {func_name}
Tiempo: {time_ms:.0f} ms
────────────────────────────────────────
"""
    _write_log(SLOW_FUNCTIONS_LOG, log_entry)


# ═══════════════════════════════════════════════════════════════════════════
# 4️⃣ REPORTE DE ESTADÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Obtiene estadísticas de todas las funciones perfiladas.

    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2)
            }
        return result


def reset_stats():
    """Reinicia todas las estadísticas (útil para testing)"""
    with _stats_lock:
        _function_stats.clear()


# ═══════════════════════════════════════════════════════════════════════════
# 5️⃣ FUNCIONES DE UTILIDAD
# ═══════════════════════════════════════════════════════════════════════════

def clear_logs():
    """Limpia todos los archivos de log (útil para desarrollo)"""
    for filename in [PERFORMANCE_LOG, SLOW_ROUTES_LOG, SLOW_FUNCTIONS_LOG, ERRORS_LOG]:
        path = _log_path(filename)
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError:
            pass


def get_log_summary():
    """
    Obtiene un resumen del estado actual de los logs.

    Returns:
        dict: {archivo: {exists, size_kb, lines}}
    """
    summary = {}
    for name, filename in [('performance', PERFORMANCE_LOG),
                           ('slow_routes', SLOW_ROUTES_LOG),
                           ('slow_functions', SLOW_FUNCTIONS_LOG),
                           ('errors', ERRORS_LOG)]:
        path = _log_path(filename)
        if os.path.exists(path):
            size = os.path.getsize(path) / 1024  # KB
            with open(path, 'r', encoding='utf-8') as f:
                lines = sum(1 for _ in f)
            summary[name] = {'exists': True, 'size_kb': round(size, 2), 'lines': lines}
        else:
            summary[name] = {'exists': False, 'size_kb': 0, 'lines': 0}
    return summary


__all__ = [
    'ENABLE_PROFILING',
    'init_profiling',
    'profile_function',
    'log_error',
    'set_logs_dir',
    'get_function_stats',
    'reset_stats',
    'clear_logs',
    'get_log_summary',
]
