from flask import Flask, request
import os

from pos_cerveza.models import FailureReason

# Sistema de profiling interno
from pos_cerveza.performance_logger import init_profiling, get_function_stats, get_log_summary, reset_stats, clear_logs

# ═══════════════════════════════════════════════════════════════════════════
# CONTENEDOR DE DEPENDENCIAS - Servicios y Repositorios
# ═══════════════════════════════════════════════════════════════════════════
# Las rutas solo traducen HTTP ↔ servicios; la lógica vive en services/.
# ═══════════════════════════════════════════════════════════════════════════
from pos_cerveza.app_container import AppContainer, get_container
from pos_cerveza.services import AdminApiDisabledError


# Código HTTP por motivo de falla
STATUS_BY_REASON = {
    FailureReason.NOT_FOUND: 404,
    FailureReason.INSUFFICIENT_STOCK: 409,
    FailureReason.ALREADY_CLOSED: 409,
    FailureReason.INVALID_DATA: 400,
}


def to_int(v, default=None):
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _stock_rows(stock):
    return [
        {'product': key.product, 'subtype': key.subtype, 'quantity': qty}
        for key, qty in sorted(stock.items())
    ]


def create_app(base_path=None, config=None):
    """
    Crea la aplicación Flask del punto de venta.

    Args:
        base_path: Directorio de datos (catalog.json, state.json, audit.json)
        config: Configuración extra de Flask (TESTING, ENABLE_ADMIN_API...)

    Returns:
        App Flask lista para servir
    """
    config = dict(config or {})

    app = Flask(__name__)
    app.config.update(config)

    # Un directorio explícito implica un contenedor nuevo (tests, multi-sede)
    if base_path is not None:
        AppContainer.reset_instance()
    container = get_container(base_path, config.get('ENABLE_ADMIN_API'))
    app.extensions['pos_container'] = container

    # ═══════════════════════════════════════════════════════════════════════
    # INICIALIZAR SISTEMA DE PROFILING
    # ═══════════════════════════════════════════════════════════════════════
    # Mide rendimiento de rutas y funciones. Logs en /logs/
    # Para desactivar: POS_ENABLE_PROFILING=0
    init_profiling(app)

    def current_user():
        return request.headers.get('X-User') or None

    def respond(payload, status=200):
        """Toda respuesta lleva las notificaciones pendientes para la caja."""
        payload['notifications'] = [n.to_dict() for n in container.notification_service.drain()]
        return payload, status

    def respond_result(result, **extra):
        """Traduce el dict de resultado de un servicio a respuesta HTTP."""
        if result.get('ok'):
            payload = {'success': True}
            if result.get('order') is not None:
                payload['order'] = result['order'].to_dict()
            if result.get('item') is not None:
                payload['item'] = result['item'].to_dict()
            if 'details' in result:
                payload['details'] = result['details']
            payload.update(extra)
            return respond(payload)

        reason = result.get('reason', FailureReason.INVALID_DATA)
        return respond(
            {'success': False, 'reason': reason.value, 'error': result.get('error', '')},
            STATUS_BY_REASON.get(reason, 400)
        )

    def body():
        return request.get_json(silent=True) or {}

    # ═══════════════════════════════════════════════════════════════════════
    # TICKETS
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/orders', methods=['GET'])
    def api_list_orders():
        """Lista tickets (más recientes primero). ?status=OPEN|PAID"""
        status = request.args.get('status')
        orders = container.order_service.get_orders(status)
        return respond({'success': True, 'orders': [o.to_dict() for o in orders]})

    @app.route('/api/orders', methods=['POST'])
    def api_create_order():
        """
        Abre un ticket.

        Body JSON:
        {
            "customer_name": "Mesa 4",
            "type": "Local" | "Llevar" | "Para Llevar",
            "items": [{...}],            (opcional)
            "payment_method": "...",     (opcional)
            "reference": "..."           (opcional)
        }
        """
        data = body()
        items = data.get('items') or []
        if not isinstance(items, list):
            return respond({'success': False, 'reason': FailureReason.INVALID_DATA.value,
                            'error': 'items debe ser una lista'}, 400)

        result = container.order_service.create_order(
            data.get('customer_name') or data.get('customerName'),
            items,
            data.get('type') or 'Local',
            data.get('payment_method') or data.get('paymentMethod'),
            data.get('reference') or '',
            current_user()
        )
        return respond_result(result)

    @app.route('/api/orders/quote', methods=['POST'])
    def api_quote_order():
        """Calcula el total de un conjunto de items sin tocar el inventario."""
        data = body()
        items = data.get('items') or []
        if not isinstance(items, list):
            return respond({'success': False, 'reason': FailureReason.INVALID_DATA.value,
                            'error': 'items debe ser una lista'}, 400)
        try:
            total = container.order_service.calculate_order_total(items, data.get('type') or 'Local')
        except ValueError as e:
            return respond({'success': False, 'reason': FailureReason.INVALID_DATA.value,
                            'error': str(e)}, 400)
        return respond({'success': True, **total.to_dict()})

    @app.route('/api/orders/<order_id>', methods=['GET'])
    def api_get_order(order_id):
        order = container.order_service.get_order(order_id)
        if order is None:
            return respond({'success': False, 'reason': FailureReason.NOT_FOUND.value,
                            'error': 'Ticket no encontrado'}, 404)
        return respond({'success': True, 'order': order.to_dict()})

    @app.route('/api/orders/<order_id>/items', methods=['POST'])
    def api_add_item(order_id):
        data = body()
        item = data.get('item', data)
        return respond_result(container.order_service.add_item_to_order(order_id, item))

    @app.route('/api/orders/<order_id>/items/<item_id>', methods=['DELETE'])
    def api_remove_item(order_id, item_id):
        return respond_result(container.order_service.remove_item_from_order(order_id, item_id))

    @app.route('/api/orders/<order_id>/items/<int:item_index>/slots/<int:slot_index>', methods=['PUT'])
    def api_update_slot(order_id, item_index, slot_index):
        """
        Asigna (o libera) el producto consumido en un slot.

        Body JSON: {"content": "Polar Pilsen"} o {"content": null}
        """
        data = body()
        result = container.order_service.update_order_item_slot(
            order_id, item_index, slot_index, data.get('content')
        )
        return respond_result(result)

    @app.route('/api/orders/<order_id>/close', methods=['POST'])
    def api_close_order(order_id):
        data = body()
        result = container.order_service.close_order(
            order_id,
            data.get('payment_method') or data.get('paymentMethod'),
            data.get('reference') or '',
            current_user()
        )
        return respond_result(result)

    @app.route('/api/orders/<order_id>/cancel', methods=['POST'])
    def api_cancel_order(order_id):
        return respond_result(container.order_service.cancel_order(order_id, current_user()))

    # ═══════════════════════════════════════════════════════════════════════
    # CAJA
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/sales/direct', methods=['POST'])
    def api_direct_sale():
        """
        Venta para llevar cobrada en un paso.

        Body JSON:
        {
            "customer_name": "...",
            "items": [{...}],
            "payment_method": "Efectivo",
            "reference": "..."
        }
        """
        data = body()
        items = data.get('items') or []
        if not isinstance(items, list):
            return respond({'success': False, 'reason': FailureReason.INVALID_DATA.value,
                            'error': 'items debe ser una lista'}, 400)
        result = container.order_service.process_direct_sale(
            data.get('customer_name') or data.get('customerName'),
            items,
            data.get('payment_method') or data.get('paymentMethod'),
            data.get('reference') or '',
            current_user()
        )
        return respond_result(result)

    # ═══════════════════════════════════════════════════════════════════════
    # INVENTARIO
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/inventory', methods=['GET'])
    def api_inventory():
        """Existencias en unidades y carga pendiente."""
        stock = container.stock_service
        return respond({
            'success': True,
            'inventory': _stock_rows(stock.snapshot()),
            'pending': _stock_rows(stock.pending_inventory)
        })

    @app.route('/api/inventory/pending', methods=['POST'])
    def api_pending_inventory():
        """Body JSON: {"product": "...", "subtype": "...", "delta": 24}"""
        data = body()
        product = data.get('product')
        subtype = data.get('subtype')
        delta = to_int(data.get('delta'))
        if not product or not subtype or delta is None:
            return respond({'success': False, 'reason': FailureReason.INVALID_DATA.value,
                            'error': 'Producto, subtipo o cantidad inválida'}, 400)

        value = container.stock_service.update_pending_inventory(product, subtype, delta)
        return respond({'success': True, 'product': product, 'subtype': subtype, 'pending': value})

    @app.route('/api/inventory/pending', methods=['DELETE'])
    def api_clear_pending_inventory():
        container.stock_service.clear_pending_inventory()
        return respond({'success': True})

    @app.route('/api/inventory/commit', methods=['POST'])
    def api_commit_inventory():
        report = container.stock_service.commit_inventory(current_user())
        return respond({'success': True, 'report': report.to_dict()})

    @app.route('/api/inventory/history', methods=['GET'])
    def api_inventory_history():
        history = container.stock_service.get_inventory_history()
        return respond({'success': True, 'history': [r.to_dict() for r in history]})

    @app.route('/api/inventory/base', methods=['PUT'])
    def api_set_base_stock():
        """Body JSON: {"product": "...", "subtype": "...", "units": 120}"""
        data = body()
        product = data.get('product')
        subtype = data.get('subtype')
        units = to_int(data.get('units'))
        if not product or not subtype or units is None or units < 0:
            return respond({'success': False, 'reason': FailureReason.INVALID_DATA.value,
                            'error': 'Producto, subtipo o unidades inválidas'}, 400)

        new_total = container.stock_service.set_base_stock(product, subtype, units)
        return respond({'success': True, 'product': product, 'subtype': subtype, 'quantity': new_total})

    # ═══════════════════════════════════════════════════════════════════════
    # TASA DE CAMBIO
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/exchange-rate', methods=['GET'])
    def api_get_exchange_rate():
        return respond({'success': True, 'rates': dict(container.catalog_service.exchange_rates)})

    @app.route('/api/exchange-rate', methods=['PUT'])
    def api_set_exchange_rate():
        """Body JSON: {"bcv": 36.5, "parallel": 40}"""
        data = body()
        try:
            bcv = float(data.get('bcv'))
            parallel = float(data.get('parallel') or 0)
        except (TypeError, ValueError):
            return respond({'success': False, 'reason': FailureReason.INVALID_DATA.value,
                            'error': 'Tasa inválida'}, 400)
        if bcv <= 0:
            return respond({'success': False, 'reason': FailureReason.INVALID_DATA.value,
                            'error': 'La tasa debe ser mayor que 0'}, 400)

        rates = container.catalog_service.set_exchange_rate(bcv, parallel)
        return respond({'success': True, 'rates': rates})

    # ═══════════════════════════════════════════════════════════════════════
    # AUDITORÍA
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/audit', methods=['GET'])
    def api_audit():
        """Logs de actividad (más recientes primero). ?type=TICKET|VENTA|STOCK"""
        logs = container.audit_service.get_logs(request.args.get('type'))
        limit = to_int(request.args.get('limit'), 200)
        return respond({'success': True, 'logs': logs[:limit]})

    # ═══════════════════════════════════════════════════════════════════════
    # ADMINISTRACIÓN
    # ═══════════════════════════════════════════════════════════════════════

    @app.route('/api/admin/orders', methods=['PUT'])
    def api_replace_orders():
        """Reemplaza todos los tickets. Requiere POS_ENABLE_ADMIN_API."""
        data = body()
        orders = data.get('orders')
        if not isinstance(orders, list):
            return respond({'success': False, 'reason': FailureReason.INVALID_DATA.value,
                            'error': 'orders debe ser una lista'}, 400)
        try:
            count = container.order_service.replace_all_orders(orders)
        except AdminApiDisabledError as e:
            return respond({'success': False, 'error': str(e)}, 403)
        return respond({'success': True, 'count': count})

    @app.route('/api/admin/performance', methods=['GET'])
    def api_performance():
        """Estadísticas de funciones perfiladas y estado de los logs."""
        if not container.order_service.allow_admin:
            return respond({'success': False, 'error': 'La API administrativa está deshabilitada'}, 403)
        return respond({'success': True, 'functions': get_function_stats(), 'logs': get_log_summary()})

    @app.route('/api/admin/performance', methods=['DELETE'])
    def api_reset_performance():
        """Reinicia estadísticas y borra los logs de rendimiento."""
        if not container.order_service.allow_admin:
            return respond({'success': False, 'error': 'La API administrativa está deshabilitada'}, 403)
        reset_stats()
        clear_logs()
        return respond({'success': True})

    @app.route('/api/health', methods=['GET'])
    def api_health():
        return {'status': 'ok', 'organization': container.catalog_service.organization_id}

    return app


if __name__ == "__main__":
    # Configuración para desarrollo local y acceso desde la red del local
    # En producción usar WSGI (gunicorn, waitress, etc.)
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    if not DEBUG:
        print(f"\n{'='*50}")
        print(f"  Servidor iniciado en http://{HOST}:{PORT}")
        print(f"  Acceso local: http://localhost:{PORT}")
        print(f"{'='*50}\n")

    create_app().run(debug=DEBUG, host=HOST, port=PORT)
