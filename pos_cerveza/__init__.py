"""Motor de tickets, inventario y optimización de empaques para venta de cerveza."""

__version__ = '1.0.0'
