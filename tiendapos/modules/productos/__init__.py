# tiendapos/modules/productos/__init__.py
"""
Módulo de Productos - Stock e inventario

- Alta, consulta y activación de productos
- Ajuste absoluto de stock
- Movimientos manuales y su anulación
- Verificación stock_actual vs ledger de movimientos
"""

from .router import router
from .service import ProductoService
from .repository import ProductoRepository

__all__ = [
    "router",
    "ProductoService",
    "ProductoRepository"
]
