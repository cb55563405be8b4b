# tiendapos/modules/ventas/__init__.py
"""
Módulo de Ventas

- Alta de ventas con verificación de stock todo-o-nada
- Anulación de ventas del día con reposición de stock
- Clientes, tickets y estadísticas por producto
"""

from .router import router
from .service import VentaService
from .repository import VentaRepository

__all__ = [
    "router",
    "VentaService",
    "VentaRepository"
]
